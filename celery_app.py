from celery import Celery
from filevault.core.config import settings
from kombu import Queue

app = Celery('filevault', include=['filevault.tasks'])
app.conf.update(
    broker_url=settings.RABBITMQ_URL,
    result_backend=settings.REDIS_URL,
    task_routes={
        'filevault.tasks.*': {'queue': 'filevault'},
    },
    task_serializer='json',
    result_serializer='json',
    accept_content=['json'],
    timezone='UTC',
    enable_utc=True,
)

app.conf.task_queues = (
    Queue('filevault', routing_key='filevault.#'),
)
