import logging
import logging.config
import time

from fastapi import Request

from filevault.core.metrics import observe_request

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

logger = logging.getLogger("filevault.requests")


def setup_logging(level: str = "INFO") -> None:
    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {"format": LOG_FORMAT, "datefmt": "%Y-%m-%d %H:%M:%S"},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
            },
        },
        "loggers": {
            "filevault": {"handlers": ["console"], "level": level.upper(), "propagate": False},
        },
    })


def _route_template(request: Request) -> str:
    # Label by route template so file ids do not explode label cardinality
    route = request.scope.get("route")
    return getattr(route, "path", "unmatched")


async def log_requests(request: Request, call_next):
    """Log every request as ``METHOD path - status [ms]``; errors at ERROR level."""
    start = time.perf_counter()
    response = await call_next(request)
    duration = time.perf_counter() - start
    observe_request(request.method, _route_template(request), response.status_code, duration)
    message = "%s %s - %s [%.1f ms]"
    args = (request.method, request.url.path, response.status_code, duration * 1000)
    if response.status_code >= 400:
        logger.error(message, *args)
    else:
        logger.info(message, *args)
    return response
