from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from filevault.core.config import settings
from filevault.core.database import create_engine, create_session_factory
from filevault.core.exceptions import FileVaultError
from filevault.core.logger import log_requests, setup_logging
from filevault.api.v1 import endpoints
from filevault.services.blob_store import create_blob_store
from filevault.tasks import enqueue_reclaim
import logging

setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Storage handles are built once here and reach requests through app.state
    engine = create_engine(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)
    app.state.session_factory = create_session_factory(engine)
    app.state.blob_store = create_blob_store(settings)
    app.state.hash_chunk_size = settings.HASH_CHUNK_SIZE
    app.state.reclaim_blobs = enqueue_reclaim
    logger.info("%s %s started (storage backend: %s)", settings.PROJECT_NAME, settings.VERSION, settings.STORAGE_BACKEND)
    yield
    await engine.dispose()

app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.middleware("http")(log_requests)

@app.exception_handler(FileVaultError)
async def file_vault_error_handler(request: Request, exc: FileVaultError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message, exc_info=exc)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

# Health check
@app.get("/health")
async def health_check():
    return {"status": "healthy", "version": settings.VERSION}

# Prometheus scrape endpoint
@app.get("/metrics", include_in_schema=False)
async def metrics():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

app.include_router(endpoints.router, prefix=settings.API_V1_STR)
