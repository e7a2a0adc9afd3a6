import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ffmpeg_exporter.api import exporter
from ffmpeg_exporter.config import get_settings
from ffmpeg_exporter.exceptions import ExporterError
from ffmpeg_exporter.logging_config import configure_logging
from ffmpeg_exporter.schemas.envelope import ErrorResponse

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup
    configure_logging(settings.log_level)
    yield
    # Shutdown: no encoder may outlive the server
    await exporter.registry.abort_all()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    lifespan=lifespan,
)


@app.exception_handler(ExporterError)
async def exporter_error_handler(request: Request, exc: ExporterError) -> JSONResponse:
    """Render exporter errors as {"error": ErrorInfo}."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    body = ErrorResponse(error=exc.to_error_info())
    return JSONResponse(
        status_code=exc.status_code,
        content=body.model_dump(mode="json"),
    )


app.include_router(exporter.router)


@app.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "healthy", "version": settings.app_version}
