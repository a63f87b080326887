import asyncio
import logging
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse
from soco.exceptions import SoCoException

from random_radio.config import settings
from random_radio.core.service import RadioService
from random_radio.models.state import ErrorResponse
from random_radio.platform.base import Platform, PlatformError
from random_radio.routers import events, status, system, zones
from random_radio.routers import settings as settings_router
from random_radio.services.status import StatusBoard
from random_radio.services.store import SettingsStore


def setup_logging() -> None:
    """Configure structlog for structured logging."""
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.log_json:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(settings.log_level.upper())

    # Quiet noisy loggers
    logging.getLogger("soco").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def default_platform() -> Platform:
    from random_radio.platform.sonos import SonosPlatform

    return SonosPlatform(
        poll_interval=settings.poll_interval,
        discovery_interval=settings.discovery_interval,
        page_size=settings.browse_page_size,
    )


def create_app(platform: Platform | None = None, store: SettingsStore | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging()
        logger = structlog.get_logger()
        logger.info("Starting Random Radio", port=settings.api_port)

        board = StatusBoard(on_change=lambda s: events.broadcast("status", s.model_dump()))
        service = RadioService(
            platform or default_platform(),
            store or SettingsStore(settings.settings_path),
            board,
            settle_delay=settings.settle_delay,
            wait_timeout=settings.wait_timeout,
            rng_seed=settings.rng_seed,
        )
        app.state.platform = service.platform
        app.state.status = board
        app.state.radio = service

        service.start()
        await app.state.platform.start()

        yield

        logger.info("Shutting down Random Radio")
        await app.state.platform.stop()

    app = FastAPI(
        title="Random Radio",
        description="Keeps a random radio going on multi-zone audio players",
        version="0.1.0",
        lifespan=lifespan,
    )

    @app.get("/", include_in_schema=False)
    async def root():
        return RedirectResponse(url="/docs")

    app.include_router(system.router, tags=["system"])
    app.include_router(status.router, tags=["status"])
    app.include_router(zones.router, tags=["zones"])
    app.include_router(settings_router.router, tags=["settings"])
    app.include_router(events.router, tags=["events"])

    @app.exception_handler(PlatformError)
    @app.exception_handler(SoCoException)
    async def platform_exception_handler(request: Request, exc: Exception):
        logger = structlog.get_logger()
        logger.error("Platform error", error=str(exc), path=request.url.path)
        return JSONResponse(
            status_code=502,
            content=ErrorResponse(error="Platform communication error", detail=str(exc)).model_dump(),
        )

    @app.exception_handler(ConnectionError)
    async def connection_error_handler(request: Request, exc: ConnectionError):
        logger = structlog.get_logger()
        logger.error("Connection error", error=str(exc), path=request.url.path)
        # Trigger re-discovery in background
        rediscover = getattr(request.app.state.platform, "trigger_rediscovery", None)
        if rediscover is not None:
            asyncio.create_task(rediscover())
        return JSONResponse(
            status_code=503,
            content=ErrorResponse(error="Platform unreachable", detail=str(exc)).model_dump(),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        logger = structlog.get_logger()
        logger.exception("Unhandled error", error=str(exc), path=request.url.path)
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(error="Internal server error", detail=str(exc)).model_dump(),
        )

    return app


app = create_app()


def run() -> None:
    uvicorn.run("random_radio.main:app", host=settings.api_host, port=settings.api_port)
