"""
dapi - FastAPI Application Factory
"""
import asyncio
from typing import Any, Callable, Optional
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine
import structlog

from dapi.api import ReadHandler, ResultAssembler, router
from dapi.audit import AuditLogStore, AuditQueue
from dapi.config import Settings, get_settings
from dapi.database import create_session_factory, create_store_engine, init_store
from dapi.dialects import BaseDialect, get_dialect
from dapi.errors import ApiError
from dapi.registry import SchemaRegistry
from dapi.security import PermissionGate
from dapi.trail import Trail

# Configure structured logging
structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.add_log_level,
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
)

logger = structlog.get_logger()


def create_app(
    registry: SchemaRegistry,
    dialect: Optional[BaseDialect] = None,
    settings: Optional[Settings] = None,
    store_engine: Optional[Engine] = None,
    user_resolver: Optional[Callable[[Request], Any]] = None,
    trail: Optional[Trail] = None,
) -> FastAPI:
    """
    Build the data API application.

    Args:
        registry: Models to expose; frozen by this call
        dialect: Data database driver, defaults to ``DB_TYPE``/``DATABASE_URL``
        settings: Defaults to the cached environment settings
        store_engine: Engine for users, roles and audit logs
        user_resolver: ``request -> user or None``
        trail: Sink for pipeline diagnostics

    Raises:
        ConfigurationError: ``DB_TYPE`` names an unsupported engine
    """
    settings = settings or get_settings()
    trail = trail or Trail(reporting_level=settings.REPORTING_LEVEL)
    if dialect is None:
        dialect = get_dialect(settings.DB_TYPE, settings.DATABASE_URL, trail=trail, debug_db=settings.DEBUG_DB)
    store_engine = store_engine or create_store_engine(settings.AUDIT_DATABASE_URL)

    audit_queue = AuditQueue(
        AuditLogStore(create_session_factory(store_engine)),
        maxsize=settings.AUDIT_QUEUE_SIZE,
        trail=trail,
    )
    handler = ReadHandler(
        registry,
        dialect,
        gate=PermissionGate(log_read=settings.API_LOG_READ, log_write=settings.API_LOG_WRITE),
        assembler=ResultAssembler(registry, dialect, audit_queue),
        trail=trail,
        debug_db=settings.DEBUG_DB,
    )
    registry.freeze()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown events."""
        logger.info("application_startup", version=settings.APP_VERSION, models=registry.names())
        init_store(store_engine)
        audit_queue.start()

        yield

        await asyncio.to_thread(audit_queue.close)
        logger.info("application_shutdown")

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Model-driven REST data API",
        lifespan=lifespan
    )
    app.state.read_handler = handler
    app.state.audit_queue = audit_queue
    app.state.user_resolver = user_resolver
    app.state.dialect = dialect

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        """Render API errors as the response envelope."""
        return JSONResponse(status_code=exc.status_code, content=exc.to_envelope())

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle general exceptions."""
        logger.error("unhandled_exception", error=str(exc), path=request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "status": "error",
                "err_msg": str(exc) if settings.DEBUG else "An error occurred"
            }
        )

    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "version": settings.APP_VERSION,
            "app": settings.APP_NAME,
            "db_type": dialect.name,
        }

    app.include_router(router, prefix=settings.API_PREFIX, tags=["Data API"])
    return app
