"""FastAPI application for the Ordering Service."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from libs.common.config import get_settings
from libs.common.error_handler import add_exception_handlers
from libs.common.logging import configure_logging, get_logger
from libs.db.session import create_tables
from services.ordering_service.routers import (
    admin_router,
    orders_router,
    payment_methods_router,
    payments_router,
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    if settings.DB_CREATE_TABLES:
        logger.info("Creating ordering tables")
        await create_tables()
    yield


def create_app() -> FastAPI:
    """Create and configure the Ordering Service FastAPI app."""
    configure_logging()

    app = FastAPI(
        title="Ordering Service",
        version="0.1.0",
        description="Food ordering service - orders, payments, saved cards and stock.",
        lifespan=lifespan,
    )
    add_exception_handlers(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "ordering"}

    # Member routes
    app.include_router(orders_router, prefix="/ordering")
    app.include_router(payments_router, prefix="/ordering")
    app.include_router(payment_methods_router, prefix="/ordering")

    # Admin routes (order oversight, reconciliation, stock corrections)
    app.include_router(admin_router, prefix="/admin/ordering")

    return app


app = create_app()
