# storefront/main.py
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
import uvicorn

from storefront.data.database import Base, engine
from storefront.api.routers import addresses, carts, checkout, health, orders, payments, users
from storefront.domain.errors import StorefrontError
from storefront.payments.registry import PaymentMethodRegistry, build_payment_registry
from storefront.services.lock_service import LockService
from storefront.utils.logging import get_logger

# IMPORT WSZYSTKICH MODELI NA POCZĄTKU (PRZED JAKIMKOLWIEK CREATE_ALL)
import storefront.data.models  # noqa: F401

logger = get_logger(__name__)


def init_db() -> None:
    logger.info(f"Initializing database, models: {list(Base.metadata.tables.keys())}")
    try:
        Base.metadata.create_all(bind=engine)
    except SQLAlchemyError as e:
        logger.error(f"Failed to create tables: {e}")
        raise
    logger.info("Database tables created")


def create_app(
    payment_methods: PaymentMethodRegistry | None = None,
    lock_service: LockService | None = None,
) -> FastAPI:
    app = FastAPI(
        title="Storefront Service",
        version="1.0.0",
    )

    app.state.payment_methods = payment_methods or build_payment_registry()
    app.state.lock_service = lock_service or LockService()

    @app.exception_handler(StorefrontError)
    async def storefront_error_handler(request: Request, exc: StorefrontError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(SQLAlchemyError)
    async def database_error_handler(request: Request, exc: SQLAlchemyError):
        logger.error(f"{request.method} {request.url.path}: database error: {exc}")
        return JSONResponse(status_code=500, content={"message": "Database error"})

    # Include routers
    app.include_router(health.router)
    app.include_router(users.router)
    app.include_router(carts.router)
    app.include_router(addresses.router)
    app.include_router(checkout.router)
    app.include_router(payments.router)
    app.include_router(orders.router)

    return app


init_db()
app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
