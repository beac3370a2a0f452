"""Main FastAPI application."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.middleware import LoggingMiddleware, RateLimitMiddleware
from app.api.routes import router
from app.config import Settings, get_settings
from app.database.mongodb import MongoDB, mongodb
from app.exceptions import StorefrontError, UpstreamGatewayError
from app.services.checkout_service import CheckoutService
from app.services.gateway import PaymentGateway
from app.services.order_service import OrderService
from app.services.payment_service import PaymentService
from app.utils.logger import setup_logging

logger = logging.getLogger(__name__)


def wire_services(app: FastAPI, store: MongoDB, gateway: PaymentGateway, settings: Settings) -> None:
    """Attach the store, gateway and services to ``app.state``."""
    app.state.settings = settings
    app.state.store = store
    app.state.gateway = gateway
    app.state.checkout_service = CheckoutService(store, gateway, settings)
    app.state.payment_service = PaymentService(store, gateway, settings)
    app.state.order_service = OrderService(store)


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    """Convert domain and unexpected errors into JSON error envelopes."""

    @app.exception_handler(StorefrontError)
    async def storefront_exception_handler(request: Request, exc: StorefrontError) -> JSONResponse:
        content = exc.to_dict()
        if isinstance(exc, UpstreamGatewayError):
            logger.error("Payment gateway error on %s: %s", request.url.path, exc.cause or exc.message)
            if settings.expose_error_details and exc.cause:
                content["detail"] = exc.cause
        elif exc.status_code >= 500:
            logger.error("Server error on %s: %s", request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "message": "Validation failed",
                "errors": jsonable_encoder(exc.errors()),
            },
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler."""
        logger.error("Unhandled exception: %s", exc, exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": "InternalError",
                "message": "An unexpected error occurred",
            },
        )


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[MongoDB] = None,
    gateway: Optional[PaymentGateway] = None,
) -> FastAPI:
    """Build the application.

    ``store`` and ``gateway`` default to the global MongoDB connection and a
    Razorpay client built from settings. The lifespan only connects a store
    that is not already connected.
    """
    settings = settings or get_settings()
    store = store or mongodb

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        # Startup
        logger.info("Starting application...")
        connected_here = store.db is None
        try:
            if connected_here:
                await store.connect()
            wire_services(app, store, gateway or PaymentGateway(settings), settings)
            logger.info("Application ready")

            yield

        finally:
            # Shutdown
            logger.info("Shutting down application...")
            if connected_here:
                await store.disconnect()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Storefront checkout, payment verification and order management API",
        lifespan=lifespan,
    )

    # Services are usable before startup when a connected store is injected
    if store.db is not None:
        wire_services(app, store, gateway or PaymentGateway(settings), settings)

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add custom middleware
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        requests_per_minute=settings.rate_limit_requests,
        strict_requests_per_minute=settings.rate_limit_payment_requests,
        strict_prefixes=(
            f"{settings.api_prefix}/checkout",
            f"{settings.api_prefix}/orders/checkout",
            f"{settings.api_prefix}/orders/verify-payment",
            f"{settings.api_prefix}/payments",
        ),
        window_seconds=settings.rate_limit_period,
    )

    # Include routers
    app.include_router(router, prefix=settings.api_prefix)
    register_exception_handlers(app, settings)

    # Root endpoint
    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint."""
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "status": "running",
        }

    return app


setup_logging()
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "app.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
