from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import sessionmaker

from mpesa_checkout.collaborators import NotificationClient, OrderServiceClient
from mpesa_checkout.config import Settings
from mpesa_checkout.database import create_session_factory, init_db
from mpesa_checkout.exceptions import CheckoutError
from mpesa_checkout.gateway import MpesaGateway
from mpesa_checkout.logging_config import configure_logging
from mpesa_checkout.orchestrator import PaymentOrchestrator
from mpesa_checkout.routes import auth, notifications, orders, payments
from mpesa_checkout.tokens import TokenService

logger = structlog.get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    session_factory: Optional[sessionmaker] = None,
    gateway=None,
    order_service=None,
    notifier=None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level, settings.log_format)

    if not settings.mpesa_bearer_token:
        logger.error("mpesa_bearer_token_missing")

    # clients built here are closed on shutdown, injected ones belong to the caller
    owned = []
    if gateway is None:
        gateway = MpesaGateway(
            api_host=settings.mpesa_api_host,
            port=settings.mpesa_api_port,
            bearer_token=settings.mpesa_bearer_token,
            service_provider_code=settings.mpesa_service_provider_code,
            timeout=settings.mpesa_timeout_seconds,
        )
        owned.append(gateway)
    if order_service is None:
        order_service = OrderServiceClient(
            settings.order_service_url,
            settings.service_api_key,
            timeout=settings.service_timeout_seconds,
        )
        owned.append(order_service)
    if notifier is None:
        notifier = NotificationClient(
            settings.notification_service_url,
            settings.service_api_key,
            timeout=settings.service_timeout_seconds,
        )
        owned.append(notifier)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        for component in owned:
            component.close()
        logger.info("checkout_service_stopped", closed_clients=len(owned))

    app = FastAPI(title="M-Pesa Checkout Service", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.tokens = TokenService(
        settings.jwt_secret,
        access_ttl=timedelta(seconds=settings.access_token_ttl_seconds),
        refresh_ttl=timedelta(seconds=settings.refresh_token_ttl_seconds),
        service_secret=settings.service_api_key,
    )
    app.state.session_factory = session_factory or create_session_factory(settings.database_url)
    init_db(app.state.session_factory)

    app.state.orchestrator = PaymentOrchestrator(
        gateway=gateway,
        order_service=order_service,
        notifier=notifier,
        default_phone=settings.mpesa_default_phone,
    )

    app.include_router(auth.router)
    app.include_router(payments.router)
    app.include_router(orders.router)
    app.include_router(notifications.router)

    @app.exception_handler(CheckoutError)
    async def checkout_error_handler(request: Request, exc: CheckoutError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_body())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"success": False, "message": "Invalid request body", "errors": _errors(exc)},
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception("unhandled_error", path=request.url.path)
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": "Internal server error"},
        )

    logger.info("checkout_service_started", database=settings.database_url.split("://")[0])
    return app


def _errors(exc: RequestValidationError) -> list[dict]:
    return [{"loc": list(err["loc"]), "msg": err["msg"]} for err in exc.errors()]
