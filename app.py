"""
Application composition.

build_services() wires clients and services from Vault and the environment;
create_app() mounts middleware and routers around an already-built Services.
Tests build their own Services from mocks and call create_app() directly.
"""

import logging
import os
from dataclasses import dataclass

from fastapi import FastAPI

from api.admin import create_admin_router
from api.errors import register_error_handlers
from api.middleware import RequestIDMiddleware
from api.payments import create_payments_router
from auth.api import create_auth_router
from auth.config import AuthConfig, GateConfig
from auth.profiles import ProfileStore
from auth.rate_limiter import RateLimiter
from auth.security_logger import SecurityLogger
from auth.security_middleware import AccessGate
from auth.service import AuthService
from clients.identity_client import IdentityClient
from clients.postgres_client import PostgresClient
from clients.valkey_client import ValkeyClient
from clients.vault_client import (
    get_database_url,
    get_identity_config,
    get_payhere_config,
    get_valkey_url,
)
from core.audit import AuditRecorder
from core.payhere import PayHereConfig
from core.services.payment_service import PaymentService
from core.services.stats_service import StatsService

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Everything the HTTP layer needs, constructed once per process."""

    config: AuthConfig
    identity_client: IdentityClient
    profile_store: ProfileStore
    auth_service: AuthService
    payment_service: PaymentService
    payment_rate_limiter: RateLimiter
    stats_service: StatsService
    audit: AuditRecorder
    security_logger: SecurityLogger


def build_services(config: AuthConfig | None = None) -> Services:
    """Construct clients and services from Vault secrets and env settings."""
    config = config or AuthConfig.from_env()

    postgres = PostgresClient(get_database_url())
    valkey = ValkeyClient(get_valkey_url())

    identity = get_identity_config()
    identity_client = IdentityClient(identity["url"], identity["anon_key"])

    payhere = get_payhere_config()
    payhere_config = PayHereConfig(
        merchant_id=payhere["merchant_id"],
        merchant_secret=payhere["merchant_secret"],
        base_url=os.getenv("APP_BASE_URL", "http://localhost:8000"),
        sandbox=os.getenv("PAYHERE_SANDBOX", "true").lower() != "false",
    )

    audit = AuditRecorder(postgres)
    security_logger = SecurityLogger(postgres)
    profile_store = ProfileStore(postgres)

    login_rate_limiter = RateLimiter(
        valkey,
        scope="login",
        attempts=config.login_rate_limit_attempts,
        window_minutes=config.login_rate_limit_window_minutes,
    )
    payment_rate_limiter = RateLimiter(
        valkey,
        scope="payment",
        attempts=config.payment_rate_limit_attempts,
        window_minutes=config.payment_rate_limit_window_minutes,
    )

    auth_service = AuthService(
        config=config,
        identity_client=identity_client,
        profile_store=profile_store,
        rate_limiter=login_rate_limiter,
        security_logger=security_logger,
        audit=audit,
    )
    payment_service = PaymentService(postgres, audit, payhere_config)
    stats_service = StatsService(postgres, profile_store, payment_service, security_logger)

    logger.info(f"Services built (production={config.production}, sandbox={payhere_config.sandbox})")

    return Services(
        config=config,
        identity_client=identity_client,
        profile_store=profile_store,
        auth_service=auth_service,
        payment_service=payment_service,
        payment_rate_limiter=payment_rate_limiter,
        stats_service=stats_service,
        audit=audit,
        security_logger=security_logger,
    )


def create_app(services: Services, gate_config: GateConfig | None = None) -> FastAPI:
    """FastAPI app with the access gate, error handlers and all routers."""
    app = FastAPI(title="Gem Admin")
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        AccessGate,
        identity_client=services.identity_client,
        profile_store=services.profile_store,
        config=services.config,
        gate_config=gate_config,
    )
    register_error_handlers(app)

    app.include_router(
        create_auth_router(services.auth_service, services.config),
        prefix="/api/auth",
    )
    app.include_router(
        create_payments_router(
            services.payment_service,
            services.auth_service,
            services.payment_rate_limiter,
        ),
        prefix="/api/payment",
    )
    app.include_router(
        create_admin_router(services.stats_service, services.audit, services.security_logger),
        prefix="/admin",
    )

    return app
