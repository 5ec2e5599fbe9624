"""Dashboard statistics for the admin area."""

import asyncio
import logging
from datetime import timedelta
from decimal import Decimal

from pydantic import BaseModel

from auth.profiles import ProfileStore
from auth.security_logger import SecurityLogger, SecurityEvent
from clients.postgres_client import PostgresClient
from core.services.payment_service import PaymentService
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

LOGIN_WINDOW = timedelta(hours=24)


class DashboardStats(BaseModel):
    """Headline numbers for the dashboard."""

    users: int
    orders: int
    revenue: Decimal
    logins: int


class StatsService:
    """Aggregates counts from users, orders, payments and security events."""

    def __init__(
        self,
        postgres: PostgresClient,
        profile_store: ProfileStore,
        payment_service: PaymentService,
        security_logger: SecurityLogger,
    ):
        self.postgres = postgres
        self.profiles = profile_store
        self.payments = payment_service
        self.security_logger = security_logger

    def count_orders(self) -> int:
        return self.postgres.execute_scalar("SELECT count(*) FROM orders") or 0

    def count_recent_logins(self) -> int:
        """Successful logins in the last 24 hours."""
        return self.security_logger.count_since(
            SecurityEvent.LOGIN_SUCCEEDED,
            now_utc() - LOGIN_WINDOW,
        )

    async def get_stats(self) -> DashboardStats:
        """Run the four reads concurrently and join them."""
        users, orders, revenue, logins = await asyncio.gather(
            asyncio.to_thread(self.profiles.count),
            asyncio.to_thread(self.count_orders),
            asyncio.to_thread(self.payments.total_revenue),
            asyncio.to_thread(self.count_recent_logins),
        )
        return DashboardStats(users=users, orders=orders, revenue=revenue, logins=logins)
