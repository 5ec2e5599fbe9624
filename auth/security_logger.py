"""Security event logging for the auth audit trail.

Append-only log to the security_events table. Used for login outcomes and
sign-outs; the dashboard counts successful logins from here.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from clients.postgres_client import PostgresClient
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


class SecurityEvent(Enum):
    """Auth security event types."""

    LOGIN_SUCCEEDED = "login_succeeded"
    LOGIN_FAILED = "login_failed"
    LOGIN_DENIED = "login_denied"
    TWO_FACTOR_REQUIRED = "two_factor_required"
    TWO_FACTOR_FAILED = "two_factor_failed"
    LOGOUT = "logout"
    RATE_LIMITED = "rate_limited"


class SecurityLogger:
    """Append-only security event logger."""

    def __init__(self, postgres: PostgresClient):
        self._db = postgres

    def log(
        self,
        event: SecurityEvent,
        email: str | None = None,
        user_id: UUID | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Log security event to database."""
        self._db.execute_returning(
            """INSERT INTO security_events
               (event_type, email, user_id, ip_address, user_agent, details, created_at)
               VALUES (%s, %s, %s, %s, %s, %s, %s)
               RETURNING id""",
            (
                event.value,
                email,
                user_id,
                ip_address,
                user_agent,
                details,
                now_utc(),
            ),
        )
        logger.info(f"Security event: {event.value}")

    def count_since(self, event: SecurityEvent, since: datetime) -> int:
        """Count events of one type created at or after `since`."""
        return self._db.execute_scalar(
            """SELECT count(*) FROM security_events
               WHERE event_type = %s AND created_at >= %s""",
            (event.value, since),
        ) or 0

    def get_recent_events(
        self,
        email: str | None = None,
        user_id: UUID | None = None,
        event_type: SecurityEvent | None = None,
        limit: int = 100,
    ) -> list[dict]:
        """Query recent security events with optional filters."""
        conditions = []
        params = []

        if email:
            conditions.append("email = %s")
            params.append(email)

        if user_id:
            conditions.append("user_id = %s")
            params.append(user_id)

        if event_type:
            conditions.append("event_type = %s")
            params.append(event_type.value)

        where_clause = " AND ".join(conditions) if conditions else "1=1"
        params.append(limit)

        return self._db.execute(
            f"""SELECT id, event_type, email, user_id, ip_address, user_agent, details, created_at
                FROM security_events
                WHERE {where_clause}
                ORDER BY created_at DESC
                LIMIT %s""",
            tuple(params),
        )
