"""
Audit trail for privileged actions.

Written by privileged mutation handlers (profile updates, attributed payment
intents). The audit log is:
- Append-only (entries never modified or deleted by the application)
- User-attributed (who did it)
- Request-attributed (from which address and user agent)
"""

import logging
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from clients.postgres_client import PostgresClient
from utils.user_context import require_current_user_id
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


class AuditAction(Enum):
    """Action recorded in audit_logs.action."""

    UPDATE_PROFILE = "UPDATE_PROFILE"
    PAYMENT_INITIATED = "PAYMENT_INITIATED"


def compute_changes(
    old: dict[str, Any],
    new: dict[str, Any],
    exclude_fields: set[str] | None = None
) -> dict[str, dict[str, Any]]:
    """
    Compute changes between two entity states.

    Args:
        old: Previous state of entity
        new: New state of entity
        exclude_fields: Fields to ignore (defaults to {"updated_at"})

    Returns:
        Dict of {field: {"old": old_val, "new": new_val}} for changed fields.
        Empty dict if no changes.
    """
    exclude = exclude_fields or {"updated_at"}
    changes = {}

    for key in set(old.keys()) | set(new.keys()):
        if key in exclude:
            continue

        old_val = old.get(key)
        new_val = new.get(key)

        if old_val != new_val:
            changes[key] = {"old": old_val, "new": new_val}

    return changes


class AuditRecorder:
    """
    Append-only recorder for security-relevant actions.

    Pass Pydantic data through model_dump(mode="json") so details stay
    JSON-serializable.

    Usage:
        audit = AuditRecorder(postgres)
        audit.record(
            action=AuditAction.UPDATE_PROFILE,
            resource_type="user",
            resource_id=profile.id,
            details=compute_changes(old, new),
            ip_address=ip,
            user_agent=agent,
        )
    """

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def record(
        self,
        action: AuditAction,
        resource_type: str,
        resource_id: UUID | str,
        details: dict[str, Any] | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        user_id: UUID | None = None,
    ) -> UUID:
        """
        Append one audit entry.

        Args:
            user_id: Acting user (defaults to the current request's user;
                raises RuntimeError when there is none)

        Returns:
            ID of the new entry.
        """
        if user_id is None:
            user_id = require_current_user_id()

        entry_id = uuid4()
        self.postgres.execute(
            """
            INSERT INTO audit_logs
                (id, user_id, action, resource_type, resource_id, details,
                 ip_address, user_agent, created_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
            """,
            (
                entry_id,
                user_id,
                action.value,
                resource_type,
                str(resource_id),
                details or {},
                ip_address or "unknown",
                user_agent or "unknown",
                now_utc(),
            )
        )
        logger.info(f"Audit: {action.value} on {resource_type} {resource_id}")
        return entry_id

    def get_resource_history(
        self,
        resource_type: str,
        resource_id: UUID | str
    ) -> list[dict[str, Any]]:
        """Full audit history for one resource, newest first."""
        return self.postgres.execute(
            """
            SELECT id, user_id, action, resource_type, resource_id, details,
                   ip_address, user_agent, created_at
            FROM audit_logs
            WHERE resource_type = %s AND resource_id = %s
            ORDER BY created_at DESC
            """,
            (resource_type, str(resource_id))
        )

    def list_recent(
        self,
        limit: int = 100,
        resource_type: str | None = None,
        user_id: UUID | None = None,
    ) -> list[dict[str, Any]]:
        """Most recent entries, optionally filtered, newest first."""
        conditions = []
        params: list[Any] = []

        if resource_type:
            conditions.append("resource_type = %s")
            params.append(resource_type)

        if user_id:
            conditions.append("user_id = %s")
            params.append(user_id)

        where_clause = " AND ".join(conditions) if conditions else "1=1"
        params.append(limit)

        return self.postgres.execute(
            f"""
            SELECT id, user_id, action, resource_type, resource_id, details,
                   ip_address, user_agent, created_at
            FROM audit_logs
            WHERE {where_clause}
            ORDER BY created_at DESC
            LIMIT %s
            """,
            tuple(params)
        )
