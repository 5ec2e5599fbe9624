"""Profile store - application user records backing admin access decisions.

Profiles live in the `users` table, keyed by the identity provider's user id.
Roles are canonicalized here, on the way out of the database, so every
caller compares against Role members and never against raw strings.
"""

from typing import Any
from uuid import UUID

from clients.postgres_client import PostgresClient
from auth.types import Role, UserProfile, ProfileUpdate
from utils.timezone import now_utc

_PROFILE_COLUMNS = """id, email, first_name, last_name, phone, role, is_active,
       is_verified, two_factor_enabled, last_login, created_at, updated_at"""


class ProfileStore:
    """Persistence for user profiles."""

    def __init__(self, postgres: PostgresClient):
        self._db = postgres

    def _to_profile(self, row: dict[str, Any]) -> UserProfile:
        return UserProfile(
            id=UUID(row["id"]) if isinstance(row["id"], str) else row["id"],
            email=row["email"],
            first_name=row["first_name"],
            last_name=row["last_name"],
            phone=row["phone"],
            role=Role.parse(row["role"]),
            is_active=row["is_active"],
            is_verified=row["is_verified"],
            two_factor_enabled=row["two_factor_enabled"],
            last_login=row["last_login"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def get_by_id(self, user_id: UUID) -> UserProfile | None:
        """Find profile by identity id."""
        row = self._db.execute_single(
            f"SELECT {_PROFILE_COLUMNS} FROM users WHERE id = %s",
            (user_id,),
        )
        if row is None:
            return None
        return self._to_profile(row)

    def touch_last_login(self, user_id: UUID) -> None:
        """Set last_login to now."""
        self._db.execute_returning(
            "UPDATE users SET last_login = %s WHERE id = %s RETURNING id",
            (now_utc(), user_id),
        )

    def update_profile(self, user_id: UUID, update: ProfileUpdate) -> UserProfile | None:
        """
        Apply the provided self-service fields.

        Fields left as None are not touched.

        Returns:
            Updated profile, or None if no profile exists for user_id.
        """
        fields = update.model_dump(exclude_none=True, by_alias=False)
        if not fields:
            return self.get_by_id(user_id)

        assignments = ", ".join(f"{column} = %s" for column in fields)
        rows = self._db.execute_returning(
            f"""UPDATE users SET {assignments}, updated_at = %s
                WHERE id = %s
                RETURNING {_PROFILE_COLUMNS}""",
            (*fields.values(), now_utc(), user_id),
        )
        if not rows:
            return None
        return self._to_profile(rows[0])

    def count(self) -> int:
        """Total number of profiles."""
        return self._db.execute_scalar("SELECT count(*) FROM users") or 0
