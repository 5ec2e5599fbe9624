"""Shared test fixtures for the gem admin test suite."""

import pytest
from datetime import timedelta
from uuid import UUID
from pathlib import Path
from unittest.mock import Mock

from dotenv import load_dotenv

# Load .env file BEFORE any other imports that might use env vars
load_dotenv(Path(__file__).parent.parent / ".env", override=True)

# Reset vault client singleton to pick up env vars
import clients.vault_client as vault_module
vault_module._vault_client_instance = None
vault_module._secret_cache.clear()

from auth.types import Role, UserProfile
from clients.identity_client import IdentityClient, IdentitySession, IdentityUser
from clients.postgres_client import PostgresClient
from utils.timezone import now_millis, now_utc
from utils.user_context import user_context, clear_current_user_id


# =============================================================================
# TEST USER CONSTANTS
# =============================================================================

# Primary test user - an admin
TEST_USER_ID = UUID("00000000-0000-0000-0000-000000000001")
TEST_USER_EMAIL = "admin@test.local"

# Secondary test user - a plain customer
TEST_USER_B_ID = UUID("00000000-0000-0000-0000-000000000002")
TEST_USER_B_EMAIL = "customer@test.local"


# =============================================================================
# USER CONTEXT FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def reset_user_context():
    """Ensure clean user context before and after each test."""
    clear_current_user_id()
    yield
    clear_current_user_id()


@pytest.fixture
def test_user_id() -> UUID:
    """The primary test user's ID."""
    return TEST_USER_ID


@pytest.fixture
def test_user_b_id() -> UUID:
    """The secondary test user's ID."""
    return TEST_USER_B_ID


@pytest.fixture
def authenticated_context(test_user_id):
    """Provide an authenticated user context for the primary test user."""
    with user_context(test_user_id):
        yield test_user_id


# =============================================================================
# DATABASE FIXTURES
# =============================================================================


@pytest.fixture
def db():
    """Mock PostgresClient - no test talks to a live database."""
    return Mock(spec=PostgresClient)


# =============================================================================
# IDENTITY FIXTURES
# =============================================================================


def _build_profile(**overrides) -> UserProfile:
    now = now_utc()
    values = {
        "id": TEST_USER_ID,
        "email": TEST_USER_EMAIL,
        "first_name": "Ada",
        "last_name": "Perera",
        "phone": "+94771234567",
        "role": Role.ADMIN,
        "is_active": True,
        "is_verified": True,
        "two_factor_enabled": False,
        "last_login": None,
        "created_at": now - timedelta(days=30),
        "updated_at": now - timedelta(days=1),
    }
    values.update(overrides)
    return UserProfile(**values)


def _build_session(user_id: UUID = TEST_USER_ID, email: str = TEST_USER_EMAIL, **overrides) -> IdentitySession:
    values = {
        "access_token": "access-token",
        "refresh_token": "refresh-token",
        "expires_in": 3600,
        "expires_at": now_utc() + timedelta(hours=1),
        "user": IdentityUser(id=user_id, email=email),
    }
    values.update(overrides)
    return IdentitySession(**values)


@pytest.fixture
def make_profile():
    """Factory for profiles of the primary test user, admin unless overridden."""
    return _build_profile


@pytest.fixture
def make_session():
    """Factory for identity provider sessions."""
    return _build_session


@pytest.fixture
def admin_profile() -> UserProfile:
    return _build_profile()


@pytest.fixture
def fresh_activity() -> str:
    """lastActivity cookie value for a request that just happened."""
    return str(now_millis())


@pytest.fixture
def mock_identity_client():
    """Mock identity provider - no HTTP calls."""
    return Mock(spec=IdentityClient)
