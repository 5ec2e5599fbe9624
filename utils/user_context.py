"""Carry the authenticated admin's identity through the call stack."""

from contextvars import ContextVar
from uuid import UUID
from contextlib import contextmanager

_current_user_id: ContextVar[UUID | None] = ContextVar("current_user_id", default=None)


def get_current_user_id() -> UUID | None:
    """
    Get the user ID attributed to the current request, if any.

    Returns None outside an allowed admin request. Guest checkouts and
    gateway webhooks run without user context.
    """
    return _current_user_id.get()


def require_current_user_id() -> UUID:
    """
    Get current user ID, failing fast when none is set.

    Raises RuntimeError if no user context is set - calling admin-only
    code outside a gated request is a bug.
    """
    user_id = _current_user_id.get()
    if user_id is None:
        raise RuntimeError(
            "No user context set. This usually means you're calling "
            "admin-scoped code outside of a gated request."
        )
    return user_id


def set_current_user_id(user_id: UUID) -> None:
    """Set current user ID. Called by the access gate once a request is allowed."""
    _current_user_id.set(user_id)


def clear_current_user_id() -> None:
    """
    Clear user context.

    Must be called in a finally block to prevent context leakage.
    """
    _current_user_id.set(None)


@contextmanager
def user_context(user_id: UUID):
    """
    Temporarily attribute work to a user.

    Example:
        with user_context(admin_id):
            audit.record(AuditAction.UPDATE_PROFILE, "user", admin_id, details=changes)
    """
    previous = _current_user_id.get()
    set_current_user_id(user_id)
    try:
        yield
    finally:
        if previous is None:
            clear_current_user_id()
        else:
            set_current_user_id(previous)
