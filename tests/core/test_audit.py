"""Tests for the audit trail."""

import pytest
from uuid import uuid4


class TestAuditAction:
    """Tests for AuditAction enum."""

    def test_recorded_action_names(self):
        """Action values are what audit_logs.action stores."""
        from core.audit import AuditAction

        assert AuditAction.UPDATE_PROFILE.value == "UPDATE_PROFILE"
        assert AuditAction.PAYMENT_INITIATED.value == "PAYMENT_INITIATED"


class TestComputeChanges:
    """Tests for compute_changes utility function."""

    def test_detects_changed_fields(self):
        """Different values for same key detected."""
        from core.audit import compute_changes

        old = {"first_name": "Ada", "phone": "+94771234567"}
        new = {"first_name": "Ada", "phone": "+94770000000"}

        changes = compute_changes(old, new)

        assert changes == {"phone": {"old": "+94771234567", "new": "+94770000000"}}

    def test_detects_added_and_removed_fields(self):
        """Keys present on only one side are changes."""
        from core.audit import compute_changes

        changes = compute_changes({"last_name": "Perera"}, {"phone": "555"})

        assert changes["last_name"] == {"old": "Perera", "new": None}
        assert changes["phone"] == {"old": None, "new": "555"}

    def test_ignores_updated_at_by_default(self):
        """updated_at always moves and is not a meaningful change."""
        from core.audit import compute_changes

        changes = compute_changes({"updated_at": "a"}, {"updated_at": "b"})

        assert changes == {}

    def test_custom_exclusions(self):
        """Caller-provided exclusions replace the default."""
        from core.audit import compute_changes

        changes = compute_changes(
            {"updated_at": "a", "last_login": "x"},
            {"updated_at": "b", "last_login": "y"},
            exclude_fields={"last_login"},
        )

        assert list(changes) == ["updated_at"]


class TestAuditRecorder:
    """Tests for AuditRecorder against a mock database."""

    @pytest.fixture
    def audit(self, db):
        from core.audit import AuditRecorder
        return AuditRecorder(db)

    def test_record_inserts_entry(self, audit, db, test_user_id):
        """One INSERT with every column populated."""
        from core.audit import AuditAction

        resource_id = uuid4()
        entry_id = audit.record(
            action=AuditAction.PAYMENT_INITIATED,
            resource_type="payment",
            resource_id=resource_id,
            details={"order_id": "ORD-1"},
            ip_address="203.0.113.7",
            user_agent="TestBrowser/1.0",
            user_id=test_user_id,
        )

        query, params = db.execute.call_args.args
        assert "INSERT INTO audit_logs" in query
        assert params[0] == entry_id
        assert params[1:8] == (
            test_user_id, "PAYMENT_INITIATED", "payment", str(resource_id),
            {"order_id": "ORD-1"}, "203.0.113.7", "TestBrowser/1.0",
        )

    def test_record_defaults_to_context_user(self, audit, db, authenticated_context):
        """Without an explicit user, the gated request's user is recorded."""
        from core.audit import AuditAction

        audit.record(AuditAction.UPDATE_PROFILE, "user", authenticated_context)

        params = db.execute.call_args.args[1]
        assert params[1] == authenticated_context
        assert params[5] == {}
        assert params[6:8] == ("unknown", "unknown")

    def test_record_without_any_user_raises(self, audit, db):
        """Audit entries are always attributed."""
        from core.audit import AuditAction

        with pytest.raises(RuntimeError, match="No user context"):
            audit.record(AuditAction.UPDATE_PROFILE, "user", uuid4())

        db.execute.assert_not_called()

    def test_list_recent_filters(self, audit, db, test_user_id):
        """Filters become WHERE conditions, limit is last."""
        db.execute.return_value = []

        audit.list_recent(limit=20, resource_type="payment", user_id=test_user_id)

        query, params = db.execute.call_args.args
        assert "resource_type = %s" in query
        assert "user_id = %s" in query
        assert params == ("payment", test_user_id, 20)

    def test_resource_history(self, audit, db):
        """History query is keyed by type and stringified id."""
        db.execute.return_value = [{"action": "PAYMENT_INITIATED"}]
        resource_id = uuid4()

        history = audit.get_resource_history("payment", resource_id)

        assert history == [{"action": "PAYMENT_INITIATED"}]
        assert db.execute.call_args.args[1] == ("payment", str(resource_id))
