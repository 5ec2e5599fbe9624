"""Tests for api/base.py - Unified API response format."""

import json
from datetime import timezone

from api.base import (
    success_response,
    error_response,
    error_json,
    ErrorCodes,
)


class TestSuccessResponse:
    """Tests for success_response()."""

    def test_structure(self):
        resp = success_response({"foo": "bar"})
        assert resp.success is True
        assert resp.data == {"foo": "bar"}
        assert resp.error is None

    def test_request_id_generated(self):
        resp = success_response({})
        assert resp.meta.request_id is not None
        assert len(resp.meta.request_id) > 0

    def test_timestamp_is_utc(self):
        resp = success_response({})
        assert resp.meta.timestamp.tzinfo == timezone.utc


class TestErrorResponse:
    """Tests for error_response()."""

    def test_structure(self):
        resp = error_response("TEST_ERROR", "Something went wrong")
        assert resp.success is False
        assert resp.data is None
        assert resp.error.code == "TEST_ERROR"
        assert resp.error.message == "Something went wrong"

    def test_request_id_generated(self):
        resp = error_response("ERR", "msg")
        assert resp.meta.request_id is not None
        assert len(resp.meta.request_id) > 0

    def test_timestamp_is_utc(self):
        resp = error_response("ERR", "msg")
        assert resp.meta.timestamp.tzinfo == timezone.utc

    def test_details_listed(self):
        resp = error_response("VALIDATION_ERROR", "Validation failed", ["a is required", "b must be a number"])
        assert resp.error.details == ["a is required", "b must be a number"]

    def test_details_default_none(self):
        assert error_response("ERR", "msg").error.details is None


class TestErrorJson:
    """Tests for error_json()."""

    def test_status_headers_and_body(self):
        response = error_json(429, ErrorCodes.RATE_LIMITED, "slow down", headers={"Retry-After": "30"})

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "30"
        body = json.loads(response.body)
        assert body["success"] is False
        assert body["error"] == {"code": "RATE_LIMITED", "message": "slow down", "details": None}


class TestErrorCodes:
    """Tests that ErrorCodes contains the codes routes return."""

    def test_has_internal_error(self):
        assert ErrorCodes.INTERNAL_ERROR == "INTERNAL_ERROR"

    def test_has_not_found(self):
        assert ErrorCodes.NOT_FOUND == "NOT_FOUND"

    def test_has_validation_error(self):
        assert ErrorCodes.VALIDATION_ERROR == "VALIDATION_ERROR"

    def test_has_not_authenticated(self):
        assert ErrorCodes.NOT_AUTHENTICATED == "NOT_AUTHENTICATED"

    def test_has_rate_limited(self):
        assert ErrorCodes.RATE_LIMITED == "RATE_LIMITED"

    def test_has_service_unavailable(self):
        assert ErrorCodes.SERVICE_UNAVAILABLE == "SERVICE_UNAVAILABLE"

    def test_has_payment_codes(self):
        assert ErrorCodes.INVALID_SIGNATURE == "INVALID_SIGNATURE"
        assert ErrorCodes.ALREADY_EXISTS == "ALREADY_EXISTS"
        assert ErrorCodes.CSRF_FAILED == "CSRF_FAILED"
