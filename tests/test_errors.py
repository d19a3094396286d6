"""Tests for failure classification and the error hierarchy."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from venice_cli.llm.errors import (
    ApiError,
    AuthenticationError,
    ExchangeError,
    MissingApiKeyError,
    RequestFailedError,
    classify,
    classify_exception,
    is_network_fault,
)
from venice_cli.types import ExchangeResult, FailureKind


class TestClassify:
    @pytest.mark.parametrize("status", [401, 403])
    def test_auth_statuses(self, status: int):
        assert classify(status, "")[0] is FailureKind.AUTH_ERROR

    def test_rate_limited(self):
        assert classify(429, "")[0] is FailureKind.RATE_LIMITED

    @pytest.mark.parametrize("status", [500, 502, 503])
    def test_server_errors_are_transient(self, status: int):
        assert classify(status, "")[0] is FailureKind.TRANSIENT

    @pytest.mark.parametrize("status", [400, 404, 422])
    def test_other_4xx_are_client_errors(self, status: int):
        assert classify(status, "")[0] is FailureKind.CLIENT_ERROR

    def test_absent_status_is_transient(self):
        kind, message = classify(None)
        assert kind is FailureKind.TRANSIENT
        assert message == "network error"

    def test_unexpected_status_is_unknown(self):
        assert classify(302, "")[0] is FailureKind.UNKNOWN

    def test_message_from_envelope(self):
        body = json.dumps({"error": {"message": "Model not found", "code": "bad_model"}})
        assert classify(404, body) == (FailureKind.CLIENT_ERROR, "Model not found")

    def test_message_from_top_level(self):
        body = json.dumps({"message": "slow down"})
        assert classify(429, body)[1] == "slow down"

    def test_message_from_raw_body(self):
        assert classify(502, "Bad Gateway")[1] == "Bad Gateway"

    def test_synthesized_message(self):
        assert classify(500, "")[1] == "HTTP 500"


class TestApiError:
    def test_from_response(self):
        body = json.dumps({"error": {"message": "nope", "code": "E42"}})
        err = ApiError.from_response(400, body)
        assert err.status_code == 400
        assert err.code == "E42"
        assert err.message == "nope"
        assert err.kind is FailureKind.CLIENT_ERROR


class TestClassifyException:
    def test_api_error_keeps_its_kind(self):
        err = ApiError.from_response(429, "")
        assert classify_exception(err) == (FailureKind.RATE_LIMITED, "HTTP 429")

    def test_httpx_transport_error(self):
        kind, _ = classify_exception(httpx.ConnectError("refused"))
        assert kind is FailureKind.TRANSIENT

    def test_timeout(self):
        kind, message = classify_exception(asyncio.TimeoutError())
        assert kind is FailureKind.TRANSIENT
        assert message == "request timed out"

    def test_other_exception_is_unknown(self):
        kind, message = classify_exception(KeyError("x"))
        assert kind is FailureKind.UNKNOWN
        assert "KeyError" in message

    def test_network_fault(self):
        assert is_network_fault(httpx.ReadError("reset"))
        assert not is_network_fault(ApiError.from_response(503, ""))


class TestFatalErrors:
    def test_authentication_error_has_hint(self):
        assert "venice config set api_key" in str(AuthenticationError())

    def test_missing_key_is_auth_error(self):
        err = MissingApiKeyError()
        assert isinstance(err, AuthenticationError)
        assert err.kind is FailureKind.AUTH_ERROR
        assert "VENICE_API_KEY" in str(err)

    def test_exchange_error_exposes_cause_kind(self):
        cause = RequestFailedError("boom", FailureKind.CLIENT_ERROR, 400)
        partial = ExchangeResult(content="partial")
        err = ExchangeError(cause, partial)
        assert err.kind is FailureKind.CLIENT_ERROR
        assert err.partial.content == "partial"
        assert str(err) == "boom"
