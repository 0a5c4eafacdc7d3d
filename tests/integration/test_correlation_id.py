"""Integration tests for request correlation ids in responses and logs."""

import logging
import uuid

import pytest

pytestmark = pytest.mark.integration


class TestCorrelationIdMiddleware:
    def test_returns_provided_request_id(self, client):
        custom_id = "my-custom-request-id-123"
        response = client.get("/health", HTTP_X_REQUEST_ID=custom_id)
        assert response["X-Request-ID"] == custom_id

    def test_generates_uuid_when_no_request_id(self, client):
        response = client.get("/health")
        request_id = response["X-Request-ID"]
        parsed = uuid.UUID(request_id, version=4)
        assert str(parsed) == request_id

    def test_provider_callbacks_get_their_own_id(self, client):
        first = client.get("/api/v1/payments/vnpay/ipn")
        second = client.get("/api/v1/payments/vnpay/ipn")
        assert first["X-Request-ID"] != second["X-Request-ID"]

    def test_correlation_id_in_logs(self, client, caplog):
        custom_id = "log-test-correlation-456"
        with caplog.at_level(logging.INFO):
            client.get("/health", HTTP_X_REQUEST_ID=custom_id)
        messages = [record.getMessage() for record in caplog.records]
        assert any(custom_id in message for message in messages), messages

    def test_callback_query_string_not_logged(self, client, caplog):
        with caplog.at_level(logging.INFO):
            client.get(
                "/api/v1/payments/vnpay/ipn",
                {"vnp_TxnRef": "ORD-1-01", "vnp_SecureHash": "cafebabe1234"},
            )
        messages = [record.getMessage() for record in caplog.records]
        assert messages
        assert not any("cafebabe1234" in message for message in messages)
