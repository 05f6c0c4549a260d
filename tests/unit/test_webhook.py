"""
Unit tests for the Stripe webhook endpoint.
"""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import stripe
from aiohttp.test_utils import TestClient, TestServer, make_mocked_request

import webhook
from utils.exceptions import BookingNotFoundError, ValidationError, WebhookVerificationError
from webhook import (
    MAX_REQUEST_BODY_SIZE,
    _verify_webhook_signature,
    create_app,
    health_check,
)


@pytest.fixture(autouse=True)
def reset_processed_events():
    webhook._processed_event_ids.clear()
    yield
    webhook._processed_event_ids.clear()


@pytest.fixture
def mock_stripe_event():
    """Mock Stripe webhook event."""
    return {
        "id": "evt_test_123",
        "type": "payment_intent.succeeded",
        "data": {
            "object": {
                "id": "pi_test_123",
                "status": "succeeded",
                "metadata": {"booking_id": "booking_123"},
            }
        },
    }


@pytest.fixture
def signed_settings():
    """Settings with a webhook secret configured."""
    mock_settings = MagicMock()
    mock_settings.stripe_webhook_secret = "whsec_test"
    mock_settings.stripe_secret_key = "sk_live_123"
    with patch("webhook.settings", mock_settings):
        yield mock_settings


async def _post(payload, headers=None):
    body = payload if isinstance(payload, bytes) else json.dumps(payload).encode()
    async with TestClient(TestServer(create_app())) as client:
        response = await client.post("/webhook/stripe", data=body, headers=headers or {})
        return response.status, await response.json(), response.headers


class TestHealthCheck:
    """Test health check endpoint."""

    @pytest.mark.asyncio
    async def test_health_check(self):
        request = make_mocked_request("GET", "/health")
        response = await health_check(request)

        assert response.status == 200
        data = json.loads(response.text)
        assert data["status"] == "ok"
        assert data["service"] == "diviner-booking"
        assert data["configuration"]["platform_fee_rate"] == 0.186


class TestSignatureVerification:
    """Test Stripe webhook signature verification."""

    def test_verify_signature_success(self, signed_settings, mock_stripe_event):
        with patch("webhook.stripe.Webhook.construct_event") as mock_construct:
            mock_construct.return_value = mock_stripe_event

            event = _verify_webhook_signature(b"{}", "t=1,v1=sig")

            assert event == mock_stripe_event
            mock_construct.assert_called_once_with(b"{}", "t=1,v1=sig", "whsec_test")

    def test_verify_signature_failure(self, signed_settings):
        with patch("webhook.stripe.Webhook.construct_event") as mock_construct:
            mock_construct.side_effect = stripe.SignatureVerificationError(
                "Invalid signature", "sig_header"
            )

            with pytest.raises(WebhookVerificationError):
                _verify_webhook_signature(b"test payload", "t=1,v1=bad")

    def test_missing_signature_header(self, signed_settings):
        with pytest.raises(WebhookVerificationError):
            _verify_webhook_signature(b"{}", None)

    def test_live_key_without_secret_rejected(self):
        mock_settings = MagicMock()
        mock_settings.stripe_webhook_secret = None
        mock_settings.stripe_secret_key = "sk_live_123"
        with patch("webhook.settings", mock_settings):
            with pytest.raises(ValidationError):
                _verify_webhook_signature(b"{}", None)


class TestStripeWebhookHandler:
    """Test webhook delivery handling."""

    @pytest.mark.asyncio
    async def test_processes_event(self, mock_stripe_event):
        result = {"status": "success", "booking_id": "booking_123"}
        with patch("webhook.handle_webhook", new=AsyncMock(return_value=result)) as handler:
            status, data, headers = await _post(mock_stripe_event)

        assert status == 200
        assert data["status"] == "success"
        assert data["result"] == result
        assert headers["X-Content-Type-Options"] == "nosniff"
        handler.assert_awaited_once_with(mock_stripe_event)

    @pytest.mark.asyncio
    async def test_duplicate_event_processed_once(self, mock_stripe_event):
        with patch(
            "webhook.handle_webhook", new=AsyncMock(return_value={"status": "success"})
        ) as handler:
            await _post(mock_stripe_event)
            status, data, _ = await _post(mock_stripe_event)

        assert status == 200
        assert data["message"] == "Event already processed"
        assert handler.await_count == 1

    @pytest.mark.asyncio
    async def test_domain_error_is_acknowledged(self, mock_stripe_event):
        with patch(
            "webhook.handle_webhook",
            new=AsyncMock(side_effect=BookingNotFoundError("Booking booking_123 not found")),
        ):
            status, data, _ = await _post(mock_stripe_event)

        assert status == 200
        assert data["status"] == "ignored"

    @pytest.mark.asyncio
    async def test_unexpected_error_allows_redelivery(self, mock_stripe_event):
        with patch(
            "webhook.handle_webhook",
            new=AsyncMock(side_effect=[RuntimeError("db down"), {"status": "success"}]),
        ) as handler:
            first_status, _, _ = await _post(mock_stripe_event)
            second_status, data, _ = await _post(mock_stripe_event)

        assert first_status == 500
        assert second_status == 200
        assert data["status"] == "success"
        assert handler.await_count == 2

    @pytest.mark.asyncio
    async def test_invalid_signature(self, signed_settings, mock_stripe_event):
        with patch("webhook.stripe.Webhook.construct_event") as mock_construct:
            mock_construct.side_effect = stripe.SignatureVerificationError(
                "Invalid signature", "sig_header"
            )
            status, data, _ = await _post(
                mock_stripe_event, headers={"Stripe-Signature": "t=1,v1=bad"}
            )

        assert status == 401
        assert data["error"] == "verification_failed"

    @pytest.mark.asyncio
    async def test_empty_payload(self):
        status, data, _ = await _post(b"")
        assert status == 400
        assert data["error"] == "empty_payload"

    @pytest.mark.asyncio
    async def test_payload_missing_type(self):
        status, data, _ = await _post({"id": "evt_1", "data": {}})
        assert status == 400
        assert data["error"] == "validation_failed"

    @pytest.mark.asyncio
    async def test_oversized_payload(self):
        status, data, _ = await _post(b"x" * (MAX_REQUEST_BODY_SIZE + 1))
        assert status == 413
        assert data["error"] == "request_too_large"
