"""
Tests for API route endpoints.

Tests: order submission, lookup, history, status updates, direct WhatsApp
sends and health, through the FastAPI app with in-memory SQLite and the
fake Twilio endpoint.
"""
import pytest

from tests.conftest import ALGERIAN_CANONICAL


def _payload(**overrides):
    payload = {
        "customerName": "Amina",
        "customerPhone": "0551 23 45 67",
        "items": [
            {
                "menuItemId": "couscous-royal",
                "itemNameFr": "Couscous royal",
                "itemNameAr": "كسكس ملكي",
                "quantity": 2,
                "unitPrice": 500,
            }
        ],
        "totalAmount": 1000,
    }
    payload.update(overrides)
    return payload


async def _submit(client, **overrides):
    response = await client.post("/orders", json=_payload(**overrides))
    return response, response.json()


class TestHealthEndpoint:

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_health_returns_200(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["database_connected"] is True


class TestSubmitOrder:

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_success(self, client, fake_twilio):
        response, body = await _submit(client)

        assert response.status_code == 201
        assert body["success"] is True
        assert body["data"]["orderId"]
        assert body["data"]["dailySequence"] == 1
        assert len(fake_twilio.requests) == 1

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_total_mismatch_is_400(self, client):
        response, body = await _submit(client, totalAmount=999)

        assert response.status_code == 400
        assert body["success"] is False
        assert body["reason"]
        assert body["error"]["code"] == "validation"

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_invalid_phone_is_400(self, client):
        response, body = await _submit(client, customerPhone="0123456")

        assert response.status_code == 400
        assert "customer_phone" in body["reason"]

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_rate_limit_is_429(self, client):
        for _ in range(5):
            response, _ = await _submit(client)
            assert response.status_code == 201

        response, body = await _submit(client)

        assert response.status_code == 429
        assert body["error"]["code"] == "rate_limit"

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_whatsapp_failure_still_201(self, client, fake_twilio):
        fake_twilio.mode = "reject"

        response, body = await _submit(client)

        assert response.status_code == 201
        assert body["success"] is True

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_missing_field_is_422(self, client):
        payload = _payload()
        del payload["customerPhone"]

        response = await client.post("/orders", json=payload)

        assert response.status_code == 422


class TestReadOrders:

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_get_order(self, client):
        _, created = await _submit(client)
        order_id = created["data"]["orderId"]

        response = await client.get(f"/orders/{order_id}")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["id"] == order_id
        assert data["status"] == "confirmed"
        assert data["customerPhone"] == ALGERIAN_CANONICAL
        assert data["totalAmount"] == 1000
        assert data["items"][0]["itemNameAr"] == "كسكس ملكي"

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_unknown_order_is_404(self, client):
        response = await client.get("/orders/unknown-id")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "notfound"

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_history_by_any_phone_format(self, client):
        await _submit(client)
        await _submit(client)
        await _submit(client, customerPhone="22222345678")

        response = await client.get("/orders", params={"phone": "+213 551 23 45 67"})

        assert response.status_code == 200
        body = response.json()
        assert body["data"]["phone"] == ALGERIAN_CANONICAL
        assert body["meta"]["total"] == 2

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_history_invalid_phone_is_400(self, client):
        response = await client.get("/orders", params={"phone": "123"})

        assert response.status_code == 400

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_notifications_trail(self, client):
        _, created = await _submit(client)
        order_id = created["data"]["orderId"]

        response = await client.get(f"/orders/{order_id}/notifications")

        assert response.status_code == 200
        [record] = response.json()["data"]
        assert record["status"] == "sent"
        assert record["messageSid"].startswith("SM")


class TestStatusUpdate:

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_ready_sends_update(self, client, fake_twilio):
        _, created = await _submit(client)
        order_id = created["data"]["orderId"]

        response = await client.patch(f"/orders/{order_id}/status", json={"status": "ready"})

        assert response.status_code == 200
        body = response.json()
        assert body["data"]["status"] == "ready"
        assert body["meta"]["notification"] == "sent"
        assert "prête" in fake_twilio.form()["Body"]

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_invalid_transition_is_400(self, client):
        _, created = await _submit(client)
        order_id = created["data"]["orderId"]

        response = await client.patch(f"/orders/{order_id}/status", json={"status": "pending"})

        assert response.status_code == 400

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_notification_failure_reported_not_raised(self, client, fake_twilio):
        _, created = await _submit(client)
        order_id = created["data"]["orderId"]
        fake_twilio.mode = "timeout"

        response = await client.patch(f"/orders/{order_id}/status", json={"status": "cancelled"})

        assert response.status_code == 200
        assert response.json()["meta"]["notification"] == "failed"


class TestSendWhatsApp:

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_session_message(self, client, fake_twilio):
        response = await client.post(
            "/notifications/whatsapp",
            json={"to": "0551234567", "type": "session", "message": "Votre table est prête"},
        )

        assert response.status_code == 200
        assert response.json()["data"]["messageSid"].startswith("SM")
        assert fake_twilio.form()["To"] == "whatsapp:+213551234567"

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_template_message_uses_order_fields(self, client, fake_twilio):
        _, created = await _submit(client)
        order_id = created["data"]["orderId"]

        response = await client.post(
            "/notifications/whatsapp",
            json={"to": "0551234567", "type": "template", "templateName": "HXabc", "orderId": order_id},
        )

        assert response.status_code == 200
        assert fake_twilio.content_variables() == {"1": "Amina", "2": "1000 DA", "3": order_id}

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_provider_rejection_is_502(self, client, fake_twilio):
        fake_twilio.mode = "reject"

        response = await client.post(
            "/notifications/whatsapp",
            json={"to": "0551234567", "message": "Bonjour"},
        )

        assert response.status_code == 502
        assert response.json()["error"]["code"] == "dispatch"

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_invalid_phone_is_400(self, client):
        response = await client.post("/notifications/whatsapp", json={"to": "12345", "message": "Bonjour"})

        assert response.status_code == 400
