"""Integration tests for Checkout API endpoints via TestClient."""

from ordering.order.port import OrderServiceUnavailable
from payments.signatures import sign

SECRET = "test-signing-secret"
CHAI = "6650f1c2a9b3e4d5f6a7b801"


def _checkout(client, method="upi"):
    client.post("/cart/items", json={"productId": CHAI, "quantity": 2})
    return client.post("/checkout", json={"paymentMethod": method})


def _widget_success(intent_id, reference="pay_ref_1", signature=None):
    return {
        "razorpay_order_id": intent_id,
        "razorpay_payment_id": reference,
        "razorpay_signature": signature or sign(intent_id, reference, SECRET),
    }


class TestBeginCheckout:
    def test_gateway_payment_awaits_widget(self, client):
        response = _checkout(client)

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["session"]["status"] == "AwaitingGatewayResult"
        assert data["session"]["amountDue"] == 110.0
        assert data["payment"]["intentId"] == data["session"]["paymentIntentId"]
        assert data["payment"]["amountMinor"] == 11000
        assert data["payment"]["currency"] == "INR"

    def test_cash_on_delivery_confirms(self, client, cart_store):
        response = _checkout(client, "cash_on_delivery")

        assert response.status_code == 201
        assert response.json()["data"]["session"]["status"] == "Confirmed"
        assert "payment" not in response.json()["data"]
        assert cart_store.is_empty

    def test_second_checkout_while_open(self, client):
        _checkout(client)
        response = client.post("/checkout", json={"paymentMethod": "upi"})
        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "CheckoutInProgress"

    def test_empty_cart_fails_session(self, client):
        response = client.post("/checkout", json={"paymentMethod": "cash_on_delivery"})
        assert response.status_code == 201
        session = response.json()["data"]["session"]
        assert session["status"] == "Failed"
        assert session["failureReason"] == "EmptyCart"

    def test_unknown_payment_method(self, client):
        response = client.post("/checkout", json={"paymentMethod": "barter"})
        assert response.status_code == 422


class TestGatewayReports:
    def test_verified_success_confirms(self, client, orders, cart_store):
        intent_id = _checkout(client).json()["data"]["payment"]["intentId"]

        response = client.post("/checkout/gateway/success", json=_widget_success(intent_id))

        assert response.status_code == 200
        session = response.json()["data"]["session"]
        assert session["status"] == "Confirmed"
        assert orders.orders[session["orderId"]].is_paid
        assert cart_store.is_empty

    def test_forged_success_fails(self, client, cart_store):
        intent_id = _checkout(client).json()["data"]["payment"]["intentId"]

        response = client.post("/checkout/gateway/success", json=_widget_success(intent_id, signature="0" * 64))

        session = response.json()["data"]["session"]
        assert session["status"] == "Failed"
        assert session["failureReason"] == "PaymentVerificationFailed"
        assert cart_store.quantity_of(CHAI) == 2

    def test_report_for_another_intent(self, client):
        _checkout(client)
        response = client.post("/checkout/gateway/success", json=_widget_success("pay_someone_else"))
        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "UnknownPaymentIntent"

    def test_failure(self, client):
        intent_id = _checkout(client).json()["data"]["payment"]["intentId"]

        response = client.post("/checkout/gateway/failure", json={"intent_id": intent_id, "reason": "Card declined"})

        session = response.json()["data"]["session"]
        assert session["status"] == "Failed"
        assert session["failureReason"] == "PaymentDeclined"
        assert session["failureDetail"] == "Card declined"

    def test_dismiss(self, client):
        _checkout(client)
        response = client.post("/checkout/gateway/dismiss", json={})
        assert response.json()["data"]["session"]["status"] == "Abandoned"

    def test_report_without_checkout(self, client):
        response = client.post("/checkout/gateway/dismiss", json={})
        assert response.status_code == 404


class TestSessionEndpoints:
    def test_current_without_checkout(self, client):
        assert client.get("/checkout/current").status_code == 404

    def test_current(self, client):
        session_id = _checkout(client).json()["data"]["session"]["sessionId"]
        response = client.get("/checkout/current")
        assert response.json()["data"]["session"]["sessionId"] == session_id

    def test_abandon(self, client):
        _checkout(client)
        response = client.post("/checkout/abandon")
        data = response.json()["data"]
        assert data["abandoned"] is True
        assert data["session"]["status"] == "Abandoned"

    def test_abandon_after_confirmation_is_refused(self, client):
        _checkout(client, "cash_on_delivery")
        response = client.post("/checkout/abandon")
        assert response.json()["data"]["abandoned"] is False


class TestOrderStatusEndpoint:
    def test_without_checkout(self, client):
        assert client.get("/checkout/current/order").status_code == 404

    def test_attempt_that_created_no_order(self, client):
        client.post("/checkout", json={"paymentMethod": "upi"})
        response = client.get("/checkout/current/order")
        assert response.status_code == 404

    def test_unresolved_payment_points_at_the_order(self, client):
        session_id = _checkout(client).json()["data"]["session"]["sessionId"]
        client.post("/checkout/gateway/dismiss", json={})

        response = client.get("/checkout/current/order")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["sessionId"] == session_id
        assert data["paymentUnresolved"] is True
        assert data["order"]["paymentStatus"] == "pending"
        assert data["order"]["paid"] is False
        assert data["order"]["total"] == 110.0

    def test_confirmed_order_is_paid(self, client):
        intent_id = _checkout(client).json()["data"]["payment"]["intentId"]
        client.post("/checkout/gateway/success", json=_widget_success(intent_id, reference="pay_ref_9"))

        data = client.get("/checkout/current/order").json()["data"]

        assert data["paymentUnresolved"] is False
        assert data["order"]["paid"] is True
        assert data["order"]["paymentStatus"] == "paid"

    def test_order_service_outage(self, client, orders, monkeypatch):
        _checkout(client)

        async def unreachable(order_id):
            raise OrderServiceUnavailable("Order service unreachable")

        monkeypatch.setattr(orders, "get_order", unreachable)
        response = client.get("/checkout/current/order")

        assert response.status_code == 503


class TestConfigureGateway:
    def test_configure_fake_gateway(self, client, gateway):
        response = client.post("/checkout/gateway/configure", json={"outcome": "fail", "failure_reason": "Insufficient funds"})

        assert response.status_code == 200
        assert response.json()["gateway"] == "FakeGateway"
        assert gateway.outcome == "fail"
        assert gateway.failure_reason == "Insufficient funds"

    def test_refused_in_production(self, client, monkeypatch):
        monkeypatch.setenv("PROTEAN_ENV", "production")
        response = client.post("/checkout/gateway/configure", json={"outcome": "fail"})
        assert response.status_code == 403
