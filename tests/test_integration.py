from datetime import timedelta

import httpx
import pytest
from fastapi.testclient import TestClient

from mpesa_checkout.client import AuthenticationRequired, CheckoutClient
from mpesa_checkout.collaborators import NotificationClient, OrderServiceClient
from mpesa_checkout.gateway import MpesaGateway
from mpesa_checkout.main import create_app
from mpesa_checkout.tokens import TokenService

CART = [{"id": 1, "name": "X", "price": 100, "quantity": 2}]


@pytest.fixture
def mpesa_calls():
    return []


@pytest.fixture
def mpesa_gateway(mpesa_calls):
    def handler(request):
        mpesa_calls.append(request)
        return httpx.Response(
            201,
            json={
                "output_TransactionID": f"MP{len(mpesa_calls)}",
                "output_ConversationID": "CONV1",
                "output_ResponseCode": "INS-0",
                "output_ResponseDesc": "Request processed successfully",
            },
        )

    return MpesaGateway(
        api_host="api.sandbox.vm.co.mz",
        bearer_token="mpesa-token",
        service_provider_code="171717",
        http=httpx.Client(transport=httpx.MockTransport(handler)),
    )


@pytest.fixture
def checkout_app(settings, session_factory, mpesa_gateway):
    """App whose saga reaches its own /orders and /send-email endpoints over HTTP."""
    fastapi_app = create_app(settings, session_factory=session_factory, gateway=mpesa_gateway)
    internal = TestClient(fastapi_app)
    orchestrator = fastapi_app.state.orchestrator
    orchestrator.order_service = OrderServiceClient(
        str(internal.base_url), settings.service_api_key, http=internal
    )
    orchestrator.notifier = NotificationClient(
        str(internal.base_url), settings.service_api_key, http=internal
    )
    return fastapi_app


@pytest.fixture
def http(checkout_app):
    with TestClient(checkout_app) as c:
        yield c


@pytest.fixture
def checkout(http):
    checkout = CheckoutClient(http)
    checkout.register("customer@example.com", "s3cret!")
    checkout.login("customer@example.com", "s3cret!")
    return checkout


@pytest.fixture
def expired_token(settings):
    issuer = TokenService(settings.jwt_secret, access_ttl=timedelta(seconds=-60))
    return issuer.issue_access_token(1, "customer@example.com")


def test_full_payment_lifecycle_integration(checkout, mpesa_calls):
    """
    Test the full lifecycle:
    1. Pay (API -> M-Pesa mocked -> order service -> notification service)
    2. Read the order back by id and by transaction id
    """
    response = checkout.pay(CART, 200, customer_phone="845760448")

    assert response.status_code == 200
    data = response.json()["data"]
    assert len(mpesa_calls) == 1
    assert data["transactionId"] == "MP1"
    assert data["orderId"].startswith("ORD")
    assert data["performance"]["total"] >= 0

    order = checkout.get_order(data["orderId"]).json()["data"]
    assert order["transactionId"] == "MP1"
    assert order["transactionReference"] == data["transactionReference"]
    assert order["customerPhone"] == "845760448"
    assert order["amount"] == 200.0

    by_transaction = checkout.get_order_by_transaction("MP1").json()["data"]
    assert by_transaction["orderId"] == data["orderId"]
    assert checkout.list_orders().json()["count"] == 1


def test_payment_survives_order_service_outage(checkout, checkout_app):
    broken = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(503)))
    checkout_app.state.orchestrator.order_service = OrderServiceClient(
        "http://orders.internal", "key", http=broken
    )

    response = checkout.pay(CART, 200)

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert "orderId" not in response.json()["data"]
    assert checkout.list_orders().json()["count"] == 0


def test_payment_survives_order_transport_crash(checkout, checkout_app, mpesa_calls):
    def handler(request):
        raise RuntimeError("pool closed")

    checkout_app.state.orchestrator.order_service = OrderServiceClient(
        "http://orders.internal", "key", http=httpx.Client(transport=httpx.MockTransport(handler))
    )

    response = checkout.pay(CART, 200)

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert "orderId" not in response.json()["data"]
    assert len(mpesa_calls) == 1


def test_expired_token_is_refreshed_and_retried_once(checkout, expired_token, mpesa_calls, mocker):
    refresh = mocker.spy(checkout, "refresh_access_token")
    checkout.tokens.access_token = expired_token

    response = checkout.pay(CART, 200)

    assert response.status_code == 200
    assert response.json()["data"]["orderId"].startswith("ORD")
    assert refresh.call_count == 1
    assert checkout.tokens.access_token != expired_token
    assert len(mpesa_calls) == 1


def test_expired_token_scenario_over_raw_http(http, checkout, expired_token):
    expired = http.post(
        "/api/payment",
        json={"cart": CART, "total": 200},
        headers={"Authorization": f"Bearer {expired_token}"},
    )
    assert expired.status_code == 401
    assert expired.json()["expired"] is True

    refreshed = http.post("/refresh-token", json={"refreshToken": checkout.tokens.refresh_token})
    assert refreshed.status_code == 200
    new_token = refreshed.json()["data"]["accessToken"]

    retried = http.post(
        "/api/payment",
        json={"cart": CART, "total": 200},
        headers={"Authorization": f"Bearer {new_token}"},
    )
    assert retried.status_code == 200
    assert retried.json()["success"] is True


def test_second_expiry_is_not_retried_again(checkout, expired_token, mpesa_calls, mocker):
    refresh = mocker.patch.object(checkout, "refresh_access_token", return_value=expired_token)
    checkout.tokens.access_token = expired_token

    response = checkout.pay(CART, 200)

    assert response.status_code == 401
    assert response.json()["expired"] is True
    assert refresh.call_count == 1
    assert mpesa_calls == []


def test_refresh_failure_requires_login(checkout, expired_token, mpesa_calls):
    checkout.tokens.access_token = expired_token
    checkout.tokens.refresh_token = "not-a-refresh-token"

    with pytest.raises(AuthenticationRequired):
        checkout.pay(CART, 200)

    assert checkout.tokens.access_token is None
    assert checkout.tokens.refresh_token is None
    assert mpesa_calls == []


@pytest.mark.parametrize("refresh_body", [["unexpected"], {"success": True, "data": None}, "ok"])
def test_refresh_with_unexpected_body_requires_login(refresh_body):
    def handler(request):
        if request.url.path == "/refresh-token":
            return httpx.Response(200, json=refresh_body)
        return httpx.Response(401, json={"success": False, "expired": True})

    http = httpx.Client(base_url="http://checkout.test", transport=httpx.MockTransport(handler))
    checkout = CheckoutClient(http)
    checkout.tokens.save("stale-access", "refresh")

    with pytest.raises(AuthenticationRequired):
        checkout.pay(CART, 200)

    assert checkout.tokens.access_token is None
    assert checkout.tokens.refresh_token is None


def test_missing_refresh_token_requires_login(checkout, expired_token, mocker):
    post = mocker.spy(checkout.http, "post")
    checkout.tokens.access_token = expired_token
    checkout.tokens.refresh_token = None

    with pytest.raises(AuthenticationRequired):
        checkout.pay(CART, 200)

    post.assert_not_called()


def test_invalid_token_is_not_refreshed(checkout, mocker):
    refresh = mocker.spy(checkout, "refresh_access_token")
    checkout.tokens.access_token = "not.a.token"

    response = checkout.pay(CART, 200)

    assert response.status_code == 403
    refresh.assert_not_called()


def test_pay_without_login_raises():
    checkout = CheckoutClient(httpx.Client(base_url="http://checkout.invalid"))

    with pytest.raises(AuthenticationRequired):
        checkout.pay(CART, 200)


def test_logout_clears_local_tokens(checkout):
    body = checkout.logout()

    assert body["success"] is True
    assert checkout.tokens.access_token is None
    assert checkout.tokens.refresh_token is None
