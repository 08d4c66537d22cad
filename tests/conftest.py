import pytest
from fastapi.testclient import TestClient

from mpesa_checkout.config import Settings
from mpesa_checkout.database import create_session_factory
from mpesa_checkout.gateway import GatewaySuccess
from mpesa_checkout.main import create_app
from mpesa_checkout.orders import generate_order_id

JWT_SECRET = "test-jwt-secret"
SERVICE_API_KEY = "test-service-key"


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'test_checkout.db'}",
        jwt_secret=JWT_SECRET,
        service_api_key=SERVICE_API_KEY,
        mpesa_bearer_token="test-mpesa-token",
        log_level="DEBUG",
        log_format="console",
    )


@pytest.fixture
def session_factory(settings):
    factory = create_session_factory(settings.database_url)
    yield factory
    with factory() as db:
        db.get_bind().dispose()


@pytest.fixture
def gateway(mocker):
    gateway = mocker.Mock()
    gateway.charge.return_value = GatewaySuccess(
        transaction_id="MP1",
        conversation_id="CONV1",
        response_code="INS-0",
        response_desc="Request processed successfully",
    )
    return gateway


@pytest.fixture
def order_service(mocker):
    service = mocker.Mock()
    service.create_order.side_effect = lambda data: {**data, "orderId": generate_order_id()}
    return service


@pytest.fixture
def notifier(mocker):
    return mocker.Mock()


@pytest.fixture
def fastapi_app(settings, session_factory, gateway, order_service, notifier):
    return create_app(
        settings,
        session_factory=session_factory,
        gateway=gateway,
        order_service=order_service,
        notifier=notifier,
    )


@pytest.fixture
def client(fastapi_app):
    with TestClient(fastapi_app) as c:
        yield c


@pytest.fixture
def login_user(client):
    def _login(email="customer@example.com", password="s3cret!"):
        client.post("/register", json={"email": email, "password": password})
        response = client.post("/login", json={"email": email, "password": password})
        return response.json()["data"]

    return _login


@pytest.fixture
def tokens(login_user):
    return login_user()


@pytest.fixture
def auth_headers(tokens):
    return {"Authorization": f"Bearer {tokens['accessToken']}"}


@pytest.fixture
def service_headers():
    return {"x-api-key": SERVICE_API_KEY}
