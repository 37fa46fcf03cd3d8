import pytest
import pytest_asyncio
from unittest.mock import patch

from app.core.db import close_db, init_db
from app.services.payment_service import MockPaymentGateway
from app.testing.testing_mocks import InMemoryBroker


@pytest_asyncio.fixture
async def db():
    """Fresh in-memory SQLite database with all tables, per test."""
    await init_db("sqlite://:memory:")
    yield
    await close_db()


@pytest.fixture
def broker():
    return InMemoryBroker()


@pytest.fixture
def instant_gateway():
    """Mock payment gateway without simulated latency."""
    with patch("app.services.payment_service.payment_gateway", MockPaymentGateway(latency=0)) as gateway:
        yield gateway


def build_checkout_body(card_number: str = "4242424242424242", metadata: str = "web") -> dict:
    return {
        "shippingAddress": {
            "fullName": "Jane Doe",
            "streetAddress": "123 Main Street",
            "city": "San Francisco",
            "stateProvince": "CA",
            "postalCode": "94102",
            "country": "US",
        },
        "paymentDetails": {
            "cardNumber": card_number,
            "expiryDate": "12/30",
            "cvv": "123",
            "cardholderName": "Jane Doe",
        },
        "metadata": metadata,
    }


@pytest.fixture
def checkout_body():
    return build_checkout_body
