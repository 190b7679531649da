"""
PyTest configuration and fixtures
"""

import hashlib
import hmac
import json
import os
import sys
import time
from decimal import Decimal
from unittest.mock import Mock, patch

import pytest

# Add the parent directory to the path so we can import modules
sys.path.append(os.path.dirname(os.path.dirname(os.path.dirname(__file__))))

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["DOWNLOAD_TOKEN_SECRET"] = "test-download-token-secret"
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"
os.environ["SENDGRID_API_KEY"] = ""
os.environ["PUBLIC_BASE_URL"] = "https://runyourtrip.test"
os.environ["REDIS_ENABLED"] = "false"

from fastapi.testclient import TestClient  # noqa: E402

from config import settings  # noqa: E402
from database import DatabaseManager, SessionLocal, get_db  # noqa: E402
from main import app  # noqa: E402
from app.models.purchase import Purchase, PurchaseStatus  # noqa: E402
from app.models.template import Template  # noqa: E402
from app.models.user import User  # noqa: E402
from app.services.auth_service import AuthService  # noqa: E402


@pytest.fixture
def db():
    """Fresh in-memory schema per test"""
    DatabaseManager.create_all_tables()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        DatabaseManager.drop_all_tables()


@pytest.fixture
def client(db):
    """Test client sharing the test's database session"""

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def mock_email_service():
    """Mock email service as seen by the purchase recorder"""
    with patch("app.services.purchase_service.email_service") as mock_email:
        mock_email.send_purchase_confirmation.return_value = True
        yield mock_email


@pytest.fixture
def mock_redis():
    """Mock Redis client"""
    mock_redis = Mock()
    mock_redis.ping.return_value = True
    mock_redis.get.return_value = None
    mock_redis.delete.return_value = True
    return mock_redis


def create_user(db, user_id="u1", email=None, password="Str0ng!Pass", is_active=True):
    user = User(
        id=user_id,
        email=email or f"{user_id}@example.com",
        username=user_id,
        password_hash=AuthService.hash_password(password),
        first_name="Test",
        is_active=is_active,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def create_template(db, template_id=42, name="Beach Resort Landing", category="travel", code=None, seller_id="seller-1"):
    template = Template(
        id=template_id,
        user_id=seller_id,
        name=name,
        description="A bright landing page for beach resorts",
        category=category,
        price=Decimal("49.00"),
        code=code if code is not None else json.dumps({
            "html": "<h1>A</h1>",
            "css": "body{}",
            "js": "console.log(1)",
        }),
        status="published",
        sales=0,
        downloads=0,
    )
    db.add(template)
    db.commit()
    db.refresh(template)
    return template


def create_purchase(db, template, user_id="u1", transaction_id="cs_test_existing"):
    purchase = Purchase(
        user_id=user_id,
        template_id=template.id,
        seller_id=template.user_id,
        purchase_price=Decimal("49.00"),
        transaction_id=transaction_id,
        payment_method="stripe",
        status=PurchaseStatus.COMPLETED.value,
        details={"stripeSessionId": transaction_id},
    )
    db.add(purchase)
    db.commit()
    db.refresh(purchase)
    return purchase


def auth_headers(user):
    token = AuthService.create_access_token({"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


def sign_stripe_payload(payload: str, secret: str = None, timestamp: int = None) -> str:
    """Build a stripe-signature header the way Stripe does"""
    secret = secret or settings.STRIPE_WEBHOOK_SECRET
    timestamp = timestamp or int(time.time())
    signature = hmac.new(
        secret.encode("utf-8"),
        f"{timestamp}.{payload}".encode("utf-8"),
        hashlib.sha256
    ).hexdigest()
    return f"t={timestamp},v1={signature}"


def stripe_event(event_type: str, obj: dict, event_id: str = "evt_test_1") -> str:
    return json.dumps({
        "id": event_id,
        "object": "event",
        "type": event_type,
        "data": {"object": obj},
    })


# Pytest configuration
def pytest_configure(config):
    """Configure pytest"""
    config.addinivalue_line("markers", "slow: marks tests as slow")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "unit: marks tests as unit tests")


def pytest_collection_modifyitems(config, items):
    """Modify test collection"""
    # Add unit marker to tests that don't have other markers
    for item in items:
        if not any(mark.name in ['integration', 'slow'] for mark in item.iter_markers()):
            item.add_marker(pytest.mark.unit)
