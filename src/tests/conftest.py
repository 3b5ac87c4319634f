"""Pytest configuration and fixtures for service layer tests."""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, scoped_session

import src.models  # noqa: F401  (registers every table with Base)
from src.models import User, UserRole
from src.models.base import Base
from src.services.address_service import GeocodeResult, GeocodingAddressResolver
from src.services.database import create_database_engine
from src.services.pricing_config import reset_pricing_config
from src.utils.config import reset_config


@pytest.fixture(autouse=True)
def reset_singletons():
    """Every test starts from fresh configuration and tariff singletons."""
    reset_config()
    reset_pricing_config()
    yield
    reset_config()
    reset_pricing_config()


@pytest.fixture(scope="function")
def test_db():
    """Provide a clean test database for each test function.

    This fixture:
    1. Creates an in-memory SQLite database
    2. Creates all tables
    3. Provides the database to the test
    4. Drops all tables after the test completes
    """
    # Create in-memory SQLite database for testing
    engine = create_engine("sqlite:///:memory:", echo=False)

    # Create all tables
    Base.metadata.create_all(engine)

    # Create session factory
    session_factory = sessionmaker(bind=engine, expire_on_commit=False)
    Session = scoped_session(session_factory)

    # Monkey-patch the global session factory for tests
    import src.services.database as db_module

    original_get_session = db_module.get_session_factory
    db_module.get_session_factory = lambda: Session

    # Provide database to test
    yield Session

    # Cleanup
    Session.remove()
    Base.metadata.drop_all(engine)

    # Restore original session factory
    db_module.get_session_factory = original_get_session


@pytest.fixture(scope="function")
def file_db(tmp_path):
    """File-backed SQLite database where every session gets its own connection.

    Used by tests that need two independent transactions (optimistic
    concurrency).
    """
    engine = create_database_engine(f"sqlite:///{tmp_path / 'sendit_test.db'}")
    Base.metadata.create_all(engine)
    session_factory = sessionmaker(bind=engine, expire_on_commit=False)

    import src.services.database as db_module

    original_get_session = db_module.get_session_factory
    db_module.get_session_factory = lambda: session_factory

    yield session_factory

    db_module.get_session_factory = original_get_session
    engine.dispose()


# ============================================================================
# Collaborator fakes
# ============================================================================


class FakeGeocoder:
    """Geocoder returning canned coordinates and recording every query."""

    def __init__(self, results=None, error=None):
        self.results = results if results is not None else [GeocodeResult(-1.2921, 36.8219)]
        self.error = error
        self.queries = []

    def geocode(self, query):
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return list(self.results)


class RecordingSink:
    """Notification sink that keeps what it was given."""

    def __init__(self):
        self.received = []

    def enqueue(self, notification):
        self.received.append(notification)


class FailingSink:
    """Notification sink whose delivery channel is down."""

    def __init__(self):
        self.calls = 0

    def enqueue(self, notification):
        self.calls += 1
        raise ConnectionError("notification channel unavailable")


@pytest.fixture
def make_geocoder():
    """FakeGeocoder class, for tests that need custom results or errors."""
    return FakeGeocoder


@pytest.fixture
def geocoder():
    return FakeGeocoder()


@pytest.fixture
def address_resolver(geocoder):
    return GeocodingAddressResolver(geocoder)


@pytest.fixture
def recording_sink():
    return RecordingSink()


@pytest.fixture
def failing_sink():
    return FailingSink()


# ============================================================================
# Accounts
# ============================================================================


def make_user(session, name, email, role=UserRole.CUSTOMER, **kwargs):
    user = User(name=name, email=email, role=role, **kwargs)
    session.add(user)
    session.flush()
    return user


@pytest.fixture
def customer(test_db):
    """Sender account."""
    session = test_db()
    user = make_user(session, "Jane Wanjiku", "jane@example.com", phone="+254700000001")
    session.commit()
    return user


@pytest.fixture
def recipient_account(test_db):
    """Registered account matching the sample recipient email."""
    session = test_db()
    user = make_user(session, "Otieno Odhiambo", "otieno@example.com", phone="+254700000002")
    session.commit()
    return user


@pytest.fixture
def courier(test_db):
    """Active courier."""
    session = test_db()
    user = make_user(
        session, "Kamau Courier", "kamau@sendit.example", role=UserRole.COURIER
    )
    session.commit()
    return user


@pytest.fixture
def admin(test_db):
    """Admin making assignments."""
    session = test_db()
    user = make_user(session, "Admin One", "admin@sendit.example", role=UserRole.ADMIN)
    session.commit()
    return user


# ============================================================================
# Payloads
# ============================================================================


def build_payload(**overrides):
    """A complete, valid shipment payload.

    Coordinates are supplied for both addresses (Nairobi CBD to Westlands),
    and distance_km pins the distance tier at 8 km.
    """
    payload = {
        "sender": {
            "full_name": "Jane Wanjiku",
            "email": "jane@example.com",
            "phone": "+254700000001",
            "pickup_address": {
                "street": "Moi Avenue 12",
                "area": "CBD",
                "city": "Nairobi",
                "county": "Nairobi",
                "latitude": -1.2841,
                "longitude": 36.8233,
            },
            "pickup_instructions": "Reception desk",
        },
        "recipient": {
            "full_name": "Otieno Odhiambo",
            "email": "otieno@example.com",
            "phone": "+254700000002",
            "delivery_address": {
                "street": "Waiyaki Way 5",
                "area": "Westlands",
                "city": "Nairobi",
                "latitude": -1.2676,
                "longitude": 36.8108,
            },
            "save_recipient": False,
        },
        "parcel": {
            "package_type": "STANDARD_BOX",
            "weight": 2.5,
            "weight_unit": "kg",
            "dimensions": {"length": 30, "width": 20, "height": 10, "unit": "cm"},
            "estimated_value": 0,
            "description": "Books",
        },
        "delivery": {
            "delivery_type": "EXPRESS",
            "distance_km": 8,
        },
    }
    for section, values in overrides.items():
        if isinstance(values, dict) and isinstance(payload.get(section), dict):
            payload[section] = {**payload[section], **values}
        else:
            payload[section] = values
    return payload


@pytest.fixture
def make_payload():
    """Factory for shipment payloads; keyword sections are merged into the default."""
    return build_payload


@pytest.fixture
def payload():
    return build_payload()
