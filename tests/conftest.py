"""Shared test fixtures for the TrainHub reconciliation test suite.

Provides:
- app: Flask app configured for testing (in-memory SQLite, CSRF off)
- client: Flask test client
- db_session: clean database per test (tables created/dropped)
- mail_outbox: captured outgoing email (SMTP is never contacted)
- stripe_intents / register_intent: fake PaymentIntent lookups, keyed by id
- seed_data: a parent user + guardian + child, and a coach (provider)
- make_snapshot / make_booking: factories for checkout snapshots and bookings
"""

import secrets
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import patch

import pytest
import stripe

from trainhub import create_app
from trainhub.extensions import db as _db
from trainhub.models.booking import Booking
from trainhub.models.guardian import Guardian, Participant
from trainhub.models.provider import Provider
from trainhub.models.user import User
from trainhub.services.snapshot_store import SnapshotStore


@pytest.fixture(scope="session")
def app():
    """Create the Flask application configured for testing."""
    app = create_app("testing")
    yield app


@pytest.fixture(autouse=True)
def db_session(app):
    """Create all tables before each test, drop after."""
    with app.app_context():
        _db.create_all()
        yield _db.session
        _db.session.rollback()
        _db.drop_all()


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture(autouse=True)
def mail_outbox():
    """Capture every email handed to SMTP instead of sending it."""
    outbox = []

    def _capture(app, msg):
        outbox.append(msg)
        return True

    with patch("trainhub.services.email_service._send_smtp", side_effect=_capture):
        yield outbox


@pytest.fixture(autouse=True)
def stripe_intents():
    """Fake stripe.PaymentIntent.retrieve.

    Tests register intents by id; unknown ids raise InvalidRequestError
    the way Stripe does.
    """
    intents = {}

    def _retrieve(intent_id, *args, **kwargs):
        if intent_id not in intents:
            raise stripe.error.InvalidRequestError(
                f"No such payment_intent: '{intent_id}'", "id"
            )
        return intents[intent_id]

    with patch(
        "trainhub.services.stripe_service.stripe.PaymentIntent.retrieve",
        side_effect=_retrieve,
    ):
        yield intents


@pytest.fixture
def register_intent(stripe_intents):
    """Factory: register a PaymentIntent payload as Stripe would return it."""

    def _register(intent_id, amount_cents=10000, status="succeeded", currency="usd",
                  metadata=None):
        intent = {
            "id": intent_id,
            "object": "payment_intent",
            "amount": amount_cents,
            "amount_received": amount_cents if status == "succeeded" else 0,
            "currency": currency,
            "status": status,
            "metadata": metadata or {},
        }
        stripe_intents[intent_id] = intent
        return intent

    return _register


@pytest.fixture
def seed_data(app, db_session):
    """Seed a parent (user + guardian + child) and a coach.

    Returns a dict with the created objects and their plain ids.
    """
    # --- Parent ---
    parent_user = User(email="parent@example.com", full_name="Pat Parent")
    _db.session.add(parent_user)
    _db.session.flush()

    guardian = Guardian(
        user_id=parent_user.id,
        first_name="Pat",
        last_name="Parent",
        email="parent@example.com",
        phone="555-0100",
    )
    _db.session.add(guardian)
    _db.session.flush()

    participant = Participant(
        guardian_id=guardian.id, first_name="Sam", last_name="Parent"
    )
    _db.session.add(participant)

    # --- Coach ---
    coach_user = User(email="coach.login@example.com", full_name="Casey Coach")
    _db.session.add(coach_user)
    _db.session.flush()

    provider = Provider(
        user_id=coach_user.id,
        display_name="Coach Casey",
        email="coach@example.com",
    )
    _db.session.add(provider)
    _db.session.commit()

    return {
        "parent_user": parent_user,
        "parent_user_id": parent_user.id,
        "guardian": guardian,
        "guardian_id": guardian.id,
        "participant": participant,
        "participant_id": participant.id,
        "coach_user": coach_user,
        "provider": provider,
        "provider_id": provider.id,
    }


@pytest.fixture
def make_snapshot(app, db_session, seed_data):
    """Factory: capture and commit a checkout snapshot.

    Defaults to a single $100 session with Coach Casey for a new family.
    """

    def _make(**overrides):
        data = {
            "provider_id": seed_data["provider_id"],
            "package_type": "single",
            "training_total": "100.00",
            "currency": "usd",
            "session_date": "2026-11-02",
            "session_time": "15:30",
            "session_location": "Riverside Park, Field 2",
            "contact": {
                "first_name": "Jordan",
                "last_name": "Lee",
                "email": "jordan@example.com",
                "phone": "555-0199",
            },
            "participant": {"first_name": "Alex", "last_name": "Lee"},
        }
        user_id = overrides.pop("user_id", None)
        data.update(overrides)
        store = SnapshotStore(db_session, ttl_seconds=app.config["CHECKOUT_SNAPSHOT_TTL_SECONDS"])
        snapshot = store.capture(data, user_id=user_id)
        db_session.commit()
        return snapshot

    return _make


@pytest.fixture
def make_booking(db_session, seed_data):
    """Factory: insert a confirmed booking for the seeded family and coach."""

    def _make(payment_transaction_id=None, created_at=None, **overrides):
        fields = dict(
            booking_number=f"TH-{secrets.token_hex(4).upper()}",
            provider_id=seed_data["provider_id"],
            guardian_id=seed_data["guardian_id"],
            participant_id=seed_data["participant_id"],
            package_type="single",
            total_sessions=1,
            sessions_remaining=1,
            total_amount=Decimal("100.00"),
            amount_paid=Decimal("100.00"),
            platform_fee=Decimal("25.00"),
            provider_payout=Decimal("75.00"),
            currency="usd",
            payment_transaction_id=payment_transaction_id,
            payment_status="paid",
            status="confirmed",
            created_at=created_at or datetime.now(timezone.utc),
        )
        fields.update(overrides)
        booking = Booking(**fields)
        db_session.add(booking)
        db_session.commit()
        return booking

    return _make
