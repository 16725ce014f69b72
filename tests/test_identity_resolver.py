"""Tests for the identity resolver.

Covers:
- Each lookup strategy on its own
- Strategy precedence (explicit ids beat payment-based lookups)
- Hint parsing from the request (booking ref routing, strict ids)
- Recent-booking windows and the cross-family guard
"""

from datetime import datetime, timedelta, timezone

from flask import request

from trainhub.models.order import Order
from trainhub.services.identity_resolver import (
    LAST_BOOKING_COOKIE,
    SESSION_ORDER_KEY,
    BookingNumberStrategy,
    CookieStrategy,
    ExplicitBookingIdStrategy,
    ExplicitOrderIdStrategy,
    IdentityResolver,
    PaymentTransactionStrategy,
    RecentGuardianBookingStrategy,
    RecentProviderBookingStrategy,
    ResolutionHints,
    SessionOrderStrategy,
    _parse_id,
    default_strategies,
)


def _resolver(app):
    return IdentityResolver(default_strategies(app.config))


def _make_order(db_session, booking):
    order = Order(booking_id=booking.id, status="completed")
    db_session.add(order)
    db_session.commit()
    return order


class TestParseId:

    def test_positive_integers(self):
        assert _parse_id("42") == 42
        assert _parse_id(" 7 ") == 7

    def test_rejects_everything_else(self):
        for value in (None, "", "0", "-3", "12abc", "1.5", "TH-1A2B", "٣"):
            assert _parse_id(value) is None, value


class TestStrategies:

    def test_explicit_booking_id(self, db_session, make_booking):
        booking = make_booking()
        hints = ResolutionHints(booking_id=str(booking.id))
        assert ExplicitBookingIdStrategy().resolve(hints, db_session).id == booking.id

    def test_explicit_booking_id_unknown(self, db_session, make_booking):
        make_booking()
        hints = ResolutionHints(booking_id="9999")
        assert ExplicitBookingIdStrategy().resolve(hints, db_session) is None

    def test_explicit_order_id(self, db_session, make_booking):
        booking = make_booking()
        order = _make_order(db_session, booking)
        hints = ResolutionHints(order_id=str(order.id))
        assert ExplicitOrderIdStrategy().resolve(hints, db_session).id == booking.id

    def test_order_without_booking(self, db_session):
        order = Order(status="pending")
        db_session.add(order)
        db_session.commit()
        hints = ResolutionHints(order_id=str(order.id))
        assert ExplicitOrderIdStrategy().resolve(hints, db_session) is None

    def test_booking_number(self, db_session, make_booking):
        booking = make_booking(booking_number="TH-ABCD1234")
        hints = ResolutionHints(booking_number="TH-ABCD1234")
        assert BookingNumberStrategy().resolve(hints, db_session).id == booking.id
        assert BookingNumberStrategy().resolve(
            ResolutionHints(booking_number="TH-abcd1234"), db_session
        ) is None

    def test_session_order(self, db_session, make_booking):
        booking = make_booking()
        order = _make_order(db_session, booking)
        hints = ResolutionHints(session_order_id=order.id)
        assert SessionOrderStrategy().resolve(hints, db_session).id == booking.id

    def test_cookie_booking_then_order(self, db_session, make_booking):
        first = make_booking()
        second = make_booking()
        order = _make_order(db_session, second)

        hints = ResolutionHints(cookie_booking_id=str(first.id), cookie_order_id=str(order.id))
        assert CookieStrategy().resolve(hints, db_session).id == first.id

        hints = ResolutionHints(cookie_booking_id="9999", cookie_order_id=str(order.id))
        assert CookieStrategy().resolve(hints, db_session).id == second.id

    def test_cookie_skips_booking_paid_by_another_transaction(self, db_session, make_booking):
        earlier = make_booking(payment_transaction_id="pi_first")
        order = _make_order(db_session, earlier)

        hints = ResolutionHints(
            cookie_booking_id=str(earlier.id),
            cookie_order_id=str(order.id),
            payment_transaction_id="pi_second",
        )
        assert CookieStrategy().resolve(hints, db_session) is None

        hints = ResolutionHints(
            cookie_booking_id=str(earlier.id), payment_transaction_id="pi_first"
        )
        assert CookieStrategy().resolve(hints, db_session).id == earlier.id

    def test_payment_transaction(self, db_session, make_booking):
        booking = make_booking(payment_transaction_id="pi_abc")
        hints = ResolutionHints(payment_transaction_id="pi_abc")
        assert PaymentTransactionStrategy().resolve(hints, db_session).id == booking.id
        assert PaymentTransactionStrategy().resolve(
            ResolutionHints(payment_transaction_id="pi_other"), db_session
        ) is None


class TestRecentProviderBooking:
    """Checkout token -> provider -> newest booking in the trailing window."""

    def test_finds_recent_booking_for_snapshot_provider(self, db_session, make_snapshot, make_booking):
        snapshot = make_snapshot()
        booking = make_booking()
        hints = ResolutionHints(payment_transaction_id="pi_new", checkout_token=snapshot.token)
        assert RecentProviderBookingStrategy(10).resolve(hints, db_session).id == booking.id

    def test_requires_payment_transaction_id(self, db_session, make_snapshot, make_booking):
        snapshot = make_snapshot()
        make_booking()
        hints = ResolutionHints(checkout_token=snapshot.token)
        assert RecentProviderBookingStrategy(10).resolve(hints, db_session) is None

    def test_outside_window_is_ignored(self, db_session, make_snapshot, make_booking):
        snapshot = make_snapshot()
        make_booking(created_at=datetime.now(timezone.utc) - timedelta(minutes=20))
        hints = ResolutionHints(payment_transaction_id="pi_new", checkout_token=snapshot.token)
        assert RecentProviderBookingStrategy(10).resolve(hints, db_session) is None

    def test_skips_booking_paid_by_another_transaction(self, db_session, make_snapshot, make_booking):
        snapshot = make_snapshot()
        make_booking(payment_transaction_id="pi_someone_else")
        hints = ResolutionHints(payment_transaction_id="pi_new", checkout_token=snapshot.token)
        assert RecentProviderBookingStrategy(10).resolve(hints, db_session) is None

    def test_newest_booking_wins(self, db_session, make_snapshot, make_booking):
        snapshot = make_snapshot()
        make_booking(created_at=datetime.now(timezone.utc) - timedelta(minutes=8))
        newest = make_booking(created_at=datetime.now(timezone.utc) - timedelta(minutes=1))
        hints = ResolutionHints(payment_transaction_id="pi_new", checkout_token=snapshot.token)
        assert RecentProviderBookingStrategy(10).resolve(hints, db_session).id == newest.id


class TestRecentGuardianBooking:

    def test_finds_recent_booking_for_logged_in_guardian(self, db_session, seed_data, make_booking):
        booking = make_booking()
        hints = ResolutionHints(user_id=seed_data["parent_user_id"])
        assert RecentGuardianBookingStrategy(5).resolve(hints, db_session).id == booking.id

    def test_window_is_five_minutes(self, db_session, seed_data, make_booking):
        make_booking(created_at=datetime.now(timezone.utc) - timedelta(minutes=6))
        hints = ResolutionHints(user_id=seed_data["parent_user_id"])
        assert RecentGuardianBookingStrategy(5).resolve(hints, db_session) is None

    def test_user_without_guardian(self, db_session, seed_data, make_booking):
        make_booking()
        hints = ResolutionHints(user_id=seed_data["coach_user"].id)
        assert RecentGuardianBookingStrategy(5).resolve(hints, db_session) is None

    def test_skips_booking_paid_by_another_transaction(self, db_session, seed_data, make_booking):
        make_booking(payment_transaction_id="pi_first")
        hints = ResolutionHints(
            user_id=seed_data["parent_user_id"], payment_transaction_id="pi_second"
        )
        assert RecentGuardianBookingStrategy(5).resolve(hints, db_session) is None

        unpaid = make_booking()
        assert RecentGuardianBookingStrategy(5).resolve(hints, db_session).id == unpaid.id


class TestResolverPrecedence:

    def test_booking_id_beats_payment_transaction(self, app, db_session, make_booking):
        explicit = make_booking()
        paid = make_booking(payment_transaction_id="pi_paid")
        hints = ResolutionHints(booking_id=str(explicit.id), payment_transaction_id="pi_paid")

        booking, source = _resolver(app).resolve_with_source(hints, db_session)

        assert booking.id == explicit.id
        assert booking.id != paid.id
        assert source == "booking_id"

    def test_falls_through_to_payment_transaction(self, app, db_session, make_booking):
        paid = make_booking(payment_transaction_id="pi_paid")
        hints = ResolutionHints(booking_id="9999", payment_transaction_id="pi_paid")

        booking, source = _resolver(app).resolve_with_source(hints, db_session)

        assert booking.id == paid.id
        assert source == "payment_transaction"

    def test_no_hints_resolves_nothing(self, app, db_session, make_booking):
        make_booking()
        hints = ResolutionHints()
        assert hints.is_empty()
        assert _resolver(app).resolve_with_source(hints, db_session) == (None, None)

    def test_default_chain_order(self, app):
        names = [s.name for s in default_strategies(app.config)]
        assert names == [
            "booking_id",
            "order_id",
            "booking_number",
            "session_order",
            "cookie",
            "payment_transaction",
            "recent_provider_booking",
            "recent_guardian_booking",
        ]


class TestHintsFromRequest:

    def test_numeric_booking_param_is_an_id(self, app):
        with app.test_request_context("/checkout/thank-you?booking=42&payment_intent=pi_1&session=tok"):
            hints = ResolutionHints.from_request(request)
        assert hints.booking_id == "42"
        assert hints.booking_number is None
        assert hints.payment_transaction_id == "pi_1"
        assert hints.checkout_token == "tok"

    def test_non_numeric_booking_param_is_a_booking_number(self, app, db_session, make_booking):
        booking = make_booking(booking_number="TH-00C0FFEE")
        with app.test_request_context("/checkout/thank-you?booking=TH-00C0FFEE"):
            hints = ResolutionHints.from_request(request)

        assert hints.booking_id is None
        assert hints.booking_number == "TH-00C0FFEE"
        found, source = _resolver(app).resolve_with_source(hints, db_session)
        assert found.id == booking.id
        assert source == "booking_number"

    def test_session_and_cookie_hints(self, app):
        with app.test_request_context(
            "/checkout/thank-you",
            headers={"Cookie": f"{LAST_BOOKING_COOKIE}=17"},
        ):
            hints = ResolutionHints.from_request(request, {SESSION_ORDER_KEY: 5})
        assert hints.cookie_booking_id == "17"
        assert hints.session_order_id == "5"

    def test_anonymous_user_gives_no_user_id(self, app, seed_data):
        class _Anonymous:
            is_authenticated = False

        with app.test_request_context("/checkout/thank-you"):
            assert ResolutionHints.from_request(request, {}, _Anonymous()).user_id is None
            assert ResolutionHints.from_request(
                request, {}, seed_data["parent_user"]
            ).user_id == seed_data["parent_user_id"]
