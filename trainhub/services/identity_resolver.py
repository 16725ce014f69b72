"""Identity resolver: map confirmation-page hints to an existing booking.

The confirmation page can be reached with any mix of identifiers: an
explicit booking or order id, a booking number, a Stripe payment intent,
a checkout token, an order parked in the web session, cookies left by an
earlier step, or just a logged-in user. None of them is trusted on its
own.

Each lookup is an independent strategy. IdentityResolver tries them in
order and the first hit wins. The order is the trust ranking: explicit
ids first, time-window guesses last.
"""

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import or_

from trainhub.models.booking import Booking
from trainhub.models.guardian import Guardian
from trainhub.models.order import Order
from trainhub.services.snapshot_store import SnapshotStore

logger = logging.getLogger(__name__)

SESSION_ORDER_KEY = "order_awaiting_payment"
LAST_BOOKING_COOKIE = "th_last_booking"
LAST_ORDER_COOKIE = "th_last_order"


def _clean(value):
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _parse_id(value):
    """Strict positive-integer parse. Anything else is None, never 0."""
    value = _clean(value)
    if value is None or not (value.isascii() and value.isdigit()):
        return None
    return int(value) or None


class ResolutionHints:
    """Optional, individually untrusted identifiers for one page view."""

    def __init__(self, booking_id=None, order_id=None, booking_number=None,
                 payment_transaction_id=None, checkout_token=None,
                 session_order_id=None, cookie_booking_id=None,
                 cookie_order_id=None, user_id=None):
        self.booking_id = _clean(booking_id)
        self.order_id = _clean(order_id)
        self.booking_number = _clean(booking_number)
        self.payment_transaction_id = _clean(payment_transaction_id)
        self.checkout_token = _clean(checkout_token)
        self.session_order_id = _clean(session_order_id)
        self.cookie_booking_id = _clean(cookie_booking_id)
        self.cookie_order_id = _clean(cookie_order_id)
        self.user_id = _clean(user_id)

    @classmethod
    def from_request(cls, request, session_state=None, user=None):
        """Collect hints from query args, cookies, web session and user.

        A non-numeric ?booking= value is a booking number, not an id, so
        it is routed to the booking-number lookup instead of being parsed.
        """
        args = request.args
        booking_ref = _clean(args.get("booking_id") or args.get("booking"))
        booking_id = booking_ref if _parse_id(booking_ref) else None
        booking_number = _clean(args.get("bn"))
        if booking_number is None and booking_ref and booking_id is None:
            booking_number = booking_ref

        user_id = None
        if user is not None and getattr(user, "is_authenticated", False):
            user_id = user.id

        return cls(
            booking_id=booking_id,
            order_id=args.get("order_id") or args.get("order"),
            booking_number=booking_number,
            payment_transaction_id=args.get("payment_intent"),
            checkout_token=args.get("session"),
            session_order_id=(session_state or {}).get(SESSION_ORDER_KEY),
            cookie_booking_id=request.cookies.get(LAST_BOOKING_COOKIE),
            cookie_order_id=request.cookies.get(LAST_ORDER_COOKIE),
            user_id=user_id,
        )

    def is_empty(self):
        return not any(vars(self).values())

    def __repr__(self):
        present = ", ".join(k for k, v in vars(self).items() if v)
        return f"<ResolutionHints {present or 'none'}>"


# ──────────────────────────────────────────────
# Strategies
# ──────────────────────────────────────────────

class ResolverStrategy:
    """One way of finding a booking. Returns a Booking or None."""

    name = "strategy"

    def resolve(self, hints, session):
        raise NotImplementedError


def _booking_for_order(session, order_id):
    order_pk = _parse_id(order_id)
    if order_pk is None:
        return None
    order = session.get(Order, order_pk)
    if order is None or order.booking_id is None:
        return None
    return session.get(Booking, order.booking_id)


def _most_recent_booking(session, window_minutes, *criteria):
    since = datetime.now(timezone.utc) - timedelta(minutes=window_minutes)
    return (
        session.query(Booking)
        .filter(*criteria)
        .filter(Booking.created_at >= since)
        .order_by(Booking.created_at.desc(), Booking.id.desc())
        .first()
    )


def _other_payment(booking, hints):
    """True when the booking is tied to a transaction other than the known one."""
    return bool(
        hints.payment_transaction_id
        and booking.payment_transaction_id
        and booking.payment_transaction_id != hints.payment_transaction_id
    )


class ExplicitBookingIdStrategy(ResolverStrategy):
    name = "booking_id"

    def resolve(self, hints, session):
        booking_pk = _parse_id(hints.booking_id)
        if booking_pk is None:
            return None
        return session.get(Booking, booking_pk)


class ExplicitOrderIdStrategy(ResolverStrategy):
    name = "order_id"

    def resolve(self, hints, session):
        return _booking_for_order(session, hints.order_id)


class BookingNumberStrategy(ResolverStrategy):
    """Exact string match on booking_number ("TH-1A2B3C4D")."""

    name = "booking_number"

    def resolve(self, hints, session):
        if not hints.booking_number:
            return None
        return (
            session.query(Booking)
            .filter_by(booking_number=hints.booking_number)
            .order_by(Booking.id.desc())
            .first()
        )


class SessionOrderStrategy(ResolverStrategy):
    name = "session_order"

    def resolve(self, hints, session):
        return _booking_for_order(session, hints.session_order_id)


class CookieStrategy(ResolverStrategy):
    """Booking or order left in a cookie by an earlier confirmation.

    The cookie outlives a single checkout, so a booking paid by a different
    transaction than the one on this page is skipped.
    """

    name = "cookie"

    def resolve(self, hints, session):
        booking_pk = _parse_id(hints.cookie_booking_id)
        if booking_pk is not None:
            booking = session.get(Booking, booking_pk)
            if booking is not None and not _other_payment(booking, hints):
                return booking
        booking = _booking_for_order(session, hints.cookie_order_id)
        if booking is not None and _other_payment(booking, hints):
            return None
        return booking


class PaymentTransactionStrategy(ResolverStrategy):
    name = "payment_transaction"

    def resolve(self, hints, session):
        if not hints.payment_transaction_id:
            return None
        return (
            session.query(Booking)
            .filter_by(payment_transaction_id=hints.payment_transaction_id)
            .first()
        )


class RecentProviderBookingStrategy(ResolverStrategy):
    """Checkout token -> snapshot -> provider -> newest booking in the window.

    Only runs once the payment transaction id is known, and skips bookings
    tied to a different transaction, so one family's booking is never
    shown to another.
    """

    name = "recent_provider_booking"

    def __init__(self, window_minutes=10):
        self.window_minutes = window_minutes

    def resolve(self, hints, session):
        if not hints.checkout_token or not hints.payment_transaction_id:
            return None
        snapshot = SnapshotStore(session).get(hints.checkout_token)
        if snapshot is None:
            return None
        provider_id, _ = snapshot.resolve_provider_and_total()
        if not provider_id:
            return None
        return _most_recent_booking(
            session,
            self.window_minutes,
            Booking.provider_id == provider_id,
            or_(
                Booking.payment_transaction_id.is_(None),
                Booking.payment_transaction_id == hints.payment_transaction_id,
            ),
        )


class RecentGuardianBookingStrategy(ResolverStrategy):
    name = "recent_guardian_booking"

    def __init__(self, window_minutes=5):
        self.window_minutes = window_minutes

    def resolve(self, hints, session):
        if not hints.user_id:
            return None
        guardian = session.query(Guardian).filter_by(user_id=hints.user_id).first()
        if guardian is None:
            return None
        criteria = [Booking.guardian_id == guardian.id]
        if hints.payment_transaction_id:
            criteria.append(
                or_(
                    Booking.payment_transaction_id.is_(None),
                    Booking.payment_transaction_id == hints.payment_transaction_id,
                )
            )
        return _most_recent_booking(session, self.window_minutes, *criteria)


def default_strategies(config):
    """The production strategy chain, in trust order."""
    return [
        ExplicitBookingIdStrategy(),
        ExplicitOrderIdStrategy(),
        BookingNumberStrategy(),
        SessionOrderStrategy(),
        CookieStrategy(),
        PaymentTransactionStrategy(),
        RecentProviderBookingStrategy(config.get("PROVIDER_RECENT_WINDOW_MINUTES", 10)),
        RecentGuardianBookingStrategy(config.get("GUARDIAN_RECENT_WINDOW_MINUTES", 5)),
    ]


class IdentityResolver:
    """Runs strategies in order; the first non-empty result wins."""

    def __init__(self, strategies):
        self.strategies = list(strategies)

    def resolve(self, hints, session):
        booking, _ = self.resolve_with_source(hints, session)
        return booking

    def resolve_with_source(self, hints, session):
        """Returns (booking, strategy name) or (None, None)."""
        for strategy in self.strategies:
            booking = strategy.resolve(hints, session)
            if booking is not None:
                logger.info(f"Booking {booking.id} resolved via {strategy.name}")
                return booking, strategy.name
        logger.info(f"No booking resolved for {hints!r}")
        return None, None
