"""Idempotency guard.

Two rules keep repeated confirmation-page views harmless:

- one booking per payment transaction id, enforced by the unique
  constraint on bookings.payment_transaction_id and an insert that falls
  back to the existing row when it loses a race;
- one confirmation per (booking, recipient role), tracked with
  TTL-bounded sent-markers.
"""

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy.exc import IntegrityError

from trainhub.models.booking import Booking
from trainhub.models.notification_marker import NotificationMarker

logger = logging.getLogger(__name__)


def find_booking_for_transaction(session, payment_transaction_id):
    """Return the booking already linked to a payment transaction, if any."""
    if not payment_transaction_id:
        return None
    return (
        session.query(Booking)
        .filter_by(payment_transaction_id=payment_transaction_id)
        .first()
    )


def insert_booking_or_fetch_existing(session, booking):
    """Insert a booking, or return the one that already owns its transaction.

    The insert runs inside a SAVEPOINT. A unique violation on
    payment_transaction_id rolls back only the savepoint, and the row
    that won the race is fetched instead.

    Returns (booking, created: bool).
    Raises IntegrityError if the insert failed for any other reason.
    """
    try:
        with session.begin_nested():
            session.add(booking)
    except IntegrityError:
        existing = find_booking_for_transaction(session, booking.payment_transaction_id)
        if existing is None:
            raise
        logger.info(
            f"Booking for payment {booking.payment_transaction_id} already exists "
            f"(id={existing.id}), using it"
        )
        return existing, False
    return booking, True


def marker_key(booking_id, role):
    return f"booking:{booking_id}:{role}"


class MarkerStore:
    """Notification sent-markers, stored in notification_markers."""

    def __init__(self, session):
        self.session = session

    def exists(self, key):
        """True if a live (unexpired) marker is stored under key."""
        now = datetime.now(timezone.utc)
        return (
            self.session.query(NotificationMarker.id)
            .filter(NotificationMarker.key == key)
            .filter(NotificationMarker.expires_at > now)
            .first()
            is not None
        )

    def set(self, key, ttl, booking_id=None, role=None, recipient=None, method="primary"):
        """Store (or refresh) a marker under key for ttl.

        Args:
            ttl: timedelta, or number of seconds.

        Returns the NotificationMarker (flushed, not committed).
        """
        if not isinstance(ttl, timedelta):
            ttl = timedelta(seconds=ttl)
        expires_at = datetime.now(timezone.utc) + ttl

        marker = self.session.query(NotificationMarker).filter_by(key=key).first()
        if marker is None:
            marker = NotificationMarker(
                key=key,
                booking_id=booking_id,
                role=role,
                recipient=recipient,
                method=method,
                expires_at=expires_at,
            )
            try:
                with self.session.begin_nested():
                    self.session.add(marker)
                return marker
            except IntegrityError:
                # Another request stored the same marker first.
                marker = self.session.query(NotificationMarker).filter_by(key=key).first()

        marker.recipient = recipient or marker.recipient
        marker.method = method
        marker.expires_at = expires_at
        self.session.flush()
        return marker
