"""Checkout snapshot store: TTL-bounded key -> snapshot storage.

Backed by the checkout_snapshots table. A snapshot is written once when
checkout starts, read by the confirmation flow, and deleted when the
recovery engine turns it into a booking. Expired rows read as missing.
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from trainhub.models.checkout_snapshot import CheckoutSnapshot

logger = logging.getLogger(__name__)

_PERSON_FIELDS = ("first_name", "last_name", "email", "phone")
_PARTICIPANT_FIELDS = ("id", "first_name", "last_name")


def _pick(data, fields):
    data = data or {}
    return {f: str(data[f]).strip() for f in fields if data.get(f) not in (None, "")}


class SnapshotStore:
    """Snapshot access bound to an explicit SQLAlchemy session."""

    def __init__(self, session, ttl_seconds=7200):
        self.session = session
        self.ttl_seconds = ttl_seconds

    def capture(self, data, user_id=None):
        """Persist a new snapshot from checkout form data and return it.

        Args:
            data:    dict posted by the checkout page (provider_id,
                     package_type, totals, schedule fields, contact,
                     participant, cart_items).
            user_id: authenticated user at checkout time, if any.

        Returns the CheckoutSnapshot (flushed, not committed).
        """
        now = datetime.now(timezone.utc)
        snapshot = CheckoutSnapshot(
            token=secrets.token_urlsafe(24),
            provider_id=str(data["provider_id"]) if data.get("provider_id") else None,
            user_id=user_id,
            package_type=data.get("package_type") or "single",
            training_total=Decimal(str(data.get("training_total") or 0)),
            cart_total=Decimal(str(data.get("cart_total") or 0)),
            final_total=Decimal(str(data.get("final_total") or 0)),
            currency=(data.get("currency") or "usd").lower(),
            cart_items=list(data.get("cart_items") or []),
            session_date=data.get("session_date") or None,
            session_time=data.get("session_time") or None,
            session_location=data.get("session_location") or None,
            contact=_pick(data.get("contact"), _PERSON_FIELDS),
            participant=_pick(data.get("participant"), _PARTICIPANT_FIELDS),
            created_at=now,
            expires_at=now + timedelta(seconds=self.ttl_seconds),
        )
        self.session.add(snapshot)
        self.session.flush()
        logger.info(
            f"Checkout snapshot captured for provider={snapshot.provider_id} "
            f"package={snapshot.package_type}"
        )
        return snapshot

    def get(self, token):
        """Return the live snapshot for a token, or None if missing/expired."""
        if not token:
            return None
        snapshot = (
            self.session.query(CheckoutSnapshot).filter_by(token=token).first()
        )
        if snapshot is None:
            return None
        if snapshot.is_expired():
            logger.info(f"Checkout snapshot {token[:8]} expired")
            return None
        return snapshot

    def delete(self, token):
        """Delete a snapshot if it still exists.

        Safe to call twice; a racing request may already have removed it.
        Returns True if a row was deleted.
        """
        if not token:
            return False
        deleted = (
            self.session.query(CheckoutSnapshot)
            .filter_by(token=token)
            .delete(synchronize_session=False)
        )
        return bool(deleted)

    def purge_expired(self):
        """Delete every expired snapshot. Returns the number removed."""
        now = datetime.now(timezone.utc)
        return (
            self.session.query(CheckoutSnapshot)
            .filter(CheckoutSnapshot.expires_at <= now)
            .delete(synchronize_session=False)
        )
