"""Checkout session snapshot model.

Captures cart and contact state at the moment checkout begins, keyed by
an opaque token that travels through the payment redirect. Read-only
after creation and deleted once the recovery engine consumes it.
Rows past expires_at are treated as absent.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from trainhub.extensions import db


def _as_aware(dt):
    # SQLite hands back naive datetimes even for timezone=True columns.
    if dt is not None and dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


class CheckoutSnapshot(db.Model):
    __tablename__ = "checkout_snapshots"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    token = db.Column(db.String(64), unique=True, nullable=False)
    provider_id = db.Column(db.String(36), nullable=True, index=True)
    user_id = db.Column(db.String(36), nullable=True)

    # --- Package / cart ---
    package_type = db.Column(db.String(20), nullable=False, default="single")
    training_total = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    cart_total = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    final_total = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    currency = db.Column(db.String(3), nullable=False, default="usd")
    cart_items = db.Column(db.JSON, default=list)

    # --- Schedule (as entered at checkout) ---
    session_date = db.Column(db.String(10), nullable=True)  # "YYYY-MM-DD"
    session_time = db.Column(db.String(8), nullable=True)   # "HH:MM"
    session_location = db.Column(db.String(255), nullable=True)

    # --- People ---
    contact = db.Column(db.JSON, default=dict)      # first_name, last_name, email, phone
    participant = db.Column(db.JSON, default=dict)  # id, first_name, last_name

    created_at = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    def is_expired(self, now=None):
        now = now or datetime.now(timezone.utc)
        return _as_aware(self.expires_at) <= now

    @property
    def contact_email(self):
        return (self.contact or {}).get("email") or None

    def resolve_provider_and_total(self):
        """Work out who was booked and for how much.

        Older checkout pages only filled in the cart items, so the
        provider and the line total are looked up there when the
        top-level fields are empty. A zero training total falls back to
        the cart total, then the final total.

        Returns (provider_id or None, Decimal total).
        """
        provider_id = self.provider_id
        total = Decimal(self.training_total or 0)

        if not provider_id:
            for item in self.cart_items or []:
                if item.get("provider_id"):
                    provider_id = str(item["provider_id"])
                    total = Decimal(str(item.get("total") or item.get("price") or 0))
                    break

        if total <= 0 and provider_id:
            total = Decimal(self.cart_total or 0) or Decimal(self.final_total or 0)

        return provider_id, total

    def __repr__(self):
        return f"<CheckoutSnapshot {self.token[:8]}…>"
