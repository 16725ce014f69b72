"""Stripe event model (webhook idempotency table).

Each processed webhook event is recorded by its Stripe event ID, along
with the payment it concerned. Redelivered events are acknowledged
without running reconciliation a second time.
"""

import uuid

from trainhub.extensions import db


class StripeEvent(db.Model):
    __tablename__ = "stripe_events"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    stripe_event_id = db.Column(
        db.String(255), unique=True, nullable=False
    )  # e.g. "evt_1Abc..."
    event_type = db.Column(
        db.String(255), nullable=False
    )  # e.g. "payment_intent.succeeded"
    payment_transaction_id = db.Column(db.String(255), nullable=True)
    processed_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    def __repr__(self):
        return f"<StripeEvent {self.stripe_event_id} ({self.event_type})>"
