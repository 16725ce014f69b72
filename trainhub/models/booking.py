"""Booking model.

The durable record of a paid session or camp. Exactly one booking exists
per payment transaction: bookings.payment_transaction_id carries a unique
constraint and is the primary idempotency key of the checkout flow.
Bookings are never deleted, only moved between statuses.
"""

from datetime import datetime, timezone

from sqlalchemy.orm import validates

from trainhub.extensions import db


def _utcnow():
    return datetime.now(timezone.utc)


class Booking(db.Model):
    __tablename__ = "bookings"

    STATUSES = ["pending", "confirmed", "completed", "cancelled"]

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    booking_number = db.Column(db.String(32), unique=True, nullable=False)
    provider_id = db.Column(
        db.String(36), db.ForeignKey("providers.id"), nullable=False, index=True
    )
    guardian_id = db.Column(
        db.String(36), db.ForeignKey("guardians.id"), nullable=False, index=True
    )
    participant_id = db.Column(
        db.String(36), db.ForeignKey("participants.id"), nullable=True
    )

    # --- Schedule ---
    session_date = db.Column(db.Date, nullable=True)
    start_time = db.Column(db.String(8), nullable=True)  # "HH:MM"
    location = db.Column(db.String(255), nullable=True)

    # --- Package ---
    package_type = db.Column(db.String(20), nullable=False, default="single")
    total_sessions = db.Column(db.Integer, nullable=False, default=1)
    sessions_remaining = db.Column(db.Integer, nullable=False, default=1)

    # --- Money ---
    total_amount = db.Column(db.Numeric(10, 2), nullable=False)
    amount_paid = db.Column(db.Numeric(10, 2), nullable=False)
    platform_fee = db.Column(db.Numeric(10, 2), nullable=False)
    provider_payout = db.Column(db.Numeric(10, 2), nullable=False)
    currency = db.Column(db.String(3), nullable=False, default="usd")
    payment_transaction_id = db.Column(
        db.String(255), unique=True, nullable=True
    )  # e.g. "pi_3Abc..."
    payment_status = db.Column(db.String(20), nullable=False, default="paid")

    status = db.Column(
        db.String(20), nullable=False, default="pending"
    )  # pending | confirmed | completed | cancelled
    package_credit_id = db.Column(
        db.String(36), db.ForeignKey("package_credits.id"), nullable=True
    )
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, index=True)

    # --- Relationships ---
    provider = db.relationship("Provider", back_populates="bookings")
    guardian = db.relationship("Guardian", back_populates="bookings")
    participant = db.relationship("Participant")
    escrow_hold = db.relationship(
        "EscrowHold", back_populates="booking", uselist=False
    )
    package_credit = db.relationship("PackageCredit")

    @validates("status")
    def _validate_status(self, key, value):
        if value not in self.STATUSES:
            raise ValueError(f"Invalid booking status: {value}")
        return value

    @validates("total_sessions", "sessions_remaining")
    def _validate_sessions(self, key, value):
        if value is None:
            return value
        if value < 0:
            raise ValueError(f"{key} cannot be negative")
        total = value if key == "total_sessions" else self.total_sessions
        remaining = value if key == "sessions_remaining" else self.sessions_remaining
        if total is not None and remaining is not None and remaining > total:
            raise ValueError(
                f"sessions_remaining ({remaining}) exceeds total_sessions ({total})"
            )
        return value

    def __repr__(self):
        return f"<Booking {self.booking_number} ({self.status})>"
