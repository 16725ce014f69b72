"""Financial sub-records of a booking.

- EscrowHold: funds held after payment until the session is delivered.
  Created once per booking; the held amount always equals the booking
  total at creation.
- PackageCredit: ledger of pre-paid sessions left on a multi-session
  package. The originating booking consumes the first credit.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy.orm import validates

from trainhub.extensions import db


class EscrowHold(db.Model):
    __tablename__ = "escrow_holds"

    STATUSES = [
        "holding",
        "session_complete",
        "confirmed",
        "disputed",
        "released",
        "refunded",
    ]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    booking_id = db.Column(
        db.Integer, db.ForeignKey("bookings.id"), unique=True, nullable=False
    )
    payment_transaction_id = db.Column(db.String(255), nullable=True)
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    platform_fee = db.Column(db.Numeric(10, 2), nullable=False)
    provider_amount = db.Column(db.Numeric(10, 2), nullable=False)
    status = db.Column(db.String(20), nullable=False, default="holding")
    release_eligible_at = db.Column(
        db.DateTime(timezone=True), nullable=True
    )  # set when the provider marks the session complete
    created_at = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    # --- Relationships ---
    booking = db.relationship("Booking", back_populates="escrow_hold")

    @classmethod
    def for_booking(cls, booking):
        """Build the hold for a freshly inserted booking."""
        return cls(
            booking_id=booking.id,
            payment_transaction_id=booking.payment_transaction_id,
            amount=booking.total_amount,
            platform_fee=booking.platform_fee,
            provider_amount=booking.provider_payout,
            status="holding",
        )

    @property
    def is_released(self):
        return self.status == "released"

    def __repr__(self):
        return f"<EscrowHold booking={self.booking_id} ({self.status})>"


class PackageCredit(db.Model):
    __tablename__ = "package_credits"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    guardian_id = db.Column(
        db.String(36), db.ForeignKey("guardians.id"), nullable=False, index=True
    )
    provider_id = db.Column(
        db.String(36), db.ForeignKey("providers.id"), nullable=False, index=True
    )
    package_type = db.Column(db.String(20), nullable=False)
    total_credits = db.Column(db.Integer, nullable=False)
    remaining = db.Column(db.Integer, nullable=False)
    price_per_credit = db.Column(db.Numeric(10, 2), nullable=False)
    total_paid = db.Column(db.Numeric(10, 2), nullable=False)
    payment_transaction_id = db.Column(db.String(255), nullable=True, index=True)
    status = db.Column(db.String(20), nullable=False, default="active")  # active | exhausted | expired
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    created_at = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    @validates("total_credits", "remaining")
    def _validate_credits(self, key, value):
        if value is None:
            return value
        if value < 0:
            raise ValueError(f"{key} cannot be negative")
        total = value if key == "total_credits" else self.total_credits
        remaining = value if key == "remaining" else self.remaining
        if total is not None and remaining is not None and remaining > total:
            raise ValueError(
                f"remaining credits ({remaining}) exceed total_credits ({total})"
            )
        return value

    @classmethod
    def for_booking(cls, booking, price_per_credit, expires_at):
        """Build the credit ledger for a multi-session booking.

        The booking itself uses the first session, so one credit is
        already spent at creation.
        """
        return cls(
            guardian_id=booking.guardian_id,
            provider_id=booking.provider_id,
            package_type=booking.package_type,
            total_credits=booking.total_sessions,
            remaining=booking.total_sessions - 1,
            price_per_credit=price_per_credit,
            total_paid=booking.total_amount,
            payment_transaction_id=booking.payment_transaction_id,
            expires_at=expires_at,
            status="active",
        )

    def __repr__(self):
        return f"<PackageCredit {self.package_type} {self.remaining}/{self.total_credits}>"
