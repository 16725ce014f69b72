"""Order model.

The shop-side order a checkout produces. The order id is what the shop
puts in redirect URLs, the web session ("order awaiting payment") and the
last-order cookie, so the confirmation page can walk order -> booking.
"""

from datetime import datetime, timezone

from trainhub.extensions import db


class Order(db.Model):
    __tablename__ = "orders"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    booking_id = db.Column(
        db.Integer, db.ForeignKey("bookings.id"), nullable=True, index=True
    )
    user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=True)
    payment_transaction_id = db.Column(db.String(255), nullable=True, index=True)
    status = db.Column(
        db.String(20), nullable=False, default="pending"
    )  # pending | processing | completed | failed
    created_at = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    # --- Relationships ---
    booking = db.relationship("Booking")

    def __repr__(self):
        return f"<Order {self.id} ({self.status})>"
