"""Notification sent-marker model.

One row per (booking, recipient role) confirmation that went out. While a
marker is live, reloading the confirmation page must not send that email
again. Markers expire but are never deleted by the checkout flow.
"""

import uuid
from datetime import datetime, timezone

from trainhub.extensions import db


class NotificationMarker(db.Model):
    __tablename__ = "notification_markers"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    key = db.Column(db.String(255), unique=True, nullable=False)  # "booking:42:payer"
    booking_id = db.Column(db.Integer, nullable=True, index=True)
    role = db.Column(db.String(20), nullable=True)  # payer | provider
    recipient = db.Column(db.String(255), nullable=True)
    method = db.Column(db.String(20), nullable=True)  # primary | fallback | manual
    created_at = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<NotificationMarker {self.key}>"
