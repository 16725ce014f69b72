"""Audit event model.

Records every reconciliation outcome worth reviewing later: recovered
bookings, prevented duplicates, failed recoveries (which support
resolves by hand) and manual resends.
"""

import uuid

from trainhub.extensions import db


class AuditEvent(db.Model):
    __tablename__ = "audit_events"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    booking_id = db.Column(
        db.Integer, db.ForeignKey("bookings.id"), nullable=True, index=True
    )
    action = db.Column(db.String(255), nullable=False)  # e.g. "booking.recovered"
    metadata_ = db.Column(
        "metadata", db.JSON, default=dict
    )  # extra context, named metadata_ to avoid clashing with SQLAlchemy's metadata
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    def __repr__(self):
        return f"<AuditEvent {self.action}>"
