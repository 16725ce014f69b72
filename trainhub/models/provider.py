"""Provider model.

A coach or camp operator families book sessions with. Receives the
payout side of every booking and the provider confirmation email.
"""

import uuid

from trainhub.extensions import db


class Provider(db.Model):
    __tablename__ = "providers"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=True, unique=True
    )
    display_name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True)  # falls back to user.email
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    # --- Relationships ---
    user = db.relationship("User", back_populates="provider")
    bookings = db.relationship("Booking", back_populates="provider", lazy="dynamic")

    @property
    def contact_email(self):
        if self.email:
            return self.email
        if self.user and self.user.email:
            return self.user.email
        return None

    def __repr__(self):
        return f"<Provider {self.display_name}>"
