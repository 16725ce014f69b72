"""Guardian and participant models.

- Guardian: the paying parent/guardian account. Optionally linked to an
  authenticated user; otherwise identified by email.
- Participant: the child attending the session. Owned by exactly one guardian.
"""

import uuid

from trainhub.extensions import db


class Guardian(db.Model):
    __tablename__ = "guardians"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=True, unique=True
    )
    first_name = db.Column(db.String(100), nullable=True)
    last_name = db.Column(db.String(100), nullable=True)
    email = db.Column(db.String(255), nullable=True, index=True)
    phone = db.Column(db.String(50), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    # --- Relationships ---
    user = db.relationship("User", back_populates="guardian")
    participants = db.relationship(
        "Participant", back_populates="guardian", lazy="dynamic"
    )
    bookings = db.relationship("Booking", back_populates="guardian", lazy="dynamic")

    @property
    def full_name(self):
        return " ".join(p for p in (self.first_name, self.last_name) if p)

    @property
    def contact_email(self):
        if self.email:
            return self.email
        if self.user and self.user.email:
            return self.user.email
        return None

    def __repr__(self):
        return f"<Guardian {self.email or self.id}>"


class Participant(db.Model):
    __tablename__ = "participants"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    guardian_id = db.Column(
        db.String(36), db.ForeignKey("guardians.id"), nullable=False, index=True
    )
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    # --- Relationships ---
    guardian = db.relationship("Guardian", back_populates="participants")

    @property
    def name(self):
        return " ".join(p for p in (self.first_name, self.last_name) if p)

    def __repr__(self):
        return f"<Participant {self.name}>"
