"""User model.

Authenticated accounts (parents and coaches both log in).
Flask-Login integration via UserMixin. Authentication itself lives
outside this app; the checkout flow only reads the current user.
"""

import uuid

from flask_login import UserMixin

from trainhub.extensions import db


class User(UserMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    email = db.Column(db.String(255), unique=True, nullable=False)
    full_name = db.Column(db.String(255))
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    # --- Relationships ---
    guardian = db.relationship("Guardian", back_populates="user", uselist=False)
    provider = db.relationship("Provider", back_populates="user", uselist=False)

    @property
    def first_name(self):
        return (self.full_name or "").split(" ", 1)[0]

    @property
    def last_name(self):
        parts = (self.full_name or "").split(" ", 1)
        return parts[1] if len(parts) > 1 else ""

    def __repr__(self):
        return f"<User {self.email}>"
