"""Notification dispatcher: one confirmation per booking per recipient.

For each recipient role (payer, provider) the dispatcher checks the
sent-marker, sends the confirmation if there is none, and records the
marker only after the transport accepted the message. A failed send
leaves the marker unset so a later page view can try again; nothing here
ever touches the booking or its financial records.
"""

import logging
from datetime import timedelta

from trainhub.services.email_service import send_email
from trainhub.services.financials import PACKAGE_LABELS
from trainhub.services.idempotency import MarkerStore, marker_key

logger = logging.getLogger(__name__)

ROLES = ("payer", "provider")

SENT = "sent"
ALREADY_SENT = "already_sent"
NO_RECIPIENT = "no_recipient"
FAILED = "failed"

TEMPLATES = {
    "payer": "emails/booking_confirmed_payer.html",
    "provider": "emails/booking_confirmed_provider.html",
}


def format_session_date(value):
    if not value:
        return "TBD - your coach will confirm"
    return f"{value:%A, %B} {value.day}, {value.year}"


def format_session_time(value):
    """'15:30' -> '3:30 PM'. Unparseable values come back unchanged."""
    if not value:
        return "TBD"
    try:
        hour, _, minute = value.partition(":")
        hour, minute = int(hour), int(minute or 0)
    except ValueError:
        return value
    ampm = "PM" if hour >= 12 else "AM"
    return f"{hour % 12 or 12}:{minute:02d} {ampm}"


def build_email_context(booking):
    participant_name = booking.participant.name if booking.participant else ""
    return {
        "booking_number": booking.booking_number,
        "provider_name": booking.provider.display_name,
        "guardian_name": booking.guardian.full_name,
        "participant_name": participant_name or "Player",
        "session_date": format_session_date(booking.session_date),
        "session_time": format_session_time(booking.start_time),
        "location": booking.location or "TBD - your coach will confirm",
        "package_label": PACKAGE_LABELS.get(booking.package_type, "Training Session"),
        "total_sessions": booking.total_sessions,
        "total_amount": f"{booking.total_amount:.2f}",
        "provider_payout": f"{booking.provider_payout:.2f}",
        "currency": (booking.currency or "usd").upper(),
    }


def _subject(booking, role, context):
    if role == "payer":
        return f"Training session confirmed - {context['participant_name']}"
    return f"New training booked - {context['participant_name']}"


def recipient_for(booking, role):
    """Primary address for a role, or None if none is on file."""
    if role == "payer":
        return booking.guardian.contact_email if booking.guardian else None
    return booking.provider.contact_email if booking.provider else None


class NotificationDispatcher:
    """Sends booking confirmations guarded by sent-markers.

    Args:
        session:          SQLAlchemy session (markers are committed here).
        sender:           callable(to, subject, template, context) -> bool.
        marker_ttl_hours: marker lifetime; never less than 24 hours.
    """

    def __init__(self, session, sender=None, marker_store=None, marker_ttl_hours=24):
        self.session = session
        self.sender = sender or send_email
        self.markers = marker_store or MarkerStore(session)
        self.marker_ttl = timedelta(hours=max(int(marker_ttl_hours), 24))

    def dispatch(self, booking, fallback_email=None):
        """Send any confirmation not yet sent for this booking.

        fallback_email is a looser payer address (the logged-in user's, or
        the one typed at checkout). It is only tried when the payer marker
        is still missing after the primary attempt.

        Returns {role: outcome}.
        """
        results = {}
        for role in ROLES:
            results[role] = self._send_once(booking, role)

        if (
            fallback_email
            and results["payer"] != ALREADY_SENT
            and not self.markers.exists(marker_key(booking.id, "payer"))
        ):
            primary = recipient_for(booking, "payer")
            if primary and primary.lower() == fallback_email.lower():
                logger.info(
                    f"Fallback address for booking {booking.id} matches the primary; not retrying"
                )
            else:
                logger.info(f"Trying fallback payer address for booking {booking.id}")
                results["payer"] = self._deliver(
                    booking, "payer", fallback_email, method="fallback"
                )

        return results

    def resend(self, booking, role):
        """Send a role's confirmation even if a marker exists (support resend)."""
        to = recipient_for(booking, role)
        if not to:
            logger.warning(f"No {role} address for booking {booking.id}, cannot resend")
            return NO_RECIPIENT
        return self._deliver(booking, role, to, method="manual")

    def _send_once(self, booking, role):
        key = marker_key(booking.id, role)
        if self.markers.exists(key):
            logger.info(f"Confirmation already sent for {key}, skipping")
            return ALREADY_SENT

        to = recipient_for(booking, role)
        if not to:
            logger.warning(f"No {role} email for booking {booking.id}, skipping")
            return NO_RECIPIENT

        return self._deliver(booking, role, to, method="primary")

    def _deliver(self, booking, role, to, method):
        context = build_email_context(booking)
        try:
            ok = self.sender(
                to=to,
                subject=_subject(booking, role, context),
                template=TEMPLATES[role],
                context=context,
            )
        except Exception as e:
            # Never let email failure affect the booking.
            logger.error(
                f"Error sending {role} confirmation for booking {booking.id}: {e}",
                exc_info=True,
            )
            ok = False

        if not ok:
            logger.error(f"{role} confirmation for booking {booking.id} to {to} FAILED")
            return FAILED

        self.markers.set(
            marker_key(booking.id, role),
            self.marker_ttl,
            booking_id=booking.id,
            role=role,
            recipient=to,
            method=method,
        )
        self.session.commit()
        logger.info(f"{role} confirmation for booking {booking.id} sent to {to} ({method})")
        return SENT
