"""Audit helpers for the reconciliation flow."""

from trainhub.models.audit import AuditEvent


def log_audit(session, action, booking_id=None, metadata=None):
    """Add an audit event to the session.

    Uses flush() so the caller controls the commit boundary.
    """
    event = AuditEvent(
        booking_id=booking_id,
        action=action,
        metadata_=metadata or {},
    )
    session.add(event)
    session.flush()
    return event
