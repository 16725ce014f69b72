"""Reconciliation driver: one entry point for every confirmation path.

The browser redirect, the status poll, the Stripe webhook and the support
CLI all call reconcile_confirmation(). It resolves the booking from the
hints, falls back to recovering it from the checkout snapshot, and sends
whatever confirmations are still outstanding.
"""

import logging
from collections import namedtuple

from flask import current_app

from trainhub.services.identity_resolver import IdentityResolver, default_strategies
from trainhub.services.notification_service import NotificationDispatcher
from trainhub.services import recovery_service
from trainhub.services.recovery_service import RecoveryEngine

logger = logging.getLogger(__name__)

RESOLVED = "resolved"
RECOVERED = "recovered"
PENDING = "pending"        # paid, but nothing to reconcile against (yet)
UNRESOLVED = "unresolved"  # no payment and no booking hints matched
FAILED = "failed"          # recovery hit a persistence error

ConfirmationOutcome = namedtuple(
    "ConfirmationOutcome", ["status", "booking", "source", "notifications"]
)


def _payer_fallback(booking, user):
    """The logged-in user's address, only if the booking is their family's."""
    if user is None or booking.guardian is None:
        return None
    if booking.guardian.user_id != user.id:
        return None
    return user.email


def reconcile_confirmation(session, hints, user=None, gateway=None, sender=None,
                           config=None):
    """Resolve or rebuild the booking behind a confirmation page view.

    Args:
        session: SQLAlchemy session used by every step.
        hints:   ResolutionHints for this view.
        user:    authenticated User, or None.
        gateway: optional payment lookup override (the webhook passes the
                 transaction it already verified).
        sender:  optional email transport override.
        config:  config mapping (defaults to current_app.config).

    Returns a ConfirmationOutcome.
    """
    config = config if config is not None else current_app.config
    notifier = NotificationDispatcher(
        session,
        sender=sender,
        marker_ttl_hours=config.get("NOTIFICATION_MARKER_TTL_HOURS", 24),
    )

    resolver = IdentityResolver(default_strategies(config))
    booking, source = resolver.resolve_with_source(hints, session)
    if booking is not None:
        notifications = notifier.dispatch(
            booking, fallback_email=_payer_fallback(booking, user)
        )
        return ConfirmationOutcome(RESOLVED, booking, source, notifications)

    if not (hints.payment_transaction_id and hints.checkout_token):
        status = PENDING if hints.payment_transaction_id else UNRESOLVED
        return ConfirmationOutcome(status, None, None, {})

    engine = RecoveryEngine(session, config, gateway=gateway, notifier=notifier)
    result = engine.recover(hints.payment_transaction_id, hints.checkout_token, user=user)

    if result.status == recovery_service.RECOVERED:
        return ConfirmationOutcome(RECOVERED, result.booking, "recovery", result.notifications)

    if result.status == recovery_service.DUPLICATE_PREVENTED and result.booking is not None:
        notifications = notifier.dispatch(
            result.booking,
            fallback_email=_payer_fallback(result.booking, user) or result.contact_email,
        )
        return ConfirmationOutcome(RESOLVED, result.booking, "payment_transaction", notifications)

    if result.status == recovery_service.FAILED:
        logger.error(
            f"Payment {hints.payment_transaction_id} received but booking unresolved"
        )
        return ConfirmationOutcome(FAILED, None, "recovery", {})

    return ConfirmationOutcome(PENDING, None, None, {})
