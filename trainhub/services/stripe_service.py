"""Stripe service: payment lookups and webhook handling.

Responsible for:
- Looking up a PaymentIntent and exposing it as a PaymentTransaction
- Verifying webhook signatures
- Running booking reconciliation on payment_intent.succeeded
- Webhook idempotency via the stripe_events table
"""

import logging
from collections import namedtuple
from decimal import Decimal

import stripe
from flask import current_app
from sqlalchemy.exc import IntegrityError

from trainhub.extensions import db
from trainhub.models.stripe_event import StripeEvent

logger = logging.getLogger(__name__)

# Currencies Stripe charges in whole units rather than cents.
ZERO_DECIMAL_CURRENCIES = {"bif", "clp", "jpy", "krw", "pyg", "vnd", "xaf", "xof"}


class PaymentTransaction(
    namedtuple("PaymentTransaction", ["id", "amount", "currency", "status", "metadata"])
):
    """Read-only view of a gateway charge."""

    __slots__ = ()

    @property
    def succeeded(self):
        return self.status == "succeeded"


def transaction_from_intent(intent):
    """Build a PaymentTransaction from a Stripe PaymentIntent (or its dict)."""
    currency = (intent.get("currency") or "usd").lower()
    minor_units = intent.get("amount_received") or intent.get("amount") or 0
    amount = Decimal(minor_units)
    if currency not in ZERO_DECIMAL_CURRENCIES:
        amount = amount / Decimal(100)
    return PaymentTransaction(
        id=intent.get("id"),
        amount=amount,
        currency=currency,
        status=intent.get("status"),
        metadata=dict(intent.get("metadata") or {}),
    )


def lookup_transaction(transaction_id):
    """Fetch a payment from Stripe.

    Returns a PaymentTransaction, or None if the payment is unknown or
    Stripe could not be reached. A later page view or the webhook will
    retry.
    """
    stripe.api_key = current_app.config["STRIPE_SECRET_KEY"]
    try:
        intent = stripe.PaymentIntent.retrieve(transaction_id)
    except stripe.error.InvalidRequestError as e:
        logger.warning(f"Stripe has no payment {transaction_id}: {e}")
        return None
    except stripe.error.StripeError as e:
        logger.error(f"Stripe lookup failed for payment {transaction_id}: {e}")
        return None
    return transaction_from_intent(intent)


# ──────────────────────────────────────────────
# Webhook Handling
# ──────────────────────────────────────────────

def verify_webhook_signature(payload, sig_header):
    """Verify Stripe webhook signature and construct the event.

    Returns the verified Stripe event object.
    Raises stripe.error.SignatureVerificationError on invalid signature.
    """
    webhook_secret = current_app.config["STRIPE_WEBHOOK_SECRET"]
    return stripe.Webhook.construct_event(payload, sig_header, webhook_secret)


def handle_webhook_event(event):
    """Process a verified Stripe webhook event.

    Idempotency: checks stripe_events table before processing.
    If the event was already processed, returns immediately.

    Returns (success: bool, message: str).
    """
    event_id = event["id"]
    event_type = event["type"]

    # --- Idempotency check ---
    existing = StripeEvent.query.filter_by(
        stripe_event_id=event_id
    ).first()
    if existing:
        logger.info(f"Duplicate webhook event {event_id}, skipping")
        return True, "already_processed"

    # --- Route to handler ---
    handlers = {
        "payment_intent.succeeded": _handle_payment_succeeded,
        "payment_intent.payment_failed": _handle_payment_failed,
    }

    message = "processed"
    handler = handlers.get(event_type)
    if handler:
        try:
            ok, message = handler(event)
        except Exception as e:
            logger.error(f"Error handling {event_type} ({event_id}): {e}", exc_info=True)
            db.session.rollback()
            return False, str(e)
        if not ok:
            # Not recorded, so Stripe's own retry schedule redelivers it.
            return False, message

    # --- Record event for idempotency ---
    payment_object = event["data"]["object"] or {}
    db.session.add(StripeEvent(
        stripe_event_id=event_id,
        event_type=event_type,
        payment_transaction_id=payment_object.get("id"),
    ))
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        logger.info(f"Webhook event {event_id} recorded concurrently, skipping")
        return True, "already_processed"

    return True, message


# ──────────────────────────────────────────────
# Event Handlers
# ──────────────────────────────────────────────

def _handle_payment_succeeded(event):
    """Handle payment_intent.succeeded.

    Runs the same reconciliation as the confirmation page, keyed by the
    intent id and the checkout token stored in the intent metadata. The
    event itself is the verified gateway record, so no second lookup is
    made.
    """
    from trainhub.services.identity_resolver import ResolutionHints
    from trainhub.services.reconciliation_service import reconcile_confirmation

    transaction = transaction_from_intent(event["data"]["object"])
    hints = ResolutionHints(
        payment_transaction_id=transaction.id,
        checkout_token=transaction.metadata.get("checkout_session"),
        booking_id=transaction.metadata.get("booking_id"),
    )

    outcome = reconcile_confirmation(
        db.session, hints, gateway=lambda _id: transaction
    )
    logger.info(
        f"payment_intent.succeeded {transaction.id}: {outcome.status}"
        f" (booking={outcome.booking.id if outcome.booking else None})"
    )
    if outcome.status == "failed":
        return False, "booking_unresolved"
    return True, outcome.status


def _handle_payment_failed(event):
    """Handle payment_intent.payment_failed. Nothing to book; log only."""
    intent = event["data"]["object"]
    error = (intent.get("last_payment_error") or {}).get("message")
    logger.info(f"payment_intent.payment_failed {intent.get('id')}: {error}")
    return True, "ignored"
