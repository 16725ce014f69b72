"""Checkout blueprint: /checkout/*

Snapshot capture at checkout start and the post-payment confirmation
page.

Routes:
- POST /checkout/snapshot  : store the cart/contact snapshot, return its token
- GET  /checkout/thank-you : confirmation page (resolves or recovers the booking)
- GET  /checkout/status    : JSON poll used by the confirmation page
"""

import logging
from decimal import InvalidOperation

from flask import (
    Blueprint,
    current_app,
    jsonify,
    make_response,
    render_template,
    request,
    session,
)
from flask_login import current_user

from trainhub.extensions import db, limiter
from trainhub.services.identity_resolver import (
    LAST_BOOKING_COOKIE,
    SESSION_ORDER_KEY,
    ResolutionHints,
)
from trainhub.services.notification_service import (
    format_session_date,
    format_session_time,
)
from trainhub.services.financials import PACKAGE_LABELS
from trainhub.services.reconciliation_service import reconcile_confirmation
from trainhub.services.snapshot_store import SnapshotStore

logger = logging.getLogger(__name__)

checkout_bp = Blueprint("checkout", __name__, url_prefix="/checkout")


def _current_user_or_none():
    if current_user.is_authenticated:
        return current_user._get_current_object()
    return None


def _reconcile_from_request():
    hints = ResolutionHints.from_request(request, session, current_user)
    return reconcile_confirmation(db.session, hints, user=_current_user_or_none())


# ──────────────────────────────────────────────
# POST /checkout/snapshot
# ──────────────────────────────────────────────

@checkout_bp.route("/snapshot", methods=["POST"])
@limiter.limit("30 per minute")
def capture_snapshot():
    """Capture the checkout snapshot before the customer is sent to pay.

    The returned token goes into the payment's metadata and the return
    URL (?session=<token>), which is what lets the confirmation page
    rebuild the booking if nothing else was recorded.

    CSRF-protected: the page script sends the csrf-token meta value in an
    X-CSRFToken header.
    """
    data = request.get_json(silent=True) or {}
    if not data.get("provider_id") and not data.get("cart_items"):
        return jsonify({"error": "provider_id is required"}), 400

    user = _current_user_or_none()
    store = SnapshotStore(
        db.session, ttl_seconds=current_app.config["CHECKOUT_SNAPSHOT_TTL_SECONDS"]
    )
    try:
        snapshot = store.capture(data, user_id=user.id if user else None)
    except (InvalidOperation, TypeError, ValueError) as e:
        db.session.rollback()
        logger.warning(f"Rejected checkout snapshot: {e}")
        return jsonify({"error": "Invalid checkout data"}), 400
    db.session.commit()

    return jsonify({
        "token": snapshot.token,
        "expires_at": snapshot.expires_at.isoformat(),
    }), 201


# ──────────────────────────────────────────────
# GET /checkout/thank-you
# ──────────────────────────────────────────────

@checkout_bp.route("/thank-you")
def thank_you():
    """Confirmation page.

    Always answers 200 with a positive confirmation: once the customer
    has paid, a reconciliation problem must never look like a failed
    payment. Anything unexpected is logged and the static
    "payment received" page is shown instead.
    """
    try:
        outcome = _reconcile_from_request()
        booking = outcome.booking
        response = make_response(render_template(
            "checkout/thank_you.html",
            outcome=outcome,
            booking=booking,
            package_label=PACKAGE_LABELS.get(booking.package_type) if booking else None,
            session_date=format_session_date(booking.session_date) if booking else None,
            session_time=format_session_time(booking.start_time) if booking else None,
        ))
    except Exception:
        logger.exception(
            "Confirmation page failed "
            f"(payment={request.args.get('payment_intent')}, "
            f"session={(request.args.get('session') or '')[:8]})"
        )
        db.session.rollback()
        return render_template("checkout/payment_received.html"), 200

    if booking is not None:
        response.set_cookie(
            LAST_BOOKING_COOKIE,
            str(booking.id),
            max_age=current_app.config["LAST_BOOKING_COOKIE_MAX_AGE"],
            httponly=True,
            samesite="Lax",
        )
        session.pop(SESSION_ORDER_KEY, None)
    return response


# ──────────────────────────────────────────────
# GET /checkout/status: AJAX poll
# ──────────────────────────────────────────────

@checkout_bp.route("/status")
def checkout_status():
    """JSON endpoint polled by the confirmation page while a booking is
    still pending (e.g. the webhook hasn't landed yet).
    """
    try:
        outcome = _reconcile_from_request()
    except Exception:
        logger.exception(
            f"Status poll failed for payment {request.args.get('payment_intent')}"
        )
        db.session.rollback()
        return jsonify({"resolved": False, "status": "pending"})

    booking = outcome.booking
    return jsonify({
        "resolved": booking is not None,
        "status": outcome.status,
        "booking_number": booking.booking_number if booking else None,
        "booking_status": booking.status if booking else None,
    })
