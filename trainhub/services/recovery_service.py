"""Recovery engine: rebuild a booking from a paid checkout.

Runs when the identity resolver found nothing but the page knows both the
payment transaction id and the checkout token. The snapshot captured at
checkout start has everything needed to create the guardian, participant
and booking, plus the escrow hold and package credits.

The booking insert is the critical section: it is atomic
(insert-or-fetch-existing on the payment transaction id), so a browser
redirect and a webhook racing on the same payment still produce a single
booking. The snapshot is deleted after a successful recovery so it can't
be replayed into a second booking on a later visit.
"""

import logging
import secrets
from collections import namedtuple
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from trainhub.models.booking import Booking
from trainhub.models.finance import EscrowHold, PackageCredit
from trainhub.models.guardian import Guardian, Participant
from trainhub.models.provider import Provider
from trainhub.models.user import User
from trainhub.services.audit_service import log_audit
from trainhub.services.financials import derive, package_session_count, to_money
from trainhub.services.idempotency import (
    find_booking_for_transaction,
    insert_booking_or_fetch_existing,
)
from trainhub.services.snapshot_store import SnapshotStore

logger = logging.getLogger(__name__)

RECOVERED = "recovered"
DUPLICATE_PREVENTED = "duplicate_prevented"
PRECONDITION_UNMET = "precondition_unmet"
FAILED = "failed"

RecoveryResult = namedtuple(
    "RecoveryResult", ["status", "booking", "contact_email", "notifications"]
)


def generate_booking_number(prefix="TH"):
    """Random booking number, e.g. 'TH-9F3A07C2'. Unrelated to the row id."""
    return f"{prefix}-{secrets.token_hex(4).upper()}"


def _parse_date(value):
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        logger.warning(f"Ignoring unparseable session date {value!r}")
        return None


class RecoveryEngine:
    """Creates the booking for a paid checkout that has none yet.

    Args:
        session:  SQLAlchemy session; the engine commits its own work.
        config:   app config mapping (fee percent, prefixes, TTLs).
        gateway:  callable(payment_transaction_id) -> PaymentTransaction or
                  None. When None and VERIFY_PAYMENT_WITH_GATEWAY is off,
                  the payment is not re-checked.
        notifier: NotificationDispatcher, called after a recovery.
    """

    def __init__(self, session, config, gateway=None, notifier=None,
                 snapshot_store=None, find_existing=find_booking_for_transaction):
        self.session = session
        self.config = config
        self.gateway = gateway
        self.notifier = notifier
        self.snapshots = snapshot_store or SnapshotStore(session)
        self.find_existing = find_existing

    def recover(self, payment_transaction_id, checkout_token, user=None):
        """Resolve-or-create the booking for a payment.

        Returns a RecoveryResult whose status is one of RECOVERED,
        DUPLICATE_PREVENTED, PRECONDITION_UNMET or FAILED.
        """
        if not payment_transaction_id or not checkout_token:
            return self._unmet("payment transaction id or checkout token missing",
                               payment_transaction_id, checkout_token)

        # --- 1. Idempotency check ---
        existing = self.find_existing(self.session, payment_transaction_id)
        if existing is not None:
            logger.info(
                f"Booking {existing.id} already exists for payment {payment_transaction_id}"
            )
            return RecoveryResult(DUPLICATE_PREVENTED, existing, None, {})

        snapshot = self.snapshots.get(checkout_token)
        if snapshot is None:
            return self._unmet("checkout snapshot missing or expired",
                               payment_transaction_id, checkout_token)

        provider_id, total = snapshot.resolve_provider_and_total()
        provider = self.session.get(Provider, provider_id) if provider_id else None
        if provider is None:
            return self._unmet(f"snapshot provider {provider_id!r} not found",
                               payment_transaction_id, checkout_token)

        transaction = None
        if self.gateway is not None or self.config.get("VERIFY_PAYMENT_WITH_GATEWAY", True):
            transaction = self._lookup(payment_transaction_id)
            if transaction is None or not transaction.succeeded:
                status = transaction.status if transaction else "not found"
                return self._unmet(f"payment status is {status}",
                                   payment_transaction_id, checkout_token)
            if total <= 0:
                total = transaction.amount

        if user is None and snapshot.user_id:
            user = self.session.get(User, snapshot.user_id)
        contact_email = snapshot.contact_email or (user.email if user else None)

        try:
            booking, created = self._create_booking(
                snapshot, provider, to_money(total), transaction,
                payment_transaction_id, user, contact_email,
            )
        except (SQLAlchemyError, ValueError) as e:
            self.session.rollback()
            logger.error(
                f"Booking recovery FAILED for payment {payment_transaction_id} "
                f"(session {checkout_token[:8]}): {e}",
                exc_info=True,
            )
            self._record_failure(payment_transaction_id, checkout_token, provider_id, e)
            return RecoveryResult(FAILED, None, contact_email, {})

        if not created:
            return RecoveryResult(DUPLICATE_PREVENTED, booking, contact_email, {})

        # --- 9. Single-use snapshot ---
        self.snapshots.delete(checkout_token)
        self.session.commit()

        logger.info(
            f"Recovered booking {booking.id} ({booking.booking_number}) "
            f"for payment {payment_transaction_id}"
        )

        # --- 10. Notifications ---
        notifications = {}
        if self.notifier is not None:
            notifications = self.notifier.dispatch(booking, fallback_email=contact_email)

        return RecoveryResult(RECOVERED, booking, contact_email, notifications)

    # ──────────────────────────────────────────────
    # Steps
    # ──────────────────────────────────────────────

    def _lookup(self, payment_transaction_id):
        if self.gateway is not None:
            return self.gateway(payment_transaction_id)
        from trainhub.services.stripe_service import lookup_transaction
        return lookup_transaction(payment_transaction_id)

    def _create_booking(self, snapshot, provider, total, transaction,
                        payment_transaction_id, user, contact_email):
        guardian = self._resolve_guardian(snapshot, user, contact_email)
        participant = self._resolve_participant(snapshot, guardian)

        session_count = package_session_count(snapshot.package_type)
        split = derive(total, self.config.get("PLATFORM_FEE_PERCENT", 25), session_count)
        currency = transaction.currency if transaction else snapshot.currency

        booking = Booking(
            booking_number=generate_booking_number(
                self.config.get("BOOKING_NUMBER_PREFIX", "TH")
            ),
            provider_id=provider.id,
            guardian_id=guardian.id,
            participant_id=participant.id if participant else None,
            session_date=_parse_date(snapshot.session_date),
            start_time=snapshot.session_time,
            location=snapshot.session_location,
            package_type=snapshot.package_type,
            total_sessions=session_count,
            sessions_remaining=session_count,
            total_amount=total,
            amount_paid=total,
            platform_fee=split.fee,
            provider_payout=split.payout,
            currency=currency or "usd",
            payment_transaction_id=payment_transaction_id,
            payment_status="paid",
            status="confirmed",
        )

        booking, created = insert_booking_or_fetch_existing(self.session, booking)
        if not created:
            # Lost the race: drop the guardian/participant rows made for it.
            self.session.rollback()
            return find_booking_for_transaction(self.session, payment_transaction_id), False

        self._create_financial_records(booking, split)
        log_audit(self.session, "booking.recovered", booking.id, {
            "payment_transaction_id": payment_transaction_id,
            "booking_number": booking.booking_number,
            "provider_id": provider.id,
            "total_amount": str(total),
            "platform_fee": str(split.fee),
        })
        self.session.commit()
        return booking, True

    def _resolve_guardian(self, snapshot, user, email):
        """Linked user first, then email, else a new guardian."""
        guardian = None
        if user is not None:
            guardian = self.session.query(Guardian).filter_by(user_id=user.id).first()
        if guardian is None and email:
            guardian = (
                self.session.query(Guardian)
                .filter(func.lower(Guardian.email) == email.lower())
                .first()
            )
            if guardian is not None and guardian.user_id is None and user is not None:
                guardian.user_id = user.id

        if guardian is not None:
            if not guardian.email and email:
                guardian.email = email
                logger.info(f"Filled missing email on guardian {guardian.id}")
            return guardian

        contact = snapshot.contact or {}
        guardian = Guardian(
            user_id=user.id if user is not None else None,
            first_name=contact.get("first_name") or (user.first_name if user else None),
            last_name=contact.get("last_name") or (user.last_name if user else None),
            email=email,
            phone=contact.get("phone"),
        )
        self.session.add(guardian)
        self.session.flush()
        logger.info(f"Created guardian {guardian.id} ({email or 'no email'})")
        return guardian

    def _resolve_participant(self, snapshot, guardian):
        data = snapshot.participant or {}
        if data.get("id"):
            participant = self.session.get(Participant, data["id"])
            if participant is not None and participant.guardian_id == guardian.id:
                return participant
            logger.warning(
                f"Snapshot participant {data['id']} not found for guardian {guardian.id}"
            )

        if not data.get("first_name"):
            return None

        participant = Participant(
            guardian_id=guardian.id,
            first_name=data["first_name"],
            last_name=data.get("last_name"),
        )
        self.session.add(participant)
        self.session.flush()
        return participant

    def _create_financial_records(self, booking, split):
        self.session.add(EscrowHold.for_booking(booking))

        if booking.total_sessions > 1:
            expires_at = datetime.now(timezone.utc) + timedelta(
                days=self.config.get("PACKAGE_CREDIT_EXPIRY_DAYS", 365)
            )
            credit = PackageCredit.for_booking(booking, split.per_session_price, expires_at)
            self.session.add(credit)
            self.session.flush()
            booking.package_credit_id = credit.id

        self.session.flush()

    # ──────────────────────────────────────────────
    # Outcomes
    # ──────────────────────────────────────────────

    def _unmet(self, reason, payment_transaction_id, checkout_token):
        logger.info(
            f"Recovery skipped for payment {payment_transaction_id or '-'}: {reason}"
        )
        return RecoveryResult(PRECONDITION_UNMET, None, None, {})

    def _record_failure(self, payment_transaction_id, checkout_token, provider_id, error):
        """Leave an audit trail support can act on."""
        try:
            log_audit(self.session, "booking.recovery_failed", None, {
                "payment_transaction_id": payment_transaction_id,
                "checkout_token": checkout_token,
                "provider_id": provider_id,
                "error": str(error),
            })
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(
                f"Could not record recovery failure for payment {payment_transaction_id}: {e}"
            )
