"""Tests for the reconciliation driver and the support CLI commands."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

from sqlalchemy.exc import SQLAlchemyError

from trainhub.models.booking import Booking
from trainhub.models.checkout_snapshot import CheckoutSnapshot
from trainhub.models.guardian import Guardian
from trainhub.services.identity_resolver import ResolutionHints
from trainhub.services.reconciliation_service import (
    FAILED,
    PENDING,
    RECOVERED,
    RESOLVED,
    UNRESOLVED,
    reconcile_confirmation,
)


class TestReconcileConfirmation:

    def test_resolved_booking_gets_confirmations(self, db_session, make_booking):
        booking = make_booking(payment_transaction_id="pi_known")
        sender = MagicMock(return_value=True)

        outcome = reconcile_confirmation(
            db_session, ResolutionHints(payment_transaction_id="pi_known"), sender=sender
        )

        assert outcome.status == RESOLVED
        assert outcome.booking.id == booking.id
        assert outcome.source == "payment_transaction"
        assert outcome.notifications == {"payer": "sent", "provider": "sent"}

    def test_no_hints_is_unresolved(self, db_session, seed_data):
        outcome = reconcile_confirmation(db_session, ResolutionHints())
        assert outcome.status == UNRESOLVED
        assert outcome.booking is None

    def test_payment_without_token_is_pending(self, db_session, seed_data):
        outcome = reconcile_confirmation(
            db_session, ResolutionHints(payment_transaction_id="pi_waiting")
        )
        assert outcome.status == PENDING

    def test_recovers_when_nothing_resolves(self, db_session, make_snapshot, register_intent):
        snapshot = make_snapshot()
        register_intent("pi_new")

        outcome = reconcile_confirmation(
            db_session,
            ResolutionHints(payment_transaction_id="pi_new", checkout_token=snapshot.token),
            sender=MagicMock(return_value=True),
        )

        assert outcome.status == RECOVERED
        assert outcome.source == "recovery"
        assert outcome.booking.payment_transaction_id == "pi_new"

    def test_persistence_failure_is_reported(self, db_session, make_snapshot, register_intent):
        snapshot = make_snapshot()
        register_intent("pi_new")

        with patch(
            "trainhub.services.recovery_service.insert_booking_or_fetch_existing",
            side_effect=SQLAlchemyError("database unavailable"),
        ):
            outcome = reconcile_confirmation(
                db_session,
                ResolutionHints(payment_transaction_id="pi_new", checkout_token=snapshot.token),
            )

        assert outcome.status == FAILED
        assert outcome.booking is None

    def test_login_email_not_used_when_guardian_reachable(self, db_session, seed_data, make_booking):
        guardian = seed_data["guardian"]
        guardian.email = None
        db_session.commit()
        booking = make_booking()
        sender = MagicMock(return_value=True)

        # Different login than the guardian's: only reachable as a fallback.
        user = seed_data["coach_user"]
        outcome = reconcile_confirmation(
            db_session, ResolutionHints(booking_id=str(booking.id)), user=user, sender=sender
        )

        assert outcome.notifications["payer"] == "sent"
        recipients = [call.kwargs["to"] for call in sender.call_args_list]
        # Guardian still falls back to its linked user's address first.
        assert recipients.count("parent@example.com") == 1
        assert "coach.login@example.com" not in recipients

    def test_login_email_not_sent_another_familys_booking(self, db_session, seed_data, make_booking):
        other_family = Guardian(first_name="Morgan", last_name="Reyes")
        db_session.add(other_family)
        db_session.commit()
        booking = make_booking(guardian_id=other_family.id, participant_id=None)
        sender = MagicMock(return_value=True)

        outcome = reconcile_confirmation(
            db_session,
            ResolutionHints(booking_id=str(booking.id)),
            user=seed_data["parent_user"],
            sender=sender,
        )

        assert outcome.status == RESOLVED
        assert outcome.notifications["payer"] == "no_recipient"
        recipients = [call.kwargs["to"] for call in sender.call_args_list]
        assert recipients == ["coach@example.com"]


class TestCliCommands:

    def test_purge_snapshots(self, app, db_session, make_snapshot):
        make_snapshot()
        stale = make_snapshot()
        stale.expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)
        db_session.commit()

        result = app.test_cli_runner().invoke(args=["purge-snapshots"])

        assert result.exit_code == 0
        assert "Purged 1 expired checkout snapshot(s)." in result.output
        assert CheckoutSnapshot.query.count() == 1

    def test_recover_booking(self, app, make_snapshot, register_intent, mail_outbox):
        snapshot = make_snapshot()
        register_intent("pi_cli")

        result = app.test_cli_runner().invoke(
            args=["recover-booking", "--payment-intent", "pi_cli", "--session", snapshot.token]
        )

        assert result.exit_code == 0
        assert "Status:  recovered" in result.output
        booking = Booking.query.filter_by(payment_transaction_id="pi_cli").one()
        assert booking.booking_number in result.output
        assert len(mail_outbox) == 2

    def test_resend_confirmation(self, app, make_booking, mail_outbox):
        booking = make_booking()

        result = app.test_cli_runner().invoke(
            args=["resend-confirmation", booking.booking_number, "--role", "payer"]
        )

        assert result.exit_code == 0
        assert "payer email: sent" in result.output
        assert [m["To"] for m in mail_outbox] == ["parent@example.com"]

    def test_resend_unknown_booking(self, app, seed_data):
        result = app.test_cli_runner().invoke(args=["resend-confirmation", "TH-NOPE0000"])
        assert "ERROR: no booking TH-NOPE0000" in result.output
