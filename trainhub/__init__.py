import os
import logging

import click
from flask import Flask, render_template

from trainhub.config import config_by_name
from trainhub.extensions import db, migrate, login_manager, csrf, limiter


def create_app(config_name=None):
    """Application factory."""

    if config_name is None:
        config_name = os.environ.get("FLASK_ENV", "development")

    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])

    # --- Validate required env vars (skip in testing) ---
    if config_name != "testing":
        try:
            config_by_name[config_name].validate()
        except RuntimeError as e:
            app.logger.warning(f"Config validation: {e}")

    # --- Init extensions ---
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    csrf.init_app(app)
    limiter.init_app(app)

    # --- Import models so Alembic can discover them ---
    with app.app_context():
        from trainhub import models  # noqa: F401

    # --- Register blueprints ---
    from trainhub.blueprints.checkout import checkout_bp
    from trainhub.blueprints.webhooks import webhooks_bp

    app.register_blueprint(checkout_bp)
    app.register_blueprint(webhooks_bp)

    # Exempt webhooks from CSRF: raw body needed for Stripe signature verification
    csrf.exempt(webhooks_bp)

    # --- Error handlers ---
    @app.errorhandler(404)
    def not_found(e):
        return render_template("errors/404.html"), 404

    @app.errorhandler(500)
    def server_error(e):
        return render_template("errors/500.html"), 500

    # --- CLI commands ---
    register_cli(app)

    # --- Security headers ---
    @app.after_request
    def add_security_headers(response):
        """Add security headers to every response."""
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = (
            "camera=(), microphone=(), geolocation=(), payment=(self)"
        )
        response.headers["Content-Security-Policy"] = (
            "default-src 'self'; "
            "script-src 'self' 'unsafe-inline' https://js.stripe.com; "
            "style-src 'self' 'unsafe-inline'; "
            "img-src 'self' data:; "
            "connect-src 'self' https://api.stripe.com; "
            "frame-src https://js.stripe.com https://hooks.stripe.com; "
            "base-uri 'self'; "
            "frame-ancestors 'none';"
        )
        # Strict Transport Security (only in production)
        if not app.debug:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )
        return response

    # --- Logging ---
    if not app.debug:
        logging.basicConfig(level=logging.INFO)

    return app


def register_cli(app):
    """Register custom CLI commands with the Flask app."""

    @app.cli.command("purge-snapshots")
    def purge_snapshots():
        """Delete expired checkout snapshots.

        Expired snapshots are already invisible to recovery; this only
        reclaims the rows.

        Usage:
            flask purge-snapshots
        """
        from trainhub.services.snapshot_store import SnapshotStore

        store = SnapshotStore(
            db.session, ttl_seconds=app.config["CHECKOUT_SNAPSHOT_TTL_SECONDS"]
        )
        count = store.purge_expired()
        db.session.commit()
        click.echo(f"Purged {count} expired checkout snapshot(s).")

    @app.cli.command("recover-booking")
    @click.option("--payment-intent", "payment_intent", required=True,
                  help="Payment transaction id, e.g. pi_3Abc...")
    @click.option("--session", "checkout_token", default=None,
                  help="Checkout snapshot token from the return URL.")
    def recover_booking(payment_intent, checkout_token):
        """Run reconciliation for a paid checkout by hand.

        Same path as the confirmation page: resolve the booking by its
        payment, otherwise rebuild it from the checkout snapshot.

        Usage:
            flask recover-booking --payment-intent pi_123 --session abc...
        """
        from trainhub.services.identity_resolver import ResolutionHints
        from trainhub.services.reconciliation_service import reconcile_confirmation

        hints = ResolutionHints(
            payment_transaction_id=payment_intent,
            checkout_token=checkout_token,
        )
        outcome = reconcile_confirmation(db.session, hints)

        click.echo(f"Status:  {outcome.status}")
        if outcome.booking is not None:
            click.echo(f"Booking: {outcome.booking.booking_number} (id: {outcome.booking.id})")
            click.echo(f"Source:  {outcome.source}")
        for role, result in sorted(outcome.notifications.items()):
            click.echo(f"  {role} email: {result}")

    @app.cli.command("resend-confirmation")
    @click.argument("booking_number")
    @click.option("--role", type=click.Choice(["payer", "provider", "both"]),
                  default="both", help="Which confirmation to resend.")
    def resend_confirmation(booking_number, role):
        """Resend a booking confirmation, ignoring the sent marker.

        Usage:
            flask resend-confirmation TH-9F3A07C2
            flask resend-confirmation TH-9F3A07C2 --role provider
        """
        from trainhub.models.booking import Booking
        from trainhub.services.notification_service import ROLES, NotificationDispatcher

        booking = Booking.query.filter_by(booking_number=booking_number).first()
        if booking is None:
            click.echo(f"ERROR: no booking {booking_number}")
            return

        dispatcher = NotificationDispatcher(
            db.session, marker_ttl_hours=app.config["NOTIFICATION_MARKER_TTL_HOURS"]
        )
        roles = ROLES if role == "both" else (role,)
        for r in roles:
            click.echo(f"  {r} email: {dispatcher.resend(booking, r)}")
