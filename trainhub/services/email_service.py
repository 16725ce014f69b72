"""
Transactional email for booking confirmations.

Sends over SMTP. Sending is synchronous: the notification dispatcher
needs to know whether a message actually went out before it records a
sent-marker, so failures come back as False instead of disappearing in a
background thread.

Usage:
    from trainhub.services.email_service import send_email

    ok = send_email(
        to="parent@example.com",
        subject="Training session confirmed",
        template="emails/booking_confirmed_payer.html",
        context={"booking_number": "TH-1A2B3C4D"},
    )
"""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from flask import current_app, render_template

logger = logging.getLogger(__name__)


def _send_smtp(app, msg):
    """Deliver a built message. Returns True on success."""
    host = app.config.get("MAIL_SMTP_HOST", "smtp.gmail.com")
    port = app.config.get("MAIL_SMTP_PORT", 587)
    username = app.config.get("MAIL_USERNAME")
    password = app.config.get("MAIL_PASSWORD")

    if not username or not password:
        logger.warning("Email not sent: MAIL_USERNAME or MAIL_PASSWORD not configured.")
        return False

    try:
        with smtplib.SMTP(host, port, timeout=30) as server:
            server.ehlo()
            server.starttls()
            server.ehlo()
            server.login(username, password)
            server.send_message(msg)
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Failed to send email to {msg['To']}: {e}")
        return False

    logger.info(f"Email sent to {msg['To']}: {msg['Subject']}")
    return True


def send_email(to, subject, template, context=None, reply_to=None):
    """
    Render and send a templated HTML email, blocking until done.

    Args:
        to:        Recipient email address (str or list).
        subject:   Email subject line.
        template:  Path to Jinja2 HTML template (relative to templates/).
        context:   Dict of variables to pass to the template.
        reply_to:  Optional reply-to address (defaults to MAIL_REPLY_TO).

    Returns True if the SMTP server accepted the message.
    """
    app = current_app._get_current_object()
    context = context or {}

    from_name = app.config.get("MAIL_FROM_NAME", "TrainHub Bookings")
    from_email = app.config.get("MAIL_FROM_ADDRESS") or app.config.get("MAIL_USERNAME", "")
    reply_to = reply_to or app.config.get("MAIL_REPLY_TO")

    html_body = render_template(template, **context)

    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = f"{from_name} <{from_email}>"
    msg["To"] = to if isinstance(to, str) else ", ".join(to)

    if reply_to:
        msg["Reply-To"] = reply_to

    msg.attach(MIMEText(html_body, "html"))

    return _send_smtp(app, msg)
