"""
Email service for invoice delivery and password reset links.
Uses Flask-Mail for SMTP integration.
"""
import logging
from flask import current_app
from flask_mail import Mail, Message

logger = logging.getLogger(__name__)

mail = Mail()


def init_mail(app):
    """Initialize Flask-Mail with app."""
    mail.init_app(app)


def _mail_enabled() -> bool:
    """
    Check if mail is properly configured and enabled.
    Prevents 500 errors in dev or misconfigured environments.
    """
    cfg = current_app.config
    return bool(
        not cfg.get("MAIL_SUPPRESS_SEND", False)
        and cfg.get("MAIL_SERVER")
        and cfg.get("MAIL_USERNAME")
    )


def _send(subject: str, to_email: str, text_body: str, html_body: str = None) -> bool:
    if not _mail_enabled():
        logger.warning(f"[MAIL DISABLED] '{subject}' skipped for {to_email}")
        return True

    try:
        msg = Message(subject=subject, recipients=[to_email], body=text_body, html=html_body)
        mail.send(msg)
        logger.info(f"[EMAIL] '{subject}' sent to {to_email}")
        return True
    except Exception as e:
        logger.exception(f"[EMAIL] Failed to send '{subject}' to {to_email}: {e}")
        return False


def send_invoice_email(
    to_email: str,
    customer_name: str,
    invoice_number: str,
    amount: str,
    company_name: str,
    view_link: str,
    subject: str = None,
    message: str = None
) -> bool:
    """
    Send an invoice notification with the public view link.

    Returns:
        True if sent (or mail is disabled), False on SMTP failure
    """
    subject = subject or f"Invoice {invoice_number} from {company_name}"
    intro = message or f"You have a new invoice from {company_name}."

    text_body = (
        f"Hi {customer_name},\n\n"
        f"{intro}\n\n"
        f"Invoice: {invoice_number}\n"
        f"Amount due: {amount}\n\n"
        f"View and pay online: {view_link}\n"
    )
    html_body = f"""
    <p>Hi <strong>{customer_name}</strong>,</p>
    <p>{intro}</p>
    <table>
        <tr><td>Invoice</td><td><strong>{invoice_number}</strong></td></tr>
        <tr><td>Amount due</td><td><strong>{amount}</strong></td></tr>
    </table>
    <p><a href="{view_link}">View and pay online</a></p>
    """
    return _send(subject, to_email, text_body, html_body)


def send_password_reset_email(to_email: str, full_name: str, reset_link: str) -> bool:
    """Send the reset link. The link is the only place the raw token ever appears."""
    ttl_minutes = current_app.config.get('PASSWORD_RESET_TOKEN_TTL', 3600) // 60
    name = full_name or to_email

    text_body = (
        f"Hi {name},\n\n"
        f"We received a request to reset your password. Use the link below "
        f"within {ttl_minutes} minutes:\n\n{reset_link}\n\n"
        f"If you did not request this, you can ignore this email.\n"
    )
    html_body = f"""
    <p>Hi {name},</p>
    <p>We received a request to reset your password. This link expires in {ttl_minutes} minutes.</p>
    <p><a href="{reset_link}">Reset password</a></p>
    <p>If you did not request this, you can ignore this email.</p>
    """
    return _send("Reset your password", to_email, text_body, html_body)
