import html
import logging
from typing import Optional

from VistoriaAPI import config

logger = logging.getLogger(__name__)


def _should_send() -> bool:
    # Respect feature flag and ensure API key is present
    enabled = config.EMAIL_ENABLED
    has_key = bool(config.SENDGRID_API_KEY)
    if not enabled:
        logger.info("Email sending disabled by EMAIL_ENABLED feature flag")
    if not has_key:
        logger.warning("No SENDGRID_API_KEY configured; emails will not be sent")
    return enabled and has_key


def build_finalized_html(
    inspection_id: int,
    inspector_name: Optional[str],
    address: str,
    inspection_type: str,
) -> str:
    link_html = ""
    if config.FRONTEND_BASE_URL:
        link_html = (
            f"<p><a href=\"{config.FRONTEND_BASE_URL}/inspections/{inspection_id}\">"
            f"View inspection #{inspection_id}</a></p>"
        )
    return f"""
        <div style=\"font-family: Arial, sans-serif; color: #111;\">
            <h2 style=\"margin:0 0 12px;\">Inspection finalized</h2>
            <p style=\"margin:0 0 8px;\">Hello {html.escape(inspector_name or 'inspector')},</p>
            <p style=\"margin:0 0 16px;\">The {inspection_type} inspection of <strong>{html.escape(address)}</strong> was finalized.</p>
            {link_html}
            <hr style=\"margin:16px 0; border:none; border-top:1px solid #eee;\" />
            <p style=\"font-size:12px; color:#666;\">This is an automated message from Vistoria.</p>
        </div>
    """


def send_email(to_email: str, subject: str, html_content: str) -> bool:
    """
    Send an email via SendGrid.
    Returns True on success, False if skipped or failed.
    """
    try:
        if not _should_send():
            return False
        if not to_email:
            logger.info("No recipient for %r; skipping email", subject)
            return False
        # Lazy import to avoid dependency issues if not installed
        from sendgrid import SendGridAPIClient
        from sendgrid.helpers.mail import Mail

        message = Mail(
            from_email=config.SENDGRID_FROM_EMAIL,
            to_emails=to_email,
            subject=subject,
            html_content=html_content,
        )
        sg = SendGridAPIClient(config.SENDGRID_API_KEY)
        response = sg.send(message)
        return 200 <= getattr(response, "status_code", 500) < 300
    except Exception as exc:
        # Don't crash app due to email failure
        logger.exception("Failed to send email: %s", getattr(exc, 'message', str(exc)))
        return False
