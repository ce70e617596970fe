"""
Email Service using custom SMTP (preferred) or Resend (fallback)
Templates are MJML and compiled to HTML before sending
"""

import logging
import smtplib
import ssl
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import parseaddr
from typing import Optional, Union

import resend
from mjml import mjml_to_html

from .config import (
    EMAIL_FROM_ADDRESS,
    RESEND_API_KEY,
    SMTP_HOST,
    SMTP_PASSWORD,
    SMTP_PORT,
    SMTP_USE_TLS,
    SMTP_USERNAME,
)
from .encryption import decrypt

logger = logging.getLogger(__name__)

# Initialize Resend as fallback
resend.api_key = RESEND_API_KEY


class EmailDeliveryError(Exception):
    """No configured transport could deliver the message"""

    pass


def smtp_configured() -> bool:
    return bool(SMTP_HOST)


def send_via_custom_smtp(
    to: Union[str, list[str]],
    subject: str,
    html_content: str,
    from_address: str,
) -> dict:
    """Send email through the SMTP server from configuration"""
    password = decrypt(SMTP_PASSWORD) or ""

    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = from_address
    msg["To"] = to if isinstance(to, str) else ", ".join(to)
    msg.attach(MIMEText(html_content, "html", "utf-8"))

    recipients = [to] if isinstance(to, str) else to

    try:
        if SMTP_PORT == 465:
            context = ssl.create_default_context()
            server = smtplib.SMTP_SSL(SMTP_HOST, SMTP_PORT, context=context, timeout=30)
        else:
            server = smtplib.SMTP(SMTP_HOST, SMTP_PORT, timeout=30)
            if SMTP_USE_TLS:
                context = ssl.create_default_context()
                server.starttls(context=context)

        if SMTP_USERNAME:
            server.login(SMTP_USERNAME, password)
        server.sendmail(parseaddr(from_address)[1], recipients, msg.as_string())
        server.quit()
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"❌ Custom SMTP send failed: {e}")
        raise EmailDeliveryError(f"Custom SMTP failed: {str(e)}") from e

    logger.info(f"✅ Custom SMTP email sent successfully via {SMTP_HOST}")
    return {"id": f"smtp-{datetime.utcnow().timestamp()}", "success": True}


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    result = mjml_to_html(mjml_content)
    # mjml_to_html returns a dict-like result with 'html' and 'errors'
    errors = result.get("errors") if hasattr(result, "get") else getattr(result, "errors", None)
    if errors:
        logger.warning(f"⚠️ MJML compilation warnings: {errors}")
    if hasattr(result, "get"):
        return result.get("html", "")
    return getattr(result, "html", str(result))


async def send_email(
    to: Union[str, list[str]],
    subject: str,
    mjml_content: str,
    from_address: Optional[str] = None,
) -> dict:
    """
    Send an email using custom SMTP (if configured) or Resend (fallback)

    Args:
        to: Recipient email(s)
        subject: Email subject line
        mjml_content: MJML template content (compiled to HTML here)
        from_address: Optional custom from address

    Returns:
        Send response dict, including the rendered "html"

    Raises:
        EmailDeliveryError: when no transport accepted the message
    """
    html_content = compile_mjml_to_html(mjml_content)

    recipients = [to] if isinstance(to, str) else to
    sender = from_address or EMAIL_FROM_ADDRESS

    if smtp_configured():
        try:
            logger.info(f"📧 Sending email via custom SMTP: {SMTP_HOST}")
            response = send_via_custom_smtp(
                to=recipients, subject=subject, html_content=html_content, from_address=sender
            )
            response["html"] = html_content
            return response
        except EmailDeliveryError as e:
            logger.warning(f"⚠️ Custom SMTP failed, falling back to Resend: {e}")

    if not RESEND_API_KEY:
        logger.error("❌ No email service configured - RESEND_API_KEY missing and no custom SMTP")
        raise EmailDeliveryError("Email service not configured")

    try:
        logger.info(f"📧 Sending email via Resend to: {recipients}")
        response = resend.Emails.send(
            {"from": sender, "to": recipients, "subject": subject, "html": html_content}
        )
    except Exception as e:
        logger.error(f"❌ Email send error to {recipients}: {e}")
        raise EmailDeliveryError(f"Failed to send email: {str(e)}") from e

    logger.info(f"✅ Email sent successfully via Resend: {response}")
    result = dict(response) if isinstance(response, dict) else {"id": getattr(response, "id", None)}
    result["success"] = True
    result["html"] = html_content
    return result
