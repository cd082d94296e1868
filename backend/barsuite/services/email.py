"""
Email sending service using SMTP.
"""
import html
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Optional
import logging
from barsuite.core.config import (
    SMTP_HOST,
    SMTP_PORT,
    SMTP_USERNAME,
    SMTP_PASSWORD,
    SMTP_FROM_EMAIL,
    SMTP_FROM_NAME,
    FRONTEND_BASE_URL,
    EMAIL_VERIFICATION_TOKEN_EXPIRY_HOURS,
    INVITATION_EXPIRY_DAYS,
)

logger = logging.getLogger(__name__)


def send_email(
    to_email: str,
    subject: str,
    html_body: str,
    text_body: Optional[str] = None
) -> bool:
    """
    Send an email via SMTP over SSL.

    Args:
        to_email: Recipient email address
        subject: Email subject
        html_body: HTML email body
        text_body: Plain text email body (optional)

    Returns:
        True if email sent successfully, False otherwise
    """
    if not SMTP_HOST or not SMTP_USERNAME or not SMTP_PASSWORD:
        logger.error("SMTP configuration is missing. Cannot send email.")
        return False

    try:
        msg = MIMEMultipart('alternative')
        msg['Subject'] = subject
        msg['From'] = f"{SMTP_FROM_NAME} <{SMTP_FROM_EMAIL}>"
        msg['To'] = to_email

        if text_body:
            msg.attach(MIMEText(text_body, 'plain', 'utf-8'))

        msg.attach(MIMEText(html_body, 'html', 'utf-8'))

        with smtplib.SMTP_SSL(SMTP_HOST, SMTP_PORT, timeout=10) as server:
            server.login(SMTP_USERNAME, SMTP_PASSWORD)
            server.send_message(msg)

        logger.info(f"Email sent successfully to {to_email}")
        return True

    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Failed to send email to {to_email}: {str(e)}", exc_info=True)
        return False


def _wrap_html(title: str, paragraphs: list[str], link: str, link_label: str) -> str:
    """Paragraphs are inserted as markup; callers escape user-supplied values."""
    link = html.escape(link)
    body = "\n".join(f"        <p>{p}</p>" for p in paragraphs)
    return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
</head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
    <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
        <h2 style="color: #b45309;">{title}</h2>
{body}
        <div style="text-align: center; margin: 30px 0;">
            <a href="{link}" style="display: inline-block; padding: 12px 28px; background-color: #b45309; color: #fff; text-decoration: none; border-radius: 6px;">{link_label}</a>
        </div>
        <p style="color: #6b7280; font-size: 12px;">If the button does not work, open this link: {link}</p>
    </div>
</body>
</html>"""


def send_verification_email(email: str, token: str, user_name: Optional[str] = None) -> bool:
    """Send the email address confirmation link."""
    link = f"{FRONTEND_BASE_URL}/verify-email?token={token}"
    greeting = f"Hello, {user_name}!" if user_name else "Hello!"
    notes = [
        "Thanks for signing up for BarSuite. Please confirm your email address.",
        f"The link is valid for {EMAIL_VERIFICATION_TOKEN_EXPIRY_HOURS} hours.",
    ]
    return send_email(
        to_email=email,
        subject="Confirm your BarSuite email",
        html_body=_wrap_html("Welcome to BarSuite!", [html.escape(greeting)] + notes, link, "Confirm email"),
        text_body="\n\n".join([greeting] + notes + [link]),
    )


def send_password_reset_email(email: str, token: str) -> bool:
    link = f"{FRONTEND_BASE_URL}/reset-password?token={token}"
    paragraphs = [
        "We received a request to reset your BarSuite password.",
        "If you did not ask for this, you can ignore this email.",
    ]
    return send_email(
        to_email=email,
        subject="Reset your BarSuite password",
        html_body=_wrap_html("Password reset", paragraphs, link, "Choose a new password"),
        text_body="\n\n".join(paragraphs + [link]),
    )


def send_invitation_email(
    email: str,
    token: str,
    organization_name: str,
    role: str,
    inviter_name: Optional[str] = None,
) -> bool:
    """Send an organization invitation with its accept link."""
    link = f"{FRONTEND_BASE_URL}/invitations/{token}"
    who = inviter_name or "A BarSuite user"
    expiry_note = (
        f"The invitation expires in {INVITATION_EXPIRY_DAYS} days. "
        "If you don't have an account yet, sign up with this email address and the invitation is applied automatically."
    )
    html_paragraphs = [
        f"{html.escape(who)} invited you to join <b>{html.escape(organization_name)}</b> as {html.escape(role)}.",
        expiry_note,
    ]
    text_paragraphs = [f"{who} invited you to join {organization_name} as {role}.", expiry_note, link]
    return send_email(
        to_email=email,
        subject=f"You're invited to {organization_name} on BarSuite",
        html_body=_wrap_html("You're invited!", html_paragraphs, link, "View invitation"),
        text_body="\n\n".join(text_paragraphs),
    )
