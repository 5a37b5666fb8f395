# calculator/emails.py

import base64
import logging
from typing import Optional

from django.conf import settings
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import (
    Attachment,
    Content,
    Disposition,
    Email,
    FileContent,
    FileName,
    FileType,
    Mail,
    To,
)

from .utils.money import format_amount

logger = logging.getLogger(__name__)


def _send_html_email(
    to_email: str,
    subject: str,
    html_content: str,
    plain_content: str,
    attachment_bytes: Optional[bytes] = None,
    attachment_name: str = "",
) -> bool:
    """
    Send HTML email via SendGrid HTTP API, optionally with one PDF attached.
    Returns False (and logs) when SendGrid is not configured or refuses.
    """
    api_key = getattr(settings, 'SENDGRID_API_KEY', '')
    if not api_key:
        logger.error("SENDGRID_API_KEY not set - cannot send email")
        return False

    from_email = getattr(settings, 'DEFAULT_FROM_EMAIL', 'noreply@vivi.salon')

    mail = Mail(
        from_email=Email(from_email),
        to_emails=To(to_email),
        subject=subject,
    )
    mail.add_content(Content("text/plain", plain_content))
    mail.add_content(Content("text/html", html_content))

    if attachment_bytes:
        mail.attachment = Attachment(
            FileContent(base64.b64encode(attachment_bytes).decode()),
            FileName(attachment_name or "document.pdf"),
            FileType("application/pdf"),
            Disposition("attachment"),
        )

    try:
        response = SendGridAPIClient(api_key).send(mail)
    except Exception as e:
        logger.error(f"Failed to send email to {to_email}: {e}")
        return False

    logger.info(f"Email sent to {to_email}, status: {response.status_code}")
    return response.status_code in [200, 201, 202]


def send_offer_email(offer, pdf_bytes: bytes) -> bool:
    """
    Send the contract offer PDF to the client.
    """
    to_email = offer.client_email
    if not to_email:
        logger.warning(f"Cannot send offer {offer.offer_number} - no client email")
        return False

    client_name = offer.client_name or "client"
    subject = f"Your course offer No. {offer.offer_number}"
    expires = offer.expires_at.strftime('%d.%m.%Y') if offer.expires_at else ""

    html_content = f"""
    <!DOCTYPE html>
    <html>
    <head>
        <meta charset="utf-8">
    </head>
    <body style="margin: 0; padding: 24px; font-family: 'Segoe UI', Tahoma, Geneva, Verdana, sans-serif; background-color: #f4f4f5;">
        <div style="max-width: 600px; margin: 0 auto; background-color: #ffffff; border-radius: 12px; padding: 32px;">
            <h2 style="margin-top: 0; color: #7c3aed;">Offer No. {offer.offer_number}</h2>
            <p>Dear {client_name},</p>
            <p>Thank you for choosing our salon. Your personal course offer is attached to this email as a PDF.</p>
            <table style="width: 100%; border-collapse: collapse; margin: 16px 0;">
                <tr>
                    <td style="padding: 6px 0; color: #52525b;">Course cost</td>
                    <td style="padding: 6px 0; text-align: right;"><strong>{format_amount(offer.final_cost)}</strong></td>
                </tr>
                <tr>
                    <td style="padding: 6px 0; color: #52525b;">Down payment</td>
                    <td style="padding: 6px 0; text-align: right;"><strong>{format_amount(offer.down_payment)}</strong></td>
                </tr>
            </table>
            <p style="color: #52525b;">The offer is valid until {expires}.</p>
        </div>
    </body>
    </html>
    """

    plain_content = f"""
Dear {client_name},

Your personal course offer No. {offer.offer_number} is attached as a PDF.

Course cost: {format_amount(offer.final_cost)}
Down payment: {format_amount(offer.down_payment)}

The offer is valid until {expires}.
"""

    return _send_html_email(
        to_email,
        subject,
        html_content,
        plain_content,
        attachment_bytes=pdf_bytes,
        attachment_name=f"offer_{offer.offer_number}.pdf",
    )
