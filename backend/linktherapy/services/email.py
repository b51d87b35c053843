"""
Transactional email via Resend.

Every public method returns an ``EmailResult`` instead of raising so callers
can decide whether a delivery failure should fail their request.
"""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass
from datetime import date, datetime
from functools import lru_cache
from typing import Optional

import resend

from linktherapy.core.config import settings


logger = logging.getLogger(__name__)

BRAND = "LinkTherapy"


@dataclass
class EmailResult:
    success: bool
    email_id: Optional[str] = None
    error: Optional[str] = None


def _layout(title: str, body_html: str) -> str:
    year = datetime.now().year
    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>{html.escape(title)}</title></head>
<body style="font-family: -apple-system, 'Segoe UI', Roboto, Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
  <div style="background: #056DBA; padding: 30px; text-align: center; border-radius: 8px 8px 0 0;">
    <h1 style="color: white; margin: 0; font-size: 28px;">{BRAND}</h1>
  </div>
  <div style="background: #ffffff; padding: 40px; border: 1px solid #e5e7eb; border-top: none; border-radius: 0 0 8px 8px;">
    <h2 style="color: #111827; margin-top: 0;">{html.escape(title)}</h2>
    {body_html}
  </div>
  <div style="text-align: center; margin-top: 20px; color: #9ca3af; font-size: 12px;">
    <p>&copy; {year} {BRAND}. All rights reserved.</p>
  </div>
</body>
</html>"""


def _button(url: str, label: str) -> str:
    safe_url = html.escape(url, quote=True)
    return (
        f'<div style="margin: 30px 0;"><a href="{safe_url}" style="display: inline-block; '
        f'background: #056DBA; color: white; padding: 14px 28px; text-decoration: none; '
        f'border-radius: 6px; font-weight: 600;">{html.escape(label)}</a></div>'
        f'<p style="color: #6b7280; font-size: 12px; word-break: break-all;">{safe_url}</p>'
    )


def _paragraph(text: str) -> str:
    return f'<p style="color: #4b5563; font-size: 16px;">{html.escape(text)}</p>'


def format_money(amount: float) -> str:
    return f"${amount:,.2f}"


def format_period(start: date, end: date) -> str:
    return f"{start.strftime('%b %d, %Y')} - {end.strftime('%b %d, %Y')}"


class EmailSender:
    def __init__(self, api_key: str | None, from_address: str, site_url: str) -> None:
        self.api_key = api_key
        self.from_address = from_address
        self.site_url = site_url.rstrip("/")

    @property
    def dashboard_url(self) -> str:
        return f"{self.site_url}/dashboard"

    def send(self, to: str, subject: str, html_body: str, text_body: str) -> EmailResult:
        if not self.api_key:
            logger.error("RESEND_API_KEY is not configured; cannot send '%s' to %s", subject, to)
            return EmailResult(success=False, error="Email service not configured")
        resend.api_key = self.api_key
        try:
            response = resend.Emails.send(
                {
                    "from": self.from_address,
                    "to": [to],
                    "subject": subject,
                    "html": html_body,
                    "text": text_body,
                }
            )
        except Exception as exc:  # resend raises its own error hierarchy plus transport errors
            logger.error("Email send to %s failed: %s", to, exc)
            return EmailResult(success=False, error=str(exc) or "Failed to send email")
        email_id = response.get("id") if isinstance(response, dict) else getattr(response, "id", None)
        logger.info("Email '%s' sent to %s (id=%s)", subject, to, email_id)
        return EmailResult(success=True, email_id=email_id)

    # ---- Accounts ----
    def send_therapist_invite(self, email: str, invite_link: str) -> EmailResult:
        body = (
            _paragraph(
                f"You've been invited to join {BRAND} as a therapist. "
                "Complete your profile and start connecting with clients."
            )
            + _button(invite_link, "Accept Invitation")
            + _paragraph("If you didn't expect this invitation, you can safely ignore this email.")
        )
        text = (
            f"You've been invited to join {BRAND} as a therapist.\n\n"
            f"Accept your invitation: {invite_link}\n\n"
            "If you didn't expect this invitation, you can safely ignore this email."
        )
        return self.send(email, f"You've been invited to join {BRAND}", _layout("You've been invited!", body), text)

    def send_password_reset(self, email: str, reset_link: str) -> EmailResult:
        body = (
            _paragraph("We received a request to reset your password.")
            + _button(reset_link, "Reset Password")
            + _paragraph("If you didn't request this, you can ignore this email. The link expires in one hour.")
        )
        text = f"Reset your {BRAND} password: {reset_link}\n\nIf you didn't request this, ignore this email."
        return self.send(email, f"Reset your {BRAND} password", _layout("Reset your password", body), text)

    # ---- Contact requests ----
    def send_contact_request_notification(
        self,
        therapist_email: str,
        client_name: str,
        client_email: str,
        client_phone: str | None,
        message: str | None,
    ) -> EmailResult:
        details = [
            f"<p><strong>Client Name:</strong> {html.escape(client_name)}</p>",
            f"<p><strong>Email:</strong> {html.escape(client_email)}</p>",
        ]
        if client_phone:
            details.append(f"<p><strong>Phone:</strong> {html.escape(client_phone)}</p>")
        if message:
            escaped = html.escape(message).replace("\n", "<br>")
            details.append(f"<p><strong>Message:</strong></p><p>{escaped}</p>")
        body = (
            _paragraph("You have received a new contact request from a potential client.")
            + '<div style="background: #f9fafb; padding: 20px; border-radius: 6px;">'
            + "".join(details)
            + "</div>"
            + _button(self.dashboard_url, "View in Dashboard")
            + _paragraph("Please log in to your dashboard to accept, reject, or schedule a session with this client.")
        )
        text_lines = [
            "New Contact Request",
            "",
            f"Client Name: {client_name}",
            f"Email: {client_email}",
        ]
        if client_phone:
            text_lines.append(f"Phone: {client_phone}")
        if message:
            text_lines += ["", "Message:", message]
        text_lines += ["", self.dashboard_url]
        return self.send(
            therapist_email,
            f"New Contact Request from {client_name}",
            _layout("New Contact Request", body),
            "\n".join(text_lines),
        )

    # ---- Payments ----
    def send_payment_reminder(
        self, email: str, name: str, due_date: date, amount: float, period: str
    ) -> EmailResult:
        due = due_date.strftime("%B %d, %Y")
        summary = f"Your commission of {format_money(amount)} for {period} is due on {due}."
        body = _paragraph(f"Hi {name},") + _paragraph(summary) + _button(self.dashboard_url, "View Payment")
        return self.send(
            email,
            f"Payment reminder: {format_money(amount)} due {due}",
            _layout("Payment Reminder", body),
            f"Hi {name},\n\n{summary}\n\n{self.dashboard_url}",
        )

    def send_payment_deadline(self, email: str, name: str, amount: float, period: str) -> EmailResult:
        summary = (
            f"Your commission of {format_money(amount)} for {period} is due today. "
            "Please settle it to keep your profile visible."
        )
        body = _paragraph(f"Hi {name},") + _paragraph(summary) + _button(self.dashboard_url, "Pay Now")
        return self.send(
            email,
            "Your payment is due today",
            _layout("Payment Due Today", body),
            f"Hi {name},\n\n{summary}\n\n{self.dashboard_url}",
        )

    def send_payment_warning(self, email: str, name: str, amount: float, period: str) -> EmailResult:
        summary = (
            f"Your commission of {format_money(amount)} for {period} is overdue. "
            "Your ranking has been reduced and your account will be suspended in 3 days "
            "if the payment is not received."
        )
        body = _paragraph(f"Hi {name},") + _paragraph(summary) + _button(self.dashboard_url, "Pay Now")
        return self.send(
            email,
            "Overdue payment: action required",
            _layout("Payment Overdue", body),
            f"Hi {name},\n\n{summary}\n\n{self.dashboard_url}",
        )

    def send_account_suspension(self, email: str, name: str, amount: float, period: str) -> EmailResult:
        summary = (
            f"Your account has been suspended because the commission of {format_money(amount)} "
            f"for {period} was not received. Settle the balance to restore your profile."
        )
        body = _paragraph(f"Hi {name},") + _paragraph(summary) + _button(self.dashboard_url, "Open Dashboard")
        return self.send(
            email,
            "Your account has been suspended",
            _layout("Account Suspended", body),
            f"Hi {name},\n\n{summary}\n\n{self.dashboard_url}",
        )


@lru_cache
def get_email_sender() -> EmailSender:
    return EmailSender(
        api_key=settings.RESEND_API_KEY,
        from_address=settings.EMAIL_FROM_ADDRESS,
        site_url=settings.site_url,
    )
