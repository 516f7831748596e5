import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import emails
from jinja2 import Environment, FileSystemLoader, TemplateNotFound

from .config import settings

logger = logging.getLogger(__name__)

Attachment = Tuple[str, bytes]


class EmailService:
    def __init__(self, template_dir: Optional[str] = None):
        if not settings.email.ENABLED:
            logger.warning("No email service configured. Email notifications disabled.")

        template_path = template_dir or settings.email.TEMPLATES_DIR or str(
            Path(__file__).parent.parent / "templates" / "email"
        )
        self.jinja_env = Environment(
            loader=FileSystemLoader(template_path), autoescape=True
        )
        # Plain-text tickets must not be HTML-escaped
        self.text_env = Environment(
            loader=FileSystemLoader(template_path), autoescape=False
        )

    def _get_smtp_config(self) -> Dict[str, Any]:
        """Get SMTP configuration."""
        return {
            "host": settings.email.SMTP_HOST,
            "port": settings.email.SMTP_PORT,
            "tls": settings.email.SMTP_TLS,
            "user": settings.email.SMTP_USER,
            "password": settings.email.SMTP_PASSWORD,
        }

    def _render_template(
        self, template_name: str, context: Dict[str, Any]
    ) -> Tuple[str, str]:
        html_template = self.jinja_env.get_template(f"{template_name}.html")
        html_content = html_template.render(**context)

        # Fall back to the HTML body stripped of its tags
        try:
            text_template = self.text_env.get_template(f"{template_name}.txt")
            text_content = text_template.render(**context)
        except TemplateNotFound:
            text_content = re.sub(r"<[^>]+>", "", html_content)
            text_content = re.sub(r"\s+", " ", text_content).strip()

        return html_content, text_content

    def render_ticket(self, context: Dict[str, Any]) -> str:
        """Printable plain-text ticket for a single booking."""
        return self.text_env.get_template("ticket.txt").render(**context)

    async def send_email(
        self,
        to_email: str,
        subject: str,
        template_name: str,
        context: Dict[str, Any],
        attachments: Optional[List[Attachment]] = None,
    ) -> bool:
        """
        Send email with template rendering.

        Args:
            to_email: Recipient email address
            subject: Email subject
            template_name: Template name (without extension)
            context: Template context variables
            attachments: (filename, content) pairs

        Returns:
            bool: True if email sent successfully
        """
        if not settings.email.ENABLED:
            logger.info(f"Email disabled. Would send to {to_email}: {subject}")
            return False

        html_content, text_content = self._render_template(template_name, context)

        message = emails.html(
            html=html_content,
            text=text_content,
            subject=subject,
            mail_from=(settings.email.FROM_NAME, settings.email.FROM_EMAIL),
        )
        for filename, data in attachments or []:
            message.attach(data=data, filename=filename)

        response = message.send(to=to_email, smtp=self._get_smtp_config())

        if response.status_code == 250:
            logger.info(f"Email sent successfully to {to_email}")
            return True
        logger.error(f"Email send failed to {to_email}: {response.status_code}")
        return False

    async def send_booking_confirmation(
        self, user_email: str, user_name: str, booking_data: Dict[str, Any]
    ) -> bool:
        """Confirmation mail with the printable ticket attached."""
        context = {
            "user_name": user_name,
            "booking_id": booking_data.get("id"),
            "event_name": booking_data.get("event_name"),
            "event_date": booking_data.get("event_date"),
            "event_time": booking_data.get("event_time"),
            "venue": booking_data.get("venue"),
            "seat_number": booking_data.get("seat_number"),
            "ticket_price": booking_data.get("ticket_price"),
            "booking_code": booking_data.get("qr_code"),
            "project_name": settings.PROJECT_NAME,
        }
        ticket = self.render_ticket(context)

        return await self.send_email(
            to_email=user_email,
            subject=f"Booking Confirmation - {booking_data.get('event_name')}",
            template_name="booking_confirmation",
            context=context,
            attachments=[(f"ticket-{context['booking_id']}.txt", ticket.encode())],
        )

    async def send_user_invite(
        self, user_email: str, user_name: str, role: str, temporary_password: str
    ) -> bool:
        context = {
            "user_name": user_name,
            "email": user_email,
            "role": role,
            "temporary_password": temporary_password,
            "login_url": f"{settings.SERVER_HOST}/login",
            "project_name": settings.PROJECT_NAME,
        }
        return await self.send_email(
            to_email=user_email,
            subject=f"You're invited to {settings.PROJECT_NAME}",
            template_name="user_invite",
            context=context,
        )

    async def send_role_change(
        self, user_email: str, user_name: str, old_role: str, new_role: str
    ) -> bool:
        context = {
            "user_name": user_name,
            "old_role": old_role,
            "new_role": new_role,
            "project_name": settings.PROJECT_NAME,
        }
        return await self.send_email(
            to_email=user_email,
            subject=f"Your {settings.PROJECT_NAME} role has changed",
            template_name="role_change",
            context=context,
        )


    async def send_otp(
        self, user_email: str, user_name: str, otp: str, purpose: str
    ) -> bool:
        """One-time code for email verification (`verify`) or password reset (`reset`)."""
        subjects = {
            "verify": f"Verify your {settings.PROJECT_NAME} email",
            "reset": f"Your {settings.PROJECT_NAME} password reset code",
        }
        context = {
            "user_name": user_name,
            "otp": otp,
            "purpose": purpose,
            "expires_minutes": settings.security.OTP_EXPIRE_MINUTES,
            "project_name": settings.PROJECT_NAME,
        }
        return await self.send_email(
            to_email=user_email,
            subject=subjects.get(purpose, f"Your {settings.PROJECT_NAME} code"),
            template_name="otp",
            context=context,
        )


email_service = EmailService()
