from __future__ import annotations

import logging
from html import escape
from typing import Any

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from app.core.config import ADMIN_EMAIL, EMAIL_FROM, SENDGRID_API_KEY

logger = logging.getLogger(__name__)


class EmailService:
    """Transactional mail for restaurant onboarding, sent through SendGrid.

    Every send is best-effort: the result dict says whether it worked and
    failures are only logged.
    """

    def __init__(self, api_key: str = SENDGRID_API_KEY, from_email: str = EMAIL_FROM, client: Any = None) -> None:
        self.from_email = from_email
        if client is not None:
            self.client = client
        elif api_key:
            self.client = SendGridAPIClient(api_key)
        else:
            self.client = None
            logger.warning("SendGrid credentials not configured")

    def _send(self, to_email: str, subject: str, html: str, text: str | None = None) -> dict[str, Any]:
        if self.client is None:
            return {"success": False, "message": "Email not configured"}

        message = Mail(
            from_email=self.from_email,
            to_emails=to_email,
            subject=subject,
            html_content=html,
            plain_text_content=text,
        )
        try:
            response = self.client.send(message)
        except Exception as exc:
            logger.error("Email to %s failed: %s", to_email, exc)
            return {"success": False, "error": str(exc), "message": "Failed to send email"}

        ok = response.status_code in (200, 201, 202)
        if ok:
            logger.info("Email sent to %s status=%s", to_email, response.status_code)
        else:
            logger.warning("Email to %s rejected status=%s", to_email, response.status_code)
        return {
            "success": ok,
            "message_id": response.headers.get("X-Message-Id") if response.headers else None,
            "message": "Email sent" if ok else "Failed to send email",
        }

    def send_restaurant_welcome(self, email: str, restaurant: Any, urls: dict[str, str]) -> dict[str, Any]:
        name = escape(restaurant.name)
        html = (
            f"<h1>Welcome to {name}!</h1>"
            "<p>Your restaurant app is ready.</p>"
            "<ul>"
            f'<li>Customer website: <a href="{urls["website"]}">{urls["website"]}</a></li>'
            f'<li>Table QR link: <a href="{urls["table_qr"]}">{urls["table_qr"]}</a></li>'
            f'<li>Admin panel: <a href="{urls["admin"]}">{urls["admin"]}</a></li>'
            "</ul>"
        )
        text = (
            f"Welcome to {restaurant.name}!\n\n"
            f"Customer website: {urls['website']}\n"
            f"Table QR link: {urls['table_qr']}\n"
            f"Admin panel: {urls['admin']}\n"
        )
        return self._send(email, f"Welcome to {restaurant.name} - Your Restaurant App is Ready!", html, text)

    def send_admin_notification(self, restaurant: Any, urls: dict[str, str]) -> dict[str, Any]:
        if not ADMIN_EMAIL:
            return {"success": False, "message": "ADMIN_EMAIL not configured"}
        html = (
            "<h2>New Restaurant Created</h2>"
            f"<p><strong>Name:</strong> {escape(restaurant.name)}</p>"
            f"<p><strong>Slug:</strong> {escape(restaurant.slug)}</p>"
            f"<p><strong>Email:</strong> {escape(restaurant.email or '')}</p>"
            f'<p><strong>Website:</strong> <a href="{urls["website"]}">{urls["website"]}</a></p>'
            f'<p><strong>Admin Panel:</strong> <a href="{urls["admin"]}">{urls["admin"]}</a></p>'
        )
        return self._send(ADMIN_EMAIL, f"New Restaurant Created: {restaurant.name}", html)
