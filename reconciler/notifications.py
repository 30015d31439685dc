"""
Email notifications for status changes.

This module provides:
- A Resend-backed notifier (send html to one recipient, get back a message id)
- A dispatcher that renders and sends change notifications on a best-effort basis
"""

from typing import Optional

import httpx
import structlog

from reconciler.models import StatusChangeNotification
from reconciler.rendering import render_status_change, status_change_subject

logger = structlog.get_logger(__name__)


class NotificationError(Exception):
    """Raised when a notification could not be delivered."""


class ResendNotifier:
    """Transactional email delivery through the Resend HTTP API."""

    def __init__(
        self,
        api_key: str,
        sender: str,
        api_url: str = "https://api.resend.com/emails",
        timeout: float = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the notifier.

        Args:
            api_key: Resend API key
            sender: From address
            api_url: Email endpoint
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.sender = sender
        self.api_url = api_url
        self.logger = logger.bind(component="resend_notifier")
        self.client = httpx.AsyncClient(
            timeout=timeout,
            headers={"Authorization": f"Bearer {api_key}"},
            transport=transport,
        )

    async def send(self, recipient: str, subject: str, html_body: str) -> str:
        """
        Send one email.

        Returns:
            Provider message id

        Raises:
            NotificationError: if the request fails or is rejected
        """
        try:
            response = await self.client.post(
                self.api_url,
                json={
                    "from": self.sender,
                    "to": recipient,
                    "subject": subject,
                    "html": html_body,
                },
            )
        except httpx.HTTPError as e:
            raise NotificationError(f"Email request failed: {e}") from e

        if response.is_error:
            raise NotificationError(f"Email provider returned {response.status_code}: {response.text}")

        try:
            email_id = response.json().get("id")
        except ValueError as e:
            raise NotificationError("Email provider returned invalid JSON") from e

        self.logger.info("Email sent", subject=subject, email_id=email_id)
        return email_id

    async def close(self) -> None:
        await self.client.aclose()


class NotificationDispatcher:
    """Executes change notification instructions produced by the runner."""

    def __init__(self, config, notifier: Optional[ResendNotifier] = None):
        """
        Initialize dispatcher.

        Args:
            config: Application configuration
            notifier: Email notifier, None when no channel is configured
        """
        self.config = config
        self.notifier = notifier
        self.logger = logger.bind(component="notification_dispatcher")

    @property
    def enabled(self) -> bool:
        return self.notifier is not None and bool(self.config.notification_email)

    async def dispatch(self, notification: StatusChangeNotification) -> Optional[str]:
        """
        Send a change notification.

        Failures are logged and swallowed.

        Returns:
            Message id, or None when disabled or the send failed
        """
        if not self.enabled:
            self.logger.debug("Notifications disabled", book_id=notification.book_id)
            return None

        catalog_url = None
        if notification.catalog_id:
            catalog_url = self.config.catalog_entry_url(notification.catalog_id)

        try:
            html_body = render_status_change(notification, catalog_url, self.config.dashboard_url)
            return await self.notifier.send(
                self.config.notification_email,
                status_change_subject(notification),
                html_body,
            )

        except Exception as e:
            self.logger.error(
                "Failed to send status change email",
                book_id=notification.book_id,
                title=notification.title,
                error=str(e)
            )
            return None
