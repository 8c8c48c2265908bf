"""
Notification Sender - Transactional email delivery.

ResendEmailSender talks to the Resend HTTP API. LoggingEmailSender is used
when no API key is configured (local development).
"""

from typing import Protocol

import httpx
from structlog import get_logger

from app.exceptions import NotificationDeliveryError

logger = get_logger(__name__)


class NotificationSender(Protocol):
    """Email delivery protocol."""

    async def send(self, to_address: str, subject: str, html_body: str) -> None:
        """
        Hand an email to the delivery service.

        Raises:
            NotificationDeliveryError: If the delivery service rejects or is unreachable
        """
        ...


class ResendEmailSender:
    """Resend (resend.com) email sender."""

    def __init__(
        self,
        api_key: str,
        from_address: str,
        base_url: str = "https://api.resend.com",
        timeout: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.api_key = api_key
        self.from_address = from_address
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._http_client = http_client

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Get HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
        return self._http_client

    async def send(self, to_address: str, subject: str, html_body: str) -> None:
        try:
            response = await self.http_client.post(
                f"{self.base_url}/emails",
                json={
                    "from": self.from_address,
                    "to": [to_address],
                    "subject": subject,
                    "html": html_body,
                },
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                "email_send_rejected", status=e.response.status_code, text=e.response.text
            )
            raise NotificationDeliveryError(
                to_address, f"HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            logger.error("email_send_error", error=str(e), error_type=type(e).__name__)
            raise NotificationDeliveryError(to_address, str(e)) from e

        logger.info("email_sent", subject=subject, status=response.status_code)

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()


class LoggingEmailSender:
    """Sender that only logs; nothing leaves the process."""

    async def send(self, to_address: str, subject: str, html_body: str) -> None:
        logger.warning(
            "email_not_sent_no_provider",
            to=to_address,
            subject=subject,
            body_length=len(html_body),
        )
