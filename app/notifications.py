import logging

import httpx

from .config import HTTP_TIMEOUT, NOTIFICATION_SERVICE_URL

logger = logging.getLogger(__name__)


class Notifier:
    """
    Fire-and-forget calls to the notification service (emails to customers,
    vendors and beauticians). No-op when NOTIFICATION_SERVICE_URL is unset.
    """

    def __init__(
        self,
        base_url: str | None = NOTIFICATION_SERVICE_URL,
        timeout: float = HTTP_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/") if base_url else None
        self.timeout = timeout
        self.transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.base_url)

    async def notify(self, template: str, recipient: str | None, context: dict) -> bool:
        if not self.enabled or not recipient:
            return False

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                r = await client.post(
                    f"{self.base_url}/notifications",
                    json={"template": template, "to": recipient, "context": context},
                )
                r.raise_for_status()
                return True
        except httpx.HTTPError as e:
            logger.warning(f"Notification {template} to {recipient} failed: {e}")
            return False


notifier = Notifier()
