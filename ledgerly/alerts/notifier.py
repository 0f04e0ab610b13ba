"""Outbound webhook notifications."""

from typing import Any, Dict, Optional

import httpx

from ledgerly.utils.logging import get_logger

logger = get_logger("alerts.notifier")


class WebhookNotifier:
    """POST JSON alert payloads to user-configured webhook URLs.

    Args:
        timeout: Request timeout in seconds
        transport: Optional httpx transport, used by tests
    """

    def __init__(self, timeout: float = 10.0, transport: Optional[httpx.BaseTransport] = None):
        self.timeout = timeout
        self._transport = transport

    def send(self, url: str, payload: Dict[str, Any]) -> bool:
        """Send one payload.

        Returns:
            True on a 2xx response. Network errors and other statuses are
            logged and return False.
        """
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(url, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Error sending webhook to {url}: {e}")
            return False

        if response.is_success:
            return True

        logger.error(f"Webhook to {url} failed with status {response.status_code}: {response.text[:200]}")
        return False
