"""
Activity notifier: reports authentication activity to the logger service.
"""
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional
import logging

import httpx

from ..exceptions import NotifierUnreachableError

logger = logging.getLogger(__name__)


class ActivityNotifier:
    """
    Sends ``{"name": ..., "data": ...}`` entries to the logger service.

    Each entry is a single POST with no retry and no local buffering. Callers
    on the request path use ``dispatch`` so a slow or unreachable logger
    service never holds up or fails the response.
    """

    def __init__(
        self,
        url: str,
        timeout: float = 5.0,
        enabled: bool = True,
        workers: int = 2,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.url = url
        self.enabled = enabled
        self._client = httpx.Client(timeout=timeout, transport=transport)
        self._executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="activity-notifier")

    def send(self, name: str, data: str) -> None:
        """
        Post one entry to the logger service.

        Raises:
            NotifierUnreachableError: If the request fails or is not accepted
        """
        try:
            response = self._client.post(self.url, json={"name": name, "data": data})
        except httpx.HTTPError as exc:
            raise NotifierUnreachableError(f"logger service unreachable: {exc}") from exc

        if response.status_code >= 400:
            raise NotifierUnreachableError(
                f"logger service rejected entry: HTTP {response.status_code}"
            )

    def notify(self, name: str, data: str) -> bool:
        """
        Best-effort variant of ``send``.

        Returns:
            True if the entry was accepted, False otherwise. Failures are
            logged, never raised.
        """
        if not self.enabled:
            return False
        try:
            self.send(name, data)
        except NotifierUnreachableError as exc:
            # Logging failure should not break auth flow
            logger.warning("Activity entry not delivered - name=%s, error=%s", name, exc)
            return False

        logger.info("ACTIVITY %s %s", name, data)
        return True

    def dispatch(self, name: str, data: str) -> Future:
        """Run ``notify`` on a worker thread and return immediately."""
        return self._executor.submit(self.notify, name, data)

    def close(self) -> None:
        """Wait for dispatched entries, then release the HTTP client."""
        self._executor.shutdown(wait=True)
        self._client.close()
