"""
Notification Service - best-effort report status updates to the report owner.

DESIGN PRINCIPLES:
- Events are published only after a transition has been committed
- Delivery runs on a background worker pool, never on the request path
- Failures are logged and dropped: no retry, no propagation
"""

from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import asdict, dataclass
from typing import Optional
import logging

import requests

from app.core.settings import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReportStatusEvent:
    """Payload sent to the notification service."""
    id: str
    title: str
    status: str
    user_id: str


class NotificationDispatcher:
    """
    Consumes report status events and posts them to the notification service.
    """

    ENDPOINT = "/notifications/report-status"

    def __init__(
        self,
        base_url: Optional[str],
        timeout_seconds: float = 5.0,
        max_workers: int = 2
    ):
        self.base_url = base_url.rstrip("/") if base_url else None
        self.timeout_seconds = timeout_seconds
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="notify")

    def publish(self, event: ReportStatusEvent) -> Optional[Future]:
        """
        Queue an event for delivery and return immediately.
        Never raises.
        """
        if not self.base_url:
            logger.debug(f"Notification service not configured, dropping event for report {event.id}")
            return None
        try:
            return self._executor.submit(self._deliver, event)
        except RuntimeError as e:
            # Executor already shut down
            logger.warning(f"Notification for report {event.id} dropped: {e}")
            return None

    def _deliver(self, event: ReportStatusEvent) -> bool:
        try:
            resp = requests.post(
                f"{self.base_url}{self.ENDPOINT}",
                json=asdict(event),
                headers={"Content-Type": "application/json"},
                timeout=self.timeout_seconds,
            )
            resp.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Failed to send notification for report {event.id}: {e}")
            return False
        except Exception as e:
            logger.error(f"Unexpected error sending notification for report {event.id}: {e}", exc_info=True)
            return False

        logger.info(f"Notification sent for report {event.id} to user {event.user_id}")
        return True

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


# Global dispatcher instance (singleton pattern)
_dispatcher: Optional[NotificationDispatcher] = None


def get_notification_dispatcher() -> NotificationDispatcher:
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = NotificationDispatcher(
            base_url=settings.NOTIFICATION_SERVICE_URL,
            timeout_seconds=settings.NOTIFICATION_TIMEOUT_SECONDS,
            max_workers=settings.NOTIFICATION_MAX_WORKERS,
        )
    return _dispatcher


def shutdown_notification_dispatcher() -> None:
    global _dispatcher
    if _dispatcher is not None:
        _dispatcher.shutdown(wait=False)
        _dispatcher = None
