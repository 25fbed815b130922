"""Notifier adapters.

LogNotifier writes each notification to the structured log and is the
default outside tests. FakeNotifier records notifications in memory for
assertions and can be told to fail.
"""

import threading

import structlog

from marketplace.notifications.port import NotifierPort

logger = structlog.get_logger(__name__)


class LogNotifier(NotifierPort):
    def notify(self, user_id: str, payload: dict) -> None:
        logger.info("Notification sent", user_id=user_id, notification_type=payload.get("type"), payload=payload)


class FakeNotifier(NotifierPort):
    """Notifier that records notifications in memory for test assertions."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.sent: list[dict] = []
        self.should_succeed = True
        self.failure_reason = "Notification delivery failed"

    def configure(self, should_succeed: bool = True, failure_reason: str = "Notification delivery failed") -> None:
        """Configure the fake notifier behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def notify(self, user_id: str, payload: dict) -> None:
        if not self.should_succeed:
            raise RuntimeError(self.failure_reason)
        with self._lock:
            self.sent.append({"user_id": user_id, "payload": payload})

    def sent_to(self, user_id: str) -> list[dict]:
        with self._lock:
            return [n["payload"] for n in self.sent if n["user_id"] == user_id]

    def reset(self) -> None:
        """Clear sent notifications (useful between tests)."""
        with self._lock:
            self.sent.clear()
        self.should_succeed = True
        self.failure_reason = "Notification delivery failed"
