"""Notifier registry and best-effort delivery.

Notifications are sent by domain event handlers (see order_events and
ledger_events), which run only after the triggering Unit of Work has
committed. A failing notifier is logged and never affects the order,
payment or ledger outcome that caused it.
"""

import structlog

from marketplace.notifications.adapters import LogNotifier
from marketplace.notifications.port import NotifierPort

logger = structlog.get_logger(__name__)

_current_notifier: NotifierPort | None = None


def get_notifier() -> NotifierPort:
    """Return the current notifier. Defaults to LogNotifier."""
    global _current_notifier
    if _current_notifier is None:
        _current_notifier = LogNotifier()
    return _current_notifier


def set_notifier(notifier: NotifierPort) -> None:
    """Override the active notifier (useful for tests)."""
    global _current_notifier
    _current_notifier = notifier


def reset_notifier() -> None:
    """Reset to default notifier."""
    global _current_notifier
    _current_notifier = None


def notify_user(user_id, payload: dict) -> bool:
    """Deliver one notification. Returns False if the notifier failed."""
    try:
        get_notifier().notify(str(user_id), payload)
    except Exception as exc:
        logger.warning(
            "Notification delivery failed",
            user_id=str(user_id),
            notification_type=payload.get("type"),
            error=str(exc),
        )
        return False
    return True
