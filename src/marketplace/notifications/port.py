"""Notifier port: abstract interface for user-facing notifications."""

from abc import ABC, abstractmethod


class NotifierPort(ABC):
    """Abstract interface for notification delivery adapters."""

    @abstractmethod
    def notify(self, user_id: str, payload: dict) -> None:
        """Deliver payload to user_id. Raises on delivery failure."""
        ...
