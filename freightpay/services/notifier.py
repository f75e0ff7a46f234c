"""User-facing notifications emitted after payment transitions."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserNotification:
    user_id: str
    title: str
    message: str
    category: str = "Payment"
    related_entity_id: str | None = None


class Notifier(Protocol):
    def send(self, notification: UserNotification) -> None: ...


class LoggingNotifier:
    """Default notifier: records notifications in the application log."""

    def send(self, notification: UserNotification) -> None:
        logger.info(
            "User notification",
            extra={
                "user_id": notification.user_id,
                "title": notification.title,
                "category": notification.category,
                "related_entity_id": notification.related_entity_id,
            },
        )


def deliver(notifier: Notifier, notifications: list[UserNotification]) -> None:
    """Send notifications one by one; a failing send never blocks the rest."""

    for notification in notifications:
        try:
            notifier.send(notification)
        except Exception:  # noqa: BLE001
            logger.exception(
                "Notification delivery failed",
                extra={"user_id": notification.user_id, "title": notification.title},
            )


__all__ = ["LoggingNotifier", "Notifier", "UserNotification", "deliver"]
