"""User facing notifications raised by the console's views."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

from loguru import logger

NotificationLevel = Literal["success", "info", "warning", "error"]


@dataclass(frozen=True)
class Notification:
    level: NotificationLevel
    message: str
    created_at: datetime = field(default_factory=datetime.now)


class NotificationService:
    """Collects the notifications shown to the user. Each one is also logged at DEBUG level."""

    def __init__(self) -> None:
        self._notifications: list[Notification] = []

    @property
    def notifications(self) -> list[Notification]:
        return list(self._notifications)

    def notify(self, level: NotificationLevel, message: str) -> Notification:
        notification = Notification(level=level, message=message)
        self._notifications.append(notification)
        logger.debug(f"Notification ({level}): {message}")
        return notification

    def success(self, message: str) -> Notification:
        return self.notify("success", message)

    def info(self, message: str) -> Notification:
        return self.notify("info", message)

    def warning(self, message: str) -> Notification:
        return self.notify("warning", message)

    def error(self, message: str) -> Notification:
        return self.notify("error", message)

    def of_level(self, level: NotificationLevel) -> list[Notification]:
        return [notification for notification in self._notifications if notification.level == level]

    def has_errors(self) -> bool:
        return any(notification.level == "error" for notification in self._notifications)

    def clear(self) -> None:
        self._notifications.clear()
