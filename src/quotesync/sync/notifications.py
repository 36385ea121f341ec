"""User-facing events emitted by the sync engine."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class NotificationKind(Enum):
    """Severity of a notification."""
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Notification:
    kind: NotificationKind
    message: str


NotificationSink = Callable[[Notification], None]


def log_notification(notification: Notification):
    """Sink that only logs."""
    logger.debug(f"[{notification.kind.value}] {notification.message}")


class CollectingSink:
    """Sink that keeps every notification in memory."""

    def __init__(self):
        self.notifications: list[Notification] = []

    def __call__(self, notification: Notification):
        self.notifications.append(notification)

    @property
    def kinds(self) -> list[NotificationKind]:
        return [n.kind for n in self.notifications]
