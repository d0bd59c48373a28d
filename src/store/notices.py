"""
User Notices

Store mutations never raise; what the user should be told travels through
this side channel instead (the UI renders notices as toasts).

Every notice is also logged, so headless callers lose nothing.
"""

from collections import deque
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

import structlog
from pydantic import BaseModel, Field

from src.models.audit import utcnow


logger = structlog.get_logger(__name__)


class NoticeLevel(str, Enum):
    SUCCESS = "success"
    INFO = "info"
    ERROR = "error"


class Notice(BaseModel):
    level: NoticeLevel
    message: str
    domain: Optional[str] = None
    timestamp: datetime = Field(default_factory=utcnow)


SUCCESS_MESSAGES = {
    "create": "{label} saved",
    "update": "{label} updated",
    "delete": "{label} removed",
    "add": "{label} added",
    "remove": "{label} removed",
}
FALLBACK_MESSAGES = {
    "create": "{label} saved locally. Renew to sync.",
    "update": "{label} updated locally. Renew to sync.",
    "delete": "{label} removed locally. Renew to sync.",
    "add": "{label} saved locally. Renew to sync.",
    "remove": "{label} removed locally. Renew to sync.",
}
FAILURE_MESSAGES = {
    "create": "Could not save {label}",
    "update": "Could not update {label}",
    "delete": "Could not remove {label}",
    "add": "Could not add {label}",
    "remove": "Could not remove {label}",
}
ACCESS_SUSPENDED_MESSAGE = "Your subscription is suspended. Your data will be kept locally."
REMOTE_LOAD_FAILED_MESSAGE = "Could not load your {domain} right now."


NoticeSubscriber = Callable[[Notice], None]


class Notifier:
    """Collects notices and forwards them to subscribers."""

    def __init__(self, keep_history: bool = True, max_history: int = 500):
        self._subscribers: list[NoticeSubscriber] = []
        self._keep_history = keep_history
        self._history: deque[Notice] = deque(maxlen=max(1, max_history))

    def subscribe(self, callback: NoticeSubscriber) -> Callable[[], None]:
        """Register a callback. Returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    @property
    def history(self) -> list[Notice]:
        """Most recent notices, oldest first."""
        return list(self._history)

    def notify(self, notice: Notice) -> Notice:
        log = logger.error if notice.level == NoticeLevel.ERROR else logger.info
        log("notice", level=notice.level.value, message=notice.message, domain=notice.domain)

        if self._keep_history:
            self._history.append(notice)

        for callback in list(self._subscribers):
            try:
                callback(notice)
            except Exception as e:
                # A broken toast layer must not break a store mutation
                logger.error("notice_subscriber_failed", error=str(e))
        return notice

    def success(self, message: str, domain: Optional[str] = None) -> Notice:
        return self.notify(Notice(level=NoticeLevel.SUCCESS, message=message, domain=domain))

    def info(self, message: str, domain: Optional[str] = None) -> Notice:
        return self.notify(Notice(level=NoticeLevel.INFO, message=message, domain=domain))

    def error(self, message: str, domain: Optional[str] = None) -> Notice:
        return self.notify(Notice(level=NoticeLevel.ERROR, message=message, domain=domain))
