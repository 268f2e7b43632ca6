"""
Notification sinks for import progress and results.

Fire-and-forget: callers never consume a return value and a
failing sink never interrupts the import.
"""

from typing import Protocol

import structlog

from config import settings
from exceptions import TelegramError
from integrations import telegram

logger = structlog.get_logger(__name__)


class Notifier(Protocol):
    """Where user-facing import messages go."""

    def show_success(self, title: str, message: str) -> None: ...

    def show_error(self, title: str, message: str) -> None: ...

    def show_info(self, title: str, message: str) -> None: ...


class LogNotifier:
    """Writes notifications to the structured log."""

    def show_success(self, title: str, message: str) -> None:
        logger.info("notification", level="success", title=title, message=message)

    def show_error(self, title: str, message: str) -> None:
        logger.warning("notification", level="error", title=title, message=message)

    def show_info(self, title: str, message: str) -> None:
        logger.info("notification", level="info", title=title, message=message)


class TelegramNotifier(LogNotifier):
    """Logs, then forwards to the configured Telegram chat."""

    def show_success(self, title: str, message: str) -> None:
        super().show_success(title, message)
        self._forward("success", title, message)

    def show_error(self, title: str, message: str) -> None:
        super().show_error(title, message)
        self._forward("error", title, message)

    def show_info(self, title: str, message: str) -> None:
        super().show_info(title, message)
        self._forward("info", title, message)

    def _forward(self, level: str, title: str, message: str) -> None:
        try:
            telegram.send_message(telegram.format_notification(level, title, message))
        except TelegramError as e:
            logger.warning("notification_forward_failed", title=title, error=e.message)


def notify(notifier: Notifier, level: str, title: str, message: str) -> None:
    """Dispatch by level name (success, error, info)."""
    if level == "success":
        notifier.show_success(title, message)
    elif level == "error":
        notifier.show_error(title, message)
    else:
        notifier.show_info(title, message)


def get_notifier() -> Notifier:
    """Telegram-backed notifier when configured, log-only otherwise."""
    if settings.telegram_configured:
        return TelegramNotifier()
    return LogNotifier()
