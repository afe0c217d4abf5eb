"""Transient, non-blocking status notifications.

The pipeline reports progress ("Added to archive queue.", batch summaries,
toggle confirmations) through a :class:`Notifier`.  Notifications are
fire-and-forget: nothing consumes a return value, and a notifier that raises
is logged and otherwise ignored.
"""

from __future__ import annotations

import logging
from typing import Protocol

import structlog

logger = logging.getLogger(__name__)

DEFAULT_DURATION: float = 3.5


class Notifier(Protocol):
    """Sink for short user-facing messages."""

    def show(self, message: str, duration: float = DEFAULT_DURATION) -> None:
        ...


class LogNotifier:
    """Emits each notification as a structured log event."""

    def __init__(self) -> None:
        self._log = structlog.get_logger("wayback_autosave.notice")

    def show(self, message: str, duration: float = DEFAULT_DURATION) -> None:
        self._log.info("autosave.notice", message=message, duration=duration)


class RecordingNotifier:
    """Keeps every notification in memory for later inspection."""

    def __init__(self) -> None:
        self.messages: list[str] = []

    def show(self, message: str, duration: float = DEFAULT_DURATION) -> None:  # noqa: ARG002
        self.messages.append(message)


def notify(notifier: Notifier | None, message: str, duration: float = DEFAULT_DURATION) -> None:
    """Deliver *message* to *notifier*, containing any error it raises."""
    if notifier is None:
        return
    try:
        notifier.show(message, duration)
    except Exception:  # noqa: BLE001
        logger.warning("autosave: notifier failed for %r", message, exc_info=True)
