"""Log sink used by the restore engine to report progress to its host."""

from __future__ import annotations

import logging
from enum import Enum

from asset_installer.protocols import Logger

logger = logging.getLogger(__name__)


class LogLevel(str, Enum):
    """Levels understood by host log sinks."""

    OPERATION = "operation"  # informational
    STATUS = "status"
    TASK = "task"  # task summary
    ERROR = "error"


_STANDARD_LEVELS = {
    LogLevel.OPERATION: logging.INFO,
    LogLevel.STATUS: logging.DEBUG,
    LogLevel.TASK: logging.INFO,
    LogLevel.ERROR: logging.ERROR,
}


class StandardLogger:
    """Sink that forwards host messages to the standard logging module."""

    def __init__(self, name: str = "asset_installer.host") -> None:
        self._logger = logging.getLogger(name)

    def log(self, message: str, level: LogLevel) -> None:
        self._logger.log(_STANDARD_LEVELS.get(level, logging.INFO), message)


class MemoryLogger:
    """Sink that records messages, for hosts that render them later."""

    def __init__(self) -> None:
        self.messages: list[tuple[str, LogLevel]] = []

    def log(self, message: str, level: LogLevel) -> None:
        self.messages.append((message, level))


def safe_log(sink: Logger | None, message: str, level: LogLevel = LogLevel.OPERATION) -> None:
    """Send a message to a host sink without letting sink failures escape."""
    if sink is None:
        return
    try:
        sink.log(message, level)
    except Exception as e:
        logger.debug("Log sink failed for message %r: %s", message, e)
