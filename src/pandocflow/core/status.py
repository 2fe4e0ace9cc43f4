"""Status observers notified at conversion lifecycle transitions."""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable


logger = logging.getLogger(__name__)


@runtime_checkable
class StatusObserver(Protocol):
    """Receives lifecycle notifications; never influences the pipeline."""

    def loading(self, message: str, percent: int) -> None: ...

    def ready(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...

    def announce(self, message: str) -> None: ...


class NullStatus:
    def loading(self, message: str, percent: int) -> None:
        return

    def ready(self, message: str) -> None:
        return

    def error(self, message: str) -> None:
        return

    def announce(self, message: str) -> None:
        return


class LoggingStatus:
    """Observer writing lifecycle notifications to the standard logger."""

    def __init__(self, logger_obj: logging.Logger | None = None) -> None:
        self._logger = logger_obj or logger

    def loading(self, message: str, percent: int) -> None:
        self._logger.info("[%3d%%] %s", percent, message)

    def ready(self, message: str) -> None:
        self._logger.info(message)

    def error(self, message: str) -> None:
        self._logger.error(message)

    def announce(self, message: str) -> None:
        self._logger.info("announce: %s", message)


class RecordingStatus:
    """Observer keeping every notification, in order."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str, int | None]] = []

    def loading(self, message: str, percent: int) -> None:
        self.events.append(("loading", message, percent))

    def ready(self, message: str) -> None:
        self.events.append(("ready", message, None))

    def error(self, message: str) -> None:
        self.events.append(("error", message, None))

    def announce(self, message: str) -> None:
        self.events.append(("announce", message, None))

    def kinds(self) -> list[str]:
        return [kind for kind, _message, _percent in self.events]


__all__ = ["LoggingStatus", "NullStatus", "RecordingStatus", "StatusObserver"]
