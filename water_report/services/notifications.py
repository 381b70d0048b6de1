from __future__ import annotations

import logging
from dataclasses import dataclass

"""User-facing notifications.

The form shows exactly one toast per operation (success or error). Here a toast
is a log line plus an entry in a queue the caller (CLI, tests) can inspect.
"""

__all__ = [
    "Toast",
    "ToastQueue",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Toast:
    level: str  # success / error
    message: str


class ToastQueue:
    def __init__(self) -> None:
        self._toasts: list[Toast] = []

    def success(self, message: str) -> None:
        self._toasts.append(Toast("success", message))
        logger.info(message)

    def error(self, message: str) -> None:
        self._toasts.append(Toast("error", message))
        logger.error(message)

    @property
    def toasts(self) -> list[Toast]:
        return list(self._toasts)

    @property
    def last(self) -> Toast | None:
        return self._toasts[-1] if self._toasts else None

    def __len__(self) -> int:  # pragma: no cover (trivial)
        return len(self._toasts)
