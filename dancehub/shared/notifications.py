"""
User-facing notifications
The onboarding and booking flows report every outcome through a Notifier;
a UI renders them as toasts, the default just logs them
"""

import logging
from dataclasses import dataclass, field
from typing import Protocol

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def success(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...

    def info(self, message: str) -> None: ...


class LoggingNotifier:
    """Notifier that writes to the application log"""

    def success(self, message: str) -> None:
        logger.info(f"✅ {message}")

    def error(self, message: str) -> None:
        logger.error(f"❌ {message}")

    def info(self, message: str) -> None:
        logger.info(f"ℹ️ {message}")


@dataclass
class RecordingNotifier:
    """Keeps every notification as (level, message) in order"""

    messages: list[tuple[str, str]] = field(default_factory=list)

    def success(self, message: str) -> None:
        self.messages.append(("success", message))

    def error(self, message: str) -> None:
        self.messages.append(("error", message))

    def info(self, message: str) -> None:
        self.messages.append(("info", message))

    def of_level(self, level: str) -> list[str]:
        return [message for lvl, message in self.messages if lvl == level]
