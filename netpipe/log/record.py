"""Log records and their text rendering."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Tuple

from ..common.utils import format_timestamp
from .levels import Level


@dataclass(frozen=True)
class LogRecord:
    """One log call, captured on the producer thread and rendered later."""

    level: Level
    format: str
    args: Tuple[Any, ...]
    timestamp: datetime
    caller: Optional[str] = None

    def message(self) -> str:
        """Render format with args, %-style like the logging module."""
        if not self.args:
            return str(self.format)
        try:
            return str(self.format) % self.args
        except (TypeError, ValueError, KeyError) as e:
            return f"{self.format} [format error: {e}] {self.args!r}"

    def render(self) -> str:
        """
        Render the record as one line without the trailing newline:

            2024-01-15 14:32:10.123 INFO  [server.py:42] message text
        """
        parts = [format_timestamp(self.timestamp), self.level.token]
        if self.caller is not None:
            parts.append(f"[{self.caller}]")
        parts.append(self.message())
        return " ".join(parts)
