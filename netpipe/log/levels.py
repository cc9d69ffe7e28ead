"""Severity levels, most urgent first."""

from enum import IntEnum
from typing import Union

from ..common.constants import LEVEL_TOKEN_WIDTH
from ..exceptions import UnknownLevelError


class Level(IntEnum):
    """A record at level L is written iff L <= the writer's threshold."""

    FATAL = 0
    ERROR = 1
    WARN = 2
    INFO = 3
    DEBUG = 4
    TRACE = 5

    @property
    def token(self) -> str:
        """Upper-case name padded to a fixed width so lines align."""
        return self.name.ljust(LEVEL_TOKEN_WIDTH)


_ALIASES = {
    "CRITICAL": Level.FATAL,
    "WARNING": Level.WARN,
}


def level_from_name(name: str) -> Level:
    """
    Look up a level by name, case-insensitively.

    Raises:
        UnknownLevelError: If the name is not a level
    """
    key = name.strip().upper() if isinstance(name, str) else ""
    if key in Level.__members__:
        return Level[key]
    if key in _ALIASES:
        return _ALIASES[key]
    raise UnknownLevelError(name)


def coerce_level(value: Union[Level, int, str]) -> Level:
    """Accept a Level, its ordinal or its name."""
    if isinstance(value, Level):
        return value
    if isinstance(value, str):
        return level_from_name(value)
    try:
        return Level(value)
    except ValueError:
        raise UnknownLevelError(str(value))
