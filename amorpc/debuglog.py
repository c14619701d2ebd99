"""Level-filtered debug printing."""

from enum import IntEnum


class DebugLevel(IntEnum):
    OFF = 0
    CRITICAL = 1
    ERROR = 2
    INFO = 3
    DEBUG = 4


class _State:
    level = 0


def set_debug(level: int) -> None:
    """Set the highest level whose messages are printed."""
    _State.level = int(level)


def log(level: int, message: str) -> bool:
    """Print ``message`` if ``abs(level)`` is within the debug level.

    Returns whether the message was printed.
    """
    if _State.level < abs(int(level)):
        return False
    print(message)
    return True