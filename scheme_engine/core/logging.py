"""
Structured logging port for the reward engine.

Every service receives one EngineLogger through its constructor. Messages go
either to a caller-supplied sink ``(level, message)`` or, when none is given,
to the stdlib ``scheme_engine`` logger.
"""
import logging
from typing import Callable, Optional

LogSink = Callable[[str, str], None]

logger = logging.getLogger("scheme_engine")

# Sink level names mapped to stdlib levels
LEVELS = {
    "debug": logging.DEBUG,
    "log": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


class EngineLogger:
    """Routes engine diagnostics to a sink or to stdlib logging."""

    def __init__(self, sink: Optional[LogSink] = None, name: Optional[str] = None):
        self.sink = sink
        self._logger = logging.getLogger(name) if name else logger

    def _emit(self, level: str, message: str) -> None:
        if self.sink is None:
            self._logger.log(LEVELS[level], message)
            return
        try:
            self.sink(level, message)
        except Exception as e:
            # Fall back to stdlib when the sink raises
            self._logger.error(f"Log sink failed on {level} message: {e}")
            self._logger.log(LEVELS[level], message)

    def log(self, message: str) -> None:
        self._emit("log", message)

    def debug(self, message: str) -> None:
        self._emit("debug", message)

    def warn(self, message: str) -> None:
        self._emit("warn", message)

    def error(self, message: str) -> None:
        self._emit("error", message)
