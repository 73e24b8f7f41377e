"""
Logger wrapper that carries sync context.

Every line emitted by a scanner or the change feed subscriber is tagged
with its collection and mode without repeating them at each call site.
"""

import logging
from typing import Any

# ContextLogger.<level> -> _log -> Logger.log; report the caller of <level>
_STACKLEVEL = 3


class ContextLogger:
    """
    Logger wrapper that adds fixed context to every record.

    Keyword arguments of the level methods become per-call context.

    Usage:
        log = ContextLogger(__name__, collection="customers", mode="catch_up")
        log.info("Batch flushed", batch_size=1000)
    """

    def __init__(self, name: str, **context: Any):
        self.logger = logging.getLogger(name)
        self.context = context

    def _log(self, level: int, msg: str, *args, exc_info=None, **kwargs) -> None:
        self.logger.log(
            level,
            msg,
            *args,
            exc_info=exc_info,
            extra={**self.context, **kwargs},
            stacklevel=_STACKLEVEL,
        )

    def debug(self, msg: str, *args, **kwargs) -> None:
        self._log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs) -> None:
        self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs) -> None:
        self._log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args, exc_info=None, **kwargs) -> None:
        self._log(logging.ERROR, msg, *args, exc_info=exc_info, **kwargs)

    def exception(self, msg: str, *args, **kwargs) -> None:
        """ERROR with the active exception's traceback."""
        self._log(logging.ERROR, msg, *args, exc_info=True, **kwargs)
