"""
Structured logging with key=value and JSON output support.

Wraps the standard library ``logging`` module so that every log line is a
short snake_case event name followed by structured fields:

```text
info nostrview.pool relay_connected relay=wss://relay.damus.io elapsed_s=0.41
```

[Logger][nostrview.core.logger.Logger] attaches keyword arguments to the
record under ``structured_kv``; [StructuredFormatter][nostrview.core.logger.StructuredFormatter],
installed on the root handler by the CLI, renders them. Plain
``logging.getLogger()`` calls from the models and utils layers go through
the same formatter and come out with the same ``level name message`` prefix.

Examples:
    ```python
    from nostrview.core.logger import Logger

    logger = Logger("nostrview.pool")
    logger.info("connect_finished", connected=3, failed=2)
    # info nostrview.pool connect_finished connected=3 failed=2

    Logger("nostrview.pool", json_output=True).info("connect_finished", connected=3)
    # {"timestamp": "...", "level": "info", "logger": "nostrview.pool", ...}
    ```
"""

from __future__ import annotations

import datetime
import json
import logging
from typing import Any, ClassVar


_TRUNCATION_MARK = "...<truncated {n} chars>"


def _truncate(value: str, max_length: int | None) -> str:
    if max_length and len(value) > max_length:
        return value[:max_length] + _TRUNCATION_MARK.format(n=len(value) - max_length)
    return value


def format_kv_pairs(
    kwargs: dict[str, Any],
    max_value_length: int | None = 1000,
    prefix: str = " ",
) -> str:
    """Format a dictionary as space-separated key=value pairs.

    Values containing whitespace, equals signs or quotes are escaped and
    wrapped in double quotes; empty values render as ``key=""``.

    Args:
        kwargs: Key-value pairs to format.
        max_value_length: Maximum characters per value before truncation.
            Pass None to disable truncation.
        prefix: String prepended to a non-empty result.

    Returns:
        Formatted string such as ``' relay=wss://x subscription="a b"'``,
        or ``""`` when *kwargs* is empty.
    """
    if not kwargs:
        return ""

    parts = []
    for key, value in kwargs.items():
        text = _truncate(str(value), max_value_length)
        if not text or any(c in text for c in ' ="\''):
            escaped = text.replace("\\", "\\\\").replace('"', '\\"')
            parts.append(f'{key}="{escaped}"')
        else:
            parts.append(f"{key}={text}")
    return prefix + " ".join(parts)


class StructuredFormatter(logging.Formatter):
    """Render every record as ``level name message key=value ...``."""

    def format(self, record: logging.LogRecord) -> str:
        line = f"{record.levelname.lower()} {record.name} {record.getMessage()}"
        fields: dict[str, Any] = getattr(record, "structured_kv", {})
        if fields:
            line += format_kv_pairs(fields)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class Logger:
    """Structured logger that appends keyword arguments as fields.

    Mirrors the standard logging API (``debug`` through ``exception``) with
    an added ``**kwargs`` parameter. Output is either key=value pairs via
    [StructuredFormatter][nostrview.core.logger.StructuredFormatter] or one
    JSON object per line.

    Args:
        name: Name passed to ``logging.getLogger``.
        json_output: Emit JSON objects instead of key=value pairs.
        max_value_length: Per-value truncation limit (default 1000).
    """

    _DEFAULT_MAX_VALUE_LENGTH: ClassVar[int] = 1000

    def __init__(
        self,
        name: str,
        *,
        json_output: bool = False,
        max_value_length: int | None = None,
    ) -> None:
        self._logger = logging.getLogger(name)
        self._json_output = json_output
        self._max_value_length = (
            self._DEFAULT_MAX_VALUE_LENGTH if max_value_length is None else max_value_length
        )

    @property
    def name(self) -> str:
        return self._logger.name

    def is_enabled_for(self, level: int) -> bool:
        """Whether a record at *level* would be emitted."""
        return self._logger.isEnabledFor(level)

    def _log(self, level: int, msg: str, kwargs: dict[str, Any], *, exc_info: bool = False) -> None:
        if not self._logger.isEnabledFor(level):
            return
        if self._json_output:
            record = {
                "timestamp": datetime.datetime.now(datetime.UTC).isoformat(),
                "level": logging.getLevelName(level).lower(),
                "logger": self._logger.name,
                "message": msg,
                **kwargs,
            }
            self._logger.log(level, json.dumps(record, default=str), exc_info=exc_info)
            return
        fields = {
            k: _truncate(str(v), self._max_value_length) if isinstance(v, str) else v
            for k, v in kwargs.items()
        }
        self._logger.log(level, msg, extra={"structured_kv": fields}, exc_info=exc_info)

    def debug(self, msg: str, **kwargs: Any) -> None:
        self._log(logging.DEBUG, msg, kwargs)

    def info(self, msg: str, **kwargs: Any) -> None:
        self._log(logging.INFO, msg, kwargs)

    def warning(self, msg: str, **kwargs: Any) -> None:
        self._log(logging.WARNING, msg, kwargs)

    def error(self, msg: str, **kwargs: Any) -> None:
        self._log(logging.ERROR, msg, kwargs)

    def critical(self, msg: str, **kwargs: Any) -> None:
        self._log(logging.CRITICAL, msg, kwargs)

    def exception(self, msg: str, **kwargs: Any) -> None:
        """Log at ERROR level with the active exception's traceback."""
        self._log(logging.ERROR, msg, kwargs, exc_info=True)


def setup_logging(level: str = "INFO", *, json_output: bool = False) -> None:
    """Install [StructuredFormatter][nostrview.core.logger.StructuredFormatter] on the root logger.

    In JSON mode the [Logger][nostrview.core.logger.Logger] instances already
    serialize each record, so a bare ``%(message)s`` formatter is used.
    """
    handler = logging.StreamHandler()
    if json_output:
        handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        handler.setFormatter(StructuredFormatter())
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(getattr(logging, level.upper()))
