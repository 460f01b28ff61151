"""
Structured logging with key=value and JSON output support.

Wraps the standard library ``logging`` module so every event is a
snake_case name followed by structured fields, rendered either as
human-readable ``key=value`` pairs (default) or as one JSON object per line
for log aggregators.

[StructuredFormatter][hostprobe.core.logger.StructuredFormatter] is a stdlib
``logging.Formatter`` that reads the ``structured_kv`` extra attached by
[Logger][hostprobe.core.logger.Logger]. Installed on the root handler by the
CLI, it also renders the plain ``logging.getLogger("hostprobe.<area>")``
records emitted by the rhp and utils layers, so the two sources interleave
with a single layout.

Examples:
    ```python
    from hostprobe.core.logger import Logger

    logger = Logger("manager")
    logger.info("host_tested", public_key="ed25519:ab..", probes=2)
    # Output: info manager host_tested public_key=ed25519:ab.. probes=2

    probe_logger = logger.bind(variant="quic")
    probe_logger.debug("probe_finished", connected=False)
    # Output: debug manager probe_finished variant=quic connected=False
    ```
"""

from __future__ import annotations

import datetime
import json
import logging
from typing import Any, ClassVar


def _truncate(value: Any, max_length: int | None) -> str:
    text = str(value)
    if max_length and len(text) > max_length:
        return text[:max_length] + f"...<truncated {len(text) - max_length} chars>"
    return text


def format_kv_pairs(
    kwargs: dict[str, Any],
    max_value_length: int | None = 1000,
    prefix: str = " ",
) -> str:
    """Format a dictionary as space-separated key=value pairs.

    Values longer than ``max_value_length`` are truncated. Values that are
    empty or contain whitespace, ``=`` or quotes are escaped and wrapped in
    double quotes so the line stays machine-splittable.

    Args:
        kwargs: Key-value pairs to format.
        max_value_length: Maximum characters per value; ``None`` disables
            truncation.
        prefix: String prepended to a non-empty result.

    Returns:
        Formatted string such as ``' variant=quic error="timeout connecting"'``,
        or an empty string if *kwargs* is empty.
    """
    parts = []
    for key, value in kwargs.items():
        text = _truncate(value, max_value_length)
        if not text or any(c in text for c in " =\"'"):
            escaped = text.replace("\\", "\\\\").replace('"', '\\"')
            parts.append(f'{key}="{escaped}"')
        else:
            parts.append(f"{key}={text}")
    return prefix + " ".join(parts) if parts else ""


class StructuredFormatter(logging.Formatter):
    """Render any log record as ``level name message key=value...``.

    Records without a ``structured_kv`` extra (plain ``logging`` calls) are
    emitted with the same prefix and no trailing fields.
    """

    def format(self, record: logging.LogRecord) -> str:
        line = f"{record.levelname.lower()} {record.name} {record.getMessage()}"
        fields: dict[str, Any] = getattr(record, "structured_kv", {})
        if fields:
            line += format_kv_pairs(fields)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class Logger:
    """Structured logger that appends keyword arguments as extra fields.

    All public methods mirror the standard logging API with an added
    ``**kwargs`` parameter. Fields bound with
    [bind()][hostprobe.core.logger.Logger.bind] are prepended to every event.

    Examples:
        ```python
        logger = Logger("api")
        logger.info("request_served", path="/troubleshoot", status=200)
        # Output: info api request_served path=/troubleshoot status=200
        ```
    """

    _DEFAULT_MAX_VALUE_LENGTH: ClassVar[int] = 1000

    def __init__(
        self,
        name: str,
        *,
        json_output: bool = False,
        max_value_length: int | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize a structured logger.

        Args:
            name: Logger name, typically the component name. Maps to
                ``logging.getLogger(name)``.
            json_output: Emit JSON objects instead of key=value pairs.
            max_value_length: Maximum characters per value before
                truncation. Defaults to 1000.
            context: Fields attached to every event from this logger.
        """
        if max_value_length is None:
            max_value_length = self._DEFAULT_MAX_VALUE_LENGTH
        self._logger = logging.getLogger(name)
        self._json_output = json_output
        self._max_value_length = max_value_length
        self._context: dict[str, Any] = dict(context or {})

    @property
    def name(self) -> str:
        return self._logger.name

    def bind(self, **context: Any) -> Logger:
        """Return a logger sharing this one's output settings plus *context* fields."""
        return Logger(
            self._logger.name,
            json_output=self._json_output,
            max_value_length=self._max_value_length,
            context={**self._context, **context},
        )

    def _log(self, level: int, msg: str, kwargs: dict[str, Any], *, exc_info: bool = False) -> None:
        if not self._logger.isEnabledFor(level):
            return
        fields = {**self._context, **kwargs}
        if self._json_output:
            payload = {
                "timestamp": datetime.datetime.now(datetime.UTC).isoformat(),
                "level": logging.getLevelName(level).lower(),
                "service": self._logger.name,
                "message": msg,
                **fields,
            }
            self._logger.log(level, json.dumps(payload, default=str), exc_info=exc_info)
            return
        extra = (
            {"structured_kv": {k: _truncate(v, self._max_value_length) for k, v in fields.items()}}
            if fields
            else {}
        )
        self._logger.log(level, msg, extra=extra, exc_info=exc_info)

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
