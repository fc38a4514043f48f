"""Root logger setup for shelfsync: console or JSON lines, tagged per request."""

import contextvars
import logging
import sys
import traceback
import uuid
from pathlib import Path
from typing import Any

from pythonjsonlogger.json import JsonFormatter

correlation_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "correlation_id", default=""
)

# Libraries whose INFO output drowns the sync log
_NOISY_LOGGERS = ("httpx", "httpcore", "asyncio", "aiosqlite", "uvicorn.access")


def get_correlation_id() -> str:
    return correlation_id_var.get()


def set_correlation_id(correlation_id: str | None = None) -> str:
    """Bind a request id to the current context, minting a UUID when none is given."""
    if not correlation_id:
        correlation_id = str(uuid.uuid4())
    correlation_id_var.set(correlation_id)
    return correlation_id


class CorrelationIdFilter(logging.Filter):
    """Copy the context's request id onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id()
        return True


class CompactExceptionFormatter(logging.Formatter):
    """Console formatter that prints an exception chain root cause first.

    Only frames inside the shelfsync package are listed, e.g.:

        ╰─► ConnectError: All connection attempts failed
        ╰─► RemoteServiceError: Spotify request failed: ...
            File "spotify_client.py", line 117, in _api_request
              raise RemoteServiceError(
    """

    package_marker = "shelfsync"

    def _own_frames(self, exc: BaseException) -> list[str]:
        lines: list[str] = []
        for frame in traceback.extract_tb(exc.__traceback__):
            if self.package_marker not in frame.filename:
                continue
            name = Path(frame.filename).name
            lines.append(f'    File "{name}", line {frame.lineno}, in {frame.name}')
            if frame.line:
                lines.append(f"      {frame.line.strip()}")
        return lines

    def formatException(self, ei: Any) -> str:
        exc_value = ei[1]
        chain: list[BaseException] = []
        while exc_value is not None and exc_value not in chain:
            chain.append(exc_value)
            exc_value = exc_value.__cause__ or exc_value.__context__

        lines: list[str] = []
        for exc in reversed(chain):
            lines.append(f"╰─► {type(exc).__name__}: {exc}")
            lines.extend(self._own_frames(exc))
        return "\n".join(lines)


class CustomJsonFormatter(JsonFormatter):
    """One JSON object per line, keyed the way the log shipper indexes them."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = self.formatTime(record, self.datefmt)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["line"] = record.lineno
        correlation_id = getattr(record, "correlation_id", "")
        if correlation_id:
            log_record["correlation_id"] = correlation_id


def configure_logging(log_level: str = "INFO", json_format: bool = False) -> None:
    """Install a single stdout handler on the root logger.

    Safe to call repeatedly: earlier root handlers are removed first.
    Unknown level names fall back to INFO.
    """
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    level = getattr(logging, log_level.upper(), logging.INFO)
    root_logger.setLevel(level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(CorrelationIdFilter())
    if json_format:
        handler.setFormatter(
            CustomJsonFormatter(
                "%(timestamp)s %(level)s %(name)s %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
    else:
        handler.setFormatter(
            CompactExceptionFormatter(
                fmt="%(asctime)s │ %(levelname)-7s │ %(name)s:%(lineno)d │ %(message)s",
                datefmt="%H:%M:%S",
            )
        )
    root_logger.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(
        "Logging configured (level=%s, json=%s)", log_level, json_format
    )
