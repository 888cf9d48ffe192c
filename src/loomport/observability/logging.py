"""structlog setup for loomport.

Events go to stderr through rich at the level picked by ``-v``. With ``--log``
every event, debug included, is also appended to a JSONL file.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path  # noqa: TC003 - Used at runtime for path operations
from typing import TYPE_CHECKING, Any

import structlog
from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from structlog.typing import Processor

_configured = False
_file_handler: logging.FileHandler | None = None


def _record_fields(record: logging.LogRecord) -> dict[str, Any]:
    """Flatten a log record into one JSON object.

    structlog hands its event dict over as ``record.msg``; its ``event`` key
    becomes ``message`` and the remaining keys are kept as top-level fields.
    Plain stdlib records only contribute their formatted message.
    """
    fields: dict[str, Any] = {
        "timestamp": datetime.now(UTC).isoformat(),
        "level": record.levelname,
        "logger": record.name,
    }
    if not isinstance(record.msg, dict):
        fields["message"] = record.getMessage()
        return fields

    context = {k: v for k, v in record.msg.items() if k not in ("level", "timestamp")}
    fields["message"] = context.pop("event", "")
    fields.update(context)
    return fields


class JSONLFileHandler(logging.FileHandler):
    """Appends each record to the log file as a single JSON line."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            line = json.dumps(_record_fields(record), default=str)
            if self.stream is None:
                self.stream = self._open()
            self.stream.write(line + "\n")
            self.flush()
        except Exception:
            self.handleError(record)


def configure_logging(verbosity: int = 0, log_file: Path | None = None) -> None:
    """Configure logging for loomport.

    Args:
        verbosity: 0=WARNING (default), 1=INFO, 2+=DEBUG
        log_file: If given, every event is also appended to this file as JSONL.
    """
    global _configured, _file_handler

    if _file_handler is not None:
        _file_handler.close()
        _file_handler = None

    levels = {0: logging.WARNING, 1: logging.INFO}
    console_level = levels.get(verbosity, logging.DEBUG)

    console_handler = RichHandler(
        console=Console(stderr=True),
        rich_tracebacks=True,
        tracebacks_show_locals=verbosity >= 2,
        show_time=verbosity >= 1,
        show_path=verbosity >= 2,
        markup=False,
        level=console_level,
    )

    handlers: list[logging.Handler] = [console_handler]

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        _file_handler = JSONLFileHandler(str(log_file), mode="a")
        _file_handler.setLevel(logging.DEBUG)
        handlers.append(_file_handler)

    root_level = logging.DEBUG if (verbosity > 0 or log_file is not None) else logging.WARNING
    logging.basicConfig(
        level=root_level,
        format="%(message)s",
        handlers=handlers,
        force=True,
    )

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(root_level),
        cache_logger_on_first_use=False,
    )

    _configured = True


def get_logger(name: str | None = None) -> structlog.typing.FilteringBoundLogger:
    """Get a structured logger instance.

    Automatically configures logging if not already done.

    Args:
        name: Logger name (typically __name__).

    Returns:
        Bound logger instance.
    """
    if not _configured:
        configure_logging()

    logger: structlog.typing.FilteringBoundLogger = structlog.get_logger(name)
    return logger


def close_file_logging() -> None:
    """Close file logging handler."""
    global _file_handler
    if _file_handler:
        _file_handler.close()
        _file_handler = None
