"""structlog configuration for the service process."""

import logging
import sys
from pathlib import Path
from typing import Optional, TextIO

import structlog

# Log file stream owned by configure_logging; reused while the path is unchanged.
_file_output: Optional[TextIO] = None
_file_output_path: Optional[Path] = None


def _close_file_output() -> None:
    global _file_output, _file_output_path
    if _file_output is not None and not _file_output.closed:
        _file_output.close()
    _file_output = None
    _file_output_path = None


def _open_output(file_path: str) -> TextIO:
    global _file_output, _file_output_path
    if not file_path:
        _close_file_output()
        return sys.stdout

    path = Path(file_path).resolve()
    if _file_output is not None and not _file_output.closed and _file_output_path == path:
        return _file_output

    _close_file_output()
    path.parent.mkdir(parents=True, exist_ok=True)
    _file_output = path.open("a", encoding="utf-8")
    _file_output_path = path
    return _file_output


def configure_logging(level: str = "INFO", file_path: str = "") -> None:
    """Render structlog events as JSON lines to stdout or an append-only file.

    Calling again with the same file path (a level hot reload) keeps the
    open stream; a different path closes the previous file first.

    Args:
        level: Minimum level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        file_path: Log file path; empty string logs to stdout
    """
    output = _open_output(file_path)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
        logger_factory=structlog.PrintLoggerFactory(file=output),
        cache_logger_on_first_use=False,
    )
