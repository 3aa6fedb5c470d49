"""Structured logging configuration for render jobs."""

import sys
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<magenta>{extra[job_id]}</magenta> | <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {extra[job_id]} | {message} | {extra}"


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[Path] = None,
    rotation: str = "10 MB",
    retention: str = "7 days",
) -> None:
    """
    Configure structured logging with console and file output.

    Every record carries a ``job_id`` extra field ("-" outside of a job) so
    interleaved log lines from concurrent renders can be told apart.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional path to log file
        rotation: Log rotation size
        retention: Log retention period
    """
    logger.remove()
    logger.configure(extra={"job_id": "-"})

    logger.add(
        sys.stderr,
        format=CONSOLE_FORMAT,
        level=log_level,
        colorize=True,
    )

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            format=FILE_FORMAT,
            level=log_level,
            rotation=rotation,
            retention=retention,
            compression="zip",
        )


def get_logger(name: str, **context: Any) -> Any:
    """
    Get a logger instance with optional context.

    Args:
        name: Logger name (typically __name__)
        **context: Additional context fields (job_id, scene_index, stage, etc.)

    Returns:
        Logger instance with bound context
    """
    if context:
        return logger.bind(name=name, **context)
    return logger.bind(name=name)


@contextmanager
def log_stage(log: Any, stage: str, **details: Any) -> Iterator[None]:
    """
    Log the start, completion time and failure of one pipeline stage.

    Exceptions are logged and re-raised unchanged.

    Args:
        log: Logger to write to (usually job-bound)
        stage: Stage name ("fetch", "probe", "render", ...)
        **details: Extra fields appended to the start message
    """
    suffix = ""
    if details:
        suffix = " (" + ", ".join(f"{k}={v}" for k, v in details.items()) + ")"
    log.info(f"▶ {stage}{suffix}")
    start_time = time.monotonic()
    try:
        yield
    except BaseException as e:
        elapsed = time.monotonic() - start_time
        log.error(f"❌ {stage} failed after {elapsed:.2f}s: {e}")
        raise
    elapsed = time.monotonic() - start_time
    log.info(f"✅ {stage} completed in {elapsed:.2f}s")


# Initialize logging on import
setup_logging()
