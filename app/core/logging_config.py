"""
Logging setup shared by the API process, background job executors and the
operator console.

Import and export jobs run on worker threads next to request handling, so
every log line carries the job it belongs to (``-`` outside a job). The
executors bind it with ``job_log_context``.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from logging.config import dictConfig
from typing import Iterator, Optional

_current_job: ContextVar[str] = ContextVar("current_job", default="-")

_is_configured = False

_NOISY_LOGGERS = ("botocore", "boto3", "urllib3", "httpx", "anthropic")


class JobContextFilter(logging.Filter):
    """Stamp ``record.job`` with the job bound to the current context."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.job = _current_job.get()
        return True


@contextmanager
def job_log_context(kind: str, job_id: str) -> Iterator[None]:
    token = _current_job.set(f"{kind}:{job_id}")
    try:
        yield
    finally:
        _current_job.reset(token)


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure the root logger once per process.

    Args:
        level: Optional log level override (e.g., "DEBUG", "INFO").
    """
    global _is_configured

    if _is_configured:
        return

    log_level = (level or "INFO").upper()

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {
                "job_context": {"()": JobContextFilter},
            },
            "formatters": {
                "exchange": {
                    "format": "%(asctime)s %(levelname)-7s [%(job)s] %(name)s: %(message)s",
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                }
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "exchange",
                    "filters": ["job_context"],
                    "level": log_level,
                }
            },
            "root": {
                "handlers": ["console"],
                "level": log_level,
            },
        }
    )

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _is_configured = True
