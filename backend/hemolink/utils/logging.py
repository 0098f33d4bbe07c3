from __future__ import annotations

import sys
from contextlib import contextmanager
from typing import Iterator

from loguru import logger
from pymongo.errors import PyMongoError

from ..errors import StorageError


def configure_logging(level: str = "INFO") -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), backtrace=False, diagnose=False)


def log_db_error(context: str, exc: Exception) -> None:
    logger.error("Database error in {}: {}", context, exc)


@contextmanager
def storage_errors(context: str) -> Iterator[None]:
    try:
        yield
    except PyMongoError as exc:
        log_db_error(context, exc)
        raise StorageError(f"Storage unavailable during {context}. Try again shortly.") from exc
