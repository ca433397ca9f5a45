"""
Shared helpers: logging setup and timezone-safe clock access.
"""
import logging
from datetime import datetime, timezone
from typing import Annotated
from pydantic import AfterValidator

from memberhub.core import config


_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_configured = False


def get_logger(name: str) -> logging.Logger:
    """Return a module logger, configuring the root handler on first use."""
    global _configured
    if not _configured:
        logging.basicConfig(level=config.LOG_LEVEL, format=_LOG_FORMAT)
        _configured = True
    return logging.getLogger(name)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """
    Normalize a datetime to an aware UTC value.

    SQLite hands back naive datetimes even for timezone-aware columns;
    those are stored in UTC so they are tagged rather than converted.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# Response timestamps always carry a UTC offset, whatever the backend returned
UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]
