from sqlalchemy import Column, DateTime
from datetime import datetime
import pytz

from ledgerlink.config import APP_TIMEZONE


def local_now():
    return datetime.now(pytz.timezone(APP_TIMEZONE))


class TimestampMixin:
    """Mixin that provides created/updated timestamps.

    Timestamps are timezone-aware, in the configured local zone (APP_TIMEZONE).
    """
    created_at = Column(DateTime(timezone=True), default=local_now)
    updated_at = Column(DateTime(timezone=True), default=local_now, onupdate=local_now)
