from datetime import datetime, timedelta
from typing import Optional

import pytz

from lotto.core.config import settings

TZ = pytz.timezone(settings.TZ)


def now_local() -> datetime:
    return datetime.now(TZ)


def to_naive(dt: datetime) -> datetime:
    if dt.tzinfo:
        return dt.astimezone(TZ).replace(tzinfo=None)
    return dt


def next_draw_time(now: Optional[datetime] = None) -> datetime:
    """
    Next draw slot strictly after ``now``: one of settings.DRAW_WEEKDAYS at
    settings.DRAW_HOUR:00 local time. Naive input is read as local time.
    """
    now = now or now_local()
    if now.tzinfo is None:
        now = TZ.localize(now)
    else:
        now = now.astimezone(TZ)

    for offset in range(8):
        day = (now + timedelta(days=offset)).date()
        if day.weekday() not in settings.DRAW_WEEKDAYS:
            continue
        slot = TZ.localize(datetime(day.year, day.month, day.day, settings.DRAW_HOUR))
        if slot > now:
            return slot
    raise ValueError("DRAW_WEEKDAYS is empty")
