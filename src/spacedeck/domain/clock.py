"""
Clock and calendar-day helpers.

All timestamps are epoch milliseconds. Day arithmetic anchors to local
midnight so two answers on the same calendar day land on the same due day.
"""

import math
import time
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from .constants import MS_PER_DAY, MS_PER_HOUR, MS_PER_MINUTE, MS_PER_SECOND


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * MS_PER_SECOND)


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values, like a calculator does."""
    return int(Decimal(repr(value)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def local_date(ts_ms: int) -> date:
    return datetime.fromtimestamp(ts_ms / MS_PER_SECOND).date()


def start_of_day(ts_ms: int, days: int = 0) -> int:
    """Epoch ms of local midnight `days` calendar days after the day of `ts_ms`."""
    target = local_date(ts_ms) + timedelta(days=days)
    return int(datetime.combine(target, datetime.min.time()).timestamp() * MS_PER_SECOND)


def start_of_next_day(ts_ms: int) -> int:
    return start_of_day(ts_ms, 1)


def days_ahead(ts_ms: int, days: float) -> int:
    """
    Due instant `days` ahead of `ts_ms`, at local midnight.

    At least one day of delay is always applied.
    """
    return start_of_day(ts_ms, max(1, round_half_up(days)))


def format_due(due_at: int | None, now: int) -> str:
    """Short relative label for a due instant ("now", "10m", "4d", "2mo", "1y")."""
    if not due_at:
        return "now"

    diff = due_at - now
    if diff <= 0:
        return "now"
    if diff < MS_PER_MINUTE:
        return f"{math.floor(diff / MS_PER_SECOND)}s"
    if diff < MS_PER_HOUR:
        return f"{math.floor(diff / MS_PER_MINUTE)}m"
    if diff < MS_PER_DAY:
        return f"{math.floor(diff / MS_PER_HOUR)}h"

    days = math.floor(diff / MS_PER_DAY)
    if days < 30:
        return f"{days}d"
    months = days // 30
    return f"{months // 12}y" if months >= 12 else f"{months}mo"
