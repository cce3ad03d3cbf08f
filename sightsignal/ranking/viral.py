"""Viral-boost detection from daily activity snapshots."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from sightsignal.models import ActivitySnapshot, ViralDetectionData

VIRAL_RATIO = 3.0
COLD_START_MINIMUM = 10
BASELINE_DAYS = 7


def _as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def detect_viral_boost(
    data: ViralDetectionData,
    *,
    ratio: float = VIRAL_RATIO,
    cold_start_minimum: float = COLD_START_MINIMUM,
) -> bool:
    """24h activity strictly above ratio × the 7-day average.

    Signals with no baseline are viral once they pass a small absolute
    minimum.
    """
    if data.previous_7_day_average == 0:
        return data.last_24h_activity > cold_start_minimum
    return data.last_24h_activity > data.previous_7_day_average * ratio


def calculate_viral_activity(
    snapshots: Iterable[ActivitySnapshot],
    now: Optional[datetime] = None,
    window_days: int = BASELINE_DAYS + 1,
) -> ViralDetectionData:
    """Aggregate snapshots into last-24h activity and a daily baseline.

    The baseline window is (now - window_days, now - 24h] and is always
    divided by its full length of window_days - 1 days, so sparse history
    understates the average. The default window gives a 7-day baseline.
    """
    if window_days < 2:
        raise ValueError(f"window_days must be >= 2, got {window_days}")

    now = _as_utc(now or datetime.now(timezone.utc))
    yesterday = now - timedelta(hours=24)
    window_start = now - timedelta(days=window_days)
    baseline_days = window_days - 1

    last_24h = 0.0
    previous = 0.0
    for snapshot in snapshots:
        when = _as_utc(snapshot.date)
        if when > yesterday:
            last_24h += snapshot.activity
        elif when > window_start:
            previous += snapshot.activity

    return ViralDetectionData(
        last_24h_activity=last_24h,
        previous_7_day_average=previous / baseline_days,
    )
