from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time, timedelta
import re

from app.services.text_matching import normalize_for_matching

_MAX_DURATION_MINUTES = 24 * 60

# Ordered by priority: the first matching phrase decides the day offset.
_RELATIVE_DAY_PATTERNS: tuple[tuple[re.Pattern[str], int], ...] = (
    (re.compile(r"\b(?:hari ini|today)\b"), 0),
    (re.compile(r"\b(?:besok(?! lusa)|(?<!after )tomorrow)\b"), 1),
    (re.compile(r"\b(?:lusa|besok lusa|the day after tomorrow)\b"), 2),
    (re.compile(r"\b(?:minggu depan|pekan depan|next week)\b"), 7),
    (re.compile(r"\b(?:bulan depan|next month)\b"), 30),
)
_CLOCK_TIME_PATTERN = re.compile(
    r"\b(?:jam|pukul|at)\s+([01]?\d|2[0-3])(?:[:.]([0-5]\d))?(?!\s*(?:jam|hours?|menit|minutes?)\b)\b",
)
_RELATIVE_HOURS_PATTERN = re.compile(r"\b(?:dalam|in)\s+(\d{1,2})\s+(?:jam|hours?)\b")
_DEADLINE_CUE_PATTERN = re.compile(r"\b(?:deadline|tenggat|batas waktu|due)\b")
_END_CLOCK_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(
        r"\b(?:sampai|hingga|until|till|s/d|sd)\s+(?:(?:jam|pukul)\s+)?([01]?\d|2[0-3])(?:[:.]([0-5]\d))?\b",
    ),
    re.compile(
        r"\b(?:jam|pukul|at)\s+(?:[01]?\d|2[0-3])(?:[:.][0-5]\d)?\s*-\s*([01]?\d|2[0-3])(?:[:.]([0-5]\d))?\b",
    ),
)
_DURATION_HOURS_PATTERN = re.compile(
    r"\b(?:selama|durasi|for)\s+(\d+)\s*(?:jam|hours?|hrs?|h)\b",
)
_DURATION_MINUTES_PATTERN = re.compile(
    r"\b(?:(?:selama|durasi|for)\s+|(?:jam|hours?|hrs?|h)\s+)(\d+)\s*(?:menit|minutes?|mins?)\b",
)


@dataclass(frozen=True)
class TemporalResolution:
    instant: datetime | None = None
    clock_time: time | None = None
    day_offset_days: int | None = None

    @property
    def has_clock_time(self) -> bool:
        return self.clock_time is not None


def resolve(text: str | None, reference: datetime) -> TemporalResolution:
    if not text:
        return TemporalResolution()
    normalized = normalize_for_matching(text)
    clock_time = extract_clock_time(normalized)
    day_offset = _extract_day_offset(normalized)

    if day_offset is not None:
        base = reference + timedelta(days=day_offset)
        if clock_time:
            base = at_clock_time(base, clock_time)
        return TemporalResolution(instant=base, clock_time=clock_time, day_offset_days=day_offset)

    relative_hours = _RELATIVE_HOURS_PATTERN.search(normalized)
    if relative_hours:
        return TemporalResolution(
            instant=reference + timedelta(hours=int(relative_hours.group(1))),
            clock_time=clock_time,
        )

    if clock_time and _DEADLINE_CUE_PATTERN.search(normalized):
        return TemporalResolution(
            instant=at_clock_time(reference + timedelta(days=1), clock_time),
            clock_time=clock_time,
            day_offset_days=1,
        )

    return TemporalResolution(clock_time=clock_time)


def resolve_instant(text: str | None, reference: datetime) -> datetime | None:
    return resolve(text, reference).instant


def extract_clock_time(text: str) -> time | None:
    match = _CLOCK_TIME_PATTERN.search(normalize_for_matching(text))
    if not match:
        return None
    return _build_time(match.group(1), match.group(2))


def extract_end_clock_time(text: str) -> time | None:
    normalized = normalize_for_matching(text)
    for pattern in _END_CLOCK_PATTERNS:
        match = pattern.search(normalized)
        if match:
            return _build_time(match.group(1), match.group(2))
    return None


def extract_duration(text: str) -> timedelta | None:
    normalized = normalize_for_matching(text)
    hours_match = _DURATION_HOURS_PATTERN.search(normalized)
    minutes_match = _DURATION_MINUTES_PATTERN.search(normalized)
    if not hours_match and not minutes_match:
        return None
    hours = int(hours_match.group(1)) if hours_match else 0
    minutes = int(minutes_match.group(1)) if minutes_match else 0
    total_minutes = hours * 60 + minutes
    if not 0 < total_minutes <= _MAX_DURATION_MINUTES:
        return None
    return timedelta(minutes=total_minutes)


def _extract_day_offset(normalized: str) -> int | None:
    for pattern, offset in _RELATIVE_DAY_PATTERNS:
        if pattern.search(normalized):
            return offset
    return None


def at_clock_time(value: datetime, clock_time: time) -> datetime:
    return value.replace(
        hour=clock_time.hour,
        minute=clock_time.minute,
        second=0,
        microsecond=0,
    )


def _build_time(hour_token: str, minute_token: str | None) -> time | None:
    hour = int(hour_token)
    minute = int(minute_token) if minute_token else 0
    if not 0 <= hour <= 23 or not 0 <= minute <= 59:
        return None
    return time(hour=hour, minute=minute)
