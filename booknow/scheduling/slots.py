"""
Slot calculation

Pure functions that turn availability rules, existing bookings and external
busy time into bookable start times. Nothing here touches the database, so
the same code serves the public availability endpoint, the booking
pre-check and the locked re-check at insert time.

Times are handled as minutes since midnight. Every interval is half-open,
[start, end), so a slot that ends exactly when a booking starts is free.

Rule resolution for a date:
    1. Keep rules scoped to the requested consultation type or global (NULL)
    2. specific_date rules for the date replace the weekly rules for its weekday
    3. Order by priority, highest first
    4. Drop rules that lie entirely inside a block for the date
"""

from datetime import date, datetime, time, timedelta
from typing import Any, Iterable, Optional, Union

import pytz

MINUTES_PER_DAY = 24 * 60

Interval = tuple[int, int]


def day_of_week(target_date: date) -> int:
    """0 = Sunday ... 6 = Saturday"""
    return (target_date.weekday() + 1) % 7


def time_to_minutes(value: Union[time, str, None]) -> int:
    if value is None:
        return 0
    if isinstance(value, time):
        return value.hour * 60 + value.minute

    parts = str(value).split(":")
    if len(parts) < 2:
        return 0
    return int(parts[0]) * 60 + int(parts[1])


def minutes_to_time(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}:00"


def intervals_overlap(start: int, end: int, other_start: int, other_end: int) -> bool:
    return start < other_end and end > other_start


def _applies_to_type(rule: Any, consultation_type_id: Optional[int]) -> bool:
    return rule.consultation_type_id is None or rule.consultation_type_id == consultation_type_id


def _rule_interval(rule: Any) -> Interval:
    start = time_to_minutes(rule.start_time) if rule.start_time is not None else 0
    end = time_to_minutes(rule.end_time) if rule.end_time is not None else MINUTES_PER_DAY
    return start, end


def get_blocks(rules: Iterable[Any], target_date: date, consultation_type_id: Optional[int]) -> list[Interval]:
    """
    Block intervals for a date. A block pinned to a specific_date applies to
    that date; a block without a date repeats on its day_of_week. A block with
    no times covers the whole day.
    """
    weekday = day_of_week(target_date)
    blocks = []

    for rule in rules:
        if rule.rule_type != "block" or not _applies_to_type(rule, consultation_type_id):
            continue
        if rule.specific_date is not None:
            if rule.specific_date != target_date:
                continue
        elif rule.day_of_week != weekday:
            continue
        blocks.append(_rule_interval(rule))

    return blocks


def resolve_rules(rules: Iterable[Any], target_date: date, consultation_type_id: Optional[int]) -> list[Any]:
    rules = [r for r in rules if _applies_to_type(r, consultation_type_id)]

    specific = [
        r for r in rules if r.rule_type == "specific_date" and r.specific_date == target_date
    ]
    if specific:
        candidates = specific
    else:
        weekday = day_of_week(target_date)
        candidates = [r for r in rules if r.rule_type == "weekly" and r.day_of_week == weekday]

    # sorted() is stable, equal priorities keep their storage order
    candidates = sorted(candidates, key=lambda r: r.priority or 0, reverse=True)

    blocks = get_blocks(rules, target_date, consultation_type_id)
    if not blocks:
        return candidates

    resolved = []
    for rule in candidates:
        start, end = _rule_interval(rule)
        if any(start >= b_start and end <= b_end for b_start, b_end in blocks):
            continue
        resolved.append(rule)
    return resolved


def generate_candidates(rules: Iterable[Any], duration: int, interval: int) -> list[int]:
    """Start minutes stepping by interval while the whole service fits inside the rule"""
    if duration <= 0:
        return []
    interval = max(1, interval)

    starts = set()
    for rule in rules:
        if not rule.is_available:
            continue
        start, end = _rule_interval(rule)
        minute = start
        while minute + duration <= end:
            starts.add(minute)
            minute += interval

    return sorted(starts)


def is_slot_free(
    start: int,
    duration: int,
    busy: Iterable[Interval],
    buffer_before: int = 0,
    buffer_after: int = 0,
) -> bool:
    """Half-open overlap test of the buffer-padded slot against every busy interval"""
    padded_start = start - (buffer_before or 0)
    padded_end = start + duration + (buffer_after or 0)
    return not any(intervals_overlap(padded_start, padded_end, b_start, b_end) for b_start, b_end in busy)


def booking_interval(booking: Any) -> Interval:
    """Occupied interval of a stored booking, padded by its own type's buffers"""
    start = time_to_minutes(booking.booking_time)
    buffer_before = buffer_after = 0
    consultation_type = getattr(booking, "consultation_type", None)
    if consultation_type is not None:
        buffer_before = consultation_type.buffer_before or 0
        buffer_after = consultation_type.buffer_after or 0
    return start - buffer_before, start + booking.duration + buffer_after


def busy_time_intervals(busy_times: Iterable[dict], target_date: date, tz_name: str) -> list[Interval]:
    """
    Clip external busy ranges ({"start": datetime, "end": datetime}) to the
    given local date and convert them to minute intervals.
    """
    tz = pytz.timezone(tz_name)
    day_start = tz.localize(datetime.combine(target_date, time.min))
    day_end = day_start + timedelta(days=1)

    intervals = []
    for busy in busy_times:
        start, end = busy["start"], busy["end"]
        if start.tzinfo is None:
            start = pytz.utc.localize(start)
        if end.tzinfo is None:
            end = pytz.utc.localize(end)
        start = start.astimezone(tz)
        end = end.astimezone(tz)

        if end <= day_start or start >= day_end:
            continue
        start_minutes = 0 if start <= day_start else start.hour * 60 + start.minute
        end_minutes = MINUTES_PER_DAY if end >= day_end else end.hour * 60 + end.minute + (1 if end.second else 0)
        intervals.append((start_minutes, end_minutes))

    return intervals


def is_date_bookable(
    target_date: date,
    now: datetime,
    min_notice_hours: int,
    max_advance_days: int,
) -> bool:
    """
    A date is bookable when some part of it falls after the minimum notice and
    it is no further out than the maximum advance window. `now` must be an
    aware datetime in the business timezone.
    """
    earliest = now + timedelta(hours=min_notice_hours)
    latest = now.date() + timedelta(days=max_advance_days)
    return earliest.date() <= target_date <= latest


def calculate_slots(
    rules: Iterable[Any],
    target_date: date,
    consultation_type_id: Optional[int],
    duration: int,
    busy: Iterable[Interval] = (),
    interval: int = 30,
    buffer_before: int = 0,
    buffer_after: int = 0,
    earliest_start: Optional[int] = None,
) -> list[dict]:
    """
    Bookable slots for a date.

    Args:
        rules: every availability rule that could apply (weekly, specific_date, block)
        busy: occupied minute intervals (bookings, external busy time)
        earliest_start: minutes since midnight before which no slot may start
            (minimum notice on the first bookable day)

    Returns:
        [{"time": "HH:MM:SS", "end_time": "HH:MM:SS", "available": True}, ...]
    """
    rules = list(rules)
    resolved = resolve_rules(rules, target_date, consultation_type_id)

    exclusions = list(busy)
    exclusions.extend(get_blocks(rules, target_date, consultation_type_id))
    # An unavailable rule that survived resolution closes its window
    exclusions.extend(_rule_interval(r) for r in resolved if not r.is_available)

    slots = []
    for start in generate_candidates(resolved, duration, interval):
        if earliest_start is not None and start < earliest_start:
            continue
        if not is_slot_free(start, duration, exclusions, buffer_before, buffer_after):
            continue
        slots.append(
            {
                "time": minutes_to_time(start),
                "end_time": minutes_to_time(start + duration),
                "available": True,
            }
        )
    return slots
