from datetime import date, datetime, time, timedelta
from types import SimpleNamespace

import pytz

from booknow.scheduling import slots as engine

# 2030-01-07 is a Monday
MONDAY = date(2030, 1, 7)


def rule(rule_type="weekly", day=1, start="09:00", end="12:00", available=True, specific_date=None, type_id=None, priority=0):
    return SimpleNamespace(
        rule_type=rule_type,
        day_of_week=day,
        specific_date=specific_date,
        start_time=time.fromisoformat(start) if start else None,
        end_time=time.fromisoformat(end) if end else None,
        is_available=available,
        consultation_type_id=type_id,
        priority=priority,
    )


def times(slots):
    return [slot["time"] for slot in slots]


def test_day_of_week_sunday_is_zero():
    assert engine.day_of_week(date(2030, 1, 6)) == 0
    assert engine.day_of_week(MONDAY) == 1
    assert engine.day_of_week(date(2030, 1, 12)) == 6


def test_time_minutes_conversion():
    assert engine.time_to_minutes("09:30") == 570
    assert engine.time_to_minutes(time(14, 15)) == 855
    assert engine.time_to_minutes(None) == 0
    assert engine.minutes_to_time(570) == "09:30:00"


def test_existing_booking_removes_its_slot():
    slots = engine.calculate_slots([rule()], MONDAY, 1, duration=30, busy=[(600, 630)], interval=30)
    assert times(slots) == ["09:00:00", "09:30:00", "10:30:00", "11:00:00", "11:30:00"]


def test_slot_ending_at_booking_start_is_free():
    slots = engine.calculate_slots([rule()], MONDAY, 1, duration=60, busy=[(600, 660)], interval=60)
    assert "09:00:00" in times(slots)
    assert "10:00:00" not in times(slots)


def test_slot_must_fit_before_rule_end():
    slots = engine.calculate_slots([rule(end="10:45")], MONDAY, 1, duration=30, interval=30)
    assert times(slots) == ["09:00:00", "09:30:00", "10:00:00"]


def test_end_time_is_start_plus_duration():
    slots = engine.calculate_slots([rule()], MONDAY, 1, duration=45, interval=60)
    assert slots[0] == {"time": "09:00:00", "end_time": "09:45:00", "available": True}


def test_buffers_pad_the_candidate():
    # booking 10:00-10:30; a 15 minute buffer after rules out 09:30
    slots = engine.calculate_slots(
        [rule()], MONDAY, 1, duration=30, busy=[(600, 630)], interval=30, buffer_after=15
    )
    assert "09:30:00" not in times(slots)
    assert "09:00:00" in times(slots)


def test_specific_date_replaces_weekly_rules():
    rules = [
        rule(),
        rule(rule_type="specific_date", day=None, start="14:00", end="15:00", specific_date=MONDAY),
    ]
    slots = engine.calculate_slots(rules, MONDAY, 1, duration=30, interval=30)
    assert times(slots) == ["14:00:00", "14:30:00"]


def test_specific_date_only_applies_to_its_date():
    rules = [
        rule(),
        rule(rule_type="specific_date", day=None, start="14:00", end="15:00", specific_date=MONDAY + timedelta(days=7)),
    ]
    slots = engine.calculate_slots(rules, MONDAY, 1, duration=30, interval=30)
    assert times(slots)[0] == "09:00:00"


def test_block_removes_overlapping_time():
    rules = [
        rule(),
        rule(rule_type="block", day=None, start="10:00", end="11:00", specific_date=MONDAY),
    ]
    slots = engine.calculate_slots(rules, MONDAY, 1, duration=30, interval=30)
    assert times(slots) == ["09:00:00", "09:30:00", "11:00:00", "11:30:00"]


def test_full_day_block_closes_the_day():
    rules = [rule(), rule(rule_type="block", day=None, start=None, end=None, specific_date=MONDAY)]
    assert engine.calculate_slots(rules, MONDAY, 1, duration=30, interval=30) == []


def test_weekly_block_repeats_on_its_weekday():
    rules = [rule(), rule(rule_type="block", day=1, start="09:00", end="10:00")]
    slots = engine.calculate_slots(rules, MONDAY, 1, duration=30, interval=30)
    assert times(slots)[0] == "10:00:00"


def test_rules_for_other_types_are_ignored():
    rules = [rule(type_id=2)]
    assert engine.calculate_slots(rules, MONDAY, 1, duration=30, interval=30) == []
    assert engine.calculate_slots(rules, MONDAY, 2, duration=30, interval=30) != []


def test_unavailable_rule_closes_its_window():
    rules = [rule(), rule(start="11:00", end="12:00", available=False)]
    slots = engine.calculate_slots(rules, MONDAY, 1, duration=30, interval=30)
    assert times(slots) == ["09:00:00", "09:30:00", "10:00:00", "10:30:00"]


def test_priority_orders_candidates_stably():
    low = rule(start="09:00", end="10:00", priority=1)
    high = rule(start="13:00", end="14:00", priority=5)
    same = rule(start="15:00", end="16:00", priority=1)
    resolved = engine.resolve_rules([low, high, same], MONDAY, 1)
    assert resolved == [high, low, same]


def test_earliest_start_drops_early_slots():
    slots = engine.calculate_slots([rule()], MONDAY, 1, duration=30, interval=30, earliest_start=601)
    assert times(slots) == ["10:30:00", "11:00:00", "11:30:00"]


def test_calculation_is_idempotent():
    rules = [rule(), rule(rule_type="block", day=None, start="10:00", end="10:30", specific_date=MONDAY)]
    first = engine.calculate_slots(rules, MONDAY, 1, duration=30, interval=15, busy=[(660, 690)])
    second = engine.calculate_slots(rules, MONDAY, 1, duration=30, interval=15, busy=[(660, 690)])
    assert first == second


def test_generated_slots_stay_inside_rules_and_outside_blocks():
    rules = [
        rule(start="08:00", end="12:00"),
        rule(start="13:00", end="17:30"),
        rule(rule_type="block", day=None, start="09:10", end="09:50", specific_date=MONDAY),
    ]
    for slot in engine.calculate_slots(rules, MONDAY, 1, duration=40, interval=10):
        start = engine.time_to_minutes(slot["time"])
        end = start + 40
        assert (480 <= start and end <= 720) or (780 <= start and end <= 1050)
        assert not engine.intervals_overlap(start, end, 550, 590)


def test_zero_duration_yields_nothing():
    assert engine.generate_candidates([rule()], 0, 30) == []


def test_booking_interval_includes_type_buffers():
    booking = SimpleNamespace(
        booking_time=time(10, 0),
        duration=30,
        consultation_type=SimpleNamespace(buffer_before=10, buffer_after=5),
    )
    assert engine.booking_interval(booking) == (590, 635)


def test_busy_time_intervals_clip_to_the_local_day():
    utc = pytz.utc
    busy = [
        {"start": utc.localize(datetime(2030, 1, 6, 23, 0)), "end": utc.localize(datetime(2030, 1, 7, 1, 0))},
        {"start": utc.localize(datetime(2030, 1, 7, 15, 0)), "end": utc.localize(datetime(2030, 1, 7, 15, 30))},
        {"start": utc.localize(datetime(2030, 1, 8, 9, 0)), "end": utc.localize(datetime(2030, 1, 8, 10, 0))},
    ]
    assert engine.busy_time_intervals(busy, MONDAY, "UTC") == [(0, 60), (900, 930)]


def test_busy_time_intervals_convert_timezones():
    busy = [{"start": datetime(2030, 1, 7, 15, 0), "end": datetime(2030, 1, 7, 16, 0)}]
    # naive values are UTC; New York is UTC-5 in January
    assert engine.busy_time_intervals(busy, MONDAY, "America/New_York") == [(600, 660)]


def test_date_bookable_window():
    now = pytz.utc.localize(datetime(2030, 1, 7, 12, 0))
    assert not engine.is_date_bookable(date(2030, 1, 7), now, 24, 90)
    assert engine.is_date_bookable(date(2030, 1, 8), now, 24, 90)
    assert engine.is_date_bookable(date(2030, 4, 7), now, 24, 90)
    assert not engine.is_date_bookable(date(2030, 4, 8), now, 24, 90)


def test_is_slot_free_half_open():
    assert engine.is_slot_free(540, 60, [(600, 660)])
    assert not engine.is_slot_free(570, 60, [(600, 660)])
    assert engine.is_slot_free(660, 30, [(600, 660)])
