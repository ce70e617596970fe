import asyncio
from datetime import date, datetime, time, timedelta
from unittest.mock import AsyncMock, patch

import pytz

from booknow.domain.availability.service import AvailabilityService, earliest_start_minutes
from booknow.models import AvailabilityRule
from booknow.services.calendar_common import CalendarAPIError

ADMIN = "/book-now/v1/admin"


def slot_times(response):
    return [slot["time"] for slot in response.json()["slots"]]


class TestPublicAvailability:
    def test_slots_skip_existing_booking(self, client, consultation_type, weekly_rules, make_booking, future_date):
        make_booking(future_date, time(10, 0))

        response = client.get(
            "/book-now/v1/availability",
            params={"consultation_type_id": consultation_type.id, "date": future_date.isoformat()},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["date"] == future_date.isoformat()
        assert body["consultation_type_id"] == consultation_type.id
        assert slot_times(response) == ["09:00:00", "09:30:00", "10:30:00", "11:00:00", "11:30:00"]
        assert body["slots"][0]["end_time"] == "09:30:00"

    def test_cancelled_bookings_do_not_block(self, client, consultation_type, weekly_rules, make_booking, future_date):
        make_booking(future_date, time(10, 0), status="cancelled")

        response = client.get(
            "/book-now/v1/availability",
            params={"consultation_type_id": consultation_type.id, "date": future_date.isoformat()},
        )
        assert "10:00:00" in slot_times(response)

    def test_invalid_date_format(self, client, consultation_type):
        response = client.get(
            "/book-now/v1/availability", params={"consultation_type_id": consultation_type.id, "date": "07/01/2030"}
        )
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "invalid_date"

    def test_unknown_type(self, client, future_date):
        response = client.get(
            "/book-now/v1/availability", params={"consultation_type_id": 999, "date": future_date.isoformat()}
        )
        assert response.status_code == 404

    def test_missing_parameters(self, client):
        response = client.get("/book-now/v1/availability")
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "invalid_params"

    def test_past_date_has_no_slots(self, client, consultation_type, weekly_rules):
        past = date.today() - timedelta(days=3)
        response = client.get(
            "/book-now/v1/availability",
            params={"consultation_type_id": consultation_type.id, "date": past.isoformat()},
        )
        assert response.status_code == 200
        assert response.json()["slots"] == []

    def test_rate_limited(self, client, consultation_type, future_date):
        params = {"consultation_type_id": consultation_type.id, "date": future_date.isoformat()}
        with patch("booknow.rate_limiter.get_action_limit", return_value=(2, 60)):
            assert client.get("/book-now/v1/availability", params=params).status_code == 200
            assert client.get("/book-now/v1/availability", params=params).status_code == 200
            response = client.get("/book-now/v1/availability", params=params)

        assert response.status_code == 429
        assert response.json()["detail"]["retry_after"] > 0
        assert "Retry-After" in response.headers

    def test_available_dates(self, client, consultation_type, weekly_rules, future_date):
        month = future_date.strftime("%Y-%m")
        response = client.get(
            "/book-now/v1/availability/dates",
            params={"consultation_type_id": consultation_type.id, "month": month},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["month"] == month
        assert future_date.isoformat() in body["dates"]

    def test_available_dates_rejects_bad_month(self, client, consultation_type):
        response = client.get(
            "/book-now/v1/availability/dates",
            params={"consultation_type_id": consultation_type.id, "month": "2030-13"},
        )
        assert response.status_code == 400


class TestSlotService:
    def test_calendar_busy_time_is_excluded(self, db, consultation_type, weekly_rules, future_date):
        busy = [
            {
                "start": pytz.utc.localize(datetime.combine(future_date, time(11, 0))),
                "end": pytz.utc.localize(datetime.combine(future_date, time(12, 0))),
            }
        ]
        with patch("booknow.services.calendar_sync.get_busy_times", new=AsyncMock(return_value=busy)):
            slots = asyncio.run(AvailabilityService(db).calculate_slots(consultation_type, future_date))

        assert [s["time"] for s in slots] == ["09:00:00", "09:30:00", "10:00:00", "10:30:00"]

    def test_calendar_failure_offers_nothing(self, db, consultation_type, weekly_rules, future_date):
        failing = AsyncMock(side_effect=CalendarAPIError("token unavailable"))
        with patch("booknow.services.calendar_sync.get_busy_times", new=failing):
            slots = asyncio.run(AvailabilityService(db).calculate_slots(consultation_type, future_date))

        assert slots == []

    def test_minimum_notice_trims_first_day(self, db, consultation_type, weekly_rules):
        now = pytz.utc.localize(datetime(2030, 1, 7, 10, 15))
        target = date(2030, 1, 8)
        slots = asyncio.run(AvailabilityService(db).calculate_slots(consultation_type, target, now=now))
        assert [s["time"] for s in slots] == ["10:30:00", "11:00:00", "11:30:00"]

    def test_earliest_start_minutes(self):
        now = pytz.utc.localize(datetime(2030, 1, 7, 10, 15, 30))
        assert earliest_start_minutes(date(2030, 1, 8), now, 24) == 616
        assert earliest_start_minutes(date(2030, 1, 9), now, 24) is None
        assert earliest_start_minutes(date(2030, 1, 7), now, 24) == 24 * 60

    def test_buffers_of_existing_booking_apply(self, db, consultation_type, weekly_rules, make_booking, future_date):
        consultation_type.buffer_after = 30
        db.commit()
        make_booking(future_date, time(10, 0))

        slots = asyncio.run(AvailabilityService(db).calculate_slots(consultation_type, future_date))
        assert "10:30:00" not in [s["time"] for s in slots]
        assert "11:00:00" in [s["time"] for s in slots]


class TestAdminRules:
    def test_create_weekly_rule(self, client, admin_headers):
        response = client.post(
            f"{ADMIN}/availability",
            json={"rule_type": "weekly", "day_of_week": 1, "start_time": "09:00", "end_time": "17:00"},
            headers=admin_headers,
        )
        assert response.status_code == 201
        assert response.json()["start_time"] == "09:00:00"

    def test_weekly_rule_needs_day(self, client, admin_headers):
        response = client.post(
            f"{ADMIN}/availability",
            json={"rule_type": "weekly", "start_time": "09:00", "end_time": "17:00"},
            headers=admin_headers,
        )
        assert response.status_code == 400

    def test_specific_date_rule_needs_date(self, client, admin_headers):
        response = client.post(
            f"{ADMIN}/availability",
            json={"rule_type": "specific_date", "start_time": "09:00", "end_time": "17:00"},
            headers=admin_headers,
        )
        assert response.status_code == 400

    def test_start_must_precede_end(self, client, admin_headers):
        response = client.post(
            f"{ADMIN}/availability",
            json={"rule_type": "weekly", "day_of_week": 2, "start_time": "17:00", "end_time": "09:00"},
            headers=admin_headers,
        )
        assert response.status_code == 400

    def test_unknown_rule_type(self, client, admin_headers):
        response = client.post(
            f"{ADMIN}/availability", json={"rule_type": "monthly", "day_of_week": 1}, headers=admin_headers
        )
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "invalid_params"

    def test_full_day_block(self, client, admin_headers):
        response = client.post(
            f"{ADMIN}/availability",
            json={"rule_type": "block", "specific_date": "2030-12-25"},
            headers=admin_headers,
        )
        assert response.status_code == 201

    def test_update_validates_merged_rule(self, client, db, admin_headers):
        rule = AvailabilityRule(rule_type="weekly", day_of_week=1, start_time=time(9), end_time=time(12))
        db.add(rule)
        db.commit()

        response = client.put(f"{ADMIN}/availability/{rule.id}", json={"end_time": "08:00"}, headers=admin_headers)
        assert response.status_code == 400

        response = client.put(f"{ADMIN}/availability/{rule.id}", json={"end_time": "13:00"}, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["end_time"] == "13:00:00"

    def test_list_filter_and_delete(self, client, db, admin_headers):
        db.add_all(
            [
                AvailabilityRule(rule_type="weekly", day_of_week=1, start_time=time(9), end_time=time(12)),
                AvailabilityRule(rule_type="block", specific_date=date(2030, 12, 25)),
            ]
        )
        db.commit()

        response = client.get(f"{ADMIN}/availability", params={"rule_type": "block"}, headers=admin_headers)
        rules = response.json()
        assert len(rules) == 1

        response = client.delete(f"{ADMIN}/availability/{rules[0]['id']}", headers=admin_headers)
        assert response.status_code == 200
        assert db.query(AvailabilityRule).count() == 1

    def test_missing_rule(self, client, admin_headers):
        assert client.get(f"{ADMIN}/availability/999", headers=admin_headers).status_code == 404
