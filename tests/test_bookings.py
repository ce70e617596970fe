from datetime import time, timedelta
from unittest.mock import AsyncMock, patch

from booknow.domain.bookings.service import amount_due, needs_payment
from booknow.models import Booking, ConsultationType, EmailLog

ADMIN = "/book-now/v1/admin"


def booking_payload(consultation_type, booking_date, /, booking_time="10:00", **overrides):
    payload = {
        "consultation_type_id": consultation_type.id,
        "customer_name": "Jane Doe",
        "customer_email": "jane@example.com",
        "customer_phone": "+1 555 0100",
        "notes": "First session",
        "booking_date": booking_date.isoformat(),
        "booking_time": booking_time,
    }
    payload.update(overrides)
    return payload


def subjects(mock_send_email):
    return [call.kwargs["subject"] for call in mock_send_email.await_args_list]


class TestCreateBooking:
    def test_create_booking(self, client, db, consultation_type, weekly_rules, future_date, mock_send_email):
        response = client.post("/book-now/v1/bookings", json=booking_payload(consultation_type, future_date))

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["needs_payment"] is False
        assert body["payment_intent"] is None
        booking = body["booking"]
        assert booking["reference_number"].startswith("BN")
        assert booking["booking_time"] == "10:00:00"
        assert booking["status"] == "pending"
        assert booking["duration"] == 30
        assert booking["timezone"] == "UTC"

        reference = booking["reference_number"]
        assert subjects(mock_send_email) == [
            f"Booking Confirmation - {reference}",
            f"New Booking: Strategy Session - {reference}",
        ]
        assert db.query(EmailLog).count() == 2

    def test_seconds_are_accepted(self, client, consultation_type, weekly_rules, future_date):
        response = client.post(
            "/book-now/v1/bookings", json=booking_payload(consultation_type, future_date, booking_time="11:30:00")
        )
        assert response.status_code == 201

    def test_customer_input_is_sanitized(self, client, consultation_type, weekly_rules, future_date):
        response = client.post(
            "/book-now/v1/bookings",
            json=booking_payload(consultation_type, future_date, customer_name="<script>x</script>Jane"),
        )
        assert response.json()["booking"]["customer_name"] == "&lt;script&gt;x&lt;/script&gt;Jane"

    def test_taken_slot_fails_precheck(self, client, consultation_type, weekly_rules, make_booking, future_date):
        make_booking(future_date, time(10, 0))
        response = client.post("/book-now/v1/bookings", json=booking_payload(consultation_type, future_date))
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "slot_unavailable"

    def test_time_outside_rules_fails_precheck(self, client, consultation_type, weekly_rules, future_date):
        response = client.post(
            "/book-now/v1/bookings", json=booking_payload(consultation_type, future_date, booking_time="15:00")
        )
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "slot_unavailable"

    def test_lock_recheck_conflict_is_409(self, client, db, consultation_type, weekly_rules, make_booking, future_date):
        make_booking(future_date, time(10, 0))
        stale_slots = [{"time": "10:00:00", "end_time": "10:30:00", "available": True}]

        with patch(
            "booknow.domain.bookings.service.AvailabilityService.calculate_slots",
            new=AsyncMock(return_value=stale_slots),
        ):
            response = client.post("/book-now/v1/bookings", json=booking_payload(consultation_type, future_date))

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "slot_unavailable"
        assert db.query(Booking).count() == 1

    def test_overlap_with_buffer_is_409(self, client, db, consultation_type, weekly_rules, make_booking, future_date):
        consultation_type.buffer_before = 15
        db.commit()
        make_booking(future_date, time(9, 30))
        stale_slots = [{"time": "10:00:00", "end_time": "10:30:00", "available": True}]

        with patch(
            "booknow.domain.bookings.service.AvailabilityService.calculate_slots",
            new=AsyncMock(return_value=stale_slots),
        ):
            response = client.post("/book-now/v1/bookings", json=booking_payload(consultation_type, future_date))

        assert response.status_code == 409

    def test_inactive_type(self, client, db, consultation_type, weekly_rules, future_date):
        consultation_type.status = "inactive"
        db.commit()
        response = client.post("/book-now/v1/bookings", json=booking_payload(consultation_type, future_date))
        assert response.json()["detail"]["code"] == "invalid_type"

    def test_invalid_email(self, client, consultation_type, weekly_rules, future_date):
        response = client.post(
            "/book-now/v1/bookings", json=booking_payload(consultation_type, future_date, customer_email="nope")
        )
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "invalid_email"

    def test_blank_name(self, client, consultation_type, weekly_rules, future_date):
        response = client.post(
            "/book-now/v1/bookings", json=booking_payload(consultation_type, future_date, customer_name="  ")
        )
        assert response.json()["detail"]["code"] == "invalid_name"

    def test_invalid_date(self, client, consultation_type, weekly_rules, future_date):
        response = client.post(
            "/book-now/v1/bookings",
            json=booking_payload(consultation_type, future_date, booking_date="2030-02-30"),
        )
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "invalid_date"

    def test_date_beyond_advance_window(self, client, consultation_type, weekly_rules, future_date):
        far = future_date + timedelta(days=400)
        response = client.post("/book-now/v1/bookings", json=booking_payload(consultation_type, far))
        assert response.json()["detail"]["code"] == "invalid_date"

    def test_invalid_time(self, client, consultation_type, weekly_rules, future_date):
        response = client.post(
            "/book-now/v1/bookings", json=booking_payload(consultation_type, future_date, booking_time="10am")
        )
        assert response.json()["detail"]["code"] == "invalid_time"

    def test_missing_fields(self, client):
        response = client.post("/book-now/v1/bookings", json={"customer_name": "Jane"})
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "invalid_params"

    def test_deposit_creates_payment_intent(self, client, db, weekly_rules, future_date, mock_send_email):
        consultation_type = ConsultationType(
            name="Deep Dive",
            slug="deep-dive",
            duration=60,
            price=250,
            deposit_amount=20,
            deposit_type="percentage",
            require_deposit=True,
        )
        db.add(consultation_type)
        db.commit()

        intent = {
            "success": True,
            "payment_intent_id": "pi_123",
            "client_secret": "pi_123_secret",
            "amount": 50.0,
            "currency": "usd",
        }
        with patch("booknow.services.stripe_service.create_payment_intent", return_value=intent) as create_intent:
            response = client.post("/book-now/v1/bookings", json=booking_payload(consultation_type, future_date))

        assert response.status_code == 201
        body = response.json()
        assert body["needs_payment"] is True
        assert body["payment_intent"]["client_secret"] == "pi_123_secret"
        assert body["booking"]["deposit_amount"] == 50.0

        args, kwargs = create_intent.call_args
        assert args[0] == 50.0
        assert kwargs["metadata"]["reference_number"] == body["booking"]["reference_number"]

        booking = db.query(Booking).one()
        assert booking.payment_intent_id == "pi_123"
        # The customer is confirmed once the payment lands
        assert all(not s.startswith("Booking Confirmation") for s in subjects(mock_send_email))

    def test_payment_setup_failure_keeps_booking(self, client, db, weekly_rules, future_date):
        consultation_type = ConsultationType(
            name="Deep Dive", slug="deep-dive", duration=60, price=250, deposit_amount=50, require_deposit=True
        )
        db.add(consultation_type)
        db.commit()

        with patch(
            "booknow.services.stripe_service.create_payment_intent",
            return_value={"success": False, "error": "Stripe is not configured"},
        ):
            response = client.post("/book-now/v1/bookings", json=booking_payload(consultation_type, future_date))

        assert response.status_code == 201
        assert response.json()["payment_intent"]["error"]
        assert db.query(Booking).count() == 1

    def test_email_failure_does_not_fail_booking(self, client, db, consultation_type, weekly_rules, future_date, mock_send_email):
        mock_send_email.side_effect = RuntimeError("boom")
        response = client.post("/book-now/v1/bookings", json=booking_payload(consultation_type, future_date))
        assert response.status_code == 201


class TestDeposits:
    def test_amount_due(self):
        fixed = ConsultationType(price=200, deposit_amount=40, deposit_type="fixed", require_deposit=True)
        percent = ConsultationType(price=200, deposit_amount=25, deposit_type="percentage", require_deposit=True)
        no_deposit = ConsultationType(price=200, deposit_amount=0, deposit_type="fixed", require_deposit=True)
        assert amount_due(fixed) == 40
        assert amount_due(percent) == 50
        assert amount_due(no_deposit) == 200

    def test_needs_payment(self):
        assert needs_payment(ConsultationType(price=200, deposit_amount=40, deposit_type="fixed", require_deposit=True))
        assert not needs_payment(ConsultationType(price=200, deposit_amount=0, deposit_type="fixed", require_deposit=False))
        assert not needs_payment(ConsultationType(price=0, deposit_amount=0, deposit_type="fixed", require_deposit=True))


class TestLookupAndCancel:
    def test_lookup_is_case_insensitive(self, client, make_booking, future_date):
        booking = make_booking(future_date)
        response = client.get(
            f"/book-now/v1/bookings/{booking.reference_number}", params={"customer_email": "JANE@example.com"}
        )
        assert response.status_code == 200
        assert response.json()["reference_number"] == booking.reference_number
        assert "admin_notes" not in response.json()

    def test_lookup_email_mismatch(self, client, make_booking, future_date):
        booking = make_booking(future_date)
        response = client.get(
            f"/book-now/v1/bookings/{booking.reference_number}", params={"customer_email": "other@example.com"}
        )
        assert response.status_code == 403

    def test_lookup_missing(self, client):
        response = client.get("/book-now/v1/bookings/BNNOPE", params={"customer_email": "jane@example.com"})
        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "not_found"

    def test_cancel(self, client, db, make_booking, future_date, mock_send_email):
        booking = make_booking(future_date)
        response = client.post(
            f"/book-now/v1/bookings/{booking.reference_number}/cancel", json={"customer_email": "jane@example.com"}
        )
        assert response.status_code == 200
        assert response.json()["success"] is True

        db.refresh(booking)
        assert booking.status == "cancelled"
        assert subjects(mock_send_email) == [
            f"Booking Cancelled - {booking.reference_number}",
            f"Booking Cancelled: Strategy Session - {booking.reference_number}",
        ]

    def test_cancel_twice(self, client, make_booking, future_date):
        booking = make_booking(future_date, status="cancelled")
        response = client.post(
            f"/book-now/v1/bookings/{booking.reference_number}/cancel", json={"customer_email": "jane@example.com"}
        )
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "cannot_cancel"

    def test_cancel_email_mismatch(self, client, make_booking, future_date):
        booking = make_booking(future_date)
        response = client.post(
            f"/book-now/v1/bookings/{booking.reference_number}/cancel", json={"customer_email": "x@example.com"}
        )
        assert response.status_code == 403

    def test_cancelled_slot_can_be_rebooked(self, client, consultation_type, weekly_rules, make_booking, future_date):
        make_booking(future_date, time(10, 0), status="cancelled")
        response = client.post("/book-now/v1/bookings", json=booking_payload(consultation_type, future_date))
        assert response.status_code == 201


class TestAdminBookings:
    def test_list_with_filters(self, client, admin_headers, make_booking, future_date):
        make_booking(future_date, time(9, 0), status="pending")
        make_booking(future_date, time(10, 0), status="confirmed")

        response = client.get(f"{ADMIN}/bookings", params={"status": "confirmed"}, headers=admin_headers)
        body = response.json()
        assert body["total"] == 1
        assert body["bookings"][0]["status"] == "confirmed"

        response = client.get(
            f"{ADMIN}/bookings", params={"orderby": "booking_time", "order": "asc"}, headers=admin_headers
        )
        assert [b["booking_time"] for b in response.json()["bookings"]] == ["09:00:00", "10:00:00"]

    def test_limit_is_bounded(self, client, admin_headers):
        response = client.get(f"{ADMIN}/bookings", params={"limit": 1000}, headers=admin_headers)
        assert response.status_code == 400

    def test_stats(self, client, admin_headers, make_booking, future_date):
        make_booking(future_date, time(9, 0), status="pending")
        make_booking(future_date, time(10, 0), status="confirmed", payment_status="paid")

        stats = client.get(f"{ADMIN}/bookings/stats", headers=admin_headers).json()
        assert stats["total"] == 2
        assert stats["pending"] == 1
        assert stats["confirmed"] == 1
        assert stats["upcoming"] == 2

    def test_confirm_sends_confirmation(self, client, db, admin_headers, make_booking, future_date, mock_send_email):
        booking = make_booking(future_date, status="pending")
        response = client.put(
            f"{ADMIN}/bookings/{booking.id}",
            json={"status": "confirmed", "admin_notes": "VIP"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["status"] == "confirmed"
        assert response.json()["admin_notes"] == "VIP"
        assert subjects(mock_send_email) == [f"Booking Confirmation - {booking.reference_number}"]

    def test_mark_paid_sets_payment_date(self, client, admin_headers, make_booking, future_date):
        booking = make_booking(future_date)
        response = client.put(f"{ADMIN}/bookings/{booking.id}", json={"payment_status": "paid"}, headers=admin_headers)
        assert response.json()["payment_date"] is not None

    def test_invalid_status(self, client, admin_headers, make_booking, future_date):
        booking = make_booking(future_date)
        response = client.put(f"{ADMIN}/bookings/{booking.id}", json={"status": "archived"}, headers=admin_headers)
        assert response.status_code == 400

    def test_cancelled_booking_cannot_be_reactivated_onto_taken_time(
        self, client, db, admin_headers, make_booking, future_date
    ):
        cancelled = make_booking(future_date, time(10, 0), reference_number="BNOLD1000", status="cancelled")
        make_booking(future_date, time(10, 15), reference_number="BNNEW1015")

        response = client.put(f"{ADMIN}/bookings/{cancelled.id}", json={"status": "confirmed"}, headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "invalid_transition"
        db.refresh(cancelled)
        assert cancelled.status == "cancelled"

    def test_cancelled_booking_cannot_take_back_same_start(self, client, admin_headers, make_booking, future_date):
        cancelled = make_booking(future_date, time(10, 0), reference_number="BNOLD1000", status="cancelled")
        make_booking(future_date, time(10, 0), reference_number="BNNEW1000")

        response = client.put(f"{ADMIN}/bookings/{cancelled.id}", json={"status": "pending"}, headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "invalid_transition"

    def test_completed_booking_cannot_return_to_pending(self, client, db, admin_headers, make_booking, future_date):
        booking = make_booking(future_date, status="completed")

        response = client.put(f"{ADMIN}/bookings/{booking.id}", json={"status": "pending"}, headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "invalid_transition"
        db.refresh(booking)
        assert booking.status == "completed"

    def test_terminal_booking_accepts_notes(self, client, admin_headers, make_booking, future_date):
        booking = make_booking(future_date, status="no-show")

        response = client.put(
            f"{ADMIN}/bookings/{booking.id}",
            json={"status": "no-show", "admin_notes": "Did not attend"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["admin_notes"] == "Did not attend"

    def test_delete(self, client, db, admin_headers, make_booking, future_date):
        booking = make_booking(future_date)
        response = client.delete(f"{ADMIN}/bookings/{booking.id}", headers=admin_headers)
        assert response.status_code == 200
        assert db.query(Booking).count() == 0

    def test_refund(self, client, db, admin_headers, make_booking, future_date, mock_send_email):
        booking = make_booking(future_date, payment_status="paid", payment_intent_id="pi_123")
        refund = {"success": True, "refund_id": "re_1", "status": "succeeded", "amount": 40.0}

        with patch("booknow.services.stripe_service.create_refund", return_value=refund) as create_refund:
            response = client.post(
                f"{ADMIN}/bookings/{booking.id}/refund", json={"amount": 40}, headers=admin_headers
            )

        assert response.status_code == 200
        create_refund.assert_called_once_with("pi_123", 40.0)
        db.refresh(booking)
        assert booking.payment_status == "refunded"
        assert subjects(mock_send_email) == [f"Refund Processed - {booking.reference_number}"]

    def test_refund_requires_paid_booking(self, client, admin_headers, make_booking, future_date):
        booking = make_booking(future_date, payment_intent_id="pi_123")
        response = client.post(f"{ADMIN}/bookings/{booking.id}/refund", headers=admin_headers)
        assert response.status_code == 400

    def test_refund_failure_is_502(self, client, admin_headers, make_booking, future_date):
        booking = make_booking(future_date, payment_status="paid", payment_intent_id="pi_123")
        with patch(
            "booknow.services.stripe_service.create_refund",
            return_value={"success": False, "error": "charge already refunded"},
        ):
            response = client.post(f"{ADMIN}/bookings/{booking.id}/refund", headers=admin_headers)
        assert response.status_code == 502

    def test_missing_booking(self, client, admin_headers):
        assert client.get(f"{ADMIN}/bookings/999", headers=admin_headers).status_code == 404
