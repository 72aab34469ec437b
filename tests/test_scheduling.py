"""Tests für MAYDAY, Arbeitstag-Anträge und Schicht-Abdeckung (ohne Datenbank)."""

import uuid
from datetime import date, datetime, time, timedelta, timezone

import pytest
from pydantic import ValidationError

from tests.conftest import CalendarEventFactory, ProfileFactory


# ==================== MAYDAY ====================

class TestMaydayRange:
    """Tests für den Zeitraum-Filter der MAYDAY-Übersicht."""

    TODAY = date(2030, 6, 12)  # Mittwoch

    def _params(self, **kwargs):
        from app.schemas.calendar import UpcomingBookingsParams
        return UpcomingBookingsParams(**kwargs)

    def test_today(self):
        from app.services.mayday_service import upcoming_range
        start, end = upcoming_range(self._params(), today=self.TODAY)
        assert start == datetime(2030, 6, 11, 22, 0, tzinfo=timezone.utc)
        assert end == datetime(2030, 6, 12, 22, 0, tzinfo=timezone.utc)

    def test_tomorrow(self):
        from app.schemas.calendar import MaydayFilter
        from app.services.mayday_service import upcoming_range
        start, _ = upcoming_range(self._params(filter=MaydayFilter.TOMORROW), today=self.TODAY)
        assert start == datetime(2030, 6, 12, 22, 0, tzinfo=timezone.utc)

    def test_week_until_sunday(self):
        """'week' reicht bis einschließlich Sonntag."""
        from app.schemas.calendar import MaydayFilter
        from app.services.mayday_service import upcoming_range
        start, end = upcoming_range(self._params(filter=MaydayFilter.WEEK), today=self.TODAY)
        assert start == datetime(2030, 6, 11, 22, 0, tzinfo=timezone.utc)
        assert end == datetime(2030, 6, 16, 22, 0, tzinfo=timezone.utc)

    def test_from_time(self):
        from app.services.mayday_service import upcoming_range
        start, _ = upcoming_range(self._params(from_time="14:00"), today=self.TODAY)
        assert start == datetime(2030, 6, 12, 12, 0, tzinfo=timezone.utc)

    def test_custom_requires_date(self):
        from app.schemas.calendar import MaydayFilter
        with pytest.raises(ValidationError, match="Datum ist erforderlich"):
            self._params(filter=MaydayFilter.CUSTOM)


class TestMaydayRequests:
    """Tests für die Eingaben der Sammel-Aktionen."""

    def test_shift_zero_rejected(self):
        from app.schemas.calendar import MaydayReason, MaydayShiftRequest
        with pytest.raises(ValidationError, match="ungleich 0"):
            MaydayShiftRequest(event_ids=[uuid.uuid4()], shift_minutes=0, reason=MaydayReason.OTHER)

    def test_shift_limit(self):
        from app.schemas.calendar import MaydayReason, MaydayShiftRequest
        with pytest.raises(ValidationError):
            MaydayShiftRequest(event_ids=[uuid.uuid4()], shift_minutes=721, reason=MaydayReason.OTHER)

    def test_duplicate_ids_removed(self):
        from app.schemas.calendar import MaydayCancelRequest, MaydayReason
        event_id = uuid.uuid4()
        request = MaydayCancelRequest(event_ids=[event_id, event_id], reason=MaydayReason.STAFF_ILLNESS)
        assert request.event_ids == [event_id]

    def test_reason_texts(self):
        from app.schemas.calendar import MaydayReason
        from app.services.mayday_service import MAYDAY_REASONS
        assert set(MAYDAY_REASONS) == set(MaydayReason)
        assert MAYDAY_REASONS[MaydayReason.STAFF_ILLNESS].sms_text == "wegen Krankheit"


class TestRebookSlots:
    """Tests für freie Slots bei der Neubuchung."""

    START = datetime(2030, 6, 15, 10, 0, tzinfo=timezone.utc)

    def test_gaps_between_bookings(self):
        from app.services.mayday_service import gap_slots

        busy = [(self.START + timedelta(hours=1), self.START + timedelta(hours=2))]
        slots = gap_slots(
            self.START,
            self.START + timedelta(hours=4),
            busy,
            duration=60,
            now=self.START - timedelta(days=1),
        )
        assert [s.start for s in slots] == [
            self.START,
            self.START + timedelta(hours=2),
            self.START + timedelta(hours=2, minutes=30),
            self.START + timedelta(hours=3),
        ]
        assert all(s.end - s.start == timedelta(minutes=60) for s in slots)

    def test_only_future_slots(self):
        from app.services.mayday_service import gap_slots

        slots = gap_slots(
            self.START,
            self.START + timedelta(hours=2),
            [],
            duration=60,
            now=self.START + timedelta(minutes=15),
        )
        assert [s.start for s in slots] == [self.START + timedelta(minutes=30), self.START + timedelta(hours=1)]

    def test_fully_booked(self):
        from app.services.mayday_service import gap_slots
        busy = [(self.START - timedelta(hours=1), self.START + timedelta(hours=5))]
        assert gap_slots(self.START, self.START + timedelta(hours=4), busy, 60, now=self.START - timedelta(days=1)) == []

    def test_work_window_uses_actual_times(self):
        from app.models.calendar import EventType
        from app.services.mayday_service import work_window

        fi = CalendarEventFactory.create(
            event_type=EventType.FI_ASSIGNMENT,
            start_time=datetime(2030, 6, 15, 6, 0, tzinfo=timezone.utc),
            actual_work_start_time=time(9, 30),
            actual_work_end_time=time(17, 0),
        )
        assert work_window(fi) == (
            datetime(2030, 6, 15, 7, 30, tzinfo=timezone.utc),
            datetime(2030, 6, 15, 15, 0, tzinfo=timezone.utc),
        )

    def test_work_window_fallback(self):
        from app.models.calendar import EventType
        from app.services.mayday_service import work_window

        fi = CalendarEventFactory.create(event_type=EventType.FI_ASSIGNMENT, duration=480)
        assert work_window(fi) == (fi.start_time, fi.end_time)

    def test_split_customer_name(self):
        from app.services.mayday_service import split_customer_name
        assert split_customer_name("Hans Peter Meier") == ("Hans", "Peter Meier")
        assert split_customer_name("Erika") == ("Erika", None)
        assert split_customer_name(None) == (None, None)


# ==================== ARBEITSTAG-ANTRÄGE ====================

class TestWorkRequestValidation:
    """Tests für die Prüfung von Arbeitstag-Anträgen."""

    TODAY = date(2030, 6, 1)

    def _validate(self, **kwargs):
        from app.schemas.work_request import WorkRequestInput
        from app.services.work_request_service import validate_request_input
        return validate_request_input(WorkRequestInput(**kwargs), today=self.TODAY)

    def test_full_day(self):
        result = self._validate(request_date="2030-06-15", reason="  ")
        assert result.request_date == date(2030, 6, 15)
        assert result.is_full_day is True
        assert result.start_time is None
        assert result.reason is None

    def test_today_allowed(self):
        assert self._validate(request_date="2030-06-01").request_date == self.TODAY

    def test_partial_day(self):
        result = self._validate(
            request_date="2030-06-15",
            is_full_day=False,
            start_time="09:00:00",
            end_time="17:30",
        )
        assert result.start_time == time(9, 0)
        assert result.end_time == time(17, 30)

    @pytest.mark.parametrize(
        "kwargs,message",
        [
            ({"request_date": "15.06.2030"}, "Ungültiges Datumsformat"),
            ({"request_date": "2030-02-30"}, "Ungültiges Datumsformat"),
            ({"request_date": "2030-05-31"}, "Vergangenheit"),
            ({"request_date": "2030-06-15", "is_full_day": False}, "Start- und Endzeit"),
            (
                {"request_date": "2030-06-15", "is_full_day": False, "start_time": "9:00", "end_time": "17:00"},
                "Startzeit-Format",
            ),
            (
                {"request_date": "2030-06-15", "is_full_day": False, "start_time": "17:00", "end_time": "09:00"},
                "Endzeit muss nach Startzeit",
            ),
        ],
    )
    def test_invalid(self, kwargs, message):
        from app.api.exception_handlers import ValidationException
        with pytest.raises(ValidationException, match=message):
            self._validate(**kwargs)

    def test_time_display(self):
        from app.services.work_request_service import time_display
        assert time_display(True, None, None) == "Ganztägig"
        assert time_display(False, time(9, 0), time(17, 0)) == "09:00 - 17:00 Uhr"

    def test_fi_event_title(self):
        from app.services.work_request_service import fi_event_title

        employee = ProfileFactory.create(first_name="Max", last_name="Pilot", employee_number="12")
        assert fi_event_title(employee, True, None, None) == "FI: Max Pilot (12)"
        assert fi_event_title(employee, False, time(9, 0), time(17, 0)) == "FI: Max Pilot (12) 09:00-17:00"

        employee.employee_number = None
        assert fi_event_title(employee, True, None, None) == "FI: Max Pilot"


# ==================== SCHICHT-ABDECKUNG ====================

class TestShiftCoverageValidation:
    """Tests für Anfragen zur Schicht-Abdeckung."""

    def _validate(self, **kwargs):
        from app.schemas.work_request import ShiftCoverageInput
        from app.services.shift_coverage_service import validate_coverage_input
        validate_coverage_input(ShiftCoverageInput(**kwargs))

    def test_valid(self):
        self._validate(request_date=date(2030, 6, 15), employee_ids=[uuid.uuid4()])

    @pytest.mark.parametrize(
        "kwargs,message",
        [
            ({}, "Datum ist erforderlich"),
            ({"request_date": date(2030, 6, 15)}, "Mindestens ein Mitarbeiter"),
            (
                {"request_date": date(2030, 6, 15), "employee_ids": [uuid.uuid4()], "send_email": False},
                "Benachrichtigungsart",
            ),
            (
                {
                    "request_date": date(2030, 6, 15),
                    "employee_ids": [uuid.uuid4()],
                    "is_full_day": False,
                    "start_time": time(17, 0),
                    "end_time": time(9, 0),
                },
                "Endzeit muss nach Startzeit",
            ),
        ],
    )
    def test_invalid(self, kwargs, message):
        from app.api.exception_handlers import ValidationException
        with pytest.raises(ValidationException, match=message):
            self._validate(**kwargs)
