"""Unit Tests - Laufen ohne Datenbank."""

import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from tests.conftest import CalendarEventFactory, ProfileFactory, TicketFactory, make_token


# ==================== ZEITZONE ====================

class TestBerlinTime:
    """Tests für die Europe/Berlin-Helfer."""

    def test_summer_time_offset(self):
        """Im Sommer liegt Berlin 2 Stunden vor UTC."""
        from app.berlin_time import german_time_to_utc
        result = german_time_to_utc(date(2030, 6, 15), "14:00")
        assert result == datetime(2030, 6, 15, 12, 0, tzinfo=timezone.utc)

    def test_winter_time_offset(self):
        """Im Winter liegt Berlin 1 Stunde vor UTC."""
        from app.berlin_time import german_time_to_utc
        result = german_time_to_utc(date(2030, 1, 15), "14:00")
        assert result == datetime(2030, 1, 15, 13, 0, tzinfo=timezone.utc)

    def test_day_bounds(self):
        """Tagesgrenzen eines Berliner Kalendertags in UTC."""
        from app.berlin_time import german_day_bounds
        start, end = german_day_bounds(date(2030, 6, 15))
        assert start == datetime(2030, 6, 14, 22, 0, tzinfo=timezone.utc)
        assert end == datetime(2030, 6, 15, 22, 0, tzinfo=timezone.utc)

    def test_day_bounds_dst_switch(self):
        """Am Tag der Zeitumstellung hat der Tag 23 Stunden."""
        from app.berlin_time import german_day_bounds
        start, end = german_day_bounds(date(2030, 3, 31))
        assert end - start == timedelta(hours=23)

    def test_late_utc_is_next_berlin_day(self):
        """23:30 UTC im Sommer ist in Berlin schon der nächste Tag."""
        from app.berlin_time import german_date_of
        assert german_date_of(datetime(2030, 6, 15, 23, 30, tzinfo=timezone.utc)) == date(2030, 6, 16)

    def test_format_german_date_with_weekday(self):
        from app.berlin_time import format_german_date
        assert format_german_date(date(2030, 6, 10), with_weekday=True) == "Montag, 10.06.2030"

    def test_periods_overlap_touching(self):
        """Aneinanderstoßende Zeiträume überschneiden sich nicht."""
        from app.berlin_time import periods_overlap
        a = datetime(2030, 6, 15, 10, 0, tzinfo=timezone.utc)
        b = a + timedelta(hours=1)
        c = b + timedelta(hours=1)
        assert periods_overlap(a, b, b, c) is False
        assert periods_overlap(a, c, b, c) is True

    def test_parse_hhmm_invalid(self):
        from app.berlin_time import parse_hhmm
        with pytest.raises(ValueError):
            parse_hhmm("1400")


# ==================== VALIDATOREN ====================

class TestValidators:
    """Tests für wiederverwendbare Validatoren."""

    def test_email_normalized(self):
        from app.schemas.validators import validate_email_address
        assert validate_email_address("  Kunde@Example.COM ") == "kunde@example.com"

    def test_email_invalid(self):
        from app.schemas.validators import validate_email_address
        with pytest.raises(ValueError, match="Ungültige E-Mail"):
            validate_email_address("kein-at-zeichen")

    def test_hex_color(self):
        from app.schemas.validators import validate_hex_color
        assert validate_hex_color("#3b82f6") == "#3b82f6"
        with pytest.raises(ValueError, match="#RRGGBB"):
            validate_hex_color("blau")

    def test_hhmm_strips_seconds(self):
        """HH:MM:SS wird auf HH:MM gekürzt."""
        from app.schemas.validators import validate_hhmm
        assert validate_hhmm("09:30:00") == "09:30"

    def test_hhmm_requires_leading_zero(self):
        from app.schemas.validators import validate_hhmm
        with pytest.raises(ValueError, match="HH:MM"):
            validate_hhmm("9:30")

    def test_uuid_batch_deduplicates(self):
        """Doppelte IDs werden entfernt, Reihenfolge bleibt erhalten."""
        from app.schemas.validators import validate_uuid_batch
        a, b = uuid.uuid4(), uuid.uuid4()
        assert validate_uuid_batch([a, b, a]) == [a, b]

    def test_uuid_batch_empty(self):
        from app.schemas.validators import validate_uuid_batch
        with pytest.raises(ValueError, match="Mindestens ein Termin"):
            validate_uuid_batch([])

    def test_uuid_batch_too_large(self):
        from app.config import Limits
        from app.schemas.validators import validate_uuid_batch
        with pytest.raises(ValueError, match="Maximal"):
            validate_uuid_batch([uuid.uuid4() for _ in range(Limits.MAYDAY_BATCH_MAX + 1)])

    def test_search_term_too_long(self):
        from app.schemas.validators import validate_search_term
        with pytest.raises(ValueError, match="maximal"):
            validate_search_term("x" * 201)


# ==================== AUTH ====================

class TestAuthHelpers:
    """Tests für Token-Prüfung und öffentliche Pfade."""

    def test_decode_valid_token(self):
        from app.auth import decode_token, user_id_from_payload
        user_id = uuid.uuid4()
        payload = decode_token(make_token(user_id))
        assert payload is not None
        assert user_id_from_payload(payload) == user_id

    def test_decode_expired_token(self):
        from app.auth import decode_token
        token = make_token(uuid.uuid4(), expires_in=timedelta(minutes=-5))
        assert decode_token(token) is None

    def test_decode_garbage(self):
        from app.auth import decode_token
        assert decode_token("kein.gueltiges.jwt") is None

    def test_sub_must_be_uuid(self):
        from app.auth import user_id_from_payload
        assert user_id_from_payload({"sub": "admin"}) is None
        assert user_id_from_payload({}) is None

    def test_public_paths(self):
        from app.auth import is_public_path
        assert is_public_path("/health")
        assert is_public_path("/api/v1/availability")
        assert is_public_path("/api/public/mayday/confirm/abc")
        assert is_public_path("/api/cron/sync-calendar")
        assert not is_public_path("/api/tickets")
        assert not is_public_path("/api/v1")

    def test_action_tokens(self):
        from app.auth import generate_action_token, is_expired, token_expiry
        first, second = generate_action_token(), generate_action_token()
        assert first != second
        assert len(first) >= 40
        assert not is_expired(token_expiry())
        assert is_expired(datetime.now(timezone.utc) - timedelta(seconds=1))
        assert not is_expired(None)


# ==================== RATE LIMITER ====================

class TestRateLimiter:
    """Tests für den Sliding-Window Rate-Limiter."""

    def test_limit_reached(self):
        from app.api.rate_limiter import RATE_LIMITS, InMemoryRateLimiter, RateLimitTier
        limiter = InMemoryRateLimiter()
        allowed = RATE_LIMITS[RateLimitTier.PUBLIC_TOKEN].requests

        for _ in range(allowed):
            limited, _ = limiter.hit("1.2.3.4", RateLimitTier.PUBLIC_TOKEN)
            assert limited is False

        limited, retry_after = limiter.hit("1.2.3.4", RateLimitTier.PUBLIC_TOKEN)
        assert limited is True
        assert retry_after >= 1

    def test_clients_and_tiers_separate(self):
        """Limits gelten pro Client und pro Stufe."""
        from app.api.rate_limiter import RATE_LIMITS, InMemoryRateLimiter, RateLimitTier
        limiter = InMemoryRateLimiter()
        for _ in range(RATE_LIMITS[RateLimitTier.PUBLIC_TOKEN].requests):
            limiter.hit("1.2.3.4", RateLimitTier.PUBLIC_TOKEN)

        assert limiter.hit("5.6.7.8", RateLimitTier.PUBLIC_TOKEN) == (False, 0)
        assert limiter.hit("1.2.3.4", RateLimitTier.SHOP_API) == (False, 0)
        assert limiter.remaining("1.2.3.4", RateLimitTier.PUBLIC_TOKEN) == 0

    def test_reset(self):
        from app.api.rate_limiter import RATE_LIMITS, InMemoryRateLimiter, RateLimitTier
        limiter = InMemoryRateLimiter()
        limiter.hit("1.2.3.4", RateLimitTier.SHOP_API)
        limiter.reset()
        assert limiter.remaining("1.2.3.4", RateLimitTier.SHOP_API) == RATE_LIMITS[RateLimitTier.SHOP_API].requests

    def test_configured_tiers(self):
        """Nur öffentliche Token-Links und die Shop-API sind limitiert."""
        from app.api.rate_limiter import RATE_LIMITS, RateLimitConfig, RateLimitTier
        assert RATE_LIMITS == {
            RateLimitTier.PUBLIC_TOKEN: RateLimitConfig(requests=20, window_seconds=60),
            RateLimitTier.SHOP_API: RateLimitConfig(requests=60, window_seconds=60),
        }


# ==================== SHOP-BUCHUNGEN ====================

class TestShopSlots:
    """Tests für die Slot-Berechnung der Shop-API."""

    def test_full_day_slots_60_minutes(self):
        """60 Minuten + 14 Puffer: letzter Start 20:45."""
        from app.services.booking_service import compute_slots
        slots = compute_slots(date(2030, 6, 15), 60, [])
        assert len(slots) == 44
        assert slots[0].time == "10:00"
        assert slots[-1].time == "20:45"
        assert all(s.available for s in slots)

    def test_full_day_slots_180_minutes(self):
        from app.services.booking_service import compute_slots
        slots = compute_slots(date(2030, 6, 15), 180, [])
        assert slots[-1].time == "18:45"
        assert len(slots) == 36

    def test_booking_blocks_with_buffer(self):
        """Eine Buchung 12:00-13:00 blockiert inkl. Puffer bis 13:14."""
        from app.berlin_time import german_time_to_utc
        from app.services.booking_service import busy_periods, compute_slots

        booking = CalendarEventFactory.create(start_time=german_time_to_utc(date(2030, 6, 15), "12:00"))
        slots = {s.time: s.available for s in compute_slots(date(2030, 6, 15), 60, busy_periods([booking]))}

        assert slots["10:45"] is True
        assert slots["11:00"] is False
        assert slots["13:00"] is False
        assert slots["13:15"] is True
        assert sum(1 for free in slots.values() if not free) == 9

    def test_blocker_has_no_buffer(self):
        from app.berlin_time import german_time_to_utc
        from app.models.calendar import EventType
        from app.services.booking_service import busy_periods

        blocker = CalendarEventFactory.create(
            event_type=EventType.BLOCKER,
            start_time=german_time_to_utc(date(2030, 6, 15), "12:00"),
        )
        (period,) = busy_periods([blocker])
        assert period.end == blocker.end_time

    def test_parse_shop_date(self):
        from app.api.exception_handlers import ValidationException
        from app.services.booking_service import parse_shop_date
        assert parse_shop_date("2030-06-15") == date(2030, 6, 15)
        for value in (None, "15.06.2030", "2030-02-30"):
            with pytest.raises(ValidationException, match="YYYY-MM-DD"):
                parse_shop_date(value)

    def test_check_duration(self):
        from app.api.exception_handlers import ValidationException
        from app.services.booking_service import check_duration
        assert check_duration(120) == 120
        with pytest.raises(ValidationException, match="30, 60, 120, 180"):
            check_duration(45)


class TestShopBookingValidation:
    """Tests für die Prüfung neuer Shop-Buchungen."""

    def _data(self, **overrides):
        from app.schemas.calendar import ShopBookingCreate
        values = {
            "date": "2030-06-15",
            "time": "14:00",
            "duration": 60,
            "customerFirstName": "Erika",
            "customerLastName": "Musterfrau",
            "customerEmail": "erika@example.com",
        }
        values.update(overrides)
        return ShopBookingCreate.model_validate(values)

    def test_valid_booking_times(self):
        from app.services.booking_service import validate_shop_booking
        start, end = validate_shop_booking(self._data())
        assert start == datetime(2030, 6, 15, 12, 0, tzinfo=timezone.utc)
        assert end == start + timedelta(minutes=60)

    def test_missing_fields(self):
        from app.api.exception_handlers import ValidationException
        from app.schemas.errors import ErrorCode
        from app.services.booking_service import validate_shop_booking
        with pytest.raises(ValidationException) as exc:
            validate_shop_booking(self._data(customerEmail=None))
        assert exc.value.error_code == ErrorCode.MISSING_REQUIRED_FIELD

    @pytest.mark.parametrize(
        "overrides,message",
        [
            ({"time": "24:00"}, "Invalid time format"),
            ({"duration": 90}, "Invalid duration"),
            ({"customerEmail": "erika-at-example"}, "Invalid email format"),
        ],
    )
    def test_invalid_fields(self, overrides, message):
        from app.api.exception_handlers import ValidationException
        from app.services.booking_service import validate_shop_booking
        with pytest.raises(ValidationException, match=message):
            validate_shop_booking(self._data(**overrides))

    def test_remarks_with_order_number(self):
        from app.services.booking_service import build_booking_remarks
        assert build_booking_remarks(None, "SO-1") == "Shop Order: SO-1"
        assert build_booking_remarks("Geburtstag", "SO-1") == "Geburtstag\nShop Order: SO-1"
        assert build_booking_remarks("Geburtstag", None) == "Geburtstag"


class TestMonthOverview:
    """Tests für die Monatsübersicht der Shop-API."""

    def test_counts_and_full_day_blocker(self):
        from app.berlin_time import german_day_bounds
        from app.models.calendar import EventType
        from app.services.booking_service import summarize_month

        booking = CalendarEventFactory.create(start_time=datetime(2030, 6, 15, 10, 0, tzinfo=timezone.utc))
        blocker = CalendarEventFactory.create(
            event_type=EventType.BLOCKER,
            start_time=german_day_bounds(date(2030, 6, 20))[0],
            duration=24 * 60,
            is_all_day=True,
            customer_first_name="Wartung",
        )
        other_month = CalendarEventFactory.create(start_time=datetime(2030, 7, 1, 10, 0, tzinfo=timezone.utc))

        days = summarize_month(2030, 6, [booking, blocker, other_month])

        assert len(days) == 30
        assert days[14].date == "2030-06-15"
        assert days[14].booking_count == 1
        assert days[19].fully_blocked is True
        assert days[19].available is False
        assert days[19].blocker_title == "Wartung"
        assert sum(d.booking_count for d in days) == 1


# ==================== TICKETS ====================

class TestTicketStats:
    """Tests für die Ticket-Statistik."""

    def test_empty(self):
        from app.services.ticket_service import compute_ticket_stats
        stats = compute_ticket_stats([])
        assert stats.total_tickets == 0
        assert stats.avg_response_time is None

    def test_kpis(self):
        from app.models.ticket import TicketPriority, TicketStatus
        from app.services.ticket_service import TicketStatsRow, compute_ticket_stats

        customer, staff = uuid.uuid4(), uuid.uuid4()
        monday = datetime(2030, 6, 10, 8, 0, tzinfo=timezone.utc)
        rows = [
            TicketStatsRow(
                created_at=monday,
                updated_at=monday,
                status=TicketStatus.OPEN,
                priority=TicketPriority.HIGH,
                created_by=customer,
                assignee_name="Mara Leitung",
                messages=[(customer, monday + timedelta(hours=1)), (staff, monday + timedelta(hours=2))],
            ),
            TicketStatsRow(
                created_at=monday + timedelta(hours=4),
                updated_at=monday + timedelta(hours=8),
                status=TicketStatus.RESOLVED,
                priority=TicketPriority.HIGH,
                assignee_name="Mara Leitung",
            ),
            TicketStatsRow(
                created_at=monday,
                updated_at=monday,
                status=TicketStatus.OPEN,
                priority=TicketPriority.LOW,
                is_spam=True,
            ),
        ]

        stats = compute_ticket_stats(rows)

        assert stats.total_tickets == 2
        assert stats.open_tickets == 1
        assert stats.avg_response_time == pytest.approx(2.0)
        assert stats.avg_resolution_time == pytest.approx(4.0)
        assert stats.spam_rate == pytest.approx(100 / 3)
        assert stats.team_workload[0].employee_name == "Mara Leitung"
        assert stats.team_workload[0].ticket_count == 2
        assert [(d.date, d.count) for d in stats.tickets_over_time] == [("2030-06-10", 2)]
        assert [(p.key, p.count, p.percentage) for p in stats.priority_distribution] == [("high", 2, 100.0)]
        assert stats.weekday_distribution[0].weekday == "Montag"

    def test_preset_start(self):
        from app.schemas.ticket import DatePreset
        from app.services.ticket_service import preset_start
        now = datetime(2030, 6, 15, 12, 0, tzinfo=timezone.utc)
        assert preset_start(DatePreset.TODAY, now) == datetime(2030, 6, 14, 22, 0, tzinfo=timezone.utc)
        assert preset_start(DatePreset.WEEK, now) == now - timedelta(days=7)
        assert preset_start(DatePreset.MONTH, now) == now - timedelta(days=30)

    def test_ticket_number_format(self):
        from app.models.ticket import format_ticket_number
        assert format_ticket_number(42) == "TICKET-000042"


class TestTemplates:
    """Tests für das Rendern von Antwort-Vorlagen."""

    def test_placeholders(self):
        from app.services.template_service import placeholder_values, render_template_content

        ticket = TicketFactory.create(subject="Gutschein")
        ticket.ticket_number = 42
        ticket.reply_to_email = "antwort@example.com"
        employee = ProfileFactory.create(first_name="Mara", last_name="Leitung")

        text = render_template_content(
            "Hallo {{ kunde_email }}, zu {{ ticket_nummer }} ({{ betreff }}) - {{ mitarbeiter_name }}",
            placeholder_values(ticket, employee),
        )
        assert text == "Hallo antwort@example.com, zu TICKET-000042 (Gutschein) - Mara Leitung"

    def test_default_signature(self):
        from app.services.template_service import placeholder_values
        values = placeholder_values(TicketFactory.create(), None)
        assert values["mitarbeiter_name"] == "FLIGHTHOUR Team"
        assert values["kunde_email"] == "kunde@example.com"

    def test_broken_template(self):
        from app.api.exception_handlers import ValidationException
        from app.services.template_service import render_template_content
        with pytest.raises(ValidationException, match="fehlerhaft"):
            render_template_content("Hallo {{ kunde_email", {})


# ==================== ZEITERFASSUNG ====================

class TestTimeTrackingCalculations:
    """Tests für Monatsstatistik und Abrechnung."""

    def _entries(self):
        from app.models.time_tracking import TimeEntry
        employee_id = uuid.uuid4()
        return [
            TimeEntry(employee_id=employee_id, date=date(2030, 6, 3), duration_minutes=120),
            TimeEntry(employee_id=employee_id, date=date(2030, 6, 3), duration_minutes=60),
            TimeEntry(employee_id=employee_id, date=date(2030, 6, 4), duration_minutes=90),
        ]

    def test_month_range_leap_year(self):
        from app.services.time_tracking_service import month_range
        assert month_range(2028, 2) == (date(2028, 2, 1), date(2028, 2, 29))

    def test_monthly_stats(self):
        from app.services.time_tracking_service import compute_monthly_stats
        stats = compute_monthly_stats(self._entries())
        assert stats.total_minutes == 270
        assert stats.total_hours == 4.5
        assert stats.days_worked == 2
        assert stats.average_per_day == 135
        assert stats.entries_count == 3

    def test_monthly_stats_empty(self):
        from app.services.time_tracking_service import compute_monthly_stats
        stats = compute_monthly_stats([])
        assert stats.average_per_day == 0

    def test_report_row(self):
        """Zwischenlohn = Stunden × Satz, Gesamt = Zwischenlohn + Provision."""
        from app.models.time_tracking import TimeReport
        from app.services.time_tracking_service import build_report_row

        employee = ProfileFactory.create()
        report = TimeReport(
            employee_id=employee.id,
            year=2030,
            month=6,
            bonus_amount=Decimal("25.00"),
            evaluation_count=3,
        )
        row = build_report_row(employee, self._entries(), Decimal("15.50"), report)

        assert row.work_days == 2
        assert row.total_hours == 4.5
        assert row.interim_salary == 69.75
        assert row.provision == 25.0
        assert row.evaluation_count == 3
        assert row.total_salary == 94.75

    def test_report_row_without_report(self):
        from app.services.time_tracking_service import build_report_row
        row = build_report_row(ProfileFactory.create(), self._entries(), Decimal("10"), None)
        assert row.bonus_amount == 0.0
        assert row.total_salary == 45.0

    def test_totals(self):
        from app.services.time_tracking_service import build_report_row, sum_report_rows
        rows = [
            build_report_row(ProfileFactory.create(), self._entries(), Decimal("10"), None),
            build_report_row(ProfileFactory.create(), self._entries(), Decimal("20"), None),
        ]
        totals = sum_report_rows(rows)
        assert totals.total_days == 4
        assert totals.total_hours == 9.0
        assert totals.total_salary == 135.0
