"""Tests for opening-hours state."""

from datetime import datetime

from dinequery.hours import compute_open_state, filter_open, week_schedule, weekly_period
from dinequery.models.domain import OpeningHours, OpeningPeriod, OpeningTime, WorkingDayOverride

TZ = "Europe/Zagreb"


def _at(now, day, hour, minute=0):
    return datetime(2025, 3, day, hour, minute, tzinfo=now.tzinfo)


class TestComputeOpenState:
    """Tests for compute_open_state."""

    def test_period_across_midnight(self, now):
        """Test Mon 22:00 to Tue 02:00."""
        hours = OpeningHours(periods=[weekly_period(0, "2200", 1, "0200")])

        tuesday_early = compute_open_state(hours, _at(now, 4, 1), TZ)
        tuesday_late = compute_open_state(hours, _at(now, 4, 3), TZ)

        assert tuesday_early.state == "open"
        assert tuesday_early.closes_at == "02:00"
        assert tuesday_late.state == "closed"
        assert tuesday_late.opens_at is None

    def test_closed_but_opens_later_today(self, now):
        """Test that the next opening today is reported."""
        hours = OpeningHours(periods=[weekly_period(0, "2200", 1, "0200")])

        state = compute_open_state(hours, _at(now, 3, 21), TZ)

        assert state.state == "closed"
        assert state.opens_at == "22:00"
        assert state.closes_at == "02:00"

    def test_missing_schedule_is_undefined(self, now):
        """Test that no schedule is undefined, not closed."""
        assert compute_open_state(None, now, TZ).state == "undefined"
        assert compute_open_state(OpeningHours(), now, TZ).state == "undefined"

    def test_invalid_raw_schedule_is_undefined(self, now):
        """Test that malformed raw hours are treated as unknown."""
        assert compute_open_state({"periods": "daily"}, now, TZ).state == "undefined"

    def test_raw_dict_schedule(self, now):
        """Test that raw store payloads are accepted."""
        raw = {"periods": [{"open": {"day": 0, "time": "0800"}, "close": {"day": 0, "time": "1600"}}]}

        assert compute_open_state(raw, now, TZ).state == "open"

    def test_shifts(self, now):
        """Test a split day with a morning and an evening shift."""
        hours = OpeningHours(
            periods=[
                OpeningPeriod(
                    open=OpeningTime(day=0, time="0800"),
                    close=OpeningTime(day=0, time="1200"),
                    shifts=[weekly_period(0, "1700", 0, "2300")],
                )
            ]
        )

        afternoon = compute_open_state(hours, now, TZ)
        evening = compute_open_state(hours, _at(now, 3, 18), TZ)

        assert afternoon.state == "closed"
        assert afternoon.opens_at == "17:00"
        assert evening.state == "open"
        assert evening.closes_at == "23:00"

    def test_naive_datetime_is_local(self):
        """Test that a naive instant is read in the configured zone."""
        hours = week_schedule(range(7), "0800", "1600")

        assert compute_open_state(hours, datetime(2025, 3, 3, 9, 0), TZ).state == "open"


class TestOverrides:
    """Tests for date-specific schedule overrides."""

    def test_closed_override(self, now):
        """Test that a closed date overrides the weekly schedule."""
        hours = week_schedule(range(7), "0800", "2200")
        overrides = {"2025-03-03": WorkingDayOverride(closed=True)}

        assert compute_open_state(hours, now, TZ, overrides).state == "closed"

    def test_override_keeps_previous_day_spill(self, now):
        """Test that Sunday's late shift still covers early Monday."""
        hours = week_schedule(range(7), "2200", "0200")
        overrides = {"2025-03-03": WorkingDayOverride(closed=True)}

        assert compute_open_state(hours, _at(now, 3, 1), TZ, overrides).state == "open"
        assert compute_open_state(hours, _at(now, 3, 23), TZ, overrides).state == "closed"

    def test_override_without_weekly_schedule(self, now):
        """Test that an override alone defines the day."""
        overrides = {"2025-03-03": WorkingDayOverride(open="1000", close="1200")}

        state = compute_open_state(None, _at(now, 3, 11), TZ, overrides)

        assert state.state == "open"
        assert state.closes_at == "12:00"

    def test_override_spanning_midnight(self, now):
        """Test an override closing the next day."""
        overrides = {"2025-03-03": WorkingDayOverride(open="2000", close="0300", close_day_offset=1)}

        assert compute_open_state(None, _at(now, 3, 23), TZ, overrides).state == "open"


class TestFilterOpen:
    """Tests for filter_open and week_schedule."""

    def test_week_schedule_spills_to_next_day(self):
        """Test that closing before opening means the next day."""
        hours = week_schedule([6], "1100", "0100")

        assert hours.periods[0].open.day == 6
        assert hours.periods[0].close.day == 0

    def test_open_now(self, restaurants, now):
        """Test which fixture restaurants are open on Monday afternoon."""
        selected = filter_open(restaurants, now, TZ)

        assert [r.id for r, _ in selected] == [1, 2, 3]

    def test_open_late(self, restaurants, now):
        """Test that only the late pizzeria is open at 23:30."""
        selected = filter_open(restaurants, _at(now, 3, 23, 30), TZ)

        assert [r.id for r, _ in selected] == [3]
        assert selected[0][1].closes_at == "01:00"
