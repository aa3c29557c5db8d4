"""
POWER HOUR - Unit Tests for the US Market Calendar
"""
from datetime import date, datetime, timezone

import pytest

from powerhour.data.market_calendar import (
    get_market_status,
    is_market_open,
    is_trading_day,
    next_trading_day,
    session_close,
)


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class TestTradingDays:
    def test_weekend(self):
        assert is_trading_day(date(2025, 6, 14)) is False
        assert is_trading_day(date(2025, 6, 15)) is False

    def test_full_holiday(self):
        assert is_trading_day(date(2025, 12, 25)) is False

    def test_early_close_still_trades(self):
        assert is_trading_day(date(2025, 11, 28)) is True
        assert session_close(date(2025, 11, 28)).hour == 13

    def test_next_trading_day_skips_holiday_and_weekend(self):
        # Thursday Juneteenth 2025 -> Friday, Friday -> Monday
        assert next_trading_day(date(2025, 6, 18)) == date(2025, 6, 20)
        assert next_trading_day(date(2025, 6, 20)) == date(2025, 6, 23)


class TestMarketOpen:
    @pytest.mark.parametrize("now,expected", [
        (utc(2025, 6, 17, 14, 0), True),     # 10:00 EDT
        (utc(2025, 6, 17, 13, 29), False),   # 09:29 EDT
        (utc(2025, 6, 17, 13, 30), True),    # 09:30 EDT
        (utc(2025, 6, 17, 20, 0), False),    # 16:00 EDT
        (utc(2025, 1, 7, 15, 0), True),      # 10:00 EST
        (utc(2025, 11, 28, 17, 30), True),   # 12:30 EST, early close day
        (utc(2025, 11, 28, 18, 30), False),  # 13:30 EST, early close day
        (utc(2025, 12, 25, 15, 0), False),
        (utc(2025, 6, 14, 15, 0), False),
    ])
    def test_is_market_open(self, now, expected):
        assert is_market_open(now) is expected

    def test_naive_datetime_rejected(self):
        with pytest.raises(ValueError):
            is_market_open(datetime(2025, 6, 17, 14, 0))


class TestMarketStatus:
    def test_regular_session(self):
        status = get_market_status(utc(2025, 6, 17, 14, 0))
        assert status.is_open is True
        assert status.session == "regular"
        assert status.minutes_until_open == 0

    def test_pre_market(self):
        status = get_market_status(utc(2025, 6, 17, 12, 0))
        assert status.session == "pre_market"
        assert status.next_open_label == "Opens today 9:30 AM ET"
        assert status.minutes_until_open == 90

    def test_after_hours(self):
        status = get_market_status(utc(2025, 6, 17, 21, 0))
        assert status.session == "after_hours"
        assert status.next_open_label == "Opens tomorrow 9:30 AM ET"

    def test_weekend(self):
        status = get_market_status(utc(2025, 6, 14, 15, 0))
        assert status.is_weekend is True
        assert status.session == "closed"
        assert status.next_open_label == "Opens Monday 9:30 AM ET"

    def test_holiday(self):
        status = get_market_status(utc(2025, 12, 25, 15, 0))
        assert status.holiday == "Christmas Day"
        assert status.is_open is False
        assert status.next_open.startswith("2025-12-26T09:30")

    def test_early_close_flag(self):
        status = get_market_status(utc(2025, 11, 28, 18, 30))
        assert status.early_close is True
        assert status.session == "after_hours"
