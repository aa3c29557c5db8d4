"""
POWER HOUR - US Market Calendar
Exchange holidays, early closes and regular-session hours in Eastern Time.
"""
from datetime import date, datetime, time, timedelta
from typing import Dict, Optional, Tuple
from zoneinfo import ZoneInfo

from powerhour.data.models import MarketStatus
from powerhour.utils.helpers import utc_now

EASTERN = ZoneInfo("America/New_York")

REGULAR_OPEN = time(9, 30)
REGULAR_CLOSE = time(16, 0)
EARLY_CLOSE = time(13, 0)
PRE_MARKET_OPEN = time(4, 0)
AFTER_HOURS_CLOSE = time(20, 0)

# name, early_close
US_MARKET_HOLIDAYS: Dict[str, Tuple[str, bool]] = {
    "2024-01-01": ("New Year's Day", False),
    "2024-01-15": ("Martin Luther King Jr. Day", False),
    "2024-02-19": ("Presidents' Day", False),
    "2024-03-29": ("Good Friday", False),
    "2024-05-27": ("Memorial Day", False),
    "2024-06-19": ("Juneteenth", False),
    "2024-07-04": ("Independence Day", False),
    "2024-09-02": ("Labor Day", False),
    "2024-11-28": ("Thanksgiving Day", False),
    "2024-11-29": ("Day After Thanksgiving", True),
    "2024-12-24": ("Christmas Eve", True),
    "2024-12-25": ("Christmas Day", False),

    "2025-01-01": ("New Year's Day", False),
    "2025-01-09": ("National Day of Mourning", False),
    "2025-01-20": ("Martin Luther King Jr. Day", False),
    "2025-02-17": ("Presidents' Day", False),
    "2025-04-18": ("Good Friday", False),
    "2025-05-26": ("Memorial Day", False),
    "2025-06-19": ("Juneteenth", False),
    "2025-07-04": ("Independence Day", False),
    "2025-09-01": ("Labor Day", False),
    "2025-11-27": ("Thanksgiving Day", False),
    "2025-11-28": ("Day After Thanksgiving", True),
    "2025-12-24": ("Christmas Eve", True),
    "2025-12-25": ("Christmas Day", False),

    "2026-01-01": ("New Year's Day", False),
    "2026-01-19": ("Martin Luther King Jr. Day", False),
    "2026-02-16": ("Presidents' Day", False),
    "2026-04-03": ("Good Friday", False),
    "2026-05-25": ("Memorial Day", False),
    "2026-06-19": ("Juneteenth", False),
    "2026-07-03": ("Independence Day (Observed)", False),
    "2026-09-07": ("Labor Day", False),
    "2026-11-26": ("Thanksgiving Day", False),
    "2026-11-27": ("Day After Thanksgiving", True),
    "2026-12-24": ("Christmas Eve", True),
    "2026-12-25": ("Christmas Day", False),
}


def to_eastern(now: Optional[datetime] = None) -> datetime:
    now = now or utc_now()
    if now.tzinfo is None:
        raise ValueError("naive datetime; pass an aware datetime")
    return now.astimezone(EASTERN)


def holiday_for(day: date) -> Optional[Tuple[str, bool]]:
    """Return (name, early_close) when the exchange has a holiday entry for the day."""
    return US_MARKET_HOLIDAYS.get(day.isoformat())


def is_trading_day(day: date) -> bool:
    if day.weekday() >= 5:
        return False
    entry = holiday_for(day)
    # Early-close days still trade
    return entry is None or entry[1]


def session_close(day: date) -> time:
    entry = holiday_for(day)
    if entry is not None and entry[1]:
        return EARLY_CLOSE
    return REGULAR_CLOSE


def next_trading_day(day: date) -> date:
    candidate = day + timedelta(days=1)
    for _ in range(14):
        if is_trading_day(candidate):
            return candidate
        candidate += timedelta(days=1)
    return candidate


def is_market_open(now: Optional[datetime] = None) -> bool:
    """Regular session check (09:30 to 16:00 ET, 13:00 on early-close days)."""
    et = to_eastern(now)
    if not is_trading_day(et.date()):
        return False
    return REGULAR_OPEN <= et.time() < session_close(et.date())


def get_market_status(now: Optional[datetime] = None) -> MarketStatus:
    et = to_eastern(now)
    today = et.date()
    weekend = today.weekday() >= 5
    entry = holiday_for(today)
    holiday_name = entry[0] if entry else None
    early_close = bool(entry and entry[1])
    trading_today = is_trading_day(today)
    close = session_close(today)
    clock = et.time()

    is_open = trading_today and REGULAR_OPEN <= clock < close

    if is_open:
        session = "regular"
    elif trading_today and PRE_MARKET_OPEN <= clock < REGULAR_OPEN:
        session = "pre_market"
    elif trading_today and close <= clock < AFTER_HOURS_CLOSE:
        session = "after_hours"
    else:
        session = "closed"

    if is_open:
        next_open = et
        label = "Market Open"
    elif trading_today and clock < REGULAR_OPEN:
        next_open = datetime.combine(today, REGULAR_OPEN, tzinfo=EASTERN)
        label = "Opens today 9:30 AM ET"
    else:
        next_day = next_trading_day(today)
        next_open = datetime.combine(next_day, REGULAR_OPEN, tzinfo=EASTERN)
        if next_day == today + timedelta(days=1):
            label = "Opens tomorrow 9:30 AM ET"
        else:
            label = f"Opens {next_day.strftime('%A')} 9:30 AM ET"

    minutes = max(0, int((next_open - et).total_seconds() // 60))

    return MarketStatus(
        is_open=is_open,
        session=session,
        is_weekend=weekend,
        holiday=holiday_name,
        early_close=early_close,
        next_open=next_open.isoformat(),
        next_open_label=label,
        minutes_until_open=minutes,
        timestamp=et.isoformat(),
    )
