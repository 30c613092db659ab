from datetime import datetime, date, timedelta
from typing import Callable, Optional
import pytz

UTC = pytz.utc
EPOCH = datetime(1970, 1, 1, tzinfo=UTC)

Clock = Callable[[], datetime]

def get_timezone(name: str = "UTC"):
    return pytz.timezone(name)

def make_clock(tz_name: str = "UTC") -> Clock:
    tz = get_timezone(tz_name)
    return lambda: datetime.now(tz)

def utc_now() -> datetime:
    return datetime.now(UTC)

def to_iso(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = UTC.localize(dt)
    return dt.astimezone(UTC).isoformat().replace("+00:00", "Z")

def parse_iso(value: Optional[str]) -> Optional[datetime]:
    if not value or not isinstance(value, str):
        return None
    try:
        dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = UTC.localize(dt)
    return dt

def timestamp_or_epoch(value: Optional[str]) -> datetime:
    return parse_iso(value) or EPOCH

def parse_date(date_str: str) -> Optional[date]:
    # Принимаем как "YYYY-MM-DD", так и полные ISO-метки
    try:
        return date.fromisoformat(str(date_str)[:10])
    except ValueError:
        return None

def add_days(day: date, days: int) -> date:
    return day + timedelta(days=days)
