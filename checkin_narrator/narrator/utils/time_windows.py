"""
Mốc thời gian theo timezone của user: ngày, tuần (thứ Hai..Chủ nhật), tháng.
Mọi datetime trả về cho query DB đều là UTC; date là ngày local.
"""
import calendar
import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from narrator.logging_config import get_logger

logger = get_logger(__name__)

HHMM_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")
MINUTES_PER_DAY = 24 * 60


def resolve_timezone(name: Optional[str], fallback: str = "UTC") -> ZoneInfo:
    """ZoneInfo cho name; name rỗng hoặc không hợp lệ -> fallback (log warning)."""
    if name:
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("time.invalid_timezone", timezone=name, fallback=fallback)
    return ZoneInfo(fallback)


def is_valid_timezone(name: str) -> bool:
    try:
        ZoneInfo(name)
        return True
    except (ZoneInfoNotFoundError, ValueError):
        return False


def parse_hhmm(value: str) -> Tuple[int, int]:
    """"21:05" -> (21, 5). ValueError nếu sai format."""
    m = HHMM_RE.match(value or "")
    if not m:
        raise ValueError(f"Invalid time format (expected HH:MM): {value!r}")
    return int(m.group(1)), int(m.group(2))


def is_time_match(scheduled: str, local_now: datetime, window_minutes: int = 15) -> bool:
    """
    True nếu giờ local cách giờ hẹn < window_minutes (khoảng cách vòng tròn trong ngày,
    nên 23:55 vẫn khớp 00:05).
    """
    hour, minute = parse_hhmm(scheduled)
    diff = abs((local_now.hour * 60 + local_now.minute) - (hour * 60 + minute))
    diff = min(diff, MINUTES_PER_DAY - diff)
    return diff < window_minutes


def js_weekday(d: date) -> int:
    """0=Chủ nhật .. 6=Thứ bảy (quy ước của weekly_day)."""
    return (d.weekday() + 1) % 7


def week_start(d: date) -> date:
    """Thứ Hai của tuần chứa d."""
    return d - timedelta(days=d.weekday())


def month_start(d: date) -> date:
    return d.replace(day=1)


def month_end(d: date) -> date:
    return d.replace(day=calendar.monthrange(d.year, d.month)[1])


def period_start(post_type: str, d: date) -> date:
    """Chuẩn hóa date về đầu kỳ theo loại bài."""
    if post_type == "WEEKLY":
        return week_start(d)
    if post_type == "MONTHLY":
        return month_start(d)
    return d


def local_day_bounds_utc(d: date, tz: ZoneInfo) -> Tuple[datetime, datetime]:
    """[00:00 ngày d, 00:00 ngày d+1) theo tz, quy đổi ra UTC."""
    start = datetime.combine(d, time.min, tzinfo=tz)
    end = datetime.combine(d + timedelta(days=1), time.min, tzinfo=tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def start_of_local_day_utc(now: datetime, tz: ZoneInfo) -> datetime:
    """00:00 hôm nay (theo tz) dưới dạng UTC."""
    local_today = now.astimezone(tz).date()
    return local_day_bounds_utc(local_today, tz)[0]
