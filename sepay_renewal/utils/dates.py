"""Разбор и форматирование дат (в базе даты хранятся текстом в разных форматах)"""
import math
import re
from datetime import date, datetime, time, timedelta
from typing import Optional

from sepay_renewal.constants import VIETNAM_TZ

_DATE_PARTS_RE = re.compile(r"[/-]")


def now_vn() -> datetime:
    return datetime.now(VIETNAM_TZ)


def today_vn() -> date:
    return now_vn().date()


def _from_iso(text: str) -> Optional[datetime]:
    try:
        return datetime.fromisoformat(text.replace(" ", "T", 1))
    except ValueError:
        return None


def parse_flexible_date(value) -> Optional[date]:
    """
    Разбирает дату из БД: date/datetime, ISO, YYYY/MM/DD, DD/MM/YYYY, DD-MM-YYYY

    Returns:
        date или None, если значение не распознано
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    if not text:
        return None

    parsed = _from_iso(text)
    if parsed:
        return parsed.date()

    head = text.split()[0].split("T")[0]
    parts = _DATE_PARTS_RE.split(head)
    if len(parts) != 3 or not all(p.isdigit() for p in parts):
        return None

    first, second, third = (int(p) for p in parts)
    # Год либо первым (YYYY/MM/DD), либо последним (DD/MM/YYYY)
    candidates = [(first, second, third)] if len(parts[0]) == 4 else [(third, second, first), (first, second, third)]
    for year, month, day in candidates:
        try:
            return date(year, month, day)
        except ValueError:
            continue
    return None


def parse_paid_date(value, today: Optional[date] = None) -> date:
    """Дата оплаты из метки времени Sepay ('2024-05-01 10:22:00' или ISO); иначе сегодня"""
    text = str(value or "").strip()
    parsed = _from_iso(text) if text else None
    if parsed:
        return parsed.date()
    return today or today_vn()


def format_date_dmy(value: date) -> str:
    return value.strftime("%d/%m/%Y")


def format_date_db(value: date) -> str:
    return value.strftime("%Y/%m/%d")


def days_until(value, today: Optional[date] = None) -> Optional[int]:
    """Сколько календарных дней до даты (None, если дата не распознана)"""
    target = parse_flexible_date(value)
    if target is None:
        return None
    return (target - (today or today_vn())).days


def days_left(expiry: date, now: Optional[datetime] = None) -> int:
    """floor((окончание - сейчас) / 1 день), окончание считается с полуночи по Вьетнаму"""
    current = now or now_vn()
    if current.tzinfo is None:
        current = current.replace(tzinfo=VIETNAM_TZ)
    expiry_start = datetime.combine(expiry, time.min, tzinfo=VIETNAM_TZ)
    return math.floor((expiry_start - current) / timedelta(days=1))
