"""Нормализация денежных сумм и коэффициентов"""
import math
import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Union

from sepay_renewal.constants import PRICE_ROUNDING_STEP

Number = Union[int, float, Decimal]

_NON_DIGITS_RE = re.compile(r"[^\d-]")


def _half_up(value: Number) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _parse_digits(text: str) -> int:
    digits = _NON_DIGITS_RE.sub("", text)
    try:
        return int(digits)
    except ValueError:
        return 0


def normalize_amount(value) -> int:
    """
    Сумма из webhook: отбрасываем дробную часть, затем всё, кроме цифр и минуса

    "150000.00" -> 150000, "1,234abc" -> 1234, мусор -> 0
    """
    text = str(value if value not in (None, "") else "0").split(".")[0]
    return _parse_digits(text)


def normalize_money(value) -> int:
    """Сумма из БД или расчета (int/float/Decimal/строка) -> целое число"""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float, Decimal)):
        try:
            if not math.isfinite(float(value)):
                return 0
        except (OverflowError, ValueError):
            return 0
        return _half_up(value)

    text = str(value if value is not None else "").strip()
    if not text:
        return 0

    compact = re.sub(r"[,\s]", "", text)
    try:
        parsed = Decimal(compact)
        if parsed.is_finite():
            return _half_up(parsed)
    except InvalidOperation:
        pass
    return _parse_digits(compact)


def round_to_thousands(value) -> int:
    """Округление до тысяч, половина вверх: 80500 -> 81000, 80499 -> 80000"""
    try:
        numeric = int(value)
    except (TypeError, ValueError, OverflowError):
        return 0
    if numeric == 0:
        return 0

    sign = -1 if numeric < 0 else 1
    magnitude = abs(numeric)
    remainder = magnitude % PRICE_ROUNDING_STEP
    if remainder == 0:
        return numeric
    if remainder >= PRICE_ROUNDING_STEP // 2:
        magnitude += PRICE_ROUNDING_STEP - remainder
    else:
        magnitude -= remainder
    return sign * magnitude


def normalize_pct(value) -> float:
    """Коэффициент канала: пусто/<=0 -> 1, больше 10 считается процентом (125 -> 1.25)"""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 1.0
    if not math.isfinite(number) or number <= 0:
        return 1.0
    if number > 10:
        return number / 100
    return number


def format_currency(value) -> str:
    """Формат суммы как в vi-VN: 1234567 -> 1.234.567"""
    try:
        number = normalize_money(value)
    except (TypeError, ValueError):
        return "0"
    return f"{number:,}".replace(",", ".")
