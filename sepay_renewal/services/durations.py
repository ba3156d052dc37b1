"""Срок подписки, зашитый в код товара (например 'netflix--3m')"""
import re

_DASHES_RE = re.compile(r"[\u2010-\u2015]")
_LOOSE_DURATION_RE = re.compile(r"-+\s*(\d+)\s*m\b", re.IGNORECASE)
_DURATION_RE = re.compile(r"--(\d+)m", re.IGNORECASE)


def normalize_product_duration(text: str) -> str:
    """Типографские тире -> '-', а '-3m' / '- 3 m' -> '--3m'"""
    normalized = _DASHES_RE.sub("-", str(text or ""))
    return _LOOSE_DURATION_RE.sub(lambda m: f"--{m.group(1)}m", normalized)


def months_from_string(text: str) -> int:
    """Количество месяцев из токена '--<n>m', 0 если токена нет"""
    if not text or not isinstance(text, str):
        return 0
    match = _DURATION_RE.search(text)
    return int(match.group(1)) if match else 0


def days_from_months(months: int) -> int:
    """Месяцы -> дни продления: год 365, два года 730, остальное по 30 дней"""
    if not isinstance(months, int) or months <= 0:
        return 0
    if months == 12:
        return 365
    if months == 24:
        return 730
    return months * 30


def renewal_days_for_product(product_code: str) -> int:
    """Дни продления для кода товара, 0 если срок не определен"""
    return days_from_months(months_from_string(normalize_product_duration(product_code)))
