"""Нормализация payload Sepay и извлечение кода заказа из текста перевода"""
import re
from typing import Any, Optional

from sepay_renewal.constants import ORDER_CODE_PATTERN
from sepay_renewal.models.transaction import TransactionRecord
from sepay_renewal.utils.text import split_tokens

_ORDER_CODE_RE = re.compile(ORDER_CODE_PATTERN, re.IGNORECASE)

# Синонимы полей, которые встречаются в разных версиях payload Sepay
CONTENT_ALIASES = ("content", "description", "note", "transaction_content")
DATE_ALIASES = ("transactionDate", "transaction_date", "transferTime", "time")
AMOUNT_ALIASES = ("amount_in", "transferAmount", "amountIn", "amount")


def _first(payload: dict, *keys: str, default: Any = None) -> Any:
    for key in keys:
        value = payload.get(key)
        if value:
            return value
    return default


def normalize_transaction_payload(payload: Any) -> Optional[TransactionRecord]:
    """
    Приводит payload webhook к одной форме транзакции

    Вложенный объект 'transaction' используется как есть. Иначе поля
    собираются по синонимам. Если нет ни текста, ни даты, ни суммы,
    возвращается None (ответ 400).
    """
    if not isinstance(payload, dict) or not payload:
        return None

    nested = payload.get("transaction")
    if isinstance(nested, dict):
        return nested  # type: ignore

    content = _first(payload, *CONTENT_ALIASES, default="")
    transaction_date = _first(payload, *DATE_ALIASES)
    amount_in = _first(payload, *AMOUNT_ALIASES, default=0)

    if not content and not transaction_date and not amount_in:
        return None

    return {
        "transaction_content": content,
        "transaction_date": transaction_date,
        "amount_in": amount_in,
        "note": _first(payload, "note", "description", "content", default=""),
        "description": payload.get("description") or "",
        "account_number": _first(payload, "accountNumber", "account_number", default=""),
        "transfer_amount": _first(payload, "transferAmount", "amount", "amount_in"),
        "transaction_date_raw": transaction_date,
    }


def split_transaction_content(content: Optional[str]) -> tuple[str, str]:
    """
    Делит текст перевода на (код заказа, отправитель)

    Одно слово: это и код, и отправитель. Несколько слов: код последний,
    отправитель первый. Пустой текст дает ('', '').
    """
    parts = split_tokens(content)
    if not parts:
        return "", ""
    if len(parts) == 1:
        return parts[0], parts[0]
    return parts[-1], parts[0]


def extract_order_codes(transaction: Optional[TransactionRecord]) -> list[str]:
    """Все коды заказов из content/note/description, в верхнем регистре, без повторов"""
    if not transaction:
        return []

    codes: list[str] = []
    for field in ("transaction_content", "note", "description"):
        text = transaction.get(field)
        if not text:
            continue
        for match in _ORDER_CODE_RE.findall(str(text)):
            code = match.upper()
            if code not in codes:
                codes.append(code)
    return codes


def derive_order_code(transaction: Optional[TransactionRecord]) -> str:
    """
    Лучший кандидат на код заказа: первое совпадение по шаблону,
    иначе последнее слово текста перевода. Может быть пустым и не
    обязан существовать в базе.
    """
    if not transaction:
        return ""
    codes = extract_order_codes(transaction)
    if codes:
        return codes[0].strip()
    code, _ = split_transaction_content(transaction.get("transaction_content"))
    return code.strip()
