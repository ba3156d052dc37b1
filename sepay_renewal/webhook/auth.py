"""Проверка подлинности входящих вызовов Sepay"""
import logging
import re
from typing import Mapping, Optional

from sepay_renewal.constants import SIGNATURE_HEADERS, SIGNATURE_QUERY_PARAMS
from sepay_renewal.utils.crypto import verify_api_key, verify_signature

logger = logging.getLogger(__name__)

_APIKEY_RE = re.compile(r"^Apikey\s+(.+)$", re.IGNORECASE)


def resolve_signature(headers: Mapping[str, str], query: Mapping[str, str]) -> Optional[str]:
    """Ищет подпись в заголовках, затем в query-параметрах"""
    for name in SIGNATURE_HEADERS:
        value = headers.get(name)
        if value:
            return value
    for name in SIGNATURE_QUERY_PARAMS:
        value = query.get(name)
        if value:
            return value
    return None


def extract_api_key(headers: Mapping[str, str]) -> str:
    """
    Достает API-ключ из 'Authorization: Apikey <key>' или 'X-API-KEY: <key>'

    Голое значение без схемы тоже принимается, если оно само не начинается с 'apikey'.
    """
    raw = (headers.get("Authorization") or headers.get("X-API-KEY") or "").strip()
    match = _APIKEY_RE.match(raw)
    if match:
        return match.group(1).strip()
    if raw and not raw.lower().startswith("apikey"):
        return raw
    return ""


def is_authentic(
    body: bytes,
    headers: Mapping[str, str],
    query: Mapping[str, str],
    secret: str,
    api_key: str,
) -> bool:
    """
    Принимает вызов, если валидна HMAC-подпись тела ИЛИ API-ключ

    Без настроенного секрета и ключа любой вызов отклоняется.
    """
    signature = resolve_signature(headers, query)
    has_valid_signature = verify_signature(body, signature, secret)
    has_valid_api_key = verify_api_key(extract_api_key(headers), api_key)

    if not (has_valid_signature or has_valid_api_key):
        logger.warning(
            f"🚫 Webhook отклонен: подпись={'есть' if signature else 'нет'}, "
            f"Authorization={'есть' if headers.get('Authorization') else 'нет'}, "
            f"X-API-KEY={'есть' if headers.get('X-API-KEY') else 'нет'}"
        )
        return False
    return True


def has_valid_api_key(headers: Mapping[str, str], api_key: str) -> bool:
    """Проверка только по API-ключу (для ручного запуска продлений)"""
    return verify_api_key(extract_api_key(headers), api_key)
