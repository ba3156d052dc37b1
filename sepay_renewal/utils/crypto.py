import hashlib
import hmac
import secrets
from typing import Optional


def sign_body(body: bytes, secret: str) -> str:
    """
    Подписывает тело запроса так же, как Sepay

    Args:
        body: Сырые байты тела запроса
        secret: Общий секрет webhook (SEPAY_WEBHOOK_SECRET)

    Returns:
        HMAC-SHA256 в hex формате (64 символа)
    """
    return hmac.new(secret.encode('utf-8'), body, hashlib.sha256).hexdigest()


def verify_signature(body: bytes, signature: Optional[str], secret: str) -> bool:
    """
    Проверяет HMAC-подпись тела запроса с защищенным сравнением

    Подпись сравнивается как байты hex-дайджеста. Некорректный hex
    не вызывает исключение, а просто отклоняется.

    Args:
        body: Сырые байты тела запроса
        signature: Подпись из заголовка или query-параметра
        secret: Общий секрет webhook

    Returns:
        True если подпись соответствует телу, иначе False
    """
    if not secret or not signature or not body:
        return False

    expected = bytes.fromhex(sign_body(body, secret))
    try:
        presented = bytes.fromhex(str(signature).strip())
    except ValueError:
        return False
    return secrets.compare_digest(expected, presented)


def verify_api_key(presented: Optional[str], expected: str) -> bool:
    """Сравнивает API-ключ с настроенным за постоянное время"""
    if not expected or not presented:
        return False
    return secrets.compare_digest(
        presented.strip().encode('utf-8'),
        expected.strip().encode('utf-8'),
    )
