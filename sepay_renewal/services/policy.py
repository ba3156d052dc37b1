"""Политика второстепенных шагов webhook: поймать, залогировать, продолжить"""
import logging
from typing import Awaitable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def run_advisory(step: str, awaitable: Awaitable[T], **context) -> Optional[T]:
    """
    Выполняет второстепенный шаг и гасит его ошибку

    Ответ webhook от этого шага не зависит: при ошибке возвращается None,
    а в лог попадает имя шага и контекст (код заказа, поставщик и т.п.).
    """
    try:
        return await awaitable
    except Exception as e:
        details = ", ".join(f"{key}={value}" for key, value in context.items())
        logger.error(f"⚠️ Шаг '{step}' завершился ошибкой ({details}): {e}", exc_info=True)
        return None
