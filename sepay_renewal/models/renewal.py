"""Результаты продления заказов"""
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel


class ProcessType(str, Enum):
    RENEWAL = "renewal"
    SKIPPED = "skipped"
    ERROR = "error"


class RenewalAction(str, Enum):
    """Решение автомата продления для текущего состояния заказа"""
    RENEW = "renew"
    FORCE_RENEW = "force_renew"
    ACKNOWLEDGE = "acknowledge"
    NONE = "none"


class RenewalDetails(BaseModel):
    """Сводка продленного заказа для ответа webhook и уведомления"""
    order_code: str
    product: str
    information: Optional[str] = None
    slot: Optional[str] = None
    start_date: str
    expiry_date: str
    supplier: Optional[str] = None
    cost: int
    price: int
    status: str


class RenewalResult(BaseModel):
    """Итог продления: успех, пропуск или ошибка"""
    success: bool
    process_type: ProcessType
    details: Union[RenewalDetails, str, None] = None

    @classmethod
    def renewed(cls, details: RenewalDetails) -> "RenewalResult":
        return cls(success=True, process_type=ProcessType.RENEWAL, details=details)

    @classmethod
    def skipped(cls, reason: str) -> "RenewalResult":
        return cls(success=False, process_type=ProcessType.SKIPPED, details=reason)

    @classmethod
    def error(cls, reason: str) -> "RenewalResult":
        return cls(success=False, process_type=ProcessType.ERROR, details=reason)

    def to_response(self) -> dict:
        return self.model_dump(mode="json")


class RenewalOutcome(BaseModel):
    """Что автомат сделал с заказом в рамках одного вызова"""
    order_code: str
    action: RenewalAction
    result: Optional[RenewalResult] = None
    status_reset: bool = False

    @property
    def success(self) -> bool:
        return bool(self.result and self.result.success)

    def to_response(self) -> dict:
        return self.model_dump(mode="json")
