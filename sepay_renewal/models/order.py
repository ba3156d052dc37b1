"""Модели заказов"""
from enum import Enum
from typing import Optional, TypedDict

from sepay_renewal.utils.text import normalize_label


class OrderStatus(str, Enum):
    """Статус заказа; значение: каноническая метка, которая пишется в БД"""

    UNPAID = "Chưa Thanh Toán"
    PROCESSING = "Đang Xử Lý"
    PAID = "Đã Thanh Toán"
    NEEDS_RENEWAL = "Cần Gia Hạn"
    EXPIRED = "Hết Hạn"
    PENDING_REFUND = "Chưa Hoàn"
    CANCELED = "Đã Hủy"

    @classmethod
    def from_db(cls, value) -> Optional["OrderStatus"]:
        """Метка из БД (с любыми диакритиками/регистром) -> статус или None"""
        if isinstance(value, cls):
            return value
        return _STATUS_BY_KEY.get(normalize_label(value))


_STATUS_BY_KEY = {normalize_label(status.value): status for status in OrderStatus}
_STATUS_BY_KEY["da hoan"] = OrderStatus.CANCELED


def parse_check_flag(value) -> Optional[bool]:
    """
    Трехзначный флаг проверки: None (не обработан), False, True

    Старые записи хранят флаг текстом, поэтому '', 'null' считаются None,
    а 1/'1'/'true' считаются True.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value == 1
    text = str(value).strip().lower()
    if text in ("", "null", "none"):
        return None
    return text in ("1", "true", "t")


class OrderState(TypedDict):
    """Минимальное состояние заказа для решения о продлении"""
    order_code: str
    status: Optional[OrderStatus]
    check_flag: Optional[bool]
    order_expired: object  # сырое значение из БД, разбирается отдельно


class OrderRecord(TypedDict):
    """Заказ в объеме, нужном для продления"""
    order_code: str
    product: str
    information: Optional[str]
    slot: Optional[str]
    supplier: Optional[str]
    cost: object
    price: object
    order_date: object
    order_expired: object
    status: Optional[OrderStatus]
    check_flag: Optional[bool]


class OrderSupplySource(TypedDict):
    """Товар, поставщик и себестоимость заказа (для сверки с реестром)"""
    product: str
    supplier: str
    cost: object


class RenewalUpdate(TypedDict):
    """Новый цикл заказа, который записывается при продлении"""
    order_date: str
    days: int
    order_expired: str
    cost: int
    price: int
    status: OrderStatus
    check_flag: bool
