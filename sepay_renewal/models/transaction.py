"""Модели платежей Sepay"""
from datetime import date
from typing import Any, Optional, TypedDict


class TransactionRecord(TypedDict, total=False):
    """Нормализованная транзакция из webhook (живет только в рамках запроса)"""
    transaction_content: str
    transaction_date: Any
    amount_in: Any
    note: str
    description: str
    account_number: str
    transfer_amount: Any
    transaction_date_raw: Any


class PaymentReceipt(TypedDict):
    """Строка квитанции об оплате (только добавление, без изменений)"""
    order_code: str
    paid_date: date
    amount: int
    receiver: str
    sender: str
    note: str


class SupplyResolution(TypedDict):
    """Результат сверки заказа с товаром/поставщиком"""
    product_id: Optional[int]
    supplier_id: Optional[int]
    price: int


class LedgerEntry(TypedDict):
    """Последняя запись реестра выплат поставщику"""
    id: int
    import_value: Any
    paid: Any
    status: Optional[str]
