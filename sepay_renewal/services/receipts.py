"""Запись квитанций об оплате"""
import logging
from datetime import date
from typing import Optional

from sepay_renewal.db.pool import Database
from sepay_renewal.db.repositories.receipts import ReceiptRepository
from sepay_renewal.exceptions import ReceiptWriteFailure
from sepay_renewal.models.transaction import PaymentReceipt, TransactionRecord
from sepay_renewal.services.transactions import split_transaction_content
from sepay_renewal.utils.dates import parse_paid_date
from sepay_renewal.utils.money import normalize_amount

logger = logging.getLogger(__name__)


def build_receipt(transaction: TransactionRecord, today: Optional[date] = None) -> PaymentReceipt:
    """Квитанция из нормализованной транзакции (чистая функция)"""
    content = transaction.get("transaction_content") or ""
    order_code, sender = split_transaction_content(content)
    return {
        'order_code': order_code,
        'paid_date': parse_paid_date(transaction.get("transaction_date"), today),
        'amount': normalize_amount(transaction.get("amount_in")),
        'receiver': str(transaction.get("account_number") or ""),
        'sender': sender,
        'note': str(transaction.get("note") or transaction.get("description") or content),
    }


class ReceiptRecorder:
    """Обязательная запись запроса: ошибка здесь превращается в 500"""

    def __init__(self, db: Database, receipts: ReceiptRepository):
        self.db = db
        self.receipts = receipts

    async def record(self, transaction: TransactionRecord) -> PaymentReceipt:
        receipt = build_receipt(transaction)
        try:
            async with self.db.acquire() as conn:
                receipt_id = await self.receipts.insert(conn, receipt)
        except Exception as e:
            logger.error(f"❌ Ошибка записи квитанции для {receipt['order_code'] or '-'}: {e}")
            raise ReceiptWriteFailure(receipt['order_code'], e) from e

        logger.info(
            f"🧾 Квитанция #{receipt_id} сохранена: заказ {receipt['order_code'] or '-'}, "
            f"сумма {receipt['amount']}, дата {receipt['paid_date']}"
        )
        return receipt
