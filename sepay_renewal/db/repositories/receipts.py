"""Репозиторий квитанций об оплате"""
import asyncpg

from sepay_renewal.models.transaction import PaymentReceipt


class ReceiptRepository:
    """Квитанции только добавляются, никогда не изменяются"""

    def __init__(self, schema: str):
        self.table = f"{schema}.payment_receipt"

    async def insert(self, conn: asyncpg.Connection, receipt: PaymentReceipt) -> int:
        """
        Сохраняет квитанцию

        Returns:
            id созданной строки
        """
        return await conn.fetchval(
            f"""
            INSERT INTO {self.table} (ma_don_hang, ngay_thanh_toan, so_tien, nguoi_gui, sender, noi_dung_ck)
            VALUES ($1, $2, $3, $4, $5, $6)
            RETURNING id
            """,
            receipt['order_code'],
            receipt['paid_date'],
            receipt['amount'],
            receipt['receiver'],
            receipt['sender'],
            receipt['note']
        )
