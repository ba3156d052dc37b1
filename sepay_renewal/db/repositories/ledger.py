"""Реестр выплат поставщикам (payment_supply)"""
from typing import Optional
import asyncpg

from sepay_renewal.constants import LEDGER_OPEN_STATUS
from sepay_renewal.models.transaction import LedgerEntry

# Пространство имен advisory-блокировок реестра
LEDGER_LOCK_NAMESPACE = "payment_supply"


class LedgerRepository:
    """Накопительные записи задолженности перед поставщиками"""

    def __init__(self, schema: str):
        self.table = f"{schema}.payment_supply"

    async def lock_supplier(self, conn: asyncpg.Connection, supplier_id: int) -> None:
        """
        Блокировка поставщика до конца текущей транзакции

        Параллельные webhook для одного поставщика выстраиваются в очередь
        внутри PostgreSQL, поэтому открытая запись создается только одна.
        """
        await conn.execute(
            "SELECT pg_advisory_xact_lock(hashtext($1), $2)",
            LEDGER_LOCK_NAMESPACE, supplier_id
        )

    async def latest_entry(self, conn: asyncpg.Connection, supplier_id: int) -> Optional[LedgerEntry]:
        """Последняя запись реестра поставщика"""
        row = await conn.fetchrow(
            f"""
            SELECT id, import AS import_value, paid, status
            FROM {self.table}
            WHERE source_id = $1
            ORDER BY id DESC
            LIMIT 1
            """,
            supplier_id
        )
        return dict(row) if row else None  # type: ignore

    async def add_to_entry(self, conn: asyncpg.Connection, entry_id: int, amount: int) -> None:
        """Прибавляет сумму к открытой записи"""
        await conn.execute(
            f"""
            UPDATE {self.table}
            SET import = COALESCE(import, 0) + $2
            WHERE id = $1
            """,
            entry_id, amount
        )

    async def open_entry(
        self,
        conn: asyncpg.Connection,
        supplier_id: int,
        amount: int,
        round_label: str
    ) -> int:
        """Открывает новую неоплаченную запись"""
        return await conn.fetchval(
            f"""
            INSERT INTO {self.table} (source_id, import, round, status, paid)
            VALUES ($1, $2, $3, $4, NULL)
            RETURNING id
            """,
            supplier_id, amount, round_label, LEDGER_OPEN_STATUS
        )
