"""Репозиторий заказов (order_list)"""
from typing import Optional
import asyncpg

from sepay_renewal.models.order import (
    OrderRecord,
    OrderState,
    OrderStatus,
    OrderSupplySource,
    RenewalUpdate,
    parse_check_flag,
)


class OrderRepository:
    """Чтение и изменение заказов; поиск по коду без учета регистра"""

    def __init__(self, schema: str):
        self.table = f"{schema}.order_list"

    async def get_state(self, conn: asyncpg.Connection, order_code: str) -> Optional[OrderState]:
        """Статус, флаг проверки и дата окончания заказа"""
        row = await conn.fetchrow(
            f"""
            SELECT id_order, status, check_flag, order_expired
            FROM {self.table}
            WHERE LOWER(id_order) = LOWER($1)
            LIMIT 1
            """,
            order_code
        )
        return self._to_state(row) if row else None

    async def list_states(self, conn: asyncpg.Connection) -> list[OrderState]:
        """Состояния всех заказов с непустым кодом (для пакетного продления)"""
        rows = await conn.fetch(
            f"""
            SELECT id_order, status, check_flag, order_expired
            FROM {self.table}
            WHERE TRIM(id_order::text) <> ''
            """
        )
        return [self._to_state(row) for row in rows]

    async def get_for_renewal(
        self,
        conn: asyncpg.Connection,
        order_code: str,
        for_update: bool = False
    ) -> Optional[OrderRecord]:
        """
        Заказ со всеми полями, нужными для расчета нового цикла

        for_update=True блокирует строку до конца транзакции: параллельное
        продление того же заказа ждет и затем видит уже записанный цикл.
        """
        lock_clause = "FOR UPDATE" if for_update else ""
        row = await conn.fetchrow(
            f"""
            SELECT id_order, id_product, information_order, slot, supply,
                   cost, price, order_date, order_expired, status, check_flag
            FROM {self.table}
            WHERE LOWER(id_order) = LOWER($1)
            LIMIT 1
            {lock_clause}
            """,
            order_code
        )
        return self._to_record(row) if row else None

    async def get_supply_source(self, conn: asyncpg.Connection, order_code: str) -> Optional[OrderSupplySource]:
        """Товар, поставщик и себестоимость заказа"""
        row = await conn.fetchrow(
            f"""
            SELECT id_product AS product_name, supply AS supply_name, cost AS cost_value
            FROM {self.table}
            WHERE LOWER(id_order) = LOWER($1)
            LIMIT 1
            """,
            order_code
        )
        if not row:
            return None
        return {
            'product': str(row['product_name'] or "").strip(),
            'supplier': str(row['supply_name'] or "").strip(),
            'cost': row['cost_value'],
        }

    async def save_renewal(self, conn: asyncpg.Connection, order_code: str, update: RenewalUpdate) -> None:
        """Записывает новый цикл заказа"""
        await conn.execute(
            f"""
            UPDATE {self.table}
            SET order_date = $1,
                days = $2,
                order_expired = $3,
                cost = $4,
                price = $5,
                status = $6,
                check_flag = $7
            WHERE LOWER(id_order) = LOWER($8)
            """,
            update['order_date'],
            update['days'],
            update['order_expired'],
            update['cost'],
            update['price'],
            update['status'].value,
            update['check_flag'],
            order_code
        )

    async def mark_check_flag_false(self, conn: asyncpg.Connection, order_code: str) -> None:
        """Помечает неоплаченный заказ как увиденный (только если флаг еще пуст)"""
        await conn.execute(
            f"""
            UPDATE {self.table}
            SET check_flag = FALSE
            WHERE LOWER(id_order) = LOWER($1)
              AND check_flag IS NULL
            """,
            order_code
        )

    @staticmethod
    def _to_state(row) -> OrderState:
        return {
            'order_code': str(row['id_order'] or "").strip(),
            'status': OrderStatus.from_db(row['status']),
            'check_flag': parse_check_flag(row['check_flag']),
            'order_expired': row['order_expired'],
        }

    @staticmethod
    def _to_record(row) -> OrderRecord:
        return {
            'order_code': row['id_order'],
            'product': row['id_product'] or "",
            'information': row['information_order'],
            'slot': row['slot'],
            'supplier': row['supply'],
            'cost': row['cost'],
            'price': row['price'],
            'order_date': row['order_date'],
            'order_expired': row['order_expired'],
            'status': OrderStatus.from_db(row['status']),
            'check_flag': parse_check_flag(row['check_flag']),
        }
