"""Справочники товаров, поставщиков и закупочных цен"""
from typing import Optional, TypedDict
import asyncpg


class ProductPricing(TypedDict):
    id: int
    pct_ctv: object
    pct_khach: object


class CatalogRepository:
    """product_price, supply и supply_price; имена ищутся без учета регистра"""

    def __init__(self, schema: str):
        self.product_table = f"{schema}.product_price"
        self.supply_table = f"{schema}.supply"
        self.supply_price_table = f"{schema}.supply_price"

    async def find_product(self, conn: asyncpg.Connection, product_name: str) -> Optional[ProductPricing]:
        """Товар и его коэффициенты каналов"""
        row = await conn.fetchrow(
            f"""
            SELECT id, pct_ctv, pct_khach
            FROM {self.product_table}
            WHERE LOWER(san_pham) = LOWER($1)
            LIMIT 1
            """,
            product_name
        )
        return dict(row) if row else None  # type: ignore

    async def create_product(self, conn: asyncpg.Connection, product_name: str) -> int:
        """Создает товар только с названием"""
        return await conn.fetchval(
            f"""
            INSERT INTO {self.product_table} (san_pham)
            VALUES ($1)
            RETURNING id
            """,
            product_name
        )

    async def find_supplier_id(self, conn: asyncpg.Connection, supplier_name: str) -> Optional[int]:
        """ID поставщика по имени"""
        return await conn.fetchval(
            f"""
            SELECT id
            FROM {self.supply_table}
            WHERE LOWER(source_name) = LOWER($1)
            LIMIT 1
            """,
            supplier_name.strip()
        )

    async def create_supplier(self, conn: asyncpg.Connection, supplier_name: str) -> int:
        """Создает поставщика только с именем"""
        return await conn.fetchval(
            f"""
            INSERT INTO {self.supply_table} (source_name)
            VALUES ($1)
            RETURNING id
            """,
            supplier_name.strip()
        )

    async def latest_supply_price(
        self,
        conn: asyncpg.Connection,
        product_id: int,
        supplier_id: int
    ) -> Optional[object]:
        """Закупочная цена пары (товар, поставщик); уникальный ключ пары оставляет одну строку"""
        return await conn.fetchval(
            f"""
            SELECT price
            FROM {self.supply_price_table}
            WHERE product_id = $1 AND source_id = $2
            ORDER BY id DESC
            LIMIT 1
            """,
            product_id, supplier_id
        )

    async def insert_supply_price(
        self,
        conn: asyncpg.Connection,
        product_id: int,
        supplier_id: int,
        price: int
    ) -> None:
        """Добавляет цену пары; если конкурент успел первым, уникальный ключ пары пропускает вставку"""
        await conn.execute(
            f"""
            INSERT INTO {self.supply_price_table} (product_id, source_id, price)
            VALUES ($1, $2, $3)
            ON CONFLICT ON CONSTRAINT supply_price_product_source_key DO NOTHING
            """,
            product_id, supplier_id, price
        )
