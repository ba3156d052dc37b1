"""Сверка заказа со справочниками поставщиков и реестр выплат поставщикам"""
import logging
import math
from datetime import date
from decimal import Decimal
from typing import Optional

from sepay_renewal.db.pool import Database
from sepay_renewal.db.repositories.catalog import CatalogRepository
from sepay_renewal.db.repositories.ledger import LedgerRepository
from sepay_renewal.db.repositories.orders import OrderRepository
from sepay_renewal.constants import LEDGER_OPEN_STATUS
from sepay_renewal.models.transaction import LedgerEntry, SupplyResolution
from sepay_renewal.utils.dates import format_date_dmy, today_vn
from sepay_renewal.utils.money import normalize_money
from sepay_renewal.utils.text import normalize_label

logger = logging.getLogger(__name__)

_OPEN_STATUS_KEY = normalize_label(LEDGER_OPEN_STATUS)


class SupplyLedgerReconciler:
    """Находит или создает товар/поставщика и определяет закупочную цену заказа"""

    def __init__(self, db: Database, orders: OrderRepository, catalog: CatalogRepository):
        self.db = db
        self.orders = orders
        self.catalog = catalog

    async def reconcile(self, order_code: str) -> Optional[SupplyResolution]:
        """
        Всё в одной транзакции: при любой ошибке откатывается целиком

        Returns:
            {product_id, supplier_id, price} или None, если заказ не найден
        """
        if not order_code:
            return None

        async with self.db.transaction() as conn:
            source = await self.orders.get_supply_source(conn, order_code)
            if not source:
                logger.info(f"ℹ️ Заказ {order_code} не найден, сверка с поставщиком пропущена")
                return None

            cost = normalize_money(source['cost'])
            product_id = await self._find_or_create_product(conn, source['product'])
            supplier_id = await self._find_or_create_supplier(conn, source['supplier'])

            price = cost
            if product_id is not None and supplier_id is not None:
                stored = await self.catalog.latest_supply_price(conn, product_id, supplier_id)
                if stored is not None:
                    price = normalize_money(stored)
                else:
                    # Конкурент мог вставить цену первым, но для этого заказа берем его себестоимость
                    await self.catalog.insert_supply_price(conn, product_id, supplier_id, cost)

        logger.info(
            f"🔗 Заказ {order_code}: товар={product_id}, поставщик={supplier_id}, цена={price}"
        )
        return {'product_id': product_id, 'supplier_id': supplier_id, 'price': price}

    async def _find_or_create_product(self, conn, product_name: str) -> Optional[int]:
        if not product_name:
            return None
        product = await self.catalog.find_product(conn, product_name)
        if product:
            return product['id']
        product_id = await self.catalog.create_product(conn, product_name)
        logger.info(f"➕ Создан товар '{product_name}' (id={product_id})")
        return product_id

    async def _find_or_create_supplier(self, conn, supplier_name: str) -> Optional[int]:
        if not supplier_name:
            return None
        supplier_id = await self.catalog.find_supplier_id(conn, supplier_name)
        if supplier_id is not None:
            return supplier_id
        supplier_id = await self.catalog.create_supplier(conn, supplier_name)
        logger.info(f"➕ Создан поставщик '{supplier_name}' (id={supplier_id})")
        return supplier_id


def is_open_entry(entry: Optional[LedgerEntry]) -> bool:
    """Запись еще копится: статус 'не оплачено' и сумма выплаты не проставлена"""
    if not entry:
        return False
    return normalize_label(entry.get('status')) == _OPEN_STATUS_KEY and entry.get('paid') is None


def _is_positive_amount(value) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        return False
    return math.isfinite(float(value)) and value > 0


class PayableBalanceUpdater:
    """Накопительный долг перед поставщиком: одна открытая запись на поставщика"""

    def __init__(self, db: Database, ledger: LedgerRepository):
        self.db = db
        self.ledger = ledger

    async def add(self, supplier_id: Optional[int], price, note_date: Optional[date] = None) -> None:
        if supplier_id is None or not _is_positive_amount(price):
            return

        amount = normalize_money(price)
        round_label = format_date_dmy(note_date or today_vn())

        async with self.db.transaction() as conn:
            await self.ledger.lock_supplier(conn, supplier_id)
            entry = await self.ledger.latest_entry(conn, supplier_id)
            if is_open_entry(entry):
                await self.ledger.add_to_entry(conn, entry['id'], amount)
                logger.info(f"💰 Поставщик {supplier_id}: +{amount} к записи #{entry['id']}")
                return

            entry_id = await self.ledger.open_entry(conn, supplier_id, amount, round_label)
            logger.info(f"📒 Поставщик {supplier_id}: открыта запись #{entry_id} ({round_label}) на {amount}")
