"""In-memory замены БД и репозиториев для тестов сервисов"""
import asyncio
from contextlib import asynccontextmanager
from typing import Optional

from sepay_renewal.db.repositories.orders import OrderRepository
from sepay_renewal.services.payments import Repositories


class FakeDatabaseError(Exception):
    pass


class FakeStore:
    """Таблицы в памяти и журнал всех изменений"""

    def __init__(self):
        self.orders: list[dict] = []
        self.products: list[dict] = []
        self.suppliers: list[dict] = []
        self.supply_prices: list[dict] = []
        self.receipts: list[dict] = []
        self.ledger: list[dict] = []
        self.writes: list[tuple[str, str]] = []
        self.fail_on: set[str] = set()
        self.locks: dict[int, asyncio.Lock] = {}
        self.order_locks: dict[str, asyncio.Lock] = {}
        self._ids: dict[str, int] = {}

    def next_id(self, table: str) -> int:
        self._ids[table] = self._ids.get(table, 0) + 1
        return self._ids[table]

    def check(self, operation: str) -> None:
        if operation in self.fail_on:
            raise FakeDatabaseError(f"{operation} failed")

    def write(self, table: str, operation: str) -> None:
        self.check(f"{table}.{operation}")
        self.writes.append((table, operation))

    def add_order(self, **fields) -> dict:
        row = {
            'id_order': "MAVC0001",
            'id_product': "Netflix--3m",
            'information_order': "user@example.com",
            'slot': None,
            'supply': "Nguon A",
            'cost': 100000,
            'price': 120000,
            'order_date': None,
            'days': None,
            'order_expired': None,
            'status': "Cần Gia Hạn",
            'check_flag': None,
        }
        row.update(fields)
        self.orders.append(row)
        return row

    def add_product(self, name: str, pct_ctv=None, pct_khach=None) -> int:
        product_id = self.next_id("product_price")
        self.products.append({'id': product_id, 'san_pham': name, 'pct_ctv': pct_ctv, 'pct_khach': pct_khach})
        return product_id

    def add_supplier(self, name: str) -> int:
        supplier_id = self.next_id("supply")
        self.suppliers.append({'id': supplier_id, 'source_name': name})
        return supplier_id

    def add_supply_price(self, product_id: int, supplier_id: int, price) -> None:
        self.supply_prices.append({
            'id': self.next_id("supply_price"),
            'product_id': product_id,
            'source_id': supplier_id,
            'price': price,
        })

    def add_ledger_entry(self, supplier_id: int, amount, status: str, paid=None, round_label: str = "01/01/2024") -> dict:
        entry = {
            'id': self.next_id("payment_supply"),
            'source_id': supplier_id,
            'import': amount,
            'round': round_label,
            'status': status,
            'paid': paid,
        }
        self.ledger.append(entry)
        return entry

    def order(self, code: str) -> Optional[dict]:
        for row in self.orders:
            if str(row['id_order']).lower() == code.lower():
                return row
        return None

    def supplier_entries(self, supplier_id: int) -> list[dict]:
        return [entry for entry in self.ledger if entry['source_id'] == supplier_id]


class FakeConnection:
    def __init__(self, store: FakeStore):
        self.store = store
        self.held_locks: list[asyncio.Lock] = []

    def release_locks(self) -> None:
        while self.held_locks:
            self.held_locks.pop().release()


class FakeDatabase:
    """Повторяет интерфейс Database: acquire() и transaction() отдают соединение"""

    def __init__(self, store: FakeStore):
        self.store = store
        self.initialized = False
        self.closed = False

    async def init_pool(self):
        self.initialized = True

    async def close_pool(self):
        self.closed = True

    @asynccontextmanager
    async def acquire(self):
        yield FakeConnection(self.store)

    @asynccontextmanager
    async def transaction(self):
        conn = FakeConnection(self.store)
        try:
            yield conn
        finally:
            conn.release_locks()


class FakeOrderRepository:
    def __init__(self, store: FakeStore):
        self.store = store

    async def get_state(self, conn, order_code):
        self.store.check("order_list.select")
        row = self.store.order(order_code)
        state = OrderRepository._to_state(row) if row else None
        await asyncio.sleep(0)
        return state

    async def list_states(self, conn):
        return [OrderRepository._to_state(row) for row in self.store.orders if str(row['id_order']).strip()]

    async def get_for_renewal(self, conn, order_code, for_update=False):
        """for_update держит блокировку строки до конца транзакции FakeDatabase"""
        self.store.check("order_list.select")
        if for_update:
            lock = self.store.order_locks.setdefault(order_code.lower(), asyncio.Lock())
            await lock.acquire()
            conn.held_locks.append(lock)
        row = self.store.order(order_code)
        record = OrderRepository._to_record(row) if row else None
        await asyncio.sleep(0)
        return record

    async def get_supply_source(self, conn, order_code):
        row = self.store.order(order_code)
        if not row:
            return None
        return {
            'product': str(row['id_product'] or "").strip(),
            'supplier': str(row['supply'] or "").strip(),
            'cost': row['cost'],
        }

    async def save_renewal(self, conn, order_code, update):
        self.store.write("order_list", "renew")
        row = self.store.order(order_code)
        row.update({
            'order_date': update['order_date'],
            'days': update['days'],
            'order_expired': update['order_expired'],
            'cost': update['cost'],
            'price': update['price'],
            'status': update['status'].value,
            'check_flag': update['check_flag'],
        })

    async def mark_check_flag_false(self, conn, order_code):
        row = self.store.order(order_code)
        if row and row['check_flag'] is None:
            self.store.write("order_list", "acknowledge")
            row['check_flag'] = False


class FakeReceiptRepository:
    def __init__(self, store: FakeStore):
        self.store = store

    async def insert(self, conn, receipt):
        self.store.write("payment_receipt", "insert")
        receipt_id = self.store.next_id("payment_receipt")
        self.store.receipts.append({'id': receipt_id, **receipt})
        return receipt_id


class FakeCatalogRepository:
    def __init__(self, store: FakeStore):
        self.store = store

    async def find_product(self, conn, product_name):
        for product in self.store.products:
            if product['san_pham'].lower() == product_name.lower():
                return {'id': product['id'], 'pct_ctv': product['pct_ctv'], 'pct_khach': product['pct_khach']}
        return None

    async def create_product(self, conn, product_name):
        self.store.write("product_price", "insert")
        return self.store.add_product(product_name)

    async def find_supplier_id(self, conn, supplier_name):
        for supplier in self.store.suppliers:
            if supplier['source_name'].lower() == supplier_name.strip().lower():
                return supplier['id']
        return None

    async def create_supplier(self, conn, supplier_name):
        self.store.write("supply", "insert")
        return self.store.add_supplier(supplier_name.strip())

    def _pair_prices(self, product_id, supplier_id):
        return [
            row for row in self.store.supply_prices
            if row['product_id'] == product_id and row['source_id'] == supplier_id
        ]

    async def latest_supply_price(self, conn, product_id, supplier_id):
        rows = self._pair_prices(product_id, supplier_id)
        await asyncio.sleep(0)
        return rows[-1]['price'] if rows else None

    async def insert_supply_price(self, conn, product_id, supplier_id, price):
        # уникальный ключ (product_id, source_id): повторная вставка пропускается
        if self._pair_prices(product_id, supplier_id):
            return
        self.store.write("supply_price", "insert")
        self.store.add_supply_price(product_id, supplier_id, price)


class FakeLedgerRepository:
    """Блокировка поставщика держится до конца транзакции FakeDatabase"""

    def __init__(self, store: FakeStore):
        self.store = store

    async def lock_supplier(self, conn, supplier_id):
        lock = self.store.locks.setdefault(supplier_id, asyncio.Lock())
        await lock.acquire()
        conn.held_locks.append(lock)

    async def latest_entry(self, conn, supplier_id):
        self.store.check("payment_supply.select")
        # Отдаем управление, чтобы параллельные вызовы перемешивались
        await asyncio.sleep(0)
        entries = self.store.supplier_entries(supplier_id)
        if not entries:
            return None
        entry = entries[-1]
        return {'id': entry['id'], 'import_value': entry['import'], 'paid': entry['paid'], 'status': entry['status']}

    async def add_to_entry(self, conn, entry_id, amount):
        await asyncio.sleep(0)
        self.store.write("payment_supply", "accumulate")
        for entry in self.store.ledger:
            if entry['id'] == entry_id:
                entry['import'] = (entry['import'] or 0) + amount

    async def open_entry(self, conn, supplier_id, amount, round_label):
        await asyncio.sleep(0)
        self.store.write("payment_supply", "insert")
        return self.store.add_ledger_entry(
            supplier_id, amount, "Chưa Thanh Toán", round_label=round_label
        )['id']


def fake_repositories(store: FakeStore) -> Repositories:
    return Repositories(
        orders=FakeOrderRepository(store),
        receipts=FakeReceiptRepository(store),
        catalog=FakeCatalogRepository(store),
        ledger=FakeLedgerRepository(store),
    )
