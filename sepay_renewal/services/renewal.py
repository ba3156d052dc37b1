"""Автомат продления заказов"""
import logging
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from sepay_renewal.constants import RENEWAL_WINDOW_DAYS
from sepay_renewal.db.pool import Database
from sepay_renewal.db.repositories.catalog import CatalogRepository
from sepay_renewal.db.repositories.orders import OrderRepository
from sepay_renewal.models.order import OrderState, OrderStatus, RenewalUpdate
from sepay_renewal.models.renewal import RenewalAction, RenewalDetails, RenewalOutcome, RenewalResult
from sepay_renewal.services.durations import renewal_days_for_product
from sepay_renewal.services.pricing import calculate_sale_price
from sepay_renewal.utils.dates import (
    days_left,
    days_until,
    format_date_db,
    format_date_dmy,
    parse_flexible_date,
    today_vn,
)
from sepay_renewal.utils.money import normalize_money, round_to_thousands

logger = logging.getLogger(__name__)

_RENEWABLE_STATUSES = (OrderStatus.NEEDS_RENEWAL, OrderStatus.EXPIRED)


class RenewalService:
    """
    Решает, что делать с заказом, и продлевает его на следующий цикл

    Флаг проверки (check_flag) отмечает, что текущий цикл уже обработан:
    None - заказ еще не трогали, False - увидели или продлили, True - заказ
    оплачен заранее и ждет принудительного продления.
    """

    def __init__(self, db: Database, orders: OrderRepository, catalog: CatalogRepository):
        self.db = db
        self.orders = orders
        self.catalog = catalog

    @staticmethod
    def decide_action(state: OrderState, today: Optional[date] = None) -> RenewalAction:
        """Правило перехода для текущего состояния заказа"""
        status = state.get('status')
        flag = state.get('check_flag')

        if status in _RENEWABLE_STATUSES and flag is None:
            remaining = days_until(state.get('order_expired'), today)
            if remaining is not None and remaining <= RENEWAL_WINDOW_DAYS:
                return RenewalAction.RENEW
            return RenewalAction.NONE

        if status is OrderStatus.UNPAID and flag is None:
            return RenewalAction.ACKNOWLEDGE

        if status is OrderStatus.PAID and flag is True:
            return RenewalAction.FORCE_RENEW

        return RenewalAction.NONE

    async def renew(
        self,
        order_code: str,
        force_renewal: bool = False,
        now: Optional[datetime] = None,
        expected: Optional[RenewalAction] = None
    ) -> RenewalResult:
        """
        Продлевает заказ на следующий цикл

        Строка заказа блокируется до записи нового цикла. Если задан expected,
        правило перехода проверяется заново под блокировкой: заказ, который
        параллельный запрос уже продлил, пропускается без изменений.

        Никогда не выбрасывает исключение: любая ошибка возвращается как
        результат с process_type=error. При пропуске и ошибке заказ не меняется.
        """
        try:
            return await self._renew(order_code, force_renewal, now, expected)
        except Exception as e:
            logger.error(f"❌ Ошибка продления заказа {order_code}: {e}", exc_info=True)
            return RenewalResult.error(str(e))

    async def _renew(
        self,
        order_code: str,
        force_renewal: bool,
        now: Optional[datetime],
        expected: Optional[RenewalAction]
    ) -> RenewalResult:
        async with self.db.transaction() as conn:
            order = await self.orders.get_for_renewal(conn, order_code, for_update=True)
            if not order:
                return RenewalResult.error(f"Không tìm thấy đơn hàng {order_code}")

            if expected is not None:
                state: OrderState = {
                    'order_code': order['order_code'],
                    'status': order['status'],
                    'check_flag': order['check_flag'],
                    'order_expired': order['order_expired'],
                }
                current = self.decide_action(state, now.date() if now else None)
                if current is not expected:
                    logger.info(f"⏭️ Заказ {order_code} уже обработан ({current.value}), продление пропущено")
                    return RenewalResult.skipped("Đơn hàng đã được xử lý")

            expiry = parse_flexible_date(order['order_expired'])
            if expiry is None:
                return RenewalResult.error(f"Ngày hết hạn không hợp lệ: {order['order_expired']!r}")

            remaining = days_left(expiry, now)
            if not force_renewal and remaining > RENEWAL_WINDOW_DAYS:
                logger.info(f"⏭️ Заказ {order_code}: до окончания {remaining} дн., продление пропущено")
                return RenewalResult.skipped(f"Còn {remaining} ngày")

            product = order['product']
            renewal_days = renewal_days_for_product(product)
            if renewal_days <= 0:
                return RenewalResult.error(f"Không xác định được thời hạn sản phẩm {product!r}")

            supplier = (order['supplier'] or "").strip()
            pricing = await self.catalog.find_product(conn, product) if product else None
            supplier_id = await self.catalog.find_supplier_id(conn, supplier) if supplier else None

            cost_source = order['cost']
            if pricing and supplier_id is not None:
                stored = await self.catalog.latest_supply_price(conn, pricing['id'], supplier_id)
                if stored is not None:
                    cost_source = stored

            resolved_cost = normalize_money(cost_source)
            new_cost = round_to_thousands(resolved_cost)
            new_price = calculate_sale_price(
                order_code,
                resolved_cost,
                pricing['pct_ctv'] if pricing else 1,
                pricing['pct_khach'] if pricing else 1,
            )

            start = expiry + timedelta(days=1)
            new_expiry = start + timedelta(days=renewal_days)

            update: RenewalUpdate = {
                'order_date': format_date_db(start),
                'days': renewal_days,
                'order_expired': format_date_db(new_expiry),
                'cost': new_cost,
                'price': new_price,
                'status': OrderStatus.UNPAID,
                'check_flag': False,
            }
            await self.orders.save_renewal(conn, order['order_code'], update)

        logger.info(
            f"🔄 Заказ {order_code} продлен на {renewal_days} дн.: "
            f"{format_date_dmy(start)} - {format_date_dmy(new_expiry)}, себестоимость {new_cost}, цена {new_price}"
        )
        return RenewalResult.renewed(RenewalDetails(
            order_code=order['order_code'],
            product=product,
            information=order['information'],
            slot=order['slot'],
            start_date=format_date_dmy(start),
            expiry_date=format_date_dmy(new_expiry),
            supplier=supplier or None,
            cost=new_cost,
            price=new_price,
            status=OrderStatus.UNPAID.value,
        ))

    async def apply_transition(self, order_code: str, now: Optional[datetime] = None) -> RenewalOutcome:
        """Перечитывает заказ и применяет правило перехода один раз"""
        async with self.db.acquire() as conn:
            state = await self.orders.get_state(conn, order_code)
        if not state:
            return RenewalOutcome(order_code=order_code, action=RenewalAction.NONE)

        today = now.date() if now else today_vn()
        action = self.decide_action(state, today)

        if action is RenewalAction.ACKNOWLEDGE:
            async with self.db.acquire() as conn:
                await self.orders.mark_check_flag_false(conn, order_code)
            logger.info(f"👀 Заказ {order_code} ожидает оплату, флаг проверки выставлен")
            return RenewalOutcome(order_code=order_code, action=action)

        if action is RenewalAction.RENEW:
            result = await self.renew(order_code, force_renewal=False, now=now, expected=action)
            return RenewalOutcome(order_code=order_code, action=action, result=result)

        if action is RenewalAction.FORCE_RENEW:
            # новый цикл уже записан со статусом "Chưa Thanh Toán" и флагом False
            result = await self.renew(order_code, force_renewal=True, now=now, expected=action)
            if result.success:
                logger.info(f"💳 Предоплаченный заказ {order_code} продлен и снова ждет оплату")
            return RenewalOutcome(
                order_code=order_code,
                action=action,
                result=result,
                status_reset=result.success,
            )

        return RenewalOutcome(order_code=order_code, action=action)

    async def find_candidates(self, today: Optional[date] = None) -> list[str]:
        """Коды заказов, срок которых подходит к концу и которые еще не продлевались"""
        async with self.db.acquire() as conn:
            states = await self.orders.list_states(conn)
        return [
            state['order_code'] for state in states
            if state['order_code'] and self.decide_action(state, today) is RenewalAction.RENEW
        ]

    async def run_batch(
        self,
        order_codes: Optional[Iterable[str]] = None,
        force: bool = False,
        now: Optional[datetime] = None
    ) -> list[RenewalOutcome]:
        """
        Пакетное продление (ручной запуск и фоновая задача)

        С явным списком и force=True каждый заказ продлевается принудительно.
        В остальных случаях продлеваются только заказы, для которых правило
        перехода дает RENEW: неоплаченные и предоплаченные заказы пакет не
        трогает. Без списка обходятся все такие заказы, force не используется.
        """
        codes = [str(code).strip() for code in order_codes or [] if str(code or "").strip()]
        if not codes:
            codes = await self.find_candidates(now.date() if now else None)
            force = False

        outcomes: list[RenewalOutcome] = []
        for code in codes:
            try:
                if force:
                    result = await self.renew(code, force_renewal=True, now=now)
                    outcome = RenewalOutcome(order_code=code, action=RenewalAction.FORCE_RENEW, result=result)
                else:
                    result = await self.renew(code, force_renewal=False, now=now, expected=RenewalAction.RENEW)
                    outcome = RenewalOutcome(order_code=code, action=RenewalAction.RENEW, result=result)
            except Exception as e:
                logger.error(f"❌ Ошибка пакетного продления заказа {code}: {e}")
                outcome = RenewalOutcome(
                    order_code=code,
                    action=RenewalAction.NONE,
                    result=RenewalResult.error(str(e)),
                )
            outcomes.append(outcome)

        succeeded = sum(1 for outcome in outcomes if outcome.success)
        logger.info(f"📦 Пакетное продление: всего {len(outcomes)}, успешно {succeeded}")
        return outcomes
