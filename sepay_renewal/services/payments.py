"""Обработка уведомлений Sepay: квитанция, долг поставщику, продление, уведомление"""
import logging
from dataclasses import dataclass
from typing import Iterable, Optional
from aiogram import Bot

from sepay_renewal.config import Config
from sepay_renewal.db.pool import Database
from sepay_renewal.db.repositories.catalog import CatalogRepository
from sepay_renewal.db.repositories.ledger import LedgerRepository
from sepay_renewal.db.repositories.orders import OrderRepository
from sepay_renewal.db.repositories.receipts import ReceiptRepository
from sepay_renewal.models.renewal import RenewalOutcome, RenewalResult
from sepay_renewal.models.transaction import TransactionRecord
from sepay_renewal.services.notifications import NotificationService
from sepay_renewal.services.payables import PayableBalanceUpdater, SupplyLedgerReconciler
from sepay_renewal.services.policy import run_advisory
from sepay_renewal.services.receipts import ReceiptRecorder
from sepay_renewal.services.renewal import RenewalService
from sepay_renewal.services.transactions import derive_order_code

logger = logging.getLogger(__name__)


@dataclass
class Repositories:
    orders: OrderRepository
    receipts: ReceiptRepository
    catalog: CatalogRepository
    ledger: LedgerRepository

    @classmethod
    def for_schema(cls, schema: str) -> "Repositories":
        return cls(
            orders=OrderRepository(schema),
            receipts=ReceiptRepository(schema),
            catalog=CatalogRepository(schema),
            ledger=LedgerRepository(schema),
        )


class PaymentWebhookProcessor:
    """
    Порядок шагов одного уведомления

    Квитанция обязательна: ее ошибка уходит наружу и дает 500. Сверка с
    поставщиком, долг, продление и уведомление выполняются через
    run_advisory и на ответ не влияют.
    """

    def __init__(
        self,
        recorder: ReceiptRecorder,
        reconciler: SupplyLedgerReconciler,
        balance_updater: PayableBalanceUpdater,
        renewal: RenewalService,
        notifications: NotificationService
    ):
        self.recorder = recorder
        self.reconciler = reconciler
        self.balance_updater = balance_updater
        self.renewal = renewal
        self.notifications = notifications

    async def process(self, transaction: TransactionRecord) -> Optional[RenewalResult]:
        receipt = await self.recorder.record(transaction)

        order_code = derive_order_code(transaction)
        if not order_code:
            logger.warning("⚠️ В тексте перевода не найден код заказа, обработка ограничена квитанцией")
            return None

        resolution = await run_advisory(
            "supply_reconcile", self.reconciler.reconcile(order_code), order=order_code
        )
        if resolution:
            await run_advisory(
                "payable_balance",
                self.balance_updater.add(resolution['supplier_id'], resolution['price'], receipt['paid_date']),
                order=order_code,
                supplier=resolution['supplier_id'],
            )

        outcome = await run_advisory(
            "renewal", self.renewal.apply_transition(order_code), order=order_code
        )
        if not outcome or outcome.result is None:
            return None

        self.notifications.dispatch(order_code, outcome.result)
        return outcome.result


class PaymentWebhookService:
    """Контейнер зависимостей webhook: создается в main, запускается start(), закрывается close()"""

    def __init__(
        self,
        config: Config,
        db: Optional[Database] = None,
        bot: Optional[Bot] = None,
        repositories: Optional[Repositories] = None
    ):
        self.config = config
        self.db = db or Database(config.database_url)
        self.bot = bot
        self.repositories = repositories or Repositories.for_schema(config.db_schema)

        repos = self.repositories
        self.notifications = NotificationService(
            bot=bot,
            chat_id=config.telegram_chat_id,
            topic_id=config.telegram_topic_id,
            send_to_topic=config.send_renewal_to_topic,
        )
        self.renewal = RenewalService(self.db, repos.orders, repos.catalog)
        self.processor = PaymentWebhookProcessor(
            recorder=ReceiptRecorder(self.db, repos.receipts),
            reconciler=SupplyLedgerReconciler(self.db, repos.orders, repos.catalog),
            balance_updater=PayableBalanceUpdater(self.db, repos.ledger),
            renewal=self.renewal,
            notifications=self.notifications,
        )
        self._owns_bot = False

    async def start(self) -> None:
        """Открывает пул БД и, если задан токен, Telegram-бота"""
        await self.db.init_pool()
        if self.bot is None and self.config.telegram_bot_token:
            self.bot = Bot(token=self.config.telegram_bot_token)
            self._owns_bot = True
        self.notifications.bot = self.bot
        if self.notifications.enabled:
            logger.info(f"✅ Уведомления о продлении включены (чат {self.config.telegram_chat_id})")
        else:
            logger.warning("⚠️ TELEGRAM_BOT_TOKEN не задан, уведомления о продлении отключены")

    async def handle_transaction(self, transaction: TransactionRecord) -> Optional[RenewalResult]:
        return await self.processor.process(transaction)

    async def run_renewal_batch(
        self,
        order_codes: Optional[Iterable[str]] = None,
        force: bool = False
    ) -> list[RenewalOutcome]:
        """Пакетное продление с уведомлением по каждому попытавшемуся заказу"""
        outcomes = await self.renewal.run_batch(order_codes, force)
        for outcome in outcomes:
            if outcome.result is not None:
                self.notifications.dispatch(outcome.order_code, outcome.result)
        return outcomes

    async def close(self) -> None:
        """Дожидается фоновых уведомлений и освобождает ресурсы"""
        await self.notifications.drain()
        if self.bot is not None and self._owns_bot:
            await self.bot.session.close()
        await self.db.close_pool()
        logger.info("👋 Сервис webhook остановлен")
