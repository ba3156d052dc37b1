import asyncio
import logging

from sepay_renewal.services.payments import PaymentWebhookService

logger = logging.getLogger(__name__)


async def renewal_sweep_task(service: PaymentWebhookService, interval_seconds: int):
    """Фоновая задача: периодически обходит заказы, которые пора продлить"""
    logger.info(f"🔄 Запущена фоновая задача продления (раз в {interval_seconds} сек.)")

    try:
        while True:
            try:
                await asyncio.sleep(interval_seconds)

                outcomes = await service.run_renewal_batch()
                renewed = sum(1 for outcome in outcomes if outcome.success)
                if outcomes:
                    logger.info(f"🗓️ Фоновое продление: обработано {len(outcomes)}, продлено {renewed}")

            except asyncio.CancelledError:
                logger.info("🛑 Задача продления остановлена")
                raise

            except Exception as e:
                logger.error(f"Ошибка в задаче продления: {e}")

    except asyncio.CancelledError:
        logger.info("✅ Задача продления завершена")
        raise
