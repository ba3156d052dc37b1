import asyncio
from typing import Optional
from aiohttp import web

from sepay_renewal.config import Config, setup_logging
from sepay_renewal.background.renewal_sweep import renewal_sweep_task
from sepay_renewal.services.payments import PaymentWebhookService
from sepay_renewal.webhook.sepay_webhook import create_webhook_app


async def main():
    """Главная функция запуска webhook-сервера"""
    config = Config.from_env()
    logger = setup_logging(config.log_level)
    logger.info("🚀 Запуск Sepay webhook сервера...")

    service = PaymentWebhookService(config)
    await service.start()

    app = create_webhook_app(service)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, config.host, config.port)
    await site.start()

    logger.info(f"✅ Webhook слушает http://{config.host}:{config.port}{config.webhook_path}")
    if not config.sepay_webhook_secret and not config.sepay_api_key:
        logger.warning("⚠️ Не задан ни SEPAY_WEBHOOK_SECRET, ни SEPAY_API_KEY: все webhook будут отклонены")

    sweep_task: Optional[asyncio.Task] = None
    if config.renewal_sweep_enabled:
        sweep_task = asyncio.create_task(
            renewal_sweep_task(service, config.renewal_sweep_interval_seconds)
        )
    else:
        logger.info("⏸️ Фоновое продление отключено (ENABLE_RENEWAL_CRON=false)")

    try:
        # Работаем, пока процесс не остановят
        await asyncio.Event().wait()
    finally:
        if sweep_task:
            sweep_task.cancel()
            try:
                await sweep_task
            except asyncio.CancelledError:
                pass
        await runner.cleanup()
        await service.close()
        logger.info("👋 Сервер остановлен")


if __name__ == "__main__":
    asyncio.run(main())
