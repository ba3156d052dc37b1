"""Webhook сервер для обработки уведомлений от Sepay"""
import json
import logging
from aiohttp import web

from sepay_renewal.constants import RENEWAL_RETRY_PATH
from sepay_renewal.exceptions import AuthenticityFailure, MalformedPayload, WebhookError
from sepay_renewal.models.renewal import ProcessType
from sepay_renewal.services.payments import PaymentWebhookService
from sepay_renewal.services.transactions import normalize_transaction_payload
from sepay_renewal.webhook.auth import has_valid_api_key, is_authentic

logger = logging.getLogger(__name__)

service_key = web.AppKey("service", PaymentWebhookService)


def _error_response(error: WebhookError) -> web.Response:
    return web.json_response({"message": error.message}, status=error.status)


def _parse_json(body: bytes):
    try:
        return json.loads(body.decode('utf-8')) if body else None
    except (UnicodeDecodeError, ValueError):
        return None


async def handle_health(request: web.Request) -> web.Response:
    return web.json_response({"status": "ok"})


async def handle_webhook_info(request: web.Request) -> web.Response:
    """GET на адрес webhook - подсказка для ручной проверки"""
    return web.json_response({"message": "Sepay webhook endpoint. Use POST with signature."})


async def handle_payment_notify(request: web.Request) -> web.Response:
    """
    Обработчик уведомления Sepay о входящем переводе

    Sepay отправляет JSON в виде {transaction: {...}} или плоский набор полей,
    подпись HMAC-SHA256 в заголовке/query или API-ключ в Authorization.
    """
    service = request.app[service_key]
    body = await request.read()

    try:
        if not is_authentic(
            body,
            request.headers,
            request.query,
            service.config.sepay_webhook_secret,
            service.config.sepay_api_key,
        ):
            raise AuthenticityFailure()

        transaction = normalize_transaction_payload(_parse_json(body))
        if not transaction:
            logger.warning("⚠️ В webhook нет данных транзакции")
            raise MalformedPayload()

        logger.info(
            f"📥 Получен webhook Sepay: content={transaction.get('transaction_content')!r}, "
            f"amount={transaction.get('amount_in')}"
        )
        renewal = await service.handle_transaction(transaction)

    except WebhookError as e:
        if e.status >= 500:
            logger.error(f"❌ Ошибка обработки webhook: {e}")
        return _error_response(e)

    except Exception as e:
        logger.error(f"❌ Непредвиденная ошибка обработки webhook: {e}", exc_info=True)
        return _error_response(WebhookError())

    return web.json_response({
        "message": "OK",
        "renewal": renewal.to_response() if renewal else None,
    })


async def handle_renewal_retry(request: web.Request) -> web.Response:
    """
    Ручной запуск продлений

    Тело: {"orders": ["MAVC..."], "force": false}. Без списка обходятся
    все заказы, срок которых подошел и которые еще не продлевались.
    """
    service = request.app[service_key]

    if not has_valid_api_key(request.headers, service.config.sepay_api_key):
        logger.warning("🚫 Ручной запуск продлений отклонен: неверный API-ключ")
        return web.json_response({"message": "Invalid API key"}, status=403)

    payload = _parse_json(await request.read())
    payload = payload if isinstance(payload, dict) else {}
    orders = payload.get("orders")
    if isinstance(orders, str):
        orders = [orders]
    if not isinstance(orders, list):
        orders = None
    force = payload.get("force") is True

    try:
        outcomes = await service.run_renewal_batch(orders, force)
    except Exception as e:
        logger.error(f"❌ Ошибка ручного запуска продлений: {e}", exc_info=True)
        return web.json_response({"message": "Internal Error"}, status=500)

    failed = sum(
        1 for outcome in outcomes
        if outcome.result is not None and outcome.result.process_type is ProcessType.ERROR
    )
    return web.json_response({
        "message": "OK",
        "total": len(outcomes),
        "succeeded": sum(1 for outcome in outcomes if outcome.success),
        "failed": failed,
        "results": [outcome.to_response() for outcome in outcomes],
    })


def create_webhook_app(service: PaymentWebhookService) -> web.Application:
    """Создает aiohttp приложение для webhook"""
    app = web.Application()
    app[service_key] = service

    webhook_path = service.config.webhook_path
    app.router.add_get('/', handle_health)
    app.router.add_get(webhook_path, handle_webhook_info)
    app.router.add_post(webhook_path, handle_payment_notify)
    app.router.add_post(RENEWAL_RETRY_PATH, handle_renewal_retry)

    return app
