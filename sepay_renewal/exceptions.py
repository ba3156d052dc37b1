"""Ошибки обработки webhook и HTTP-статусы, в которые они превращаются"""


class WebhookError(Exception):
    """Базовая ошибка webhook"""

    status = 500
    message = "Internal Error"


class AuthenticityFailure(WebhookError):
    """Нет валидной подписи и нет валидного API-ключа"""

    status = 403
    message = "Invalid Signature"


class MalformedPayload(WebhookError):
    """В теле запроса не нашлось транзакции"""

    status = 400
    message = "Missing transaction"


class ReceiptWriteFailure(WebhookError):
    """Не удалось записать квитанцию об оплате (единственная фатальная ошибка запроса)"""

    status = 500
    message = "Internal Error"

    def __init__(self, order_code: str, cause: Exception):
        super().__init__(f"Не удалось сохранить квитанцию для {order_code or '-'}: {cause}")
        self.order_code = order_code
        self.cause = cause
