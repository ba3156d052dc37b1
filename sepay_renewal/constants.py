from datetime import timezone, timedelta

# Вьетнамская временная зона (UTC+7)
VIETNAM_TZ = timezone(timedelta(hours=7))

# Маршруты
SEPAY_WEBHOOK_PATH = "/api/payment/notify"
RENEWAL_RETRY_PATH = "/api/renewals/retry"

# Значения по умолчанию для окружения
DEFAULT_DB_SCHEMA = "mavryk"
DEFAULT_NOTIFICATION_GROUP_ID = "-1002934465528"
DEFAULT_RENEWAL_TOPIC_ID = 2
DEFAULT_RENEWAL_SWEEP_INTERVAL_SECONDS = 86400  # Раз в сутки

# Заголовки, в которых Sepay может прислать подпись (в порядке приоритета)
SIGNATURE_HEADERS = (
    "X-SEPAY-SIGNATURE",
    "X-Signature",
    "Signature",
    "X-Webhook-Signature",
)
SIGNATURE_QUERY_PARAMS = ("signature", "sign")

# Префиксы кодов заказов -> канал ценообразования
ORDER_PREFIXES = {
    "ctv": "MAVC",     # коллаборатор
    "le": "MAVL",      # розница
    "khuyen": "MAVK",  # акция
    "thuong": "MAVT",  # стандарт
    "nhap": "MAVN",    # закупка
}

# Код заказа: фиксированный префикс + минимум 3 буквенно-цифровых символа
ORDER_CODE_PATTERN = r"MAV[A-Za-z0-9_]{3,}"

# Продление
RENEWAL_WINDOW_DAYS = 4  # Продлеваем, когда до окончания осталось не больше 4 дней
PRICE_ROUNDING_STEP = 1000

# Статус открытой записи в реестре выплат поставщикам
LEDGER_OPEN_STATUS = "Chưa Thanh Toán"
