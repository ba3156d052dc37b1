import os
import re
import logging
from typing import Optional
from pydantic import BaseModel, Field, field_validator
from dotenv import load_dotenv

from sepay_renewal.constants import (
    DEFAULT_DB_SCHEMA,
    DEFAULT_NOTIFICATION_GROUP_ID,
    DEFAULT_RENEWAL_TOPIC_ID,
    DEFAULT_RENEWAL_SWEEP_INTERVAL_SECONDS,
    SEPAY_WEBHOOK_PATH,
)

# Загружаем переменные из .env файла (для локального запуска)
load_dotenv()

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _env_flag(name: str, default: bool = True) -> bool:
    """Флаг из окружения: всё, кроме 'false', считается включенным"""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() != "false"


def _first_env(*names: str) -> Optional[str]:
    """Возвращает первое непустое значение из списка переменных окружения"""
    for name in names:
        value = os.getenv(name)
        if value and value.strip():
            return value.strip()
    return None


class Config(BaseModel):
    """Конфигурация webhook-сервиса с валидацией"""

    database_url: str = Field(..., description="PostgreSQL connection URL")
    db_schema: str = Field(default=DEFAULT_DB_SCHEMA, description="Schema holding order/ledger tables")

    # Sepay настройки
    sepay_webhook_secret: str = Field(default="", description="Shared secret for HMAC-SHA256 body signatures")
    sepay_api_key: str = Field(default="", description="Static API key accepted instead of a signature")
    host: str = Field(default="0.0.0.0", description="Bind address of the webhook server")
    port: int = Field(default=5000, description="Bind port of the webhook server")
    webhook_path: str = Field(default=SEPAY_WEBHOOK_PATH, description="Webhook route")

    # Telegram настройки
    telegram_bot_token: str = Field(default="", description="Telegram Bot API Token")
    telegram_chat_id: str = Field(default=DEFAULT_NOTIFICATION_GROUP_ID, description="Chat for renewal summaries")
    telegram_topic_id: Optional[int] = Field(default=DEFAULT_RENEWAL_TOPIC_ID, description="Forum topic id")
    send_renewal_to_topic: bool = Field(default=True, description="Post into the topic instead of the chat root")

    # Фоновое продление
    renewal_sweep_enabled: bool = Field(default=True, description="Run the periodic renewal sweep")
    renewal_sweep_interval_seconds: int = Field(
        default=DEFAULT_RENEWAL_SWEEP_INTERVAL_SECONDS,
        description="Seconds between renewal sweeps",
    )

    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator('db_schema')
    @classmethod
    def validate_schema(cls, v: str) -> str:
        """Имя схемы подставляется в SQL, поэтому разрешаем только идентификаторы"""
        if not _IDENTIFIER_RE.match(v):
            raise ValueError(f"Недопустимое имя схемы: {v!r}")
        return v

    @field_validator('telegram_topic_id', mode='before')
    @classmethod
    def parse_topic_id(cls, v):
        """Пустая или нечисловая тема означает отправку без темы"""
        if v is None or v == "":
            return None
        try:
            return int(v)
        except (TypeError, ValueError):
            return None

    @property
    def telegram_enabled(self) -> bool:
        return bool(self.telegram_bot_token and self.telegram_chat_id)

    @classmethod
    def from_env(cls) -> "Config":
        """Создает конфиг из переменных окружения с валидацией"""
        db_url = os.getenv("DATABASE_URL")
        if not db_url:
            raise ValueError("DATABASE_URL не установлен")

        return cls(
            database_url=db_url,
            db_schema=os.getenv("DB_SCHEMA", DEFAULT_DB_SCHEMA),
            sepay_webhook_secret=_first_env("SEPAY_WEBHOOK_SECRET", "WEBHOOK_SECRET") or "",
            sepay_api_key=os.getenv("SEPAY_API_KEY", ""),
            host=os.getenv("SEPAY_HOST", "0.0.0.0"),
            port=int(os.getenv("SEPAY_PORT") or 5000),
            telegram_bot_token=os.getenv("TELEGRAM_BOT_TOKEN", ""),
            telegram_chat_id=_first_env(
                "RENEWAL_GROUP_ID", "NOTIFICATION_CHAT_ID", "TELEGRAM_CHAT_ID"
            ) or DEFAULT_NOTIFICATION_GROUP_ID,
            telegram_topic_id=_first_env("RENEWAL_TOPIC_ID", "TELEGRAM_TOPIC_ID") or DEFAULT_RENEWAL_TOPIC_ID,
            send_renewal_to_topic=_env_flag("SEND_RENEWAL_TO_TOPIC"),
            renewal_sweep_enabled=_env_flag("ENABLE_RENEWAL_CRON"),
            renewal_sweep_interval_seconds=int(
                os.getenv("RENEWAL_SWEEP_INTERVAL_SECONDS") or DEFAULT_RENEWAL_SWEEP_INTERVAL_SECONDS
            ),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Настраивает логирование для приложения"""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    return logging.getLogger("sepay_renewal")
