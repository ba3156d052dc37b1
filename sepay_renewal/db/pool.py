import asyncpg
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
import logging

logger = logging.getLogger(__name__)


class Database:
    """Пул соединений с PostgreSQL, который создается и закрывается владельцем"""

    def __init__(
        self,
        database_url: str,
        min_size: int = 1,
        max_size: int = 10,
        command_timeout: float = 60,
    ):
        self.database_url = database_url
        self.min_size = min_size
        self.max_size = max_size
        self.command_timeout = command_timeout
        self._pool: Optional[asyncpg.Pool] = None

    async def init_pool(self) -> asyncpg.Pool:
        """Инициализирует пул соединений с PostgreSQL"""
        self._pool = await asyncpg.create_pool(
            self.database_url,
            min_size=self.min_size,
            max_size=self.max_size,
            command_timeout=self.command_timeout
        )
        logger.info("✅ Подключение к базе данных установлено")
        return self._pool

    async def close_pool(self) -> None:
        """Закрывает пул соединений"""
        if self._pool:
            await self._pool.close()
            self._pool = None
            logger.info("🔒 Соединение с базой данных закрыто")

    @property
    def pool(self) -> asyncpg.Pool:
        """Получает текущий пул соединений"""
        if self._pool is None:
            raise RuntimeError("Database pool не инициализирован")
        return self._pool

    def acquire(self):
        """Соединение на одну единицу работы без транзакции"""
        return self.pool.acquire()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[asyncpg.Connection]:
        """Соединение с открытой транзакцией: COMMIT при выходе, ROLLBACK при ошибке"""
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                yield conn
