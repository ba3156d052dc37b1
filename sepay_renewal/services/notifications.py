import asyncio
import html
import logging
from typing import Optional
from aiogram import Bot

from sepay_renewal.models.renewal import ProcessType, RenewalDetails, RenewalResult
from sepay_renewal.utils.money import format_currency

logger = logging.getLogger(__name__)

_PROCESS_LABELS = {
    ProcessType.RENEWAL: "Gia hạn thành công",
    ProcessType.SKIPPED: "Bỏ qua",
    ProcessType.ERROR: "Lỗi",
}


def _line(label: str, value) -> str:
    return f"{label}: {html.escape(str(value))}"


def build_renewal_message(order_code: str, result: RenewalResult) -> str:
    """Текст уведомления о результате продления"""
    label = _PROCESS_LABELS.get(result.process_type, result.process_type.value)

    if result.success and isinstance(result.details, RenewalDetails):
        details = result.details
        lines = [
            f"✅ <b>{label}</b>",
            _line("Đơn hàng", details.order_code),
            _line("Sản phẩm", details.product),
            _line("Thông tin", details.information or ""),
        ]
        if details.slot:
            lines.append(_line("Slot", details.slot))
        lines += [
            _line("Ngày bắt đầu", details.start_date),
            _line("Ngày hết hạn", details.expiry_date),
            _line("Giá bán", f"{format_currency(details.price)} đ"),
            _line("Nguồn", details.supplier or ""),
            _line("Giá nhập", f"{format_currency(details.cost)} đ"),
        ]
        return "\n".join(lines)

    reason = result.details if isinstance(result.details, str) else ""
    return html.escape(f"Đơn {order_code}: {label} - {reason}")


class NotificationService:
    """Сервис для отправки сводок о продлении в рабочий чат"""

    def __init__(
        self,
        bot: Optional[Bot],
        chat_id: str,
        topic_id: Optional[int] = None,
        send_to_topic: bool = True
    ):
        self.bot = bot
        self.chat_id = chat_id
        self.topic_id = topic_id
        self.send_to_topic = send_to_topic
        self._tasks: set[asyncio.Task] = set()

    @property
    def enabled(self) -> bool:
        return self.bot is not None and bool(self.chat_id)

    async def send_renewal(self, order_code: str, result: RenewalResult) -> bool:
        """Отправляет сводку; ошибки сети логируются и не выходят наружу"""
        if not self.enabled:
            logger.info(f"🔕 Telegram не настроен, уведомление по заказу {order_code} пропущено")
            return False
        try:
            thread_id = self.topic_id if self.send_to_topic else None
            await self.bot.send_message(
                chat_id=self.chat_id,
                text=build_renewal_message(order_code, result),
                message_thread_id=thread_id,
                parse_mode="HTML"
            )
            logger.info(f"📨 Уведомление по заказу {order_code} отправлено в чат {self.chat_id}")
            return True
        except Exception as e:
            logger.error(f"Не удалось отправить уведомление по заказу {order_code}: {e}")
            return False

    def dispatch(self, order_code: str, result: RenewalResult) -> Optional[asyncio.Task]:
        """Запускает отправку в фоне, не задерживая ответ webhook"""
        if not self.enabled:
            logger.info(f"🔕 Telegram не настроен, уведомление по заказу {order_code} пропущено")
            return None
        task = asyncio.create_task(self.send_renewal(order_code, result))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Дожидается отправки уведомлений, запущенных в фоне"""
        if self._tasks:
            logger.info(f"⏳ Ожидаем отправку уведомлений: {len(self._tasks)}")
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
