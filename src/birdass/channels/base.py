from abc import ABC, abstractmethod
from typing import Any

__all__ = ["NotificationSink"]


class NotificationSink(ABC):
    """向单个用户发送私聊消息的通道

    open_channel 失败时抛出 RecipientUnreachable, send 失败时抛出 DeliveryFailed。
    """

    @abstractmethod
    async def open_channel(self, recipient_id: str) -> Any:
        pass

    @abstractmethod
    async def send(self, channel: Any, text: str) -> None:
        pass
