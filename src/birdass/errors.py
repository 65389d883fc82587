"""异常体系

- InvalidFormat / PromptNotFound / NoActivePeriod: 用户输入或领域内的"查无结果"，由命令层就地处理并回复用户，不按错误记录日志
- StoreUnavailable: 存储层故障(连接未建立、读写失败)
- RecipientUnreachable / DeliveryFailed: 通知通道故障，定时投递时只记录日志
"""

__all__ = [
    "BirdassError",
    "InvalidFormat",
    "StoreUnavailable",
    "RecipientUnreachable",
    "DeliveryFailed",
    "PromptNotFound",
    "NoActivePeriod",
]


class BirdassError(Exception):
    pass


class InvalidFormat(BirdassError):
    """用户输入格式不正确 (时间偏移、JSON 内容、文件后缀等)"""


class StoreUnavailable(BirdassError):
    """存储不可用"""


class RecipientUnreachable(BirdassError):
    """无法打开到接收者的会话"""

    def __init__(self, recipient_id: str, reason: str = "") -> None:
        super().__init__(f"无法联系用户 {recipient_id}: {reason}" if reason else f"无法联系用户 {recipient_id}")
        self.recipient_id = recipient_id


class DeliveryFailed(BirdassError):
    """消息发送失败"""


class PromptNotFound(BirdassError):
    def __init__(self, day: int) -> None:
        super().__init__(f"没有第 {day} 天的 prompt")
        self.day = day


class NoActivePeriod(BirdassError):
    """当前没有生效的 music month"""
