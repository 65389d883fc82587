from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List

from birdass.logger import logger
from birdass.utils import now_utc

GENERIC_FAILURE_REPLY = "Something went wrong at my end, sorry"


@dataclass
class CommandContext:
    user_id: str
    user_name: str = ""
    args: List[str] = field(default_factory=list)
    now: datetime = field(default_factory=now_utc)

    @property
    def text(self) -> str:
        return " ".join(self.args)


class BaseCommand(ABC):
    name: str = ""
    description: str = ""

    @abstractmethod
    async def execute(self, ctx: CommandContext) -> str:
        """执行命令并返回回复给用户的文本"""
        pass


class CommandRouter:
    """命令注册与分发; dispatch 保证每次调用都会得到一条回复"""

    def __init__(self) -> None:
        self._commands: Dict[str, BaseCommand] = {}

    def register(self, command):
        if isinstance(command, type):  # 如果传入的是类，则实例化
            command = command()
        if not command.name:
            raise ValueError(f"命令缺少 name: {command.__class__.__name__}")
        if command.name in self._commands:
            raise ValueError(f"命令已注册: {command.name}")
        logger.debug(f"注册命令: /{command.name} -> {command.__class__.__name__}")
        self._commands[command.name] = command
        return command

    def get_all_commands(self) -> Dict[str, BaseCommand]:
        return dict(self._commands)

    async def dispatch(self, name: str, ctx: CommandContext) -> str:
        command = self._commands.get(name)
        if command is None:
            logger.warning(f"收到未注册的命令: /{name}, user_id={ctx.user_id}")
            return f"I don't know the command /{name}"

        logger.trace(f"执行命令: /{name}, user_id={ctx.user_id}, args={ctx.args}")
        try:
            return await command.execute(ctx)
        except Exception as e:
            logger.opt(exception=e).error(f"命令 /{name} 执行失败: {e}")
            return GENERIC_FAILURE_REPLY


__all__ = ["BaseCommand", "CommandContext", "CommandRouter", "GENERIC_FAILURE_REPLY"]
