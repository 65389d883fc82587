"""birdass: 提醒与 music month 聊天机器人"""

__version__ = "1.0.0"
