"""Loguru logger configuration."""

import sys
from pathlib import Path
from typing import Callable, Union
from loguru import logger


# 输出面板频道：请求日志、启动/停止信息会绑定到这个频道
OUTPUT_CHANNEL = "preview"

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{line} - {message}"


def init_logger(log_dir: Union[str, Path, None] = "logs", console_level: str = "INFO"):
    """
    初始化日志配置

    Args:
        log_dir: 日志目录，为 None 时只输出到控制台
        console_level: 控制台日志级别
    """
    # 清空默认处理器
    logger.remove()

    logger.add(sys.stdout, level=console_level.upper(), format=CONSOLE_FORMAT, colorize=True)

    if log_dir is not None:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        # 文件输出（DEBUG级别，每天午夜轮转）
        logger.add(
            log_path / "nginx_preview_{time:YYYY-MM-DD}.log",
            level="DEBUG",
            format=FILE_FORMAT,
            rotation="00:00",
            retention="10 days",
            encoding="utf-8"
        )

        # 错误日志（单独文件）
        logger.add(
            log_path / "nginx_preview_errors_{time:YYYY-MM-DD}.log",
            level="ERROR",
            format=FILE_FORMAT + "\n{exception}",
            rotation="00:00",
            retention="10 days",
            encoding="utf-8",
            backtrace=True,
            diagnose=False
        )

    logger.info("Logger initialized successfully")


def get_channel_logger():
    """获取绑定到输出频道的日志记录器."""
    return logger.bind(channel=OUTPUT_CHANNEL)


def attach_output_channel(callback: Callable[[str], None], level: str = "INFO") -> int:
    """
    把输出频道的日志行转发给宿主环境（例如编辑器的输出面板）

    Args:
        callback: 接收单行文本的回调
        level: 最低日志级别

    Returns:
        loguru 处理器 ID，用于 detach_output_channel
    """
    def sink(message):
        callback(message.record["message"])

    return logger.add(
        sink,
        level=level,
        format="{message}",
        filter=lambda record: record["extra"].get("channel") == OUTPUT_CHANNEL,
    )


def detach_output_channel(handler_id: int):
    """移除输出频道转发."""
    logger.remove(handler_id)
