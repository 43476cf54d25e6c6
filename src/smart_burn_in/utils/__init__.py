"""日志与控制台输出.

所有模块通过 ``get_logger("模块名")`` 获取 ``smart_burn_in`` 的子日志器；
终端输出统一走 rich 的 ``console``，日志经 ``RichHandler`` 渲染到同一个控制台。
"""

import logging
from pathlib import Path
from typing import Optional, Union

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "smart_burn_in"
FILE_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

console = Console()


class LogManager:
    """管理 smart_burn_in 根日志器的处理器.

    控制台处理器在首次使用时安装一次；文件处理器可重复设置，
    新文件会替换旧的文件处理器。
    """

    def __init__(self, name: str = LOGGER_NAME):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.DEBUG)
        self._console_handler: Optional[RichHandler] = None
        self._file_handler: Optional[logging.FileHandler] = None

    def ensure_console_handler(self) -> RichHandler:
        if self._console_handler is None:
            handler = RichHandler(
                console=console,
                show_time=False,
                show_path=False,
                markup=False,
                rich_tracebacks=True,
            )
            handler.setLevel(logging.INFO)
            self.logger.addHandler(handler)
            self._console_handler = handler
        return self._console_handler

    def set_console_level(self, level: int) -> None:
        self.ensure_console_handler().setLevel(level)

    def use_log_file(self, log_file: Union[str, Path], level: int = logging.DEBUG) -> None:
        """把日志同时写入文件 (替换之前设置的文件)."""
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)

        if self._file_handler is not None:
            self.logger.removeHandler(self._file_handler)
            self._file_handler.close()

        handler = logging.FileHandler(path, encoding="utf-8")
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        self.logger.addHandler(handler)
        self._file_handler = handler


_manager = LogManager()


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """获取日志器.

    Args:
        name: 子模块名，为空时返回根日志器

    Returns:
        logging.Logger: 日志器实例
    """
    _manager.ensure_console_handler()
    if name:
        return _manager.logger.getChild(name)
    return _manager.logger


def resolve_level(level: Union[int, str]) -> int:
    """把级别名 (如 "debug") 转换为 logging 常量，无法识别时为 INFO."""
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.strip().upper())
    return value if isinstance(value, int) else logging.INFO


def setup_logging(
    level: Union[int, str] = logging.INFO,
    log_file: Optional[str] = None,
) -> logging.Logger:
    """配置控制台日志级别和可选的日志文件.

    Args:
        level: 日志级别，logging 常量或名称
        log_file: 日志文件路径 (可选)

    Returns:
        logging.Logger: 根日志器
    """
    _manager.set_console_level(resolve_level(level))
    if log_file:
        _manager.use_log_file(log_file)
    return _manager.logger
