"""
日志配置工具

所有模块的日志记录器共用一个彩色控制台处理器，启用文件日志后再共用一个
日志文件处理器，整个程序只写一个日志文件。
"""

import logging
import platform
import sys
import traceback
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .path_utils import path_manager
from .time_utils import format_current_time, time_manager


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
LOG_FILE_PREFIX = 'qrcode_app'


class ColoredFormatter(logging.Formatter):
    """彩色日志格式化器"""

    # 颜色代码
    COLORS = {
        'DEBUG': '\033[36m',    # 青色
        'INFO': '\033[32m',     # 绿色
        'WARNING': '\033[33m',  # 黄色
        'ERROR': '\033[31m',    # 红色
        'CRITICAL': '\033[35m', # 紫色
        'RESET': '\033[0m'      # 重置
    }

    def format(self, record):
        color = self.COLORS.get(record.levelname, self.COLORS['RESET'])
        reset = self.COLORS['RESET']

        # 同一条记录之后还会交给文件处理器，格式化后恢复原始级别名
        levelname = record.levelname
        record.levelname = f"{color}{levelname}{reset}"
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


class LoggerManager:
    """日志管理器：创建记录器并为它们挂载共享的处理器"""

    def __init__(self):
        self.loggers: Dict[str, logging.Logger] = {}
        self.console_handler = self._create_console_handler()
        self.file_handler: Optional[logging.FileHandler] = None

    @staticmethod
    def _create_console_handler() -> logging.Handler:
        """创建输出到标准输出的彩色处理器"""
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(logging.INFO)
        handler.setFormatter(ColoredFormatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
        return handler

    def get_logger(self, name: str, level: int = logging.DEBUG) -> logging.Logger:
        """
        获取或创建日志记录器

        Args:
            name (str): 日志记录器名称
            level (int): 记录器级别，实际输出再由各处理器的级别过滤

        Returns:
            logging.Logger: 日志记录器实例
        """
        if name in self.loggers:
            return self.loggers[name]

        logger = logging.getLogger(name)
        logger.setLevel(level)
        logger.handlers.clear()
        logger.addHandler(self.console_handler)
        if self.file_handler is not None:
            logger.addHandler(self.file_handler)

        # 防止重复记录
        logger.propagate = False

        self.loggers[name] = logger
        return logger

    def enable_file_logging(self, file_path: Union[str, Path],
                            level: int = logging.DEBUG) -> Path:
        """
        把所有记录器（包括之后创建的）的输出同时写入日志文件

        已经启用文件日志时，先关闭旧的日志文件。

        Args:
            file_path (Union[str, Path]): 日志文件路径
            level (int): 文件日志级别

        Returns:
            Path: 日志文件路径
        """
        self.disable_file_logging()

        file_path = Path(file_path)
        handler = logging.FileHandler(file_path, encoding='utf-8')
        handler.setLevel(level)
        # 文件中不需要颜色
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))

        for logger in self.loggers.values():
            logger.addHandler(handler)
        self.file_handler = handler
        return file_path

    def disable_file_logging(self) -> None:
        """移除并关闭日志文件处理器"""
        if self.file_handler is None:
            return

        for logger in self.loggers.values():
            logger.removeHandler(self.file_handler)
        self.file_handler.close()
        self.file_handler = None

    @property
    def log_file(self) -> Optional[Path]:
        """当前日志文件路径，未启用文件日志时为None"""
        if self.file_handler is None:
            return None
        return Path(self.file_handler.baseFilename)

    def set_console_level(self, level: int) -> None:
        """设置控制台日志级别"""
        self.console_handler.setLevel(level)


# 全局日志管理器实例
logger_manager = LoggerManager()


def get_logger(name: str, level: int = logging.DEBUG) -> logging.Logger:
    """获取日志记录器的便捷函数"""
    return logger_manager.get_logger(name, level)


def parse_log_level(level: Union[str, int]) -> int:
    """
    将日志级别名称或数字转换为logging级别

    Args:
        level (Union[str, int]): 日志级别，如 "INFO"、"debug" 或 20

    Returns:
        int: logging级别，无法识别时返回 logging.INFO
    """
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).upper())
    return value if isinstance(value, int) else logging.INFO


def setup_file_logging(log_dir: Union[str, Path]) -> Path:
    """
    在指定目录中新建带时间戳的日志文件并启用文件日志

    Args:
        log_dir (Union[str, Path]): 日志目录，相对路径基于项目根目录

    Returns:
        Path: 日志文件路径
    """
    log_dir = path_manager.ensure_dir_exists(log_dir)
    log_file = log_dir / f"{LOG_FILE_PREFIX}_{time_manager.get_filename_timestamp()}.log"

    logger_manager.enable_file_logging(log_file)
    main_logger.info(f"日志文件: {log_file}")
    return log_file


def configure_logging(settings: Dict[str, Any], level: Optional[Union[str, int]] = None) -> Optional[Path]:
    """
    按配置中的 logging 段设置控制台级别和文件日志

    Args:
        settings (Dict[str, Any]): 日志设置（level、file_enabled、file_path）
        level (Optional[Union[str, int]]): 命令行指定的级别，优先于配置

    Returns:
        Optional[Path]: 日志文件路径，未启用文件日志时为None
    """
    log_level = parse_log_level(level if level is not None else settings.get('level', 'INFO'))
    logger_manager.set_console_level(log_level)

    if not settings.get('file_enabled', False):
        return None
    return setup_file_logging(settings.get('file_path', 'logs'))


def log_system_info(logger: logging.Logger) -> None:
    """
    记录运行环境：操作系统、Python和图像/界面库版本

    Args:
        logger (logging.Logger): 日志记录器
    """
    import cv2
    import numpy as np
    from PyQt5.QtCore import QT_VERSION_STR, PYQT_VERSION_STR

    logger.info("=== 系统信息 ===")
    logger.info(f"操作系统: {platform.system()} {platform.release()}")
    logger.info(f"Python版本: {sys.version.split()[0]}")
    logger.info(f"OpenCV版本: {cv2.__version__}")
    logger.info(f"NumPy版本: {np.__version__}")
    logger.info(f"Qt版本: {QT_VERSION_STR} (PyQt {PYQT_VERSION_STR})")
    logger.info(f"启动时间: {format_current_time()}")
    logger.info("===============")


def log_error_with_traceback(logger: logging.Logger, error: Exception, context: str = "") -> None:
    """
    记录异常及其堆栈

    Args:
        logger (logging.Logger): 日志记录器
        error (Exception): 异常对象
        context (str): 发生错误时正在执行的操作
    """
    header = f"{context}: " if context else ""
    stack = "".join(traceback.format_exception(type(error), error, error.__traceback__))
    logger.error(f"{header}{type(error).__name__}: {error}\n{stack.rstrip()}")


# 预定义的日志记录器
main_logger = get_logger("main")
gui_logger = get_logger("gui")
