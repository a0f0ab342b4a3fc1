"""
时间工具

- 帧时间戳（毫秒）及其格式化
- 基于单调时钟的固定周期调度，供采集循环计算每个周期的截止时间
"""

import time
from datetime import datetime
from typing import Optional


class TimeUtils:
    """时间戳工具类"""

    @staticmethod
    def get_timestamp_ms() -> int:
        """
        获取当前时间戳（毫秒）

        Returns:
            int: 当前时间戳（毫秒）
        """
        return int(time.time() * 1000)

    @staticmethod
    def get_monotonic_time() -> float:
        """
        获取单调时钟读数（秒），不受系统时间调整影响

        Returns:
            float: 单调时钟读数（秒）
        """
        return time.monotonic()

    @staticmethod
    def format_timestamp(timestamp_ms: int, format_str: str = "%Y-%m-%d %H:%M:%S.%f") -> str:
        """
        格式化毫秒时间戳，%f 只保留到毫秒

        Args:
            timestamp_ms (int): 毫秒时间戳
            format_str (str): strftime 格式字符串

        Returns:
            str: 格式化后的时间字符串
        """
        dt = datetime.fromtimestamp(timestamp_ms / 1000.0)
        return dt.strftime(format_str.replace("%f", f"{dt.microsecond // 1000:03d}"))

    @staticmethod
    def get_filename_timestamp() -> str:
        """
        获取适合用作文件名的时间戳字符串

        Returns:
            str: 格式为 YYYYMMDD_HHMMSS 的时间戳字符串
        """
        return datetime.now().strftime("%Y%m%d_%H%M%S")


class TickSchedule:
    """
    固定周期调度

    记录下一个周期的截止时间（单调时钟）。某个周期的处理耗时超过周期长度时，
    跳过已经错过的周期，而不是连续补发。
    """

    def __init__(self, interval: float, start: Optional[float] = None):
        """
        Args:
            interval (float): 周期长度（秒），必须大于0
            start (Optional[float]): 起始时间（单调时钟），None表示当前时间
        """
        if interval <= 0:
            raise ValueError(f"周期长度必须大于0: {interval}")

        self.interval = interval
        if start is None:
            start = TimeUtils.get_monotonic_time()
        self.deadline = start + interval

    def remaining(self, now: Optional[float] = None) -> float:
        """距离当前截止时间的秒数，已过期时为负数"""
        if now is None:
            now = TimeUtils.get_monotonic_time()
        return self.deadline - now

    def advance(self, now: Optional[float] = None) -> int:
        """
        进入下一个周期

        Args:
            now (Optional[float]): 当前时间（单调时钟），None表示读取时钟

        Returns:
            int: 跳过的周期数
        """
        if now is None:
            now = TimeUtils.get_monotonic_time()

        self.deadline += self.interval
        if self.deadline > now:
            return 0

        skipped = int((now - self.deadline) // self.interval) + 1
        self.deadline += skipped * self.interval
        return skipped


# 全局时间工具实例
time_manager = TimeUtils()


def format_timestamp(timestamp_ms: int, format_str: str = "%Y-%m-%d %H:%M:%S.%f") -> str:
    """格式化毫秒时间戳的便捷函数"""
    return time_manager.format_timestamp(timestamp_ms, format_str)


def format_current_time(format_str: str = "%Y-%m-%d %H:%M:%S") -> str:
    """格式化当前时间的便捷函数"""
    return datetime.now().strftime(format_str)
