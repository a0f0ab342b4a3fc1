"""
显示帧缓冲区

保存“当前可显示的图像”的单槽缓冲区，由采集循环或编解码路径写入，
由界面绘制路径读取。只保留最新一帧，不排队、不背压。
"""

import threading
from typing import Optional

from utils.logger import get_logger
from .data_type import Frame


class FrameSink:
    """单槽显示帧缓冲区（后写覆盖）"""

    def __init__(self):
        """初始化帧缓冲区"""
        self.logger = get_logger("frame_sink")

        self._frame: Optional[Frame] = None
        self._version = 0
        self.lock = threading.Lock()

    def publish(self, frame: Frame) -> None:
        """
        替换当前帧

        读取方只会看到完整的旧帧或完整的新帧。

        Args:
            frame (Frame): 新的显示帧

        Raises:
            TypeError: frame 不是 Frame 实例
        """
        if not isinstance(frame, Frame):
            raise TypeError(f"只能发布 Frame，而不是 {type(frame).__name__}")

        with self.lock:
            self._frame = frame
            self._version += 1

    def read(self) -> Optional[Frame]:
        """
        获取当前帧

        Returns:
            Optional[Frame]: 当前帧，尚未发布过任何帧时返回None
        """
        with self.lock:
            return self._frame

    def clear(self) -> None:
        """清除当前帧"""
        with self.lock:
            self._frame = None
        self.logger.debug("显示帧缓冲区已清除")

    @property
    def version(self) -> int:
        """已完成的发布次数"""
        with self.lock:
            return self._version
