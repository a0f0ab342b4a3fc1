"""
摄像头模块数据类型定义

将所有摄像头相关的dataclass和Enum集中在此，便于管理和复用。
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple
import cv2
import numpy as np
from collections import deque

from utils.time_utils import time_manager


# -------------------
# Enums
# -------------------

class CaptureState(Enum):
    """采集循环状态枚举"""
    STOPPED = "stopped"
    RUNNING = "running"
    PAUSED = "paused"


class FrameSource(Enum):
    """帧来源"""
    CAMERA = "camera"     # 摄像头采集
    ENCODED = "encoded"   # 由消息编码生成的二维码
    FILE = "file"         # 从图像文件加载


# ---------------------
# Dataclasses
# ---------------------

@dataclass
class CameraDevice:
    """摄像头设备信息"""
    index: int
    width: int = 640
    height: int = 480
    fps: float = 30.0
    capture: Optional[cv2.VideoCapture] = None
    frame_timestamps: deque = field(default_factory=lambda: deque(maxlen=30), repr=False)

    @property
    def is_opened(self) -> bool:
        """摄像头是否处于打开状态"""
        return self.capture is not None

    @property
    def measured_fps(self) -> float:
        """根据最近的帧时间戳计算并返回实测的帧率。

        Returns:
            float: 实测的FPS，如果时间戳不足则返回0.0。
        """
        if len(self.frame_timestamps) < 2:
            return 0.0

        # 时间戳单位是毫秒
        time_diff_ms = self.frame_timestamps[-1] - self.frame_timestamps[0]
        if time_diff_ms <= 0:
            return 0.0

        # 帧数是时间戳数量减1
        num_frames = len(self.frame_timestamps) - 1
        return num_frames / (time_diff_ms / 1000.0)

    @property
    def display_name(self) -> str:
        """获取显示名称"""
        return f"摄像头 {self.index}"

    @property
    def resolution(self) -> Tuple[int, int]:
        """获取分辨率"""
        return (self.width, self.height)


@dataclass(frozen=True, eq=False)
class Frame:
    """
    可显示的帧：RGB像素缓冲区及其尺寸

    构造时复制像素数据并设为只读，发布后任何持有者都无法修改。
    像素数组形状必须为 (height, width, 3)，类型为 uint8。
    """
    pixels: np.ndarray
    width: int
    height: int
    source: FrameSource = FrameSource.CAMERA
    timestamp_ms: int = field(default_factory=time_manager.get_timestamp_ms)

    def __post_init__(self):
        if not isinstance(self.pixels, np.ndarray):
            raise TypeError(f"像素数据必须是 numpy.ndarray，而不是 {type(self.pixels).__name__}")
        if self.pixels.dtype != np.uint8:
            raise ValueError(f"像素数据类型必须是 uint8，而不是 {self.pixels.dtype}")
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"帧尺寸无效: {self.width}x{self.height}")
        if self.pixels.shape != (self.height, self.width, 3):
            raise ValueError(f"像素数据形状 {self.pixels.shape} 与帧尺寸 "
                             f"{self.width}x{self.height} 不一致")

        pixels = np.ascontiguousarray(self.pixels).copy()
        pixels.flags.writeable = False
        object.__setattr__(self, 'pixels', pixels)

    @classmethod
    def from_bgr(cls, image: np.ndarray, source: FrameSource = FrameSource.CAMERA) -> "Frame":
        """
        将OpenCV图像（BGR、BGRA或灰度）转换为RGB显示帧

        Args:
            image (np.ndarray): OpenCV图像
            source (FrameSource): 帧来源

        Returns:
            Frame: 显示帧

        Raises:
            ValueError: 图像为空或通道数不受支持
        """
        if image is None or image.size == 0:
            raise ValueError("图像为空")

        if image.ndim == 2:
            rgb = cv2.cvtColor(image, cv2.COLOR_GRAY2RGB)
        elif image.ndim == 3 and image.shape[2] == 1:
            rgb = cv2.cvtColor(np.ascontiguousarray(image[:, :, 0]), cv2.COLOR_GRAY2RGB)
        elif image.ndim == 3 and image.shape[2] == 3:
            rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
        elif image.ndim == 3 and image.shape[2] == 4:
            rgb = cv2.cvtColor(image, cv2.COLOR_BGRA2RGB)
        else:
            raise ValueError(f"不支持的图像形状: {image.shape}")

        height, width = rgb.shape[:2]
        return cls(pixels=rgb, width=width, height=height, source=source)

    def to_bgr(self) -> np.ndarray:
        """
        转换为OpenCV使用的BGR图像（新数组，可写）

        Returns:
            np.ndarray: BGR图像
        """
        return cv2.cvtColor(self.pixels, cv2.COLOR_RGB2BGR)

    @property
    def size(self) -> Tuple[int, int]:
        """获取帧尺寸 (width, height)"""
        return (self.width, self.height)
