"""
摄像头管理器

负责摄像头设备的打开、读取和释放。
底层使用 OpenCV 的 VideoCapture，一个管理器只持有一个设备。
"""

import threading
from typing import Optional

import cv2
import numpy as np

from core.exceptions import CameraUnavailableError
from utils.config_manager import get_config_manager
from utils.logger import get_logger
from utils.time_utils import time_manager
from .data_type import CameraDevice


class CameraManager:
    """摄像头管理器"""

    def __init__(self, width: Optional[int] = None, height: Optional[int] = None,
                 buffer_size: Optional[int] = None):
        """
        初始化摄像头管理器

        Args:
            width (Optional[int]): 请求的视频宽度，None表示使用配置
            height (Optional[int]): 请求的视频高度，None表示使用配置
            buffer_size (Optional[int]): 驱动缓冲帧数，None表示使用配置
        """
        settings = get_config_manager().get_camera_settings()
        resolution = settings.get('resolution', {})

        self.width = width if width is not None else resolution.get('width', 640)
        self.height = height if height is not None else resolution.get('height', 480)
        self.buffer_size = buffer_size if buffer_size is not None else settings.get('buffer_size', 1)

        self.device: Optional[CameraDevice] = None
        self.logger = get_logger("camera_manager")

        # 线程锁：lock 保护设备句柄（读取期间一直持有），info_lock 只保护设备信息
        self.lock = threading.Lock()
        self.info_lock = threading.Lock()

    def open_camera(self, camera_index: int) -> CameraDevice:
        """
        打开摄像头设备

        Args:
            camera_index (int): 摄像头索引

        Returns:
            CameraDevice: 已打开的设备信息

        Raises:
            CameraUnavailableError: 摄像头不存在、没有权限或正在被其他应用使用
        """
        with self.lock:
            if self.device is not None and self.device.is_opened:
                if self.device.index == camera_index:
                    self.logger.debug(f"{self.device.display_name} 已经打开，跳过重复打开")
                    return self.device
                self._release_locked()

            capture = cv2.VideoCapture(camera_index)
            if not capture.isOpened():
                capture.release()
                self.logger.error(f"无法打开摄像头 {camera_index}")
                raise CameraUnavailableError(
                    f"无法打开摄像头 {camera_index}，可能没有权限或正在被其他应用使用",
                    camera_index
                )

            # 设置摄像头参数
            capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
            capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)

            # 设置缓冲区大小（减少延迟）
            capture.set(cv2.CAP_PROP_BUFFERSIZE, self.buffer_size)

            # 验证设置是否生效
            actual_width = int(capture.get(cv2.CAP_PROP_FRAME_WIDTH))
            actual_height = int(capture.get(cv2.CAP_PROP_FRAME_HEIGHT))
            actual_fps = capture.get(cv2.CAP_PROP_FPS)

            device = CameraDevice(
                index=camera_index,
                width=actual_width if actual_width > 0 else self.width,
                height=actual_height if actual_height > 0 else self.height,
                fps=actual_fps if actual_fps > 0 else 30.0,
                capture=capture
            )
            with self.info_lock:
                self.device = device

            self.logger.info(f"{self.device.display_name} 打开成功 "
                             f"(分辨率: {self.device.width}x{self.device.height}, "
                             f"FPS: {self.device.fps:.1f})")
            return self.device

    def read_frame(self) -> Optional[np.ndarray]:
        """
        读取一帧（阻塞）

        Returns:
            Optional[np.ndarray]: BGR图像；驱动没有返回帧时为None，可能是零尺寸数组
        """
        with self.lock:
            if self.device is None or not self.device.is_opened:
                return None

            ret, frame = self.device.capture.read()
            if not ret or frame is None:
                return None

            if frame.size > 0:
                with self.info_lock:
                    self.device.frame_timestamps.append(time_manager.get_timestamp_ms())
            return frame

    def release_camera(self) -> None:
        """释放摄像头，可重复调用"""
        with self.lock:
            self._release_locked()

    def _release_locked(self) -> None:
        """释放摄像头（调用方需持有锁）"""
        if self.device is None or not self.device.is_opened:
            return

        capture = self.device.capture
        with self.info_lock:
            self.device.capture = None
            self.device.frame_timestamps.clear()
        capture.release()
        self.logger.info(f"{self.device.display_name} 已释放")

    @property
    def is_opened(self) -> bool:
        """摄像头是否已打开"""
        with self.info_lock:
            return self.device is not None and self.device.is_opened

    def get_camera_info(self) -> Optional[dict]:
        """
        获取摄像头信息

        Returns:
            Optional[dict]: 摄像头信息字典，从未打开过摄像头时返回None
        """
        with self.info_lock:
            if self.device is None:
                return None

            return {
                'index': self.device.index,
                'display_name': self.device.display_name,
                'width': self.device.width,
                'height': self.device.height,
                'fps': self.device.fps,
                'resolution': self.device.resolution,
                'is_opened': self.device.is_opened,
                'measured_fps': self.device.measured_fps
            }
