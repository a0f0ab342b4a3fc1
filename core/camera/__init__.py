"""
摄像头模块

该模块负责：
- 摄像头设备的打开、读取和释放
- 后台线程中的定时画面采集（可暂停、恢复、终止）
- 当前显示帧的线程安全保存
"""
from .camera_manager import CameraManager
from .capture_loop import CaptureLoop
from .data_type import CameraDevice, CaptureState, Frame, FrameSource
from .frame_sink import FrameSink

__all__ = [
    "CameraManager",
    "CaptureLoop",
    "CameraDevice",
    "CaptureState",
    "Frame",
    "FrameSource",
    "FrameSink"
]
