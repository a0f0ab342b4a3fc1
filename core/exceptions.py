"""
自定义异常

摄像头、二维码编解码和图像文件读写的异常层次结构。
"""

from enum import Enum
from pathlib import Path
from typing import Optional, Union


class QRCodeAppError(Exception):
    """所有应用异常的基类"""
    pass


class CameraError(QRCodeAppError):
    """摄像头相关异常的基类"""

    def __init__(self, message: str, camera_index: Optional[int] = None):
        self.camera_index = camera_index
        super().__init__(message)


class CameraUnavailableError(CameraError):
    """摄像头无法打开（被占用、没有权限或设备不存在）"""
    pass


class CodecError(QRCodeAppError):
    """二维码编解码异常的基类"""
    pass


class EncodeError(CodecError):
    """消息无法编码为二维码（内容为空、尺寸无效或超出二维码容量）"""
    pass


class DecodeFailure(Enum):
    """解码失败原因"""
    NOT_FOUND = "not_found"      # 图像中没有二维码
    UNREADABLE = "unreadable"    # 找到二维码但无法解码


class DecodeError(CodecError):
    """二维码解码失败"""

    def __init__(self, message: str, reason: DecodeFailure = DecodeFailure.UNREADABLE):
        self.reason = reason
        super().__init__(message)


class QRCodeNotFoundError(DecodeError):
    """图像中没有找到二维码"""

    def __init__(self, message: str = "图像中没有找到二维码"):
        super().__init__(message, DecodeFailure.NOT_FOUND)


class ImageFileError(QRCodeAppError):
    """图像文件读写失败"""

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None):
        self.path = Path(path) if path is not None else None
        super().__init__(message)
