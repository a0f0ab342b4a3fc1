"""
二维码应用协调器

管理显示帧缓冲区、摄像头采集循环和二维码编解码之间的协调，
为界面提供消息编码、图像文件读写和摄像头控制接口。
"""

from pathlib import Path
from typing import Optional, Union

from PyQt5.QtCore import QObject, pyqtSignal

from core.camera import CaptureLoop, CaptureState, Frame, FrameSink, FrameSource
from core.exceptions import ImageFileError, QRCodeNotFoundError
from core.qr import decode_message, encode_message, load_image, save_image
from utils.config_manager import get_config_manager
from utils.logger import get_logger


class QRCodeController(QObject):
    """二维码应用协调器"""

    # 信号定义
    display_updated = pyqtSignal()            # 显示帧已更新
    message_changed = pyqtSignal(str)         # 消息文本已更新
    camera_state_changed = pyqtSignal(str)    # 摄像头状态变化（转发自采集循环）
    error_occurred = pyqtSignal(str)          # 非致命错误（如摄像头连续无画面）

    def __init__(self, capture_loop: Optional[CaptureLoop] = None,
                 frame_sink: Optional[FrameSink] = None,
                 parent: Optional[QObject] = None):
        """
        初始化协调器

        Args:
            capture_loop (Optional[CaptureLoop]): 采集循环，None表示按配置创建
            frame_sink (Optional[FrameSink]): 显示帧缓冲区，None表示新建；
                                               传入 capture_loop 时使用它的缓冲区
            parent (Optional[QObject]): Qt父对象
        """
        super().__init__(parent)

        self.logger = get_logger("qr_controller")

        # 编码图像尺寸
        qr_settings = get_config_manager().get_qr_settings()
        self.image_width = int(qr_settings.get('image_width', 640))
        self.image_height = int(qr_settings.get('image_height', 480))

        if capture_loop is not None:
            self.frame_sink = capture_loop.frame_sink
            self.capture_loop = capture_loop
        else:
            self.frame_sink = frame_sink if frame_sink is not None else FrameSink()
            self.capture_loop = CaptureLoop(self.frame_sink)

        self._camera_started = False
        self._is_shutdown = False

        # 设置信号连接
        self._setup_signals()

        self.logger.info("二维码应用协调器初始化完成")

    def _setup_signals(self):
        """设置信号连接"""
        self.capture_loop.frame_published.connect(self._on_frame_published)
        self.capture_loop.state_changed.connect(self.camera_state_changed)
        self.capture_loop.camera_stalled.connect(self._on_camera_stalled)

    def _on_frame_published(self, frame: Frame):
        """采集循环发布新帧"""
        self.display_updated.emit()

    def _on_camera_stalled(self, count: int):
        """摄像头连续无画面"""
        self.error_occurred.emit(f"摄像头连续 {count} 次没有返回画面，设备可能已断开")

    def _publish(self, frame: Frame) -> None:
        """发布显示帧并通知界面"""
        self.frame_sink.publish(frame)
        self.display_updated.emit()

    # 消息与图像文件
    def set_message_text(self, msg: str) -> None:
        """
        把消息编码为二维码并显示

        Args:
            msg (str): 消息文本

        Raises:
            EncodeError: 消息无法编码，此时显示内容保持不变
        """
        image = encode_message(msg, self.image_width, self.image_height)
        self._publish(Frame.from_bgr(image, FrameSource.ENCODED))
        self.message_changed.emit(msg)
        self.logger.info(f"消息已编码为二维码 ({len(msg)} 个字符)")

    def load_image_file(self, file_path: Union[str, Path]) -> str:
        """
        显示图像文件并解码其中的二维码

        即使解码失败，图像也会被显示。

        Args:
            file_path (Union[str, Path]): 图像文件路径

        Returns:
            str: 解码得到的消息

        Raises:
            ImageFileError: 文件无法读取，此时显示内容保持不变
            DecodeError: 图像中没有可解码的二维码
        """
        image = load_image(file_path)
        self._publish(Frame.from_bgr(image, FrameSource.FILE))
        self.logger.info(f"已加载图像文件: {file_path}")

        msg = decode_message(image)
        self.message_changed.emit(msg)
        return msg

    def save_image_file(self, file_path: Union[str, Path]) -> None:
        """
        把当前显示的图像保存到文件

        Args:
            file_path (Union[str, Path]): 目标路径，格式由扩展名决定

        Raises:
            ImageFileError: 没有可保存的图像或写入失败
        """
        frame = self.frame_sink.read()
        if frame is None:
            raise ImageFileError("当前没有可保存的图像", file_path)
        save_image(frame.to_bgr(), file_path)

    def capture_message(self) -> str:
        """
        解码当前显示帧中的二维码

        只读取显示帧缓冲区，不在调用线程中访问摄像头。

        Returns:
            str: 解码得到的消息

        Raises:
            QRCodeNotFoundError: 没有显示帧或其中没有二维码
            DecodeError: 找到二维码但无法解码
        """
        frame = self.frame_sink.read()
        if frame is None:
            raise QRCodeNotFoundError("当前没有可解码的图像")

        msg = decode_message(frame.to_bgr())
        self.message_changed.emit(msg)
        self.logger.info(f"从当前画面解码出消息 ({len(msg)} 个字符)")
        return msg

    def current_frame(self) -> Optional[Frame]:
        """获取当前显示帧"""
        return self.frame_sink.read()

    # 摄像头控制
    def start_camera(self) -> None:
        """
        开始摄像头画面：首次调用启动采集循环，之后恢复采集

        Raises:
            CameraUnavailableError: 摄像头无法打开
            RuntimeError: 协调器已关闭
        """
        if self._is_shutdown:
            raise RuntimeError("协调器已关闭")

        if not self._camera_started:
            self.capture_loop.start()
            self._camera_started = True
        else:
            self.capture_loop.resume()

    def stop_camera(self) -> None:
        """停止摄像头画面（暂停采集，摄像头保持打开）"""
        self.capture_loop.pause()

    @property
    def camera_state(self) -> CaptureState:
        """采集循环状态"""
        return self.capture_loop.state

    def get_camera_info(self) -> Optional[dict]:
        """
        获取摄像头信息

        Returns:
            Optional[dict]: 摄像头信息，摄像头设备不提供信息时返回None
        """
        get_info = getattr(self.capture_loop.camera, 'get_camera_info', None)
        return get_info() if get_info is not None else None

    def shutdown(self) -> None:
        """终止采集循环并释放摄像头，可重复调用"""
        if self._is_shutdown:
            return
        self._is_shutdown = True

        self.logger.info("正在关闭二维码应用协调器...")
        self.capture_loop.terminate()
        self.logger.info("二维码应用协调器已关闭")
