#!/usr/bin/env python3
"""
二维码应用主窗口

提供一个简单的GUI界面，用于：
- 把消息编码为二维码图像，或从图像文件解码消息
- 显示实时摄像头画面，并解码画面中的二维码
- 保存当前显示的图像

用法: qrcode-app [image=<ImageFile> | msg=<Message>] [--config PATH] [--log-level LEVEL]
"""

import argparse
import os
import sys
from dataclasses import dataclass
from typing import List, Optional

# 添加项目根目录到Python路径
sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

from PyQt5.QtWidgets import (QApplication, QMainWindow, QVBoxLayout, QHBoxLayout,
                             QWidget, QLabel, QLineEdit, QAction, QFileDialog,
                             QMessageBox, QSizePolicy)
from PyQt5.QtCore import Qt, QTimer, QSize, QRect
from PyQt5.QtGui import QImage, QPainter, QKeySequence

from core.camera import CaptureState, FrameSink
from core.exceptions import (CameraUnavailableError, DecodeError, EncodeError,
                             ImageFileError, QRCodeNotFoundError)
from core.qr_controller import QRCodeController
from utils.config_manager import get_config_manager, reset_config_manager
from utils.logger import (configure_logging, gui_logger, log_error_with_traceback,
                          log_system_info, main_logger)
from utils.path_utils import build_image_file_filter, get_image_format
from utils.time_utils import format_timestamp


PROGRAM_TITLE = "QR Code Application"
PROGRAM_VERSION = "[version 1.0.0]"
COPYRIGHT_MSG = "Copyright (c) QR Code Application contributors"

ERROR_NONE = 0
ERROR_INVALID_NUM_ARGUMENTS = -1
ERROR_INVALID_ARGUMENT = -2


@dataclass
class LaunchOptions:
    """命令行启动参数"""
    image_file: Optional[str] = None
    message: Optional[str] = None
    config_path: Optional[str] = None
    log_level: Optional[str] = None
    exit_code: int = ERROR_NONE


def parse_command_line(argv: List[str]) -> LaunchOptions:
    """
    解析命令行参数

    最多一个 key=value 形式的参数：image=<图像文件> 或 msg=<消息>（key不区分大小写）。

    Args:
        argv (List[str]): 不含程序名的参数列表

    Returns:
        LaunchOptions: 启动参数，exit_code 非0表示参数错误
    """
    parser = argparse.ArgumentParser(prog="qrcode-app", add_help=False)
    parser.add_argument('params', nargs='*')
    parser.add_argument('--config', dest='config_path')
    parser.add_argument('--log-level', dest='log_level')

    args, unknown = parser.parse_known_args(argv)
    options = LaunchOptions(config_path=args.config_path, log_level=args.log_level)

    if unknown:
        options.exit_code = ERROR_INVALID_ARGUMENT
        return options

    if len(args.params) > 1:
        options.exit_code = ERROR_INVALID_NUM_ARGUMENTS
        return options

    if args.params:
        left, sep, right = args.params[0].partition('=')
        if not sep:
            options.exit_code = ERROR_INVALID_ARGUMENT
        elif left.lower() == 'image':
            options.image_file = right
        elif left.lower() == 'msg':
            options.message = right
        else:
            options.exit_code = ERROR_INVALID_ARGUMENT

    return options


def print_usage() -> None:
    """打印程序标题和用法"""
    print(f"{PROGRAM_TITLE} {PROGRAM_VERSION}")
    print(COPYRIGHT_MSG)
    print("Usage: qrcode-app [image=<ImageFile> | msg=<Message>] [--config PATH] [--log-level LEVEL]")


class ImagePanel(QWidget):
    """图像面板：绘制显示帧缓冲区中的当前帧"""

    def __init__(self, frame_sink: FrameSink, width: int, height: int, parent=None):
        super().__init__(parent)
        self.frame_sink = frame_sink
        self.setFixedSize(QSize(width, height))
        self.setSizePolicy(QSizePolicy.Fixed, QSizePolicy.Fixed)

    def paintEvent(self, event):
        """绘制当前帧，保持宽高比居中显示"""
        painter = QPainter(self)
        painter.fillRect(self.rect(), Qt.black)

        frame = self.frame_sink.read()
        if frame is not None:
            # QImage 不复制数据，绘制结束前必须保持 data 存活
            data = frame.pixels.tobytes()
            image = QImage(data, frame.width, frame.height, 3 * frame.width,
                           QImage.Format_RGB888)

            target = QSize(frame.width, frame.height).scaled(self.size(), Qt.KeepAspectRatio)
            x = (self.width() - target.width()) // 2
            y = (self.height() - target.height()) // 2
            painter.drawImage(QRect(x, y, target.width(), target.height()), image)

        painter.end()


class QRCodeWindow(QMainWindow):
    """二维码应用主窗口"""

    def __init__(self, image_file: Optional[str] = None, msg: Optional[str] = None,
                 controller: Optional[QRCodeController] = None):
        super().__init__()

        self.config_manager = get_config_manager()
        self.ui_settings = self.config_manager.get_ui_settings()
        qr_settings = self.config_manager.get_qr_settings()

        self.controller = controller if controller is not None else QRCodeController()
        self.image_width = int(qr_settings.get('image_width', 640))
        self.image_height = int(qr_settings.get('image_height', 480))

        self.init_ui()
        self._setup_signals()
        self.update_camera_actions(self.controller.camera_state.value)

        # 定时更新摄像头帧率
        self.status_timer = QTimer(self)
        self.status_timer.timeout.connect(self.update_camera_status)
        self.status_timer.start(1000)

        if image_file is not None:
            # 有图像文件参数，显示图像并解码消息
            self.set_image_file(image_file)
        elif msg is not None:
            # 有消息参数，显示消息并生成二维码
            self.set_message_text(msg)

    def init_ui(self):
        """初始化UI"""
        self.setWindowTitle(self.ui_settings.get('title', PROGRAM_TITLE))

        central_widget = QWidget()
        self.setCentralWidget(central_widget)

        border = int(self.ui_settings.get('border_size', 20))
        main_layout = QVBoxLayout()
        main_layout.setContentsMargins(border, border, border, border)
        central_widget.setLayout(main_layout)

        self.image_panel = ImagePanel(self.controller.frame_sink, self.image_width, self.image_height)
        main_layout.addWidget(self.image_panel)

        # 消息栏
        msg_layout = QHBoxLayout()
        msg_layout.addWidget(QLabel("消息:"))
        self.msg_edit = QLineEdit()
        self.msg_edit.setPlaceholderText("输入消息后按回车生成二维码")
        self.msg_edit.returnPressed.connect(self.on_message_entered)
        msg_layout.addWidget(self.msg_edit)
        main_layout.addLayout(msg_layout)

        self.create_menu_bar()

        # 状态栏
        self.camera_status_label = QLabel("摄像头: 未启动")
        self.statusBar().addPermanentWidget(self.camera_status_label)

        self.setFixedSize(self.sizeHint())

    def create_menu_bar(self):
        """创建菜单栏"""
        menu_bar = self.menuBar()

        # 文件菜单
        file_menu = menu_bar.addMenu("文件(&F)")

        open_action = QAction("打开图像(&O)", self)
        open_action.setShortcut(QKeySequence.Open)
        open_action.triggered.connect(self.on_open_image)
        file_menu.addAction(open_action)

        save_action = QAction("保存图像(&S)", self)
        save_action.setShortcut(QKeySequence.Save)
        save_action.triggered.connect(self.on_save_image)
        file_menu.addAction(save_action)

        file_menu.addSeparator()

        exit_action = QAction("退出(&X)", self)
        exit_action.triggered.connect(self.close)
        file_menu.addAction(exit_action)

        # 摄像头菜单
        camera_menu = menu_bar.addMenu("摄像头(&C)")

        self.start_camera_action = QAction("开始(&S)", self)
        self.start_camera_action.triggered.connect(self.start_camera)
        camera_menu.addAction(self.start_camera_action)

        self.stop_camera_action = QAction("停止(&T)", self)
        self.stop_camera_action.triggered.connect(self.stop_camera)
        camera_menu.addAction(self.stop_camera_action)

        self.capture_action = QAction("识别当前画面(&C)", self)
        self.capture_action.setShortcut(QKeySequence("Ctrl+R"))
        self.capture_action.triggered.connect(self.capture_image)
        camera_menu.addAction(self.capture_action)

        # 帮助菜单
        help_menu = menu_bar.addMenu("帮助(&H)")

        about_action = QAction("关于(&A)", self)
        about_action.triggered.connect(self.show_about)
        help_menu.addAction(about_action)

    def _setup_signals(self):
        """设置信号连接"""
        self.controller.display_updated.connect(self.image_panel.update)
        self.controller.message_changed.connect(self.msg_edit.setText)
        self.controller.camera_state_changed.connect(self.update_camera_actions)
        self.controller.error_occurred.connect(self.on_controller_error)

    # 消息与图像文件
    def set_image_file(self, file_path: str) -> bool:
        """
        显示图像文件并解码消息

        Args:
            file_path (str): 图像文件路径

        Returns:
            bool: 是否成功解码
        """
        try:
            self.controller.load_image_file(file_path)
            self.statusBar().showMessage(f"已打开 {file_path}", 5000)
            return True
        except ImageFileError:
            self.show_error(f"无法读取图像文件 {file_path}。")
        except QRCodeNotFoundError:
            self.show_error("图像中没有找到二维码。")
        except DecodeError as e:
            self.show_error(f"无法解码图像中的二维码: {e}")
        return False

    def save_image_file(self, file_path: str) -> bool:
        """
        保存当前显示的图像

        Args:
            file_path (str): 目标路径

        Returns:
            bool: 是否成功保存
        """
        if not get_image_format(file_path):
            file_path += ".png"

        try:
            self.controller.save_image_file(file_path)
            self.statusBar().showMessage(f"已保存 {file_path}", 5000)
            return True
        except ImageFileError as e:
            self.show_error(f"无法写入图像文件 {file_path}: {e}")
            return False

    def set_message_text(self, msg: str) -> bool:
        """
        显示消息并生成对应的二维码

        Args:
            msg (str): 消息文本

        Returns:
            bool: 是否成功编码
        """
        self.msg_edit.setText(msg)
        try:
            self.controller.set_message_text(msg)
            return True
        except EncodeError as e:
            self.show_error(f"无法生成二维码: {e}")
            return False

    def on_message_entered(self):
        """消息输入框回车回调"""
        self.set_message_text(self.msg_edit.text())

    def on_open_image(self):
        """文件 -> 打开图像"""
        file_path, _ = QFileDialog.getOpenFileName(self, "打开图像", "", build_image_file_filter())
        if file_path:
            self.set_image_file(file_path)

    def on_save_image(self):
        """文件 -> 保存图像"""
        file_path, _ = QFileDialog.getSaveFileName(self, "保存图像", "", build_image_file_filter())
        if file_path:
            self.save_image_file(file_path)

    # 摄像头
    def start_camera(self):
        """开始摄像头画面"""
        try:
            self.controller.start_camera()
        except CameraUnavailableError:
            self.show_error("无法打开摄像头，可能没有权限或正在被其他应用使用。")

    def stop_camera(self):
        """停止摄像头画面"""
        self.controller.stop_camera()

    def capture_image(self) -> bool:
        """
        解码当前画面中的二维码并更新消息

        Returns:
            bool: 是否成功解码
        """
        try:
            self.controller.capture_message()
            return True
        except QRCodeNotFoundError:
            self.show_error("图像中没有找到二维码。")
        except DecodeError as e:
            self.show_error(f"无法解码二维码: {e}")
        return False

    def update_camera_actions(self, state: str):
        """根据采集状态更新摄像头菜单"""
        running = state == CaptureState.RUNNING.value
        self.start_camera_action.setEnabled(not running)
        self.stop_camera_action.setEnabled(running)

        state_names = {
            CaptureState.STOPPED.value: "未启动",
            CaptureState.RUNNING.value: "运行中",
            CaptureState.PAUSED.value: "已停止"
        }
        self.camera_status_label.setText(f"摄像头: {state_names.get(state, state)}")
        gui_logger.debug(f"摄像头状态: {state}")

    def update_camera_status(self):
        """更新摄像头帧率和最后画面时间"""
        if self.controller.camera_state is not CaptureState.RUNNING:
            return

        info = self.controller.get_camera_info()
        frame = self.controller.current_frame()
        if info is None or frame is None:
            return

        last_frame_time = format_timestamp(frame.timestamp_ms, "%H:%M:%S.%f")
        self.camera_status_label.setText(
            f"摄像头: 运行中 | FPS: {info['measured_fps']:.1f} | 最后画面: {last_frame_time}"
        )

    def on_controller_error(self, message: str):
        """非致命错误回调"""
        gui_logger.warning(message)
        self.statusBar().showMessage(message, 5000)

    # 对话框
    def show_error(self, message: str):
        """显示错误对话框"""
        gui_logger.error(message)
        QMessageBox.critical(self, PROGRAM_TITLE, message)

    def show_about(self):
        """帮助 -> 关于"""
        QMessageBox.information(self, PROGRAM_TITLE, f"{PROGRAM_TITLE} {PROGRAM_VERSION}\n{COPYRIGHT_MSG}")

    def closeEvent(self, event):
        """窗口关闭事件：终止采集线程并释放摄像头"""
        gui_logger.info("正在关闭应用程序...")

        self.status_timer.stop()
        self.controller.shutdown()

        event.accept()


def main():
    """主函数"""
    options = parse_command_line(sys.argv[1:])
    if options.exit_code != ERROR_NONE:
        print_usage()
        sys.exit(options.exit_code)

    config_manager = reset_config_manager(options.config_path) if options.config_path else get_config_manager()
    configure_logging(config_manager.get_logging_settings(), options.log_level)
    log_system_info(main_logger)

    app = QApplication(sys.argv[:1])

    # 创建主窗口
    try:
        window = QRCodeWindow(image_file=options.image_file, msg=options.message)
    except Exception as e:
        log_error_with_traceback(main_logger, e, "创建主窗口失败")
        raise
    window.show()

    # 运行应用
    sys.exit(app.exec_())


if __name__ == "__main__":
    main()
