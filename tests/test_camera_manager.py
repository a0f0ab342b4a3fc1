"""Tests for the OpenCV camera manager, with VideoCapture mocked out."""

import threading
import time
from unittest import mock

import cv2
import numpy as np
import pytest

from core.camera import CameraManager
from core.exceptions import CameraError, CameraUnavailableError


def make_capture(opened=True, width=640, height=480, fps=30.0, frames=None):
    """构造一个模拟的 cv2.VideoCapture 实例"""
    capture = mock.MagicMock()
    capture.isOpened.return_value = opened

    properties = {
        cv2.CAP_PROP_FRAME_WIDTH: width,
        cv2.CAP_PROP_FRAME_HEIGHT: height,
        cv2.CAP_PROP_FPS: fps,
    }
    capture.get.side_effect = lambda prop: properties.get(prop, 0)

    if frames is not None:
        capture.read.side_effect = frames
    else:
        capture.read.return_value = (True, np.zeros((height, width, 3), dtype=np.uint8))
    return capture


@pytest.fixture
def video_capture():
    with mock.patch("core.camera.camera_manager.cv2.VideoCapture") as patched:
        yield patched


class TestCameraManagerOpen:
    """打开与释放摄像头。"""

    def test_open_camera_applies_settings(self, video_capture):
        """打开时设置分辨率和缓冲区大小，并记录实际值。"""
        capture = make_capture(width=320, height=240, fps=15.0)
        video_capture.return_value = capture
        manager = CameraManager(width=320, height=240, buffer_size=1)

        device = manager.open_camera(0)

        video_capture.assert_called_once_with(0)
        capture.set.assert_any_call(cv2.CAP_PROP_FRAME_WIDTH, 320)
        capture.set.assert_any_call(cv2.CAP_PROP_FRAME_HEIGHT, 240)
        capture.set.assert_any_call(cv2.CAP_PROP_BUFFERSIZE, 1)
        assert device.resolution == (320, 240)
        assert device.fps == 15.0
        assert manager.is_opened

    def test_open_failure_raises_and_releases(self, video_capture):
        """无法打开时释放句柄并抛出 CameraUnavailableError。"""
        capture = make_capture(opened=False)
        video_capture.return_value = capture
        manager = CameraManager()

        with pytest.raises(CameraUnavailableError) as exc_info:
            manager.open_camera(3)

        assert isinstance(exc_info.value, CameraError)
        assert exc_info.value.camera_index == 3
        capture.release.assert_called_once()
        assert not manager.is_opened

    def test_driver_values_fall_back_to_requested(self, video_capture):
        """驱动返回0时使用请求的分辨率和默认帧率。"""
        video_capture.return_value = make_capture(width=0, height=0, fps=0)
        manager = CameraManager(width=800, height=600)

        device = manager.open_camera(0)

        assert device.resolution == (800, 600)
        assert device.fps == 30.0

    def test_reopen_same_index_is_noop(self, video_capture):
        """重复打开同一摄像头不会创建新的句柄。"""
        video_capture.return_value = make_capture()
        manager = CameraManager()

        first = manager.open_camera(0)
        second = manager.open_camera(0)

        assert first is second
        assert video_capture.call_count == 1

    def test_open_other_index_releases_previous(self, video_capture):
        """打开其他摄像头前释放当前摄像头。"""
        first_capture, second_capture = make_capture(), make_capture()
        video_capture.side_effect = [first_capture, second_capture]
        manager = CameraManager()

        manager.open_camera(0)
        device = manager.open_camera(1)

        first_capture.release.assert_called_once()
        assert device.index == 1

    def test_release_is_idempotent(self, video_capture):
        """多次释放只调用一次底层 release。"""
        capture = make_capture()
        video_capture.return_value = capture
        manager = CameraManager()
        manager.open_camera(0)

        manager.release_camera()
        manager.release_camera()

        capture.release.assert_called_once()
        assert not manager.is_opened

    def test_release_without_open(self):
        """未打开时释放是空操作。"""
        manager = CameraManager()
        manager.release_camera()
        assert manager.get_camera_info() is None

    def test_settings_from_config(self, isolated_config):
        """未指定参数时使用配置中的分辨率。"""
        isolated_config.set('camera.resolution', {'width': 1280, 'height': 720})
        isolated_config.set('camera.buffer_size', 2)

        manager = CameraManager()

        assert (manager.width, manager.height) == (1280, 720)
        assert manager.buffer_size == 2


class TestCameraManagerRead:
    """读取帧和设备信息。"""

    def test_read_before_open_returns_none(self):
        """未打开时读取返回 None。"""
        assert CameraManager().read_frame() is None

    def test_read_frame(self, video_capture):
        """成功读取时返回图像并记录帧时间。"""
        image = np.full((4, 6, 3), 9, dtype=np.uint8)
        video_capture.return_value = make_capture(frames=[(True, image), (False, None)])
        manager = CameraManager()
        manager.open_camera(0)

        assert manager.read_frame() is image
        assert manager.read_frame() is None
        assert len(manager.device.frame_timestamps) == 1

    def test_empty_frame_not_timestamped(self, video_capture):
        """零尺寸帧原样返回，但不计入帧率。"""
        empty = np.zeros((0, 0, 3), dtype=np.uint8)
        video_capture.return_value = make_capture(frames=[(True, empty)])
        manager = CameraManager()
        manager.open_camera(0)

        frame = manager.read_frame()

        assert frame.size == 0
        assert len(manager.device.frame_timestamps) == 0

    def test_camera_info(self, video_capture):
        """设备信息包含索引、分辨率和打开状态。"""
        video_capture.return_value = make_capture(width=320, height=240, fps=25.0)
        manager = CameraManager()
        manager.open_camera(2)

        info = manager.get_camera_info()

        assert info['index'] == 2
        assert info['resolution'] == (320, 240)
        assert info['fps'] == 25.0
        assert info['is_opened'] is True
        assert info['measured_fps'] == 0.0

        manager.release_camera()
        assert manager.get_camera_info()['is_opened'] is False

    def test_measured_fps(self, video_capture):
        """根据帧时间戳计算实测帧率。"""
        video_capture.return_value = make_capture()
        manager = CameraManager()
        device = manager.open_camera(0)

        device.frame_timestamps.extend([1000, 1100, 1200, 1300])

        assert device.measured_fps == pytest.approx(10.0)

    def test_info_not_blocked_by_slow_read(self, video_capture):
        """读取阻塞期间查询设备信息和打开状态不需要等待读取完成。"""
        read_started = threading.Event()
        release_read = threading.Event()

        def slow_read():
            read_started.set()
            release_read.wait(2.0)
            return True, np.zeros((4, 4, 3), dtype=np.uint8)

        capture = make_capture()
        capture.read.side_effect = slow_read
        video_capture.return_value = capture
        manager = CameraManager()
        manager.open_camera(0)

        reader = threading.Thread(target=manager.read_frame, daemon=True)
        reader.start()
        assert read_started.wait(2.0)

        started = time.monotonic()
        info = manager.get_camera_info()
        opened = manager.is_opened
        blocked = time.monotonic() - started

        release_read.set()
        reader.join(2.0)

        assert blocked < 0.1
        assert info['index'] == 0
        assert opened
        assert len(manager.device.frame_timestamps) == 1
