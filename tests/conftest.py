"""Shared fixtures: isolated configuration and an in-process fake camera."""

import threading
import time
from typing import List, Optional, Tuple

import numpy as np
import pytest

import utils.config_manager as config_manager_module
from core.exceptions import CameraUnavailableError
from utils.config_manager import ConfigManager


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """每个测试使用临时目录中的默认配置文件。"""
    manager = ConfigManager(tmp_path / "config" / "config.yaml")
    monkeypatch.setattr(config_manager_module, "_config_manager", manager)
    return manager


class FakeCamera:
    """
    假摄像头：实现 open_camera/read_frame/release_camera，记录调用事件。

    每次读取返回一帧新的 BGR 图像，像素值等于读取序号（对 256 取模），
    便于区分不同的帧。
    """

    def __init__(self, width: int = 8, height: int = 6, fail_open: bool = False,
                 empty_frames: bool = False, read_errors: int = 0):
        self.width = width
        self.height = height
        self.fail_open = fail_open
        self.empty_frames = empty_frames
        self.read_errors = read_errors

        self.open_count = 0
        self.read_count = 0
        self.release_count = 0
        self.events: List[Tuple[str, float]] = []
        self.lock = threading.Lock()

        # 设置后，read_frame 先通知 read_started 再等待 read_gate
        self.read_gate: Optional[threading.Event] = None
        self.read_started = threading.Event()

    def open_camera(self, camera_index: int):
        with self.lock:
            if self.fail_open:
                raise CameraUnavailableError(f"摄像头 {camera_index} 正在被使用", camera_index)
            self.open_count += 1
            self.events.append(("open", time.monotonic()))

    def read_frame(self):
        if self.read_gate is not None:
            self.read_started.set()
            self.read_gate.wait(5.0)

        with self.lock:
            self.read_count += 1
            self.events.append(("read", time.monotonic()))
            count = self.read_count

            if count <= self.read_errors:
                raise RuntimeError("模拟读取错误")
            if self.empty_frames:
                return np.zeros((0, 0, 3), dtype=np.uint8)
            return np.full((self.height, self.width, 3), count % 256, dtype=np.uint8)

    def release_camera(self):
        with self.lock:
            self.release_count += 1
            self.events.append(("release", time.monotonic()))


@pytest.fixture
def fake_camera():
    return FakeCamera()


def wait_for(predicate, timeout: float = 2.0, interval: float = 0.005) -> bool:
    """轮询直到条件成立或超时。"""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()
