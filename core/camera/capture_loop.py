"""
摄像头采集循环

在独立线程中按固定周期读取摄像头帧，转换为显示格式后发布到显示帧缓冲区。
支持从其他线程安全地暂停、恢复和终止。

状态转换：
- STOPPED -> RUNNING: start()，打开摄像头，失败时抛出 CameraUnavailableError
- RUNNING <-> PAUSED: pause() / resume()，摄像头保持打开，暂停期间只空转不采集
- RUNNING/PAUSED -> STOPPED: terminate()，当前周期完成后线程退出并释放摄像头
"""

import threading
from typing import Optional

import cv2
from PyQt5.QtCore import QObject, pyqtSignal

from utils.config_manager import get_config_manager
from utils.logger import get_logger
from utils.time_utils import TickSchedule
from .camera_manager import CameraManager
from .data_type import CaptureState, Frame, FrameSource
from .frame_sink import FrameSink


class CaptureLoop(QObject):
    """摄像头采集循环 - 生产者"""

    # 信号定义（在引起变化的线程中发出）
    state_changed = pyqtSignal(str)       # 状态变化信号，参数为 CaptureState.value
    frame_published = pyqtSignal(object)  # 帧发布信号，参数为 Frame
    camera_stalled = pyqtSignal(int)      # 连续空帧过多信号，参数为连续空帧数

    def __init__(self, frame_sink: FrameSink, camera=None,
                 camera_index: Optional[int] = None,
                 refresh_interval_ms: Optional[int] = None,
                 max_empty_frames: Optional[int] = None,
                 join_timeout_s: Optional[float] = None,
                 parent: Optional[QObject] = None):
        """
        初始化采集循环

        Args:
            frame_sink (FrameSink): 发布目标
            camera: 摄像头设备，需提供 open_camera/read_frame/release_camera，默认 CameraManager
            camera_index (Optional[int]): 摄像头索引，None表示使用配置
            refresh_interval_ms (Optional[int]): 采集周期（毫秒），None表示使用配置
            max_empty_frames (Optional[int]): 连续空帧报警阈值，0表示不报警，None表示使用配置
            join_timeout_s (Optional[float]): 终止时等待线程退出的最长时间（秒）
            parent (Optional[QObject]): Qt父对象
        """
        super().__init__(parent)

        self.logger = get_logger("capture_loop")

        # 从配置加载参数
        settings = get_config_manager().get_camera_settings()
        if camera_index is None:
            camera_index = settings.get('index', 0)
        if refresh_interval_ms is None:
            refresh_interval_ms = settings.get('refresh_interval_ms', 100)
        if max_empty_frames is None:
            max_empty_frames = settings.get('max_empty_frames', 50)
        if join_timeout_s is None:
            join_timeout_s = settings.get('join_timeout_s', 2.0)

        if refresh_interval_ms <= 0:
            raise ValueError(f"采集周期必须大于0: {refresh_interval_ms}")

        self.frame_sink = frame_sink
        self.camera = camera if camera is not None else CameraManager()
        self.camera_index = int(camera_index)
        self.refresh_interval = refresh_interval_ms / 1000.0
        self.max_empty_frames = int(max_empty_frames)
        self.join_timeout = float(join_timeout_s)

        # 状态和暂停检查共用同一把锁
        self._condition = threading.Condition()
        self._state = CaptureState.STOPPED
        self._terminated = False
        self._thread: Optional[threading.Thread] = None

        # 统计
        self._tick_count = 0
        self._publish_count = 0
        self._empty_frame_count = 0
        self._stall_reported = False

        self.logger.info(f"采集循环初始化完成 (摄像头 {self.camera_index}, "
                         f"周期 {refresh_interval_ms}ms)")

    # 控制接口
    def start(self) -> None:
        """
        打开摄像头并启动采集线程

        Raises:
            CameraUnavailableError: 摄像头无法打开，状态保持 STOPPED，不创建线程
            RuntimeError: 采集循环已被终止
        """
        with self._condition:
            if self._terminated:
                raise RuntimeError("采集循环已终止，不能再次启动")
            if self._state is not CaptureState.STOPPED:
                self.logger.debug(f"采集循环已在运行 ({self._state.value})，忽略启动请求")
                return

            self.camera.open_camera(self.camera_index)

            self._tick_count = 0
            self._publish_count = 0
            self._empty_frame_count = 0
            self._stall_reported = False
            self._state = CaptureState.RUNNING

            thread = threading.Thread(target=self._run, name="CaptureLoop", daemon=True)
            try:
                thread.start()
            except RuntimeError:
                self._state = CaptureState.STOPPED
                self.camera.release_camera()
                raise
            self._thread = thread

        self.logger.info("采集循环已启动")
        self.state_changed.emit(CaptureState.RUNNING.value)

    def pause(self) -> bool:
        """
        暂停采集，摄像头保持打开

        Returns:
            bool: 状态是否发生变化
        """
        with self._condition:
            if self._state is not CaptureState.RUNNING:
                return False
            self._state = CaptureState.PAUSED

        self.logger.info("采集循环已暂停")
        self.state_changed.emit(CaptureState.PAUSED.value)
        return True

    def resume(self) -> bool:
        """
        恢复采集

        Returns:
            bool: 状态是否发生变化
        """
        with self._condition:
            if self._state is not CaptureState.PAUSED:
                return False
            self._state = CaptureState.RUNNING

        self.logger.info("采集循环已恢复")
        self.state_changed.emit(CaptureState.RUNNING.value)
        return True

    def terminate(self) -> None:
        """
        终止采集循环

        设置停止状态并唤醒等待中的线程，线程在当前周期完成后退出并释放摄像头。
        可重复调用；从未启动时不做任何事。
        """
        with self._condition:
            thread = self._thread
            if thread is None:
                return

            was_stopped = self._state is CaptureState.STOPPED
            self._state = CaptureState.STOPPED
            self._terminated = True
            self._condition.notify_all()

        if thread is not threading.current_thread():
            thread.join(self.join_timeout)
            if thread.is_alive():
                self.logger.error(f"采集线程在 {self.join_timeout:.1f} 秒内没有退出，"
                                  f"摄像头资源可能泄漏")

        if not was_stopped:
            self.logger.info("采集循环已终止")
            self.state_changed.emit(CaptureState.STOPPED.value)

    # 状态查询
    @property
    def state(self) -> CaptureState:
        """当前状态"""
        with self._condition:
            return self._state

    @property
    def is_alive(self) -> bool:
        """采集线程是否仍在运行"""
        thread = self._thread
        return thread is not None and thread.is_alive()

    @property
    def tick_count(self) -> int:
        """已执行的周期数（包括暂停期间的空转周期）"""
        with self._condition:
            return self._tick_count

    @property
    def publish_count(self) -> int:
        """已发布的帧数"""
        with self._condition:
            return self._publish_count

    @property
    def empty_frame_count(self) -> int:
        """当前连续空帧数"""
        with self._condition:
            return self._empty_frame_count

    # 线程主体
    def _run(self) -> None:
        """线程主函数"""
        self.logger.info("采集线程开始运行")

        schedule = TickSchedule(self.refresh_interval)
        try:
            while True:
                with self._condition:
                    self._wait_for_tick(schedule)
                    if self._state is CaptureState.STOPPED:
                        break
                    paused = self._state is CaptureState.PAUSED
                    self._tick_count += 1

                if not paused:
                    self._capture_tick()

                skipped = schedule.advance()
                if skipped:
                    self.logger.debug(f"采集耗时超过刷新周期，跳过 {skipped} 个周期")

        finally:
            try:
                self.camera.release_camera()
            except Exception as e:
                self.logger.error(f"释放摄像头时发生错误: {e}")
            self.logger.info("采集线程结束运行")

    def _wait_for_tick(self, schedule: TickSchedule) -> None:
        """
        等待到当前周期的截止时间（调用方需持有锁）

        提前唤醒时重新计算剩余时间继续等待，只有停止状态会结束等待。

        Args:
            schedule (TickSchedule): 周期调度
        """
        remaining = schedule.remaining()
        while remaining > 0 and self._state is not CaptureState.STOPPED:
            self._condition.wait(remaining)
            remaining = schedule.remaining()

    def _capture_tick(self) -> None:
        """采集一帧并发布，失败只记录不抛出"""
        try:
            image = self.camera.read_frame()
        except Exception as e:
            self.logger.error(f"读取摄像头帧时发生错误: {e}")
            image = None

        if image is None or image.size == 0:
            self._record_empty_frame()
            return

        try:
            frame = Frame.from_bgr(image, FrameSource.CAMERA)
        except (ValueError, TypeError, cv2.error) as e:
            self.logger.error(f"转换摄像头帧时发生错误: {e}")
            self._record_empty_frame()
            return

        with self._condition:
            # 读取期间被暂停或终止时丢弃该帧
            if self._state is not CaptureState.RUNNING:
                return
            self.frame_sink.publish(frame)
            self._publish_count += 1
            self._empty_frame_count = 0
            self._stall_reported = False

        self.frame_published.emit(frame)

    def _record_empty_frame(self) -> None:
        """记录一次空帧，连续空帧达到阈值时报警一次"""
        with self._condition:
            self._empty_frame_count += 1
            count = self._empty_frame_count
            report = (0 < self.max_empty_frames <= count) and not self._stall_reported
            if report:
                self._stall_reported = True

        if report:
            self.logger.warning(f"摄像头连续 {count} 次没有返回画面，设备可能已断开")
            self.camera_stalled.emit(count)
        else:
            self.logger.debug(f"摄像头本周期没有返回画面 (连续 {count} 次)")
