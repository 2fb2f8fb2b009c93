"""护眼眨眼监测系统入口文件"""

import argparse
import json
import logging
import sys
import time

import cv2

from detectors.face_detector import CameraSource, FaceDetector, LandmarkSourceError
from display.renderer import DisplayRenderer
from notifications.notifier import DesktopNotifier
from session.channel import FrameChannel
from session.monitor import SessionMonitor
from storage.session_store import SessionStore

logger = logging.getLogger(__name__)

# 默认配置
_DEFAULTS = {
    "store_path": "data/eyecare.json",
    "camera_index": 0,
    "show_window": True,
}

TICK_SECONDS = 1.0


class EyeCareSystem:
    """护眼监测主程序，协调摄像头、眨眼检测和会话状态机。"""

    def __init__(self, config_path=None, store_path=None, clock=time.time):
        config = self._load_config(config_path)
        if store_path is not None:
            config["store_path"] = store_path
        self.config = config
        self._clock = clock

        self.store = SessionStore(config["store_path"])
        self.notifier = DesktopNotifier()
        self.monitor = SessionMonitor(self.store, self.notifier, clock=clock)
        self.channel = FrameChannel()
        self.renderer = DisplayRenderer()
        self.source = None
        self.error = None
        self._next_tick = None

    @staticmethod
    def _load_config(config_path):
        """从 JSON 配置文件加载参数，缺失字段使用默认值。"""
        config = dict(_DEFAULTS)

        if config_path is None:
            return config

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            logger.warning("配置文件不存在 %s，使用默认配置", config_path)
            return config
        except json.JSONDecodeError:
            logger.warning("配置文件格式错误 %s，使用默认配置", config_path)
            return config

        for key in _DEFAULTS:
            if key in data and data[key] is not None:
                config[key] = data[key]

        return config

    def start(self):
        """初始化检测器、打开摄像头并开始会话；失败时记录错误并返回 False。"""
        try:
            if self.source is None:
                self.source = CameraSource(FaceDetector(), self.channel, device=self.config["camera_index"])
            self.source.start()
        except LandmarkSourceError as e:
            self.error = str(e)
            logger.error("监测无法启动: %s", e)
            return False

        self.error = None
        self.channel.clear()
        self.monitor.start()
        self._next_tick = self._clock() + TICK_SECONDS
        return True

    def step(self):
        """
        执行一次循环：读帧、处理帧队列、按秒推进会话时间。

        Returns:
            (原始帧, 最后一帧关键点处理结果)；读取失败时帧为 None
        """
        frame = self.source.read_once() if self.source is not None else None
        results = self.channel.drain(self.monitor)

        now = self._clock()
        while self._next_tick is not None and now >= self._next_tick:
            self.monitor.tick()
            self._next_tick += TICK_SECONDS

        return frame, (results[-1] if results else None)

    def run(self):
        """启动主检测循环。"""
        if not self.start():
            print(f"错误: {self.error}")
            sys.exit(1)

        try:
            self._main_loop()
        finally:
            self.stop()

    def _main_loop(self):
        """视频流处理主循环，按 q 退出。"""
        while True:
            frame, result = self.step()
            if frame is None or not self.config["show_window"]:
                continue

            rendered = self.renderer.render(frame, self.source.last_landmarks, self.monitor.state, result)
            cv2.imshow("EyeCare", rendered)

            if cv2.waitKey(1) & 0xFF == ord("q"):
                break

    def stop(self):
        """结束会话、释放摄像头、关闭所有窗口，可重复调用。"""
        record = self.monitor.stop()
        if record is not None:
            logger.info("本次会话平均眨眼频率 %.1f 次/分", record.average_blink_rate)
        self._next_tick = None
        if self.source is not None:
            self.source.stop()
        self.channel.clear()
        if self.config["show_window"]:
            cv2.destroyAllWindows()

    def dispose(self):
        self.stop()
        if self.source is not None:
            self.source.dispose()
            self.source = None


def main():
    parser = argparse.ArgumentParser(description="护眼眨眼监测系统")
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="JSON 配置文件路径",
    )
    parser.add_argument(
        "--store",
        type=str,
        default=None,
        help="会话与设置存储文件路径（覆盖配置文件）",
    )
    parser.add_argument(
        "--no-window",
        action="store_true",
        help="不显示视频窗口，仅后台监测",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="日志级别",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    system = EyeCareSystem(config_path=args.config, store_path=args.store)
    if args.no_window:
        system.config["show_window"] = False
    try:
        system.run()
    except KeyboardInterrupt:
        pass
    finally:
        system.dispose()


if __name__ == "__main__":
    main()
