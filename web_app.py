"""Flask Web 前端 - 护眼眨眼监测系统"""

import datetime
import logging
import os
import threading
import time

import cv2
from flask import Flask, Response, jsonify, request

from detectors.face_detector import CameraSource, FaceDetector, LandmarkSourceError
from display.renderer import DisplayRenderer
from evaluators.history import compute_session_stats
from models.data_models import UserSettings
from notifications.notifier import RecordingNotifier
from session.channel import FrameChannel
from session.monitor import SessionMonitor
from storage.session_store import SessionStore

logger = logging.getLogger(__name__)

app = Flask(__name__)

STORE_PATH = os.environ.get("EYECARE_STORE", "data/eyecare.json")

# 通知类型 -> 日志级别
_NOTIFY_LEVELS = {
    "break": "info",
    "nudge": "info",
    "exercise_complete": "info",
    "low_blink_rate": "warning",
    "high_strain": "danger",
}


class WebNotifier(RecordingNotifier):
    """把通知写入 Web 日志流"""

    def __init__(self, add_log, **kwargs):
        super().__init__(**kwargs)
        self._add_log = add_log

    def _show(self, kind, title, message):
        super()._show(kind, title, message)
        self._add_log(_NOTIFY_LEVELS.get(kind, "info"), f"{title} {message}")


class WebEyeCareSystem:
    """Web 版监测系统，支持 MJPEG 视频流推送和实时数据 API。"""

    MAX_LOG_ENTRIES = 200

    def __init__(self, store=None, clock=time.time):
        self._clock = clock
        self._running = False
        self._thread = None
        self._lock = threading.Lock()
        self._latest_frame = None
        self._logs = []
        self._log_lock = threading.Lock()
        self.error = None
        self._face_detected = False

        self.store = store if store is not None else SessionStore(STORE_PATH)
        self.notifier = WebNotifier(self._add_log, max_events=self.MAX_LOG_ENTRIES)
        self.monitor = SessionMonitor(self.store, self.notifier, clock=clock)
        self.channel = FrameChannel()
        self.renderer = DisplayRenderer()
        self.source = None

    def start(self):
        """启动摄像头和处理线程。"""
        if self._running:
            return True
        try:
            if self.source is None:
                self.source = CameraSource(FaceDetector(), self.channel)
            self.source.start()
        except LandmarkSourceError as e:
            self.error = str(e)
            self._add_log("danger", self.error)
            return False

        self.error = None
        with self._lock:
            self.channel.clear()
            self.monitor.start()
        self._running = True
        self._add_log("info", "监测开始，摄像头已开启")
        self._thread = threading.Thread(target=self._process_loop, daemon=True)
        self._thread.start()
        return True

    def stop(self):
        """停止监测，返回已保存的会话记录（如有）。"""
        self._running = False
        if self._thread is not None:
            self._thread.join(timeout=1.0)
            self._thread = None
        if self.source is not None:
            self.source.stop()
        with self._lock:
            record = self.monitor.stop()
            self.channel.clear()
        if record is not None:
            self._add_log("info", f"会话已保存，平均眨眼 {record.average_blink_rate} 次/分")
        self._add_log("info", "监测已停止")
        return record

    def _process_loop(self):
        """后台处理线程入口，处理出错时进入错误状态并停止循环。"""
        try:
            self._run_loop()
        except Exception as e:
            logger.exception("处理线程异常退出")
            self.error = f"处理异常: {e}"
            self._add_log("danger", self.error)
            self._running = False
            if self.source is not None:
                self.source.stop()

    def _run_loop(self):
        """后台处理循环：读帧、消费帧队列、按秒推进会话。"""
        next_tick = self._clock() + 1.0
        while self._running:
            frame = self.source.read_once()
            with self._lock:
                results = self.channel.drain(self.monitor)
                now = self._clock()
                while now >= next_tick:
                    self.monitor.tick()
                    next_tick += 1.0
                state = self.monitor.state

            if frame is None:
                continue

            face_detected = self.source.last_landmarks is not None
            if face_detected != self._face_detected:
                self._add_log("info" if face_detected else "warning", "检测到人脸" if face_detected else "人脸丢失")
                self._face_detected = face_detected

            rendered = self.renderer.render(
                frame, self.source.last_landmarks, state,
                results[-1] if results else None,
            )
            _, jpeg = cv2.imencode(".jpg", rendered, [cv2.IMWRITE_JPEG_QUALITY, 80])
            with self._lock:
                self._latest_frame = jpeg.tobytes()

    def _add_log(self, level, message):
        """添加一条系统日志。level: info / warning / danger"""
        entry = {
            "time": datetime.datetime.now().strftime("%H:%M:%S"),
            "level": level,
            "message": message,
        }
        with self._log_lock:
            self._logs.append(entry)
            if len(self._logs) > self.MAX_LOG_ENTRIES:
                self._logs = self._logs[-self.MAX_LOG_ENTRIES:]

    def get_logs(self, since=0):
        """获取日志，since 为起始索引。"""
        with self._log_lock:
            return self._logs[since:], len(self._logs)

    def get_frame(self):
        with self._lock:
            return self._latest_frame

    def get_data(self):
        with self._lock:
            data = self.monitor.snapshot()
        data["face_detected"] = self._face_detected
        data["error"] = self.error
        return data

    def get_stats(self):
        state = self.monitor.state
        stats = compute_session_stats(self.store.get_sessions(), state.blink_rate, state.session_time)
        return {
            "average_blink_rate": stats.average_blink_rate,
            "total_sessions": stats.total_sessions,
            "total_time": stats.total_time,
            "improvement_trend": stats.improvement_trend,
        }

    def update_settings(self, data):
        """
        合并更新用户设置，新阈值在下次开始监测时生效。

        Raises:
            ValueError: data 不是对象或包含无效取值，此时不保存
        """
        if not isinstance(data, dict):
            raise ValueError("设置必须是 JSON 对象")
        merged = self.store.get_settings().to_dict()
        merged.update(data)
        settings = UserSettings.from_dict(merged)
        self.store.save_settings(settings)
        self._add_log("info", "设置已更新")
        return settings

    def complete_exercise(self, name):
        completed = self.store.get_completed_exercises()
        completed.add(name)
        self.store.save_completed_exercises(completed)
        self.notifier.notify_exercise_complete(name)
        return sorted(completed)


# 全局监测系统实例
system = WebEyeCareSystem()


# ---- Flask 路由 ----

@app.route("/api/start", methods=["POST"])
def api_start():
    ok = system.start()
    return jsonify({"success": ok, "message": "监测已开始" if ok else system.error})


@app.route("/api/stop", methods=["POST"])
def api_stop():
    record = system.stop()
    return jsonify({
        "success": True,
        "message": "监测已停止",
        "session": record.to_dict() if record is not None else None,
    })


@app.route("/api/data")
def api_data():
    return jsonify(system.get_data())


@app.route("/api/settings", methods=["GET", "POST"])
def api_settings():
    if request.method == "GET":
        return jsonify(system.store.get_settings().to_dict())
    data = request.get_json(force=True, silent=True)
    try:
        settings = system.update_settings(data)
    except ValueError as e:
        return jsonify({"success": False, "message": str(e)}), 400
    return jsonify({"success": True, "settings": settings.to_dict()})


@app.route("/api/sessions")
def api_sessions():
    return jsonify([s.to_dict() for s in system.store.get_sessions()])


@app.route("/api/stats")
def api_stats():
    return jsonify(system.get_stats())


@app.route("/api/exercises/<name>/complete", methods=["POST"])
def api_complete_exercise(name):
    completed = system.complete_exercise(name)
    return jsonify({"success": True, "completed": completed})


@app.route("/api/logs")
def api_logs():
    since = request.args.get("since", 0, type=int)
    logs, total = system.get_logs(since)
    return jsonify({"logs": logs, "total": total})


@app.route("/video_feed")
def video_feed():
    def generate():
        while True:
            frame = system.get_frame()
            if frame is not None:
                yield (b"--frame\r\nContent-Type: image/jpeg\r\n\r\n" + frame + b"\r\n")
            time.sleep(0.03)
    return Response(generate(), mimetype="multipart/x-mixed-replace; boundary=frame")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    app.run(host="0.0.0.0", port=5000, debug=False, threaded=True)
