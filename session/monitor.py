"""监测会话状态机：会话生命周期、计时、眨眼统计、疲劳评估与提醒调度"""

import logging
import math
import time
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Optional

from detectors.blink_detector import BlinkDetector
from detectors.eye_analyzer import ear_pair
from evaluators.notification_policy import is_break_due, is_nudge_due, select_alert
from evaluators.strain_classifier import classify_eye_strain
from models.data_models import (
    AlertKind,
    BlinkResult,
    LandmarkFrame,
    SessionRecord,
    SessionState,
    UserSettings,
)

logger = logging.getLogger(__name__)

# 短于此时长的会话不保存
MIN_SESSION_SECONDS = 30

NUDGE_MESSAGE = "记得有意识地完整眨眼，保持眼睛湿润"


class ActionType(Enum):
    START = "start"
    STOP = "stop"
    INCREMENT_TIME = "increment_time"
    ADD_BLINK = "add_blink"
    UPDATE_BLINK_RATE = "update_blink_rate"
    UPDATE_EYE_STRAIN = "update_eye_strain"
    RECORD_BREAK = "record_break"
    RECORD_WARNING = "record_warning"
    RECORD_NUDGE = "record_nudge"


@dataclass(frozen=True)
class Action:
    type: ActionType
    value: Any = None


def transition(state: SessionState, action: Action, now: float) -> SessionState:
    """
    状态转移函数，返回新的 SessionState，不修改传入的 state。

    START 不会清零 session_time / total_blinks，需要由调用方传入新状态。
    未知动作原样返回。
    """
    kind = action.type
    if kind == ActionType.START:
        return replace(state, is_monitoring=True, last_break_time=now, last_nudge_time=now)
    if kind == ActionType.STOP:
        return replace(state, is_monitoring=False)
    if kind == ActionType.INCREMENT_TIME:
        return replace(state, session_time=state.session_time + 1)
    if kind == ActionType.ADD_BLINK:
        return replace(state, total_blinks=state.total_blinks + 1)
    if kind == ActionType.UPDATE_BLINK_RATE:
        return replace(state, blink_rate=max(0, int(action.value)))
    if kind == ActionType.UPDATE_EYE_STRAIN:
        return replace(state, eye_strain_level=action.value)
    if kind == ActionType.RECORD_BREAK:
        return replace(state, last_break_time=now)
    if kind == ActionType.RECORD_WARNING:
        return replace(state, last_warning_time=now)
    if kind == ActionType.RECORD_NUDGE:
        return replace(state, last_nudge_time=now)
    return state


def build_session_record(state: SessionState, break_interval: int, date: str) -> SessionRecord:
    """根据结束时的会话状态生成持久化记录"""
    minutes = state.session_time / 60
    average = round(state.total_blinks / minutes, 1) if minutes > 0 else 0.0
    breaks = math.floor(state.session_time / break_interval) if break_interval > 0 else 0
    return SessionRecord(
        date=date,
        duration=state.session_time,
        total_blinks=state.total_blinks,
        average_blink_rate=average,
        eye_strain_level=state.eye_strain_level,
        breaks_taken=breaks,
    )


class SessionMonitor:
    """
    协调眨眼检测、疲劳评估和提醒的会话控制器。

    每个实例持有一个 SessionState 和一个 BlinkDetector，状态只通过
    transition() 修改。所有方法同步执行、立即返回。

    Args:
        store: 存储协作者，需提供 add_session() 和 get_settings()
        notifier: 通知协作者 (notifications.notifier.Notifier)
        clock: 返回当前时间（秒）的函数，测试时可注入模拟时钟
        detector: 可选的 BlinkDetector，默认按同一时钟新建
    """

    def __init__(
        self,
        store,
        notifier,
        clock: Callable[[], float] = time.time,
        detector: Optional[BlinkDetector] = None,
    ):
        self.store = store
        self.notifier = notifier
        self._clock = clock
        self.detector = detector if detector is not None else BlinkDetector(clock=clock)
        self._state = SessionState()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_monitoring(self) -> bool:
        return self._state.is_monitoring

    def _dispatch(self, action: Action) -> None:
        self._state = transition(self._state, action, self._clock())

    def _settings(self) -> UserSettings:
        settings = self.store.get_settings()
        if self.notifier is not None:
            self.notifier.sound_enabled = settings.sound_enabled
        return settings

    def start(self) -> None:
        """开始新会话：重置检测器和会话状态。运行中调用会先结束当前会话。"""
        if self._state.is_monitoring:
            self.stop()

        settings = self._settings()
        self.detector.reset()
        self.detector.blink_threshold = settings.blink_threshold
        self._state = SessionState()
        self._dispatch(Action(ActionType.START))
        logger.info("监测开始 (阈值 %.3f, 休息间隔 %ds)", settings.blink_threshold, settings.break_interval)

    def stop(self) -> Optional[SessionRecord]:
        """
        结束会话。已停止时为空操作。

        Returns:
            时长超过 30 秒时返回已保存的 SessionRecord，否则 None
        """
        if not self._state.is_monitoring:
            return None

        self._dispatch(Action(ActionType.STOP))
        state = self._state
        logger.info("监测停止: 时长 %ds, 眨眼 %d 次", state.session_time, state.total_blinks)

        if state.session_time <= MIN_SESSION_SECONDS:
            logger.info("会话时长不足 %d 秒，不保存", MIN_SESSION_SECONDS)
            return None

        settings = self._settings()
        date = datetime.fromtimestamp(self._clock()).isoformat()
        record = build_session_record(state, settings.break_interval, date)
        self.store.add_session(record)
        return record

    def tick(self) -> None:
        """每秒调用一次：推进会话时间，检查休息提醒和轻提示，重新评估疲劳风险。"""
        if not self._state.is_monitoring:
            return

        settings = self._settings()
        self._dispatch(Action(ActionType.INCREMENT_TIME))

        if is_break_due(self._state.session_time, settings.break_interval):
            if settings.notifications_enabled:
                self.notifier.notify_break()
            self._dispatch(Action(ActionType.RECORD_BREAK))

        if is_nudge_due(self._clock(), self._state.last_nudge_time, settings):
            self.notifier.notify_nudge(NUDGE_MESSAGE)
            self._dispatch(Action(ActionType.RECORD_NUDGE))

        # 时间推进后频率可能因旧眨眼过期而下降
        self.on_rate_update(self.detector.blink_rate(), settings)

    def process_frame(self, frame: Optional[LandmarkFrame]) -> Optional[BlinkResult]:
        """
        处理一帧关键点。未监测或未检测到人脸（frame 为 None）时不处理。
        """
        if not self._state.is_monitoring or frame is None:
            return None

        left_ear, right_ear = ear_pair(frame)
        blinked = self.detector.observe(left_ear, right_ear)
        if blinked:
            self.on_blink()

        rate = self.detector.blink_rate()
        self.on_rate_update(rate)

        return BlinkResult(
            ear=(left_ear + right_ear) / 2.0,
            left_ear=left_ear,
            right_ear=right_ear,
            blink_detected=blinked,
            blink_count=self.detector.blink_count,
            blink_rate=rate,
        )

    def on_blink(self) -> None:
        if not self._state.is_monitoring:
            return
        self._dispatch(Action(ActionType.ADD_BLINK))

    def on_rate_update(self, rate: int, settings: Optional[UserSettings] = None) -> None:
        """更新眨眼频率；监测中时重新评估疲劳风险并按节流策略发出警告。"""
        self._dispatch(Action(ActionType.UPDATE_BLINK_RATE, rate))
        if not self._state.is_monitoring:
            return

        if settings is None:
            settings = self._settings()

        level = classify_eye_strain(self._state.blink_rate, self._state.session_time)
        if level != self._state.eye_strain_level:
            logger.info("眼疲劳风险: %s -> %s", self._state.eye_strain_level.value, level.value)
        self._dispatch(Action(ActionType.UPDATE_EYE_STRAIN, level))

        alert = select_alert(
            self._clock(),
            self._state.last_warning_time,
            settings.notifications_enabled,
            self._state.blink_rate,
            level,
        )
        if alert is None:
            return

        if alert == AlertKind.LOW_BLINK_RATE:
            self.notifier.notify_low_blink_rate(self._state.blink_rate)
        else:
            self.notifier.notify_high_strain()
        self._dispatch(Action(ActionType.RECORD_WARNING))

    def snapshot(self) -> dict:
        """当前状态的可序列化副本"""
        data = self._state.to_dict()
        data["current_ear"] = round(self.detector.current_ear, 4)
        return data
