"""提醒通知模块：休息提醒、低眨眼频率警告、高疲劳风险警告等"""

import logging
from typing import Callable, List, Optional, Tuple

from plyer import notification

logger = logging.getLogger(__name__)

# 提示音名称，由外部音频模块负责播放
CUE_MESSAGE = "message"
CUE_REMINDER = "reminder"
CUE_WARNING = "warning"
CUE_SUCCESS = "success"

APP_NAME = "EyeCare"


class Notifier:
    """
    通知基类。所有 notify_* 调用即发即忘，不返回结果。

    子类实现 _show(kind, title, message)；提示音通过 cue_player 回调播放，
    仅在 sound_enabled 为 True 时触发。
    """

    def __init__(self, cue_player: Optional[Callable[[str], None]] = None, sound_enabled: bool = True):
        self.cue_player = cue_player
        self.sound_enabled = sound_enabled

    def notify_break(self) -> None:
        self._dispatch("break", "该休息了！", "请看向 6 米外的物体 20 秒", CUE_MESSAGE)

    def notify_low_blink_rate(self, rate: int) -> None:
        self._dispatch(
            "low_blink_rate",
            "眨眼频率过低",
            f"当前: {rate} 次/分 (正常: 15-20 次/分)",
            CUE_WARNING,
        )

    def notify_high_strain(self) -> None:
        self._dispatch("high_strain", "眼疲劳风险高", "建议休息更长时间", CUE_WARNING)

    def notify_exercise_complete(self, name: str) -> None:
        self._dispatch("exercise_complete", "练习完成！", name, CUE_SUCCESS)

    def notify_nudge(self, message: str) -> None:
        self._dispatch("nudge", "温馨提示", message, CUE_REMINDER)

    def _dispatch(self, kind: str, title: str, message: str, cue: str) -> None:
        self._show(kind, title, message)
        if self.sound_enabled and self.cue_player is not None:
            try:
                self.cue_player(cue)
            except Exception as e:
                logger.warning("提示音播放失败 (%s): %s", cue, e)

    def _show(self, kind: str, title: str, message: str) -> None:
        logger.info("[%s] %s - %s", kind, title, message)


class DesktopNotifier(Notifier):
    """通过 plyer 发送系统桌面通知，失败时仅记录日志"""

    def __init__(self, timeout: int = 5, **kwargs):
        super().__init__(**kwargs)
        self.timeout = timeout

    def _show(self, kind: str, title: str, message: str) -> None:
        super()._show(kind, title, message)
        try:
            notification.notify(
                title=title,
                message=message,
                app_name=APP_NAME,
                timeout=self.timeout,
            )
        except Exception as e:
            logger.warning("桌面通知发送失败: %s", e)


class RecordingNotifier(Notifier):
    """记录最近的通知，供 Web 前端日志和测试使用。超过 max_events 条时丢弃最早的记录"""

    MAX_EVENTS = 200

    def __init__(self, max_events: int = MAX_EVENTS, **kwargs):
        super().__init__(**kwargs)
        self.max_events = max_events
        self.events: List[Tuple[str, str, str]] = []

    def _show(self, kind: str, title: str, message: str) -> None:
        super()._show(kind, title, message)
        self.events.append((kind, title, message))
        if len(self.events) > self.max_events:
            del self.events[:-self.max_events]

    def kinds(self) -> List[str]:
        return [kind for kind, _, _ in self.events]
