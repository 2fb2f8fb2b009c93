"""提醒节流策略：低眨眼频率 / 高疲劳风险提醒间隔、休息与轻提示节奏"""

from typing import Optional

from models.data_models import AlertKind, EyeStrainLevel, UserSettings

# 两次警告之间的最小间隔（秒）
WARNING_INTERVAL = 300
LOW_BLINK_RATE = 12

# 轻提示频率 -> 间隔秒数
NUDGE_INTERVALS = {
    "low": 300,
    "medium": 180,
    "high": 120,
}


def select_alert(
    now: float,
    last_warning_time: Optional[float],
    notifications_enabled: bool,
    blink_rate: int,
    strain_level: EyeStrainLevel,
) -> Optional[AlertKind]:
    """
    选择本次应触发的提醒，每次最多一个。

    低眨眼频率 (0 < rate < 12) 优先于高疲劳风险；任何一种触发后都会
    更新 last_warning_time，5 分钟内不再触发任何警告。

    Returns:
        AlertKind 或 None
    """
    if not notifications_enabled:
        return None
    if last_warning_time is not None and now - last_warning_time <= WARNING_INTERVAL:
        return None

    if 0 < blink_rate < LOW_BLINK_RATE:
        return AlertKind.LOW_BLINK_RATE
    if strain_level == EyeStrainLevel.HIGH:
        return AlertKind.HIGH_STRAIN
    return None


def is_break_due(session_time: int, break_interval: int) -> bool:
    """休息提醒节奏，与警告节流相互独立。"""
    if break_interval <= 0:
        return False
    return session_time > 0 and session_time % break_interval == 0


def is_nudge_due(now: float, last_nudge_time: Optional[float], settings: UserSettings) -> bool:
    """轻提示是否到期；last_nudge_time 为 None（会话未开始）时不触发。"""
    if not (settings.nudges_enabled and settings.notifications_enabled):
        return False
    interval = NUDGE_INTERVALS.get(settings.nudge_frequency, NUDGE_INTERVALS["medium"])
    if last_nudge_time is None:
        return False
    return now - last_nudge_time >= interval
