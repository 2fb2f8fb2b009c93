"""核心数据模型定义"""

import math
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

# 单帧人脸关键点（像素坐标），至少 468 个点
LandmarkFrame = List[Tuple[float, ...]]


class EyeStrainLevel(str, Enum):
    """眼疲劳风险等级"""
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"


class AlertKind(str, Enum):
    """受 5 分钟节流约束的提醒类型"""
    LOW_BLINK_RATE = "low_blink_rate"
    HIGH_STRAIN = "high_strain"


@dataclass
class EyeContours:
    """从关键点帧中提取的左右眼轮廓，各 6 个点；退化帧时均为空"""
    left_eye: List[Tuple[float, ...]] = field(default_factory=list)
    right_eye: List[Tuple[float, ...]] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.left_eye or not self.right_eye


@dataclass
class BlinkResult:
    """单帧眨眼处理结果"""
    ear: float
    left_ear: float
    right_ear: float
    blink_detected: bool
    blink_count: int
    blink_rate: int


@dataclass
class SessionState:
    """监测会话状态，只能通过 session.monitor.transition 修改"""
    is_monitoring: bool = False
    session_time: int = 0
    total_blinks: int = 0
    blink_rate: int = 0
    eye_strain_level: EyeStrainLevel = EyeStrainLevel.LOW
    last_break_time: Optional[float] = None
    last_warning_time: Optional[float] = None
    last_nudge_time: Optional[float] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["eye_strain_level"] = self.eye_strain_level.value
        return data


@dataclass(frozen=True)
class SessionRecord:
    """已完成会话的持久化记录"""
    date: str
    duration: int
    total_blinks: int
    average_blink_rate: float
    eye_strain_level: EyeStrainLevel
    breaks_taken: int

    def to_dict(self) -> dict:
        data = asdict(self)
        data["eye_strain_level"] = self.eye_strain_level.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "SessionRecord":
        return cls(
            date=str(data["date"]),
            duration=int(data["duration"]),
            total_blinks=int(data["total_blinks"]),
            average_blink_rate=float(data["average_blink_rate"]),
            eye_strain_level=EyeStrainLevel(data["eye_strain_level"]),
            breaks_taken=int(data["breaks_taken"]),
        )


@dataclass
class UserSettings:
    """用户设置（由存储模块提供，本模块只读）"""
    blink_threshold: float = 0.25
    break_interval: int = 1200
    notifications_enabled: bool = True
    sound_enabled: bool = True
    nudges_enabled: bool = True
    nudge_frequency: str = "medium"

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "UserSettings":
        """
        缺失或为 null 的字段使用默认值，未知字段忽略。

        字段按声明类型转换（表单提交的 "600"、"true" 等字符串可接受），
        无法转换或取值非法时抛出 ValueError。
        """
        kwargs = {}
        for key, value in data.items():
            if key not in _SETTINGS_PARSERS or value is None:
                continue
            try:
                kwargs[key] = _SETTINGS_PARSERS[key](value)
            except (TypeError, ValueError) as e:
                raise ValueError(f"设置项 {key} 无效: {value!r}") from e
        return cls(**kwargs)


def _parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    if isinstance(value, str) and value.strip().lower() in _TRUE_STRINGS | _FALSE_STRINGS:
        return value.strip().lower() in _TRUE_STRINGS
    raise ValueError(value)


def _parse_int(value) -> int:
    if isinstance(value, bool):
        raise TypeError(value)
    number = float(value)
    if not math.isfinite(number) or number != int(number):
        raise ValueError(value)
    return int(number)


def _parse_threshold(value) -> float:
    if isinstance(value, bool):
        raise TypeError(value)
    number = float(value)
    if not math.isfinite(number) or number <= 0:
        raise ValueError(value)
    return number


def _parse_frequency(value) -> str:
    if value not in NUDGE_FREQUENCIES:
        raise ValueError(value)
    return value


_TRUE_STRINGS = {"true", "1", "yes", "on"}
_FALSE_STRINGS = {"false", "0", "no", "off"}

NUDGE_FREQUENCIES = ("low", "medium", "high")

_SETTINGS_PARSERS = {
    "blink_threshold": _parse_threshold,
    "break_interval": _parse_int,
    "notifications_enabled": _parse_bool,
    "sound_enabled": _parse_bool,
    "nudges_enabled": _parse_bool,
    "nudge_frequency": _parse_frequency,
}


@dataclass
class SessionStats:
    """历史会话统计"""
    average_blink_rate: float
    total_sessions: int
    total_time: int
    improvement_trend: int
