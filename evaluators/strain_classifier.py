"""眼疲劳风险评估模块"""

from models.data_models import EyeStrainLevel

# 正常眨眼频率区间（次/分钟）
NORMAL_BLINK_RATE_MIN = 15
NORMAL_BLINK_RATE_MAX = 20
HIGH_STRAIN_BLINK_RATE = 10

# 连续使用超过 1 小时后风险升一级
FATIGUE_SESSION_SECONDS = 3600


def classify_eye_strain(blink_rate: int, session_time: int) -> EyeStrainLevel:
    """
    根据当前眨眼频率和会话时长评估眼疲劳风险。

    每次都从当前值重新计算，不做平滑；频率在边界附近波动时等级会随之跳变。

    Args:
        blink_rate: 最近 60 秒的眨眼次数
        session_time: 会话已持续秒数

    Returns:
        EyeStrainLevel
    """
    if blink_rate < NORMAL_BLINK_RATE_MIN:
        level = EyeStrainLevel.HIGH if blink_rate < HIGH_STRAIN_BLINK_RATE else EyeStrainLevel.MODERATE
    else:
        # 高于正常上限同样视为低风险
        level = EyeStrainLevel.LOW

    if session_time > FATIGUE_SESSION_SECONDS:
        level = EyeStrainLevel.MODERATE if level == EyeStrainLevel.LOW else EyeStrainLevel.HIGH

    return level
