"""眼睛轮廓提取与 EAR 计算模块"""

import math
from typing import Optional, Sequence, Tuple

from models.data_models import EyeContours, LandmarkFrame

# 关键点索引常量（FaceMesh 468 点），p0/p3 为眼角，(p1,p5)(p2,p4) 为上下对应点
LEFT_EYE_INDICES = [33, 160, 158, 133, 153, 144]
RIGHT_EYE_INDICES = [362, 385, 387, 263, 373, 380]

MIN_LANDMARKS = 468


def calculate_ear(eye_points: Sequence[Tuple[float, ...]]) -> float:
    """
    计算单只眼睛的 EAR 值。

    公式: EAR = (|p1-p5| + |p2-p4|) / (2 * |p0-p3|)

    Args:
        eye_points: 6 个眼睛轮廓关键点 [(x,y), ...]，可带 z 坐标（忽略）

    Returns:
        EAR 值；点数不为 6、分母为零或坐标异常时返回 0.0（表示“无信号”）
    """
    if eye_points is None or len(eye_points) != 6:
        return 0.0

    try:
        p0, p1, p2, p3, p4, p5 = [(float(p[0]), float(p[1])) for p in eye_points]
        vertical_1 = math.dist(p1, p5)
        vertical_2 = math.dist(p2, p4)
        horizontal = math.dist(p0, p3)
    except (TypeError, ValueError, IndexError):
        return 0.0

    if horizontal == 0.0 or not math.isfinite(horizontal):
        return 0.0

    ear = (vertical_1 + vertical_2) / (2.0 * horizontal)
    if not math.isfinite(ear):
        return 0.0
    return ear


def extract_eye_contours(frame: Optional[LandmarkFrame]) -> EyeContours:
    """
    按固定索引从关键点帧中提取左右眼轮廓。

    点数不足 468 时返回两个空轮廓。
    """
    if frame is None or len(frame) < MIN_LANDMARKS:
        return EyeContours()

    left_eye = [tuple(frame[i]) for i in LEFT_EYE_INDICES]
    right_eye = [tuple(frame[i]) for i in RIGHT_EYE_INDICES]
    return EyeContours(left_eye=left_eye, right_eye=right_eye)


def ear_pair(frame: Optional[LandmarkFrame]) -> Tuple[float, float]:
    """返回 (左眼 EAR, 右眼 EAR)，退化帧为 (0.0, 0.0)。"""
    contours = extract_eye_contours(frame)
    return calculate_ear(contours.left_eye), calculate_ear(contours.right_eye)
