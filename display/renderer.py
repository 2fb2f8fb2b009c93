"""界面渲染模块 - 在视频帧上绘制眼部轮廓、眨眼统计和疲劳风险。"""

from typing import Optional

import cv2
import numpy as np

from detectors.eye_analyzer import extract_eye_contours
from models.data_models import BlinkResult, EyeStrainLevel, LandmarkFrame, SessionState


def format_value(v: float) -> str:
    """格式化浮点数为三位小数字符串。"""
    return f"{v:.3f}"


def format_time(seconds: int) -> str:
    """秒数格式化为 MM:SS。"""
    mins, secs = divmod(max(0, int(seconds)), 60)
    return f"{mins:02d}:{secs:02d}"


class DisplayRenderer:
    """在视频帧上绘制检测结果和会话状态。"""

    # 风险等级文字
    _LEVEL_TEXT = {
        EyeStrainLevel.LOW: "低",
        EyeStrainLevel.MODERATE: "中",
        EyeStrainLevel.HIGH: "高",
    }

    # 风险等级颜色 (BGR)
    _LEVEL_COLORS = {
        EyeStrainLevel.LOW: (0, 200, 0),
        EyeStrainLevel.MODERATE: (0, 200, 255),
        EyeStrainLevel.HIGH: (0, 0, 255),
    }

    _LEFT_EYE_COLOR = (0, 255, 0)
    _RIGHT_EYE_COLOR = (0, 0, 255)

    def __init__(self, font_path: str = "SimHei"):
        """初始化中文字体，字体不存在时回退到 OpenCV 默认英文字体。"""
        self._pil_font = None
        self._use_pil = False

        try:
            font = self._try_load_font(font_path)
            if font is not None:
                self._pil_font = font
                self._use_pil = True
        except Exception:
            self._use_pil = False

    @staticmethod
    def _try_load_font(font_path: str):
        """尝试加载字体文件，返回 PIL ImageFont 或 None。"""
        from PIL import ImageFont

        try:
            return ImageFont.truetype(font_path, 20)
        except (OSError, IOError):
            pass

        common_paths = [
            "/usr/share/fonts/truetype/simhei/SimHei.ttf",
            "/usr/share/fonts/SimHei.ttf",
            "C:\\Windows\\Fonts\\simhei.ttf",
            "/System/Library/Fonts/STHeiti Medium.ttc",
        ]
        for path in common_paths:
            try:
                return ImageFont.truetype(path, 20)
            except (OSError, IOError):
                continue

        return None

    def render(
        self,
        frame: np.ndarray,
        landmarks: Optional[LandmarkFrame],
        state: SessionState,
        blink_result: Optional[BlinkResult] = None,
    ) -> np.ndarray:
        """渲染检测结果到视频帧，返回渲染后的帧图像。"""
        output = frame.copy()

        if landmarks is not None:
            self._draw_eyes(output, landmarks)

        self._draw_info(output, state, blink_result, face_detected=landmarks is not None)
        self._draw_level(output, state.eye_strain_level)

        return output

    def _draw_eyes(self, frame: np.ndarray, landmarks: LandmarkFrame) -> None:
        """绘制左右眼轮廓（左绿右红）。"""
        contours = extract_eye_contours(landmarks)
        if contours.is_empty:
            return
        for points, color in (
            (contours.left_eye, self._LEFT_EYE_COLOR),
            (contours.right_eye, self._RIGHT_EYE_COLOR),
        ):
            pts = np.array([(int(p[0]), int(p[1])) for p in points], dtype=np.int32)
            cv2.polylines(frame, [pts], True, color, 1)

    def _draw_info(
        self,
        frame: np.ndarray,
        state: SessionState,
        blink_result: Optional[BlinkResult],
        face_detected: bool,
    ) -> None:
        """在左上角绘制 EAR、眨眼频率、眨眼总数和会话时长。"""
        ear = blink_result.ear if blink_result is not None else 0.0
        lines = [
            f"EAR: {format_value(ear)}",
            f"Rate: {state.blink_rate}/min",
            f"Blinks: {state.total_blinks}",
            f"Time: {format_time(state.session_time)}",
        ]

        if self._use_pil:
            if not face_detected:
                lines.append("未检测到人脸")
            self._draw_pil_lines(frame, lines, x=10, y_start=20, color=(0, 255, 0))
        else:
            if not face_detected:
                lines.append("No Face")
            y = 30
            for text in lines:
                cv2.putText(
                    frame, text, (10, y),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.7, (0, 255, 0), 2,
                )
                y += 30

    def _draw_level(self, frame: np.ndarray, level: EyeStrainLevel) -> None:
        """在右上角绘制眼疲劳风险等级。"""
        h, w = frame.shape[:2]
        color = self._LEVEL_COLORS.get(level, (255, 255, 255))

        if self._use_pil:
            text = f"疲劳风险: {self._LEVEL_TEXT.get(level, level.value)}"
            self._draw_pil_lines(frame, [text], x=w - 180, y_start=20, color=color)
        else:
            text = f"Risk: {level.value.capitalize()}"
            cv2.putText(
                frame, text, (w - 200, 30),
                cv2.FONT_HERSHEY_SIMPLEX, 0.7, color, 2,
            )

    def _draw_pil_lines(
        self,
        frame: np.ndarray,
        lines: list,
        x: int,
        y_start: int,
        color: tuple,
    ) -> None:
        """使用 PIL 在帧上绘制多行文字（BGR color -> RGB fill）。"""
        from PIL import Image, ImageDraw

        img_pil = Image.fromarray(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))
        draw = ImageDraw.Draw(img_pil)
        fill = (color[2], color[1], color[0])
        y = y_start
        for line in lines:
            draw.text((x, y), line, font=self._pil_font, fill=fill)
            y += 28
        result = cv2.cvtColor(np.array(img_pil), cv2.COLOR_RGB2BGR)
        frame[:] = result
