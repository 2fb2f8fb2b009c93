"""人脸关键点检测模块，基于 MediaPipe FaceMesh，以及摄像头帧源"""

import logging
from typing import Optional

import cv2
import mediapipe as mp
import numpy as np

from models.data_models import LandmarkFrame

logger = logging.getLogger(__name__)


class LandmarkSourceError(RuntimeError):
    """关键点检测器或摄像头初始化失败"""


class FaceDetector:
    """使用 MediaPipe FaceMesh 检测单张人脸的 468 个关键点"""

    def __init__(
        self,
        max_num_faces: int = 1,
        min_detection_confidence: float = 0.5,
    ):
        """初始化 MediaPipe FaceMesh，失败时抛出 LandmarkSourceError"""
        try:
            self._face_mesh = mp.solutions.face_mesh.FaceMesh(
                max_num_faces=max_num_faces,
                min_detection_confidence=min_detection_confidence,
                min_tracking_confidence=0.5,
                refine_landmarks=False,
            )
        except Exception as e:
            raise LandmarkSourceError(f"人脸检测器初始化失败: {e}") from e

    def detect(self, frame: np.ndarray) -> Optional[LandmarkFrame]:
        """
        检测单帧图像中的人脸关键点。

        Args:
            frame: BGR 格式的 OpenCV 图像帧

        Returns:
            像素坐标的关键点列表 [(x, y, z), ...]；未检测到人脸时返回 None
        """
        h, w = frame.shape[:2]

        # BGR -> RGB
        rgb_frame = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        rgb_frame.flags.writeable = False

        results = self._face_mesh.process(rgb_frame)

        if not results.multi_face_landmarks:
            return None

        # 只跟踪第一张人脸
        face = results.multi_face_landmarks[0]
        return [(lm.x * w, lm.y * h, lm.z * w) for lm in face.landmark]

    def close(self):
        """释放 MediaPipe 资源"""
        self._face_mesh.close()


class CameraSource:
    """
    摄像头帧源：读取视频帧、检测关键点并投递到 FrameChannel。

    初始化或读取失败时抛出 LandmarkSourceError，并把错误信息保存在
    error 属性中供界面显示。
    """

    def __init__(self, detector: FaceDetector, channel, device: int = 0):
        self.detector = detector
        self.channel = channel
        self.device = device
        self.error: Optional[str] = None
        self.last_landmarks: Optional[LandmarkFrame] = None
        self._cap = None

    @property
    def is_running(self) -> bool:
        return self._cap is not None and self._cap.isOpened()

    def start(self) -> None:
        """打开摄像头"""
        if self.is_running:
            return
        self.error = None
        self._cap = cv2.VideoCapture(self.device)
        if not self._cap.isOpened():
            self._cap = None
            self.error = f"无法打开摄像头 (设备 {self.device})，请检查摄像头权限"
            logger.error(self.error)
            raise LandmarkSourceError(self.error)
        logger.info("摄像头已开启 (设备 %d)", self.device)

    def read_once(self) -> Optional[np.ndarray]:
        """
        读取一帧并投递关键点（无人脸时投递 None）。

        Returns:
            原始 BGR 帧；读取失败时返回 None
        """
        if not self.is_running:
            return None
        ret, frame = self._cap.read()
        if not ret:
            return None
        self.last_landmarks = self.detector.detect(frame)
        self.channel.put(self.last_landmarks)
        return frame

    def stop(self) -> None:
        """释放摄像头，可重复调用"""
        if self._cap is not None and self._cap.isOpened():
            self._cap.release()
        self._cap = None

    def dispose(self) -> None:
        """停止并释放检测器"""
        self.stop()
        self.detector.close()
