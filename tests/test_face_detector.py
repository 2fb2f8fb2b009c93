"""FaceDetector / CameraSource 单元测试"""

from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from detectors.face_detector import CameraSource, FaceDetector, LandmarkSourceError
from session.channel import FrameChannel

PATCH_TARGET = "detectors.face_detector.mp.solutions.face_mesh.FaceMesh"
CAPTURE_TARGET = "detectors.face_detector.cv2.VideoCapture"


def _make_fake_landmark(x: float, y: float, z: float = 0.0):
    """创建一个模拟的 MediaPipe landmark 对象"""
    lm = MagicMock()
    lm.x = x
    lm.y = y
    lm.z = z
    return lm


def _build_fake_results(num_landmarks: int = 468):
    """构建模拟的 MediaPipe FaceMesh 处理结果（归一化坐标）"""
    landmarks = []
    for i in range(num_landmarks):
        nx = (i % 100) / 100.0
        ny = (i // 100) / 100.0
        landmarks.append(_make_fake_landmark(nx, ny))

    face = MagicMock()
    face.landmark = landmarks

    results = MagicMock()
    results.multi_face_landmarks = [face]
    return results, landmarks


def _detector_with(mock_mesh_cls, results):
    mock_mesh = MagicMock()
    mock_mesh_cls.return_value = mock_mesh
    mock_mesh.process.return_value = results
    return FaceDetector(), mock_mesh


class TestFaceDetectorDetect:
    """测试 detect() 方法"""

    @patch(PATCH_TARGET)
    def test_returns_none_when_no_face(self, mock_mesh_cls):
        """未检测到人脸时返回 None"""
        no_face_results = MagicMock()
        no_face_results.multi_face_landmarks = None
        detector, _ = _detector_with(mock_mesh_cls, no_face_results)

        frame = np.zeros((480, 640, 3), dtype=np.uint8)
        assert detector.detect(frame) is None

    @patch(PATCH_TARGET)
    def test_returns_all_landmarks(self, mock_mesh_cls):
        """检测到人脸时返回全部 468 个关键点"""
        results, _ = _build_fake_results(468)
        detector, _ = _detector_with(mock_mesh_cls, results)

        frame = np.zeros((480, 640, 3), dtype=np.uint8)
        landmarks = detector.detect(frame)

        assert landmarks is not None
        assert len(landmarks) == 468

    @patch(PATCH_TARGET)
    def test_landmark_coordinates_are_pixel_values(self, mock_mesh_cls):
        """关键点坐标应为像素坐标（x*w, y*h）"""
        w, h = 640, 480
        results, landmarks = _build_fake_results(468)
        detector, _ = _detector_with(mock_mesh_cls, results)

        frame = np.zeros((h, w, 3), dtype=np.uint8)
        result = detector.detect(frame)

        for i in (0, 33, 263, 467):
            assert result[i][0] == pytest.approx(landmarks[i].x * w)
            assert result[i][1] == pytest.approx(landmarks[i].y * h)

    @patch(PATCH_TARGET)
    def test_uses_first_face_only(self, mock_mesh_cls):
        first, _ = _build_fake_results(468)
        second, _ = _build_fake_results(470)
        results = MagicMock()
        results.multi_face_landmarks = [
            first.multi_face_landmarks[0],
            second.multi_face_landmarks[0],
        ]
        detector, _ = _detector_with(mock_mesh_cls, results)

        result = detector.detect(np.zeros((480, 640, 3), dtype=np.uint8))
        assert len(result) == 468

    @patch(PATCH_TARGET)
    def test_close(self, mock_mesh_cls):
        detector, mock_mesh = _detector_with(mock_mesh_cls, None)
        detector.close()
        mock_mesh.close.assert_called_once()

    @patch(PATCH_TARGET, side_effect=RuntimeError("model missing"))
    def test_init_failure_raises_source_error(self, mock_mesh_cls):
        with pytest.raises(LandmarkSourceError):
            FaceDetector()


class TestCameraSource:
    """测试摄像头帧源"""

    def _source(self):
        detector = MagicMock()
        detector.detect.return_value = [(0.0, 0.0)] * 468
        channel = FrameChannel()
        return CameraSource(detector, channel), detector, channel

    @patch(CAPTURE_TARGET)
    def test_camera_open_failure_reports_error(self, mock_capture):
        mock_capture.return_value.isOpened.return_value = False
        source, _, _ = self._source()

        with pytest.raises(LandmarkSourceError):
            source.start()
        assert source.error is not None
        assert "无法打开摄像头" in source.error
        assert not source.is_running

    @patch(CAPTURE_TARGET)
    def test_read_once_pushes_landmarks(self, mock_capture):
        cap = mock_capture.return_value
        cap.isOpened.return_value = True
        cap.read.return_value = (True, np.zeros((480, 640, 3), dtype=np.uint8))
        source, detector, channel = self._source()

        source.start()
        frame = source.read_once()

        assert frame is not None
        assert len(channel) == 1
        assert source.last_landmarks is detector.detect.return_value

    @patch(CAPTURE_TARGET)
    def test_read_failure_returns_none(self, mock_capture):
        cap = mock_capture.return_value
        cap.isOpened.return_value = True
        cap.read.return_value = (False, None)
        source, _, channel = self._source()

        source.start()
        assert source.read_once() is None
        assert len(channel) == 0

    def test_read_before_start(self):
        source, _, channel = self._source()
        assert source.read_once() is None
        assert len(channel) == 0

    @patch(CAPTURE_TARGET)
    def test_stop_and_dispose_are_idempotent(self, mock_capture):
        cap = mock_capture.return_value
        cap.isOpened.return_value = True
        source, detector, _ = self._source()

        source.start()
        source.stop()
        source.stop()
        source.dispose()

        cap.release.assert_called_once()
        detector.close.assert_called_once()
