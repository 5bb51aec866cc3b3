"""人脸关键点来源，基于 MediaPipe FaceMesh（开启虹膜关键点）"""

import time
from typing import Optional

import cv2
import mediapipe as mp
import numpy as np

from models.data_models import LandmarkFrame

# 开启 refine_landmarks 后 FaceMesh 输出 478 个点（含 10 个虹膜点）
NUM_REFINED_LANDMARKS = 478


class FaceDetector:
    """使用 MediaPipe FaceMesh 检测人脸关键点，输出 LandmarkFrame"""

    def __init__(
        self,
        max_num_faces: int = 1,
        min_detection_confidence: float = 0.5,
        face_mesh=None,
    ):
        """初始化 MediaPipe FaceMesh，可传入已有实例"""
        if face_mesh is None:
            face_mesh = mp.solutions.face_mesh.FaceMesh(
                max_num_faces=max_num_faces,
                min_detection_confidence=min_detection_confidence,
                min_tracking_confidence=0.5,
                refine_landmarks=True,
            )
        self._face_mesh = face_mesh

    def detect(self, frame: np.ndarray, timestamp_ms: Optional[float] = None) -> Optional[LandmarkFrame]:
        """
        检测单帧图像中的人脸关键点。

        Args:
            frame: BGR 格式的 OpenCV 图像帧
            timestamp_ms: 采集时间戳，为空时取单调时钟

        Returns:
            LandmarkFrame（归一化坐标）；未检测到人脸或缺少虹膜关键点时返回 None
        """
        if timestamp_ms is None:
            timestamp_ms = time.monotonic() * 1000.0

        # BGR -> RGB
        rgb_frame = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        rgb_frame.flags.writeable = False

        results = self._face_mesh.process(rgb_frame)

        if not results.multi_face_landmarks:
            return None

        face = results.multi_face_landmarks[0]
        points = [(lm.x, lm.y, lm.z) for lm in face.landmark]

        # 特征提取要求完整关键点集合
        if len(points) < NUM_REFINED_LANDMARKS:
            return None

        return LandmarkFrame(points=points, timestamp_ms=timestamp_ms)

    def close(self):
        """释放 MediaPipe 资源"""
        self._face_mesh.close()
