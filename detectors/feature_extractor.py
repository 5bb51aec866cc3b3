"""几何特征提取模块，负责从关键点计算眼睛开合度、嘴巴开合度和视线偏移"""

import math
from typing import Sequence, Tuple

from models.data_models import FacialFeatures, LandmarkFrame

# 眼睛关键点索引：(眼角对, 垂直对1, 垂直对2)
LEFT_EYE_INDICES = [(33, 133), (160, 144), (159, 145)]
RIGHT_EYE_INDICES = [(362, 263), (385, 380), (386, 374)]

MOUTH_INDICES = {
    "upper": 0,
    "lower": 17,
    "left": 61,
    "right": 291,
}

# 虹膜中心及其所在眼眶的外角、内角、上沿、下沿
LEFT_IRIS_INDICES = {"iris": 468, "outer": 33, "inner": 133, "top": 159, "bottom": 145}
RIGHT_IRIS_INDICES = {"iris": 473, "outer": 362, "inner": 263, "top": 386, "bottom": 374}


def _xy(point: Sequence[float]) -> Tuple[float, float]:
    return point[0], point[1]


class FeatureExtractor:
    """把一帧关键点转换为标量比值，调用方保证关键点完整"""

    def calculate_eye_openness(self, points, eye_indices) -> float:
        """
        计算单只眼睛的开合度（EAR）。

        公式: EAR = (|v1| + |v2|) / (2 * |h|)

        Args:
            points: 整帧关键点
            eye_indices: [(眼角1, 眼角2), (上1, 下1), (上2, 下2)]

        Returns:
            EAR 值，分母为零时返回 0.0
        """
        (c1, c2), (a1, b1), (a2, b2) = eye_indices

        horizontal = math.dist(_xy(points[c1]), _xy(points[c2]))
        if horizontal == 0.0:
            return 0.0

        vertical_1 = math.dist(_xy(points[a1]), _xy(points[b1]))
        vertical_2 = math.dist(_xy(points[a2]), _xy(points[b2]))

        return (vertical_1 + vertical_2) / (2.0 * horizontal)

    def calculate_mouth_openness(self, points) -> float:
        """
        计算嘴巴开合度（MAR）。

        公式: MAR = |upper-lower| / |left-right|

        Returns:
            MAR 值，分母为零时返回 0.0
        """
        horizontal = math.dist(
            _xy(points[MOUTH_INDICES["left"]]), _xy(points[MOUTH_INDICES["right"]])
        )
        if horizontal == 0.0:
            return 0.0

        vertical = math.dist(
            _xy(points[MOUTH_INDICES["upper"]]), _xy(points[MOUTH_INDICES["lower"]])
        )
        return vertical / horizontal

    def calculate_iris_ratio(self, points, iris_indices: dict) -> Tuple[float, float]:
        """
        计算虹膜在眼眶内的归一化位置，0.5 为居中。

        Returns:
            (ratio_x, ratio_y)，某轴跨度为零时该轴返回 0.5
        """
        iris = points[iris_indices["iris"]]
        outer = points[iris_indices["outer"]]
        inner = points[iris_indices["inner"]]
        top = points[iris_indices["top"]]
        bottom = points[iris_indices["bottom"]]

        span_x = inner[0] - outer[0]
        span_y = bottom[1] - top[1]

        ratio_x = (iris[0] - outer[0]) / span_x if span_x != 0.0 else 0.5
        ratio_y = (iris[1] - top[1]) / span_y if span_y != 0.0 else 0.5
        return ratio_x, ratio_y

    def extract(self, frame: LandmarkFrame) -> FacialFeatures:
        """
        提取单帧几何特征。

        Args:
            frame: 包含完整 FaceMesh（含虹膜）关键点的帧

        Returns:
            FacialFeatures，双眼指标取平均
        """
        points = frame.points

        left_ear = self.calculate_eye_openness(points, LEFT_EYE_INDICES)
        right_ear = self.calculate_eye_openness(points, RIGHT_EYE_INDICES)

        left_x, left_y = self.calculate_iris_ratio(points, LEFT_IRIS_INDICES)
        right_x, right_y = self.calculate_iris_ratio(points, RIGHT_IRIS_INDICES)

        return FacialFeatures(
            left_eye_openness=left_ear,
            right_eye_openness=right_ear,
            avg_eye_openness=(left_ear + right_ear) / 2.0,
            mouth_openness=self.calculate_mouth_openness(points),
            gaze_offset_x=(left_x + right_x) / 2.0,
            gaze_offset_y=(left_y + right_y) / 2.0,
        )
