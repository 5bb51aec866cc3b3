"""自适应阈值模块，维护眼睛开合度的指数滑动基线"""

from models.data_models import DetectionState


class BaselineTracker:
    """按帧更新睁眼基线，并给出当前眨眼阈值"""

    def __init__(self, alpha: float = 0.95, blink_ratio: float = 0.75):
        """初始化平滑系数和眨眼阈值比例"""
        self.alpha = alpha
        self.blink_ratio = blink_ratio

    def update(self, state: DetectionState, openness: float) -> float:
        """
        用当前帧的平均开合度更新基线。

        首帧直接取观测值作为基线，之后 baseline = alpha * baseline + (1 - alpha) * openness。

        Returns:
            更新后的基线
        """
        if state.baseline_openness is None:
            state.baseline_openness = openness
        else:
            state.baseline_openness = (
                self.alpha * state.baseline_openness + (1.0 - self.alpha) * openness
            )
        return state.baseline_openness

    def blink_threshold(self, state: DetectionState) -> float:
        """当前眨眼阈值，基线尚未建立时为 0.0"""
        if state.baseline_openness is None:
            return 0.0
        return state.baseline_openness * self.blink_ratio
