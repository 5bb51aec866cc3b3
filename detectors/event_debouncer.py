"""事件去抖模块：把逐帧的阈值判断转换为经过时长校验的离散事件

眨眼、哈欠、视线偏离共用同一个 Idle/Active 两态状态机，只在参数上不同：
    Idle -> Active   条件成立，记录开始时间
    Active -> Active 条件持续成立，按需更新峰值
    Active -> Idle   条件解除，计算持续时间并校验，无论是否有效都回到 Idle
"""

import math
from dataclasses import dataclass
from typing import Callable, Optional

from models.data_models import DebouncerState, DistractionEpisode, FacialFeatures

BLINK = "blink"
YAWN = "yawn"
LOOK_AWAY = "lookAway"


@dataclass(frozen=True)
class DebounceConfig:
    """去抖参数。condition 接收 (特征, 当前眨眼阈值)"""
    kind: str
    condition: Callable[[FacialFeatures, float], bool]
    min_duration_ms: float
    max_duration_ms: float = math.inf
    strict_min: bool = False
    magnitude: Optional[Callable[[FacialFeatures], float]] = None
    min_peak: float = 0.0
    notify_every: int = 1
    accrue_distraction: bool = False


class EventDebouncer:
    """参数化的两态去抖状态机，状态保存在外部的 DebouncerState 中"""

    def __init__(self, config: DebounceConfig):
        self.config = config

    @property
    def kind(self) -> str:
        return self.config.kind

    def is_valid(self, elapsed_ms: float, peak: float) -> bool:
        """校验一次 Active 片段是否构成有效事件"""
        cfg = self.config
        if cfg.strict_min:
            if elapsed_ms <= cfg.min_duration_ms:
                return False
        elif elapsed_ms < cfg.min_duration_ms:
            return False
        if elapsed_ms > cfg.max_duration_ms:
            return False
        if cfg.magnitude is not None and peak < cfg.min_peak:
            return False
        return True

    def should_notify(self, count: int) -> bool:
        """确认事件后，按计数判断是否需要发出分心通知"""
        return count % self.config.notify_every == 0

    def update(
        self,
        state: DebouncerState,
        features: FacialFeatures,
        threshold: float,
        now_ms: float,
    ) -> Optional[DistractionEpisode]:
        """
        推进一帧。

        Args:
            state: 本去抖器的会话状态（原地修改）
            features: 当前帧特征
            threshold: 当前眨眼阈值
            now_ms: 当前帧时间戳

        Returns:
            Active -> Idle 时返回 DistractionEpisode，其余情况返回 None
        """
        cfg = self.config
        triggered = cfg.condition(features, threshold)

        if triggered and not state.active:
            state.active = True
            state.start_ms = now_ms
            state.peak = cfg.magnitude(features) if cfg.magnitude is not None else 0.0
            return None

        if triggered:
            if cfg.magnitude is not None:
                state.peak = max(state.peak, cfg.magnitude(features))
            return None

        if not state.active:
            return None

        elapsed_ms = now_ms - state.start_ms
        peak = state.peak
        self.discard(state)
        return DistractionEpisode(
            kind=cfg.kind,
            elapsed_ms=elapsed_ms,
            peak=peak,
            confirmed=self.is_valid(elapsed_ms, peak),
        )

    @staticmethod
    def discard(state: DebouncerState) -> None:
        """丢弃进行中的片段，不做确认"""
        state.active = False
        state.start_ms = 0.0
        state.peak = 0.0


def blink_debouncer(config: dict) -> EventDebouncer:
    """眨眼：开合度低于自适应阈值，持续 [50, 600] ms"""
    return EventDebouncer(DebounceConfig(
        kind=BLINK,
        condition=lambda f, threshold: f.avg_eye_openness < threshold,
        min_duration_ms=config["blink_min_ms"],
        max_duration_ms=config["blink_max_ms"],
        notify_every=config["blink_notify_every"],
    ))


def yawn_debouncer(config: dict) -> EventDebouncer:
    """哈欠：嘴巴开合度高于阈值，持续 [1500, 5000] ms 且峰值足够大"""
    yawn_threshold = config["yawn_threshold"]
    return EventDebouncer(DebounceConfig(
        kind=YAWN,
        condition=lambda f, _: f.mouth_openness > yawn_threshold,
        min_duration_ms=config["yawn_min_ms"],
        max_duration_ms=config["yawn_max_ms"],
        magnitude=lambda f: f.mouth_openness,
        min_peak=config["yawn_min_peak"],
    ))


def look_away_debouncer(config: dict) -> EventDebouncer:
    """视线偏离：虹膜偏离中心超出阈值，持续超过 800 ms 才计数，分心时间始终累计"""
    threshold_x = config["gaze_threshold_x"]
    threshold_y = config["gaze_threshold_y"]
    return EventDebouncer(DebounceConfig(
        kind=LOOK_AWAY,
        condition=lambda f, _: (
            abs(f.gaze_offset_x - 0.5) > threshold_x
            or abs(f.gaze_offset_y - 0.5) > threshold_y
        ),
        min_duration_ms=config["look_away_min_ms"],
        strict_min=True,
        accrue_distraction=True,
    ))
