"""会话指标汇总模块：串联特征提取、基线、去抖和专注度，累计会话指标并节流推送快照"""

import logging
from typing import Callable, List, Optional

from calibration.baseline_tracker import BaselineTracker
from detectors.event_debouncer import (
    BLINK,
    LOOK_AWAY,
    YAWN,
    EventDebouncer,
    blink_debouncer,
    look_away_debouncer,
    yawn_debouncer,
)
from detectors.feature_extractor import FeatureExtractor
from evaluators.focus_evaluator import FocusEvaluator
from models.data_models import (
    DetectionState,
    DistractionEpisode,
    FocusSnapshot,
    FrameAnalysis,
    LandmarkFrame,
)

logger = logging.getLogger(__name__)

_COUNT_FIELDS = {
    BLINK: "blink_count",
    YAWN: "yawn_count",
    LOOK_AWAY: "look_away_count",
}

_STATE_FIELDS = {
    BLINK: "blink",
    YAWN: "yawn",
    LOOK_AWAY: "look_away",
}


class SessionMetricsAggregator:
    """
    逐帧处理关键点并维护会话指标。

    DetectionState 由调用方持有并在每次调用时显式传入；会话切换时
    ensure_session 返回一个全新的状态并先推送一次清零快照。
    """

    def __init__(
        self,
        config: dict,
        on_metrics_update: Optional[Callable[[FocusSnapshot], None]] = None,
        on_distraction: Optional[Callable[[str], None]] = None,
    ):
        self.extractor = FeatureExtractor()
        self.tracker = BaselineTracker(
            alpha=config["baseline_alpha"],
            blink_ratio=config["blink_threshold_ratio"],
        )
        self.debouncers: List[EventDebouncer] = [
            blink_debouncer(config),
            yawn_debouncer(config),
            look_away_debouncer(config),
        ]
        self.evaluator = FocusEvaluator(
            blink_penalty=config["blink_penalty"],
            yawn_penalty=config["yawn_penalty"],
            look_away_penalty=config["look_away_penalty"],
        )
        self.snapshot_interval_ms = config["snapshot_interval_ms"]
        self.on_metrics_update = on_metrics_update
        self.on_distraction = on_distraction

    # ---- 会话身份 ----

    def ensure_session(self, state: Optional[DetectionState], session_id: Optional[str]) -> DetectionState:
        """会话身份不变时原样返回，否则重置"""
        if state is not None and state.session_id == session_id:
            return state
        return self.reset(session_id)

    def reset(self, session_id: Optional[str]) -> DetectionState:
        """返回全新的检测状态，并推送一次清零快照"""
        state = DetectionState(session_id=session_id)
        logger.info("检测状态已重置 (session=%s)", session_id)
        self._emit(self.snapshot(state))
        return state

    def discard_pending(self, state: DetectionState) -> None:
        """丢弃所有进行中的片段（暂停时使用），已累计指标保持不变"""
        for debouncer in self.debouncers:
            debouncer.discard(getattr(state, _STATE_FIELDS[debouncer.kind]))
        state.focus_level = 100

    # ---- 逐帧处理 ----

    def process_frame(self, state: DetectionState, frame: LandmarkFrame) -> FrameAnalysis:
        """
        处理一帧关键点。

        Args:
            state: 当前会话的检测状态（原地修改）
            frame: 关键点完整的一帧

        Returns:
            FrameAnalysis，snapshot 字段仅在本帧触发推送时非空
        """
        now_ms = frame.timestamp_ms
        features = self.extractor.extract(frame)

        self.tracker.update(state, features.avg_eye_openness)
        threshold = self.tracker.blink_threshold(state)

        events: List[str] = []
        for debouncer in self.debouncers:
            sub_state = getattr(state, _STATE_FIELDS[debouncer.kind])
            episode = debouncer.update(sub_state, features, threshold, now_ms)
            if episode is not None:
                self._apply_episode(state, debouncer, episode, events)

        state.focus_level = self.evaluator.evaluate(
            state.blink.active, state.yawn.active, state.look_away.active,
        )

        snapshot = None
        if state.last_emitted_ms is None:
            state.last_emitted_ms = now_ms
        elif now_ms - state.last_emitted_ms > self.snapshot_interval_ms:
            snapshot = self.snapshot(state)
            state.last_emitted_ms = now_ms
            self._emit(snapshot)

        return FrameAnalysis(
            features=features,
            blink_threshold=threshold,
            is_blinking=state.blink.active,
            is_yawning=state.yawn.active,
            is_looking_away=state.look_away.active,
            focus_level=state.focus_level,
            events=events,
            snapshot=snapshot,
        )

    def _apply_episode(
        self,
        state: DetectionState,
        debouncer: EventDebouncer,
        episode: DistractionEpisode,
        events: List[str],
    ) -> None:
        """把一次结束的片段计入会话指标"""
        if debouncer.config.accrue_distraction:
            state.distraction_seconds += episode.elapsed_ms / 1000.0

        if not episode.confirmed:
            logger.debug("%s 片段无效 (%.0f ms)", episode.kind, episode.elapsed_ms)
            return

        field_name = _COUNT_FIELDS[episode.kind]
        count = getattr(state, field_name) + 1
        setattr(state, field_name, count)
        events.append(episode.kind)

        if debouncer.should_notify(count):
            self._notify(episode.kind)

    @staticmethod
    def snapshot(state: DetectionState) -> FocusSnapshot:
        return FocusSnapshot(
            blink_count=state.blink_count,
            yawn_count=state.yawn_count,
            look_away_count=state.look_away_count,
            distraction_time_seconds=int(state.distraction_seconds),
            current_focus_level=state.focus_level,
        )

    # ---- 回调 ----

    def _emit(self, snapshot: FocusSnapshot) -> None:
        if self.on_metrics_update is None:
            return
        try:
            self.on_metrics_update(snapshot)
        except Exception:
            logger.exception("指标回调执行失败")

    def _notify(self, kind: str) -> None:
        if self.on_distraction is None:
            return
        try:
            self.on_distraction(kind)
        except Exception:
            logger.exception("分心回调执行失败 (%s)", kind)
