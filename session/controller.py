"""会话生命周期管理：开始、暂停、恢复、结束，并持有检测状态"""

import logging
import threading
import time
import uuid
from typing import Callable, Optional

from config import load_config
from evaluators.score_finalizer import finalize_session
from models.data_models import (
    DetectionState,
    FocusSnapshot,
    FrameAnalysis,
    LandmarkFrame,
    SessionSummary,
)
from session.aggregator import SessionMetricsAggregator

logger = logging.getLogger(__name__)

DISTRACTION_MESSAGES = {
    "blink": "眨眼频繁，让眼睛休息一下吧。",
    "yawn": "你看起来有些疲倦，考虑短暂休息。",
    "lookAway": "请把注意力放回当前任务！",
}

MIN_PLANNED_MINUTES = 1
MAX_PLANNED_MINUTES = 120


class SessionError(RuntimeError):
    """会话生命周期调用顺序错误"""


class SessionController:
    """
    管理一个专注会话的生命周期。

    检测状态只由本对象持有，帧处理和会话切换在同一把锁下进行，
    切换之后的帧只会看到重置后的状态。
    """

    def __init__(
        self,
        config: Optional[dict] = None,
        sink=None,
        on_metrics_update: Optional[Callable[[FocusSnapshot], None]] = None,
        on_distraction: Optional[Callable[[str], None]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config if config is not None else load_config()
        self.sink = sink
        self.on_metrics_update = on_metrics_update
        self.on_distraction = on_distraction
        self._clock = clock
        self._lock = threading.RLock()

        self.aggregator = SessionMetricsAggregator(
            self.config,
            on_metrics_update=self._handle_snapshot,
            on_distraction=self._handle_distraction,
        )

        self.session_id: Optional[str] = None
        self.planned_minutes = 25
        self._started_at: Optional[float] = None
        self._paused_since: Optional[float] = None
        self._paused_total = 0.0
        self._state = DetectionState()
        self.latest_snapshot = self.aggregator.snapshot(self._state)

    # ---- 状态 ----

    @property
    def is_running(self) -> bool:
        return self._started_at is not None

    @property
    def is_paused(self) -> bool:
        return self._paused_since is not None

    @property
    def status(self) -> str:
        if not self.is_running:
            return "idle"
        return "paused" if self.is_paused else "active"

    @property
    def state(self) -> DetectionState:
        return self._state

    @property
    def elapsed_seconds(self) -> float:
        """自开始以来的墙钟时间（含暂停）"""
        if self._started_at is None:
            return 0.0
        return self._clock() - self._started_at

    @property
    def remaining_seconds(self) -> int:
        """计时器剩余秒数，暂停期间不走"""
        if self._started_at is None:
            return self.planned_minutes * 60
        paused = self._paused_total
        if self._paused_since is not None:
            paused += self._clock() - self._paused_since
        focused = self.elapsed_seconds - paused
        return max(0, int(self.planned_minutes * 60 - focused))

    # ---- 生命周期 ----

    def start(self, session_id: Optional[str] = None, planned_minutes: int = 25) -> str:
        """
        开始新会话。

        Args:
            session_id: 会话 ID，为空时自动生成
            planned_minutes: 计划时长（分钟），范围 [1, 120]

        Returns:
            会话 ID
        """
        if not MIN_PLANNED_MINUTES <= planned_minutes <= MAX_PLANNED_MINUTES:
            raise ValueError(f"计划时长无效: {planned_minutes}")

        with self._lock:
            if self.is_running:
                raise SessionError(f"已有进行中的会话: {self.session_id}")

            self.session_id = session_id or str(uuid.uuid4())
            self.planned_minutes = planned_minutes
            self._started_at = self._clock()
            self._paused_since = None
            self._paused_total = 0.0
            self._state = self.aggregator.ensure_session(self._state, self.session_id)

        logger.info("会话开始: %s (%d 分钟)", self.session_id, planned_minutes)
        return self.session_id

    def pause(self) -> None:
        with self._lock:
            if not self.is_running:
                raise SessionError("没有进行中的会话")
            if self.is_paused:
                return
            self._paused_since = self._clock()
            self.aggregator.discard_pending(self._state)
        logger.info("会话暂停: %s", self.session_id)

    def resume(self) -> None:
        with self._lock:
            if not self.is_running:
                raise SessionError("没有进行中的会话")
            if not self.is_paused:
                return
            self._paused_total += self._clock() - self._paused_since
            self._paused_since = None
        logger.info("会话恢复: %s", self.session_id)

    def toggle_pause(self) -> bool:
        """切换暂停状态，返回切换后是否处于暂停"""
        with self._lock:
            if self.is_paused:
                self.resume()
            else:
                self.pause()
            return self.is_paused

    def process_frame(self, frame: LandmarkFrame) -> Optional[FrameAnalysis]:
        """处理一帧；没有会话或已暂停时不处理，返回 None"""
        with self._lock:
            if not self.is_running or self.is_paused:
                return None
            self._state = self.aggregator.ensure_session(self._state, self.session_id)
            return self.aggregator.process_frame(self._state, frame)

    def end(self) -> SessionSummary:
        """结束会话，计算最终汇总并推送，随后重置检测状态"""
        with self._lock:
            if not self.is_running:
                raise SessionError("没有进行中的会话")

            state = self._state
            summary = finalize_session(
                int(self.elapsed_seconds),
                blink_count=state.blink_count,
                yawn_count=state.yawn_count,
                look_away_count=state.look_away_count,
                distraction_time_seconds=state.distraction_seconds,
                session_id=self.session_id,
            )

            self.session_id = None
            self._started_at = None
            self._paused_since = None
            self._paused_total = 0.0
            self._state = self.aggregator.reset(None)

        logger.info("会话结束: %s, 专注分 %d", summary.session_id, summary.focus_score)
        if self.sink is not None:
            self.sink.send_summary(summary)
        return summary

    # ---- 聚合器回调 ----

    def _handle_snapshot(self, snapshot: FocusSnapshot) -> None:
        self.latest_snapshot = snapshot
        if self.on_metrics_update is not None:
            self.on_metrics_update(snapshot)
        if self.sink is not None and self.is_running and not self.is_paused:
            self.sink.send_snapshot(self.session_id, snapshot)

    def _handle_distraction(self, kind: str) -> None:
        if not self.is_running or self.is_paused:
            return
        logger.info("分心事件: %s", kind)
        if self.on_distraction is not None:
            self.on_distraction(kind)
