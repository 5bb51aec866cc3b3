"""核心数据模型定义"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple


@dataclass
class LandmarkFrame:
    """单帧人脸关键点（MediaPipe FaceMesh 索引顺序，归一化坐标）"""
    points: List[Tuple[float, float, float]]
    timestamp_ms: float


@dataclass
class FacialFeatures:
    """单帧几何特征"""
    left_eye_openness: float
    right_eye_openness: float
    avg_eye_openness: float
    mouth_openness: float
    gaze_offset_x: float
    gaze_offset_y: float


@dataclass
class DebouncerState:
    """单个去抖状态机的运行状态"""
    active: bool = False
    start_ms: float = 0.0
    peak: float = 0.0


@dataclass
class DetectionState:
    """会话级检测状态，只由帧处理循环持有和修改"""
    session_id: Optional[str] = None
    baseline_openness: Optional[float] = None
    blink: DebouncerState = field(default_factory=DebouncerState)
    yawn: DebouncerState = field(default_factory=DebouncerState)
    look_away: DebouncerState = field(default_factory=DebouncerState)
    blink_count: int = 0
    yawn_count: int = 0
    look_away_count: int = 0
    distraction_seconds: float = 0.0
    last_emitted_ms: Optional[float] = None
    focus_level: int = 100


@dataclass
class DistractionEpisode:
    """一次 Active -> Idle 转换的结果"""
    kind: str
    elapsed_ms: float
    peak: float
    confirmed: bool


@dataclass(frozen=True)
class FocusSnapshot:
    """推送给外部的实时指标快照"""
    blink_count: int
    yawn_count: int
    look_away_count: int
    distraction_time_seconds: int
    current_focus_level: int

    def to_dict(self) -> dict:
        return {
            "blinkCount": self.blink_count,
            "yawnCount": self.yawn_count,
            "lookAwayCount": self.look_away_count,
            "distractionTime": self.distraction_time_seconds,
            "currentFocusLevel": self.current_focus_level,
        }


@dataclass
class FrameAnalysis:
    """单帧分析结果"""
    features: FacialFeatures
    blink_threshold: float
    is_blinking: bool
    is_yawning: bool
    is_looking_away: bool
    focus_level: int
    events: List[str] = field(default_factory=list)
    snapshot: Optional[FocusSnapshot] = None


@dataclass(frozen=True)
class SessionSummary:
    """会话结束时的最终汇总"""
    duration_seconds: int
    blink_count: int
    yawn_count: int
    look_away_count: int
    distraction_time_seconds: float
    focus_score: int
    recommendations: Tuple[str, ...]
    session_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "sessionId": self.session_id,
            "duration": self.duration_seconds,
            "blinkCount": self.blink_count,
            "yawnCount": self.yawn_count,
            "lookAwayCount": self.look_away_count,
            "distractionTime": self.distraction_time_seconds,
            "focusScore": self.focus_score,
            "recommendations": list(self.recommendations),
        }


@dataclass
class Advisory:
    """按单项指标给出的建议"""
    type: str
    message: str
    tip: str


@dataclass
class HistoryStats:
    """历史会话统计"""
    avg_score: float
    total_sessions: int
    total_duration: int
    total_blinks: int
    total_yawns: int
