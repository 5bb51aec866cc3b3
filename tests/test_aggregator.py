"""SessionMetricsAggregator 单元测试"""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from config import _DEFAULTS
from models.data_models import DetectionState, FrameAnalysis
from session.aggregator import SessionMetricsAggregator
from landmark_frames import make_landmark_frame


class Recorder:
    """收集回调参数"""

    def __init__(self):
        self.snapshots = []
        self.distractions = []

    def on_metrics_update(self, snapshot):
        self.snapshots.append(snapshot)

    def on_distraction(self, kind):
        self.distractions.append(kind)


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def aggregator(recorder):
    return SessionMetricsAggregator(
        dict(_DEFAULTS),
        on_metrics_update=recorder.on_metrics_update,
        on_distraction=recorder.on_distraction,
    )


def _feed(aggregator, state, frames):
    results = []
    for ts, kwargs in frames:
        results.append(aggregator.process_frame(state, make_landmark_frame(ts, **kwargs)))
    return results


def _blink(start, duration):
    return [(start, {"ear": 0.1}), (start + duration, {"ear": 0.3})]


class TestProcessFrame:
    def test_returns_frame_analysis(self, aggregator):
        state = DetectionState(session_id="s")
        result = aggregator.process_frame(state, make_landmark_frame(0))
        assert isinstance(result, FrameAnalysis)
        assert result.focus_level == 100
        assert result.blink_threshold == pytest.approx(0.225)

    def test_first_frame_sets_baseline(self, aggregator):
        state = DetectionState(session_id="s")
        aggregator.process_frame(state, make_landmark_frame(0, ear=0.28))
        assert state.baseline_openness == pytest.approx(0.28)

    def test_focus_level_reflects_active_debouncers(self, aggregator):
        state = DetectionState(session_id="s")
        _feed(aggregator, state, [(0, {})])
        result = aggregator.process_frame(
            state, make_landmark_frame(100, ear=0.1, mar=0.9, gaze_x=0.9),
        )
        assert result.is_blinking and result.is_yawning and result.is_looking_away
        assert result.focus_level == 60
        assert state.focus_level == 60


class TestBlinkCounting:
    def test_valid_blink_counted(self, aggregator):
        state = DetectionState(session_id="s")
        results = _feed(aggregator, state, [(0, {})] + _blink(1000, 200))
        assert state.blink_count == 1
        assert results[-1].events == ["blink"]

    @pytest.mark.parametrize("duration", [40, 700])
    def test_out_of_range_blink_ignored(self, aggregator, duration):
        state = DetectionState(session_id="s")
        _feed(aggregator, state, [(0, {})] + _blink(1000, duration))
        assert state.blink_count == 0

    def test_notify_every_fifth_blink(self, aggregator, recorder):
        state = DetectionState(session_id="s")
        frames = [(0, {})]
        for i in range(10):
            frames += _blink(1000 + i * 1000, 150)
        _feed(aggregator, state, frames)
        assert state.blink_count == 10
        assert recorder.distractions == ["blink", "blink"]

    def test_blink_does_not_add_distraction_time(self, aggregator):
        state = DetectionState(session_id="s")
        _feed(aggregator, state, [(0, {})] + _blink(1000, 300))
        assert state.distraction_seconds == 0.0


class TestYawnCounting:
    def test_valid_yawn(self, aggregator, recorder):
        state = DetectionState(session_id="s")
        _feed(aggregator, state, [(0, {}), (1000, {"mar": 0.9}), (2000, {"mar": 1.0}), (2600, {})])
        assert state.yawn_count == 1
        assert recorder.distractions == ["yawn"]

    def test_low_peak_yawn_ignored(self, recorder):
        aggregator = SessionMetricsAggregator(
            dict(_DEFAULTS, yawn_threshold=0.6),
            on_distraction=recorder.on_distraction,
        )
        state = DetectionState(session_id="s")
        _feed(aggregator, state, [(0, {}), (1000, {"mar": 0.7}), (2600, {})])
        assert state.yawn_count == 0
        assert recorder.distractions == []


class TestLookAwayCounting:
    def test_short_look_away_adds_time_only(self, aggregator, recorder):
        state = DetectionState(session_id="s")
        _feed(aggregator, state, [(0, {}), (1000, {"gaze_x": 0.8}), (1500, {})])
        assert state.look_away_count == 0
        assert state.distraction_seconds == pytest.approx(0.5)
        assert recorder.distractions == []

    def test_long_look_away_adds_both(self, aggregator, recorder):
        state = DetectionState(session_id="s")
        _feed(aggregator, state, [(0, {}), (1000, {"gaze_x": 0.8}), (1900, {})])
        assert state.look_away_count == 1
        assert state.distraction_seconds == pytest.approx(0.9)
        assert recorder.distractions == ["lookAway"]

    def test_distraction_time_accumulates(self, aggregator):
        state = DetectionState(session_id="s")
        _feed(aggregator, state, [
            (0, {}),
            (1000, {"gaze_y": 0.9}), (1500, {}),
            (2000, {"gaze_x": 0.1}), (4000, {}),
        ])
        assert state.look_away_count == 1
        assert state.distraction_seconds == pytest.approx(2.5)


class TestSnapshotThrottle:
    def test_at_most_one_snapshot_per_interval(self, aggregator, recorder):
        state = DetectionState(session_id="s")
        _feed(aggregator, state, [(ts, {}) for ts in range(0, 2001, 100)])
        # 首帧只记录时间，之后每超过 500 ms 推送一次：600、1200、1800
        assert len(recorder.snapshots) == 3

    def test_snapshot_attached_to_result(self, aggregator):
        state = DetectionState(session_id="s")
        results = _feed(aggregator, state, [(0, {}), (400, {}), (600, {})])
        assert results[1].snapshot is None
        assert results[2].snapshot is not None
        assert state.last_emitted_ms == 600

    def test_snapshot_floors_distraction_time(self, aggregator):
        state = DetectionState(session_id="s")
        state.distraction_seconds = 2.9
        assert aggregator.snapshot(state).distraction_time_seconds == 2

    def test_snapshot_wire_format(self, aggregator):
        state = DetectionState(session_id="s", blink_count=3, yawn_count=1, look_away_count=2)
        assert aggregator.snapshot(state).to_dict() == {
            "blinkCount": 3,
            "yawnCount": 1,
            "lookAwayCount": 2,
            "distractionTime": 0,
            "currentFocusLevel": 100,
        }


class TestSessionIdentity:
    def test_same_session_keeps_state(self, aggregator, recorder):
        state = DetectionState(session_id="a")
        assert aggregator.ensure_session(state, "a") is state
        assert recorder.snapshots == []

    def test_new_session_resets_and_emits_zero_snapshot(self, aggregator, recorder):
        state = aggregator.ensure_session(None, "a")
        _feed(aggregator, state, [(0, {})] + _blink(1000, 200) + [(1900, {}), (2300, {})])
        assert state.blink_count == 1
        assert recorder.snapshots[-1].blink_count == 1

        new_state = aggregator.ensure_session(state, "b")
        assert new_state is not state
        assert new_state.session_id == "b"
        assert new_state.blink_count == 0
        assert new_state.baseline_openness is None
        zero = recorder.snapshots[-1]
        assert (zero.blink_count, zero.yawn_count, zero.look_away_count, zero.distraction_time_seconds) == (0, 0, 0, 0)

    def test_zero_snapshot_precedes_new_session_snapshots(self, aggregator, recorder):
        state = aggregator.ensure_session(None, "a")
        _feed(aggregator, state, [(0, {})] + _blink(1000, 200) + [(1900, {})])
        recorder.snapshots.clear()

        state = aggregator.ensure_session(state, "b")
        _feed(aggregator, state, [(3000, {})] + _blink(3100, 200) + [(3700, {})])
        assert recorder.snapshots[0].blink_count == 0
        assert [s.blink_count for s in recorder.snapshots] == [0, 1]

    def test_discard_pending_keeps_counts(self, aggregator):
        state = DetectionState(session_id="s")
        _feed(aggregator, state, [(0, {})] + _blink(1000, 200) + [(2000, {"gaze_x": 0.9})])
        aggregator.discard_pending(state)
        assert state.look_away.active is False
        assert state.blink_count == 1
        _feed(aggregator, state, [(5000, {})])
        assert state.distraction_seconds == 0.0


class TestCallbackFailures:
    def test_failing_callbacks_do_not_break_frame_loop(self):
        def boom(*_):
            raise RuntimeError("sink down")

        aggregator = SessionMetricsAggregator(dict(_DEFAULTS), on_metrics_update=boom, on_distraction=boom)
        state = aggregator.ensure_session(None, "s")
        _feed(aggregator, state, [(0, {}), (1000, {"gaze_x": 0.9}), (2000, {})])
        assert state.look_away_count == 1


frame_strategy = st.tuples(
    st.integers(min_value=1, max_value=2000),
    st.floats(min_value=0.0, max_value=0.5),
    st.floats(min_value=0.0, max_value=1.5),
    st.floats(min_value=0.0, max_value=1.0),
    st.floats(min_value=0.0, max_value=1.0),
)


@given(st.lists(frame_strategy, min_size=1, max_size=60))
def test_invariants_hold_for_any_frame_sequence(frames):
    aggregator = SessionMetricsAggregator(dict(_DEFAULTS))
    state = DetectionState(session_id="s")
    ts = 0
    previous = (0, 0, 0, 0.0)
    for dt, ear, mar, gaze_x, gaze_y in frames:
        ts += dt
        result = aggregator.process_frame(
            state, make_landmark_frame(ts, ear=ear, mar=mar, gaze_x=gaze_x, gaze_y=gaze_y),
        )
        assert 0 <= result.focus_level <= 100
        current = (state.blink_count, state.yawn_count, state.look_away_count, state.distraction_seconds)
        assert all(c >= p for c, p in zip(current, previous))
        previous = current
