"""Flask 接口测试（不打开摄像头）"""

import sys
from unittest.mock import MagicMock

import pytest

# Mock mediapipe before importing web_app to avoid loading the real graph
_mp_mock = MagicMock()
sys.modules.setdefault("mediapipe", _mp_mock)

import web_app  # noqa: E402
from landmark_frames import make_landmark_frame  # noqa: E402


@pytest.fixture
def client():
    web_app.app.config["TESTING"] = True
    with web_app.app.test_client() as c:
        yield c


@pytest.fixture(autouse=True)
def clean_system():
    """每个测试前后结束遗留会话并清空历史。"""
    system = web_app.system
    system._history = []
    yield system
    if system.controller.is_running:
        system.controller.end()
    system._history = []


class TestSessionStart:
    def test_start_default_duration(self, client):
        resp = client.post("/api/session/start", json={})
        data = resp.get_json()
        assert resp.status_code == 200
        assert data["success"] is True
        assert data["duration"] == 25
        assert data["sessionId"]

    def test_start_with_session_id(self, client):
        data = client.post("/api/session/start", json={"sessionId": "w1", "duration": 15}).get_json()
        assert data["sessionId"] == "w1"
        assert web_app.system.controller.remaining_seconds == 15 * 60

    @pytest.mark.parametrize("duration", [0, 121, "abc", 2.5, True])
    def test_invalid_duration(self, client, duration):
        resp = client.post("/api/session/start", json={"duration": duration})
        assert resp.status_code == 400
        assert resp.get_json()["success"] is False

    def test_double_start_rejected(self, client):
        client.post("/api/session/start", json={"sessionId": "w1"})
        resp = client.post("/api/session/start", json={"sessionId": "w2"})
        assert resp.status_code == 400
        assert web_app.system.controller.session_id == "w1"


class TestSessionPause:
    def test_pause_and_resume(self, client):
        client.post("/api/session/start", json={})
        assert client.post("/api/session/pause").get_json()["paused"] is True
        assert web_app.system.controller.status == "paused"
        assert client.post("/api/session/pause").get_json()["paused"] is False

    def test_pause_without_session(self, client):
        resp = client.post("/api/session/pause")
        assert resp.status_code == 400


class TestSessionEnd:
    def test_end_returns_summary_and_advisories(self, client):
        client.post("/api/session/start", json={"sessionId": "w1"})
        data = client.post("/api/session/end").get_json()
        assert data["success"] is True
        assert data["sessionId"] == "w1"
        assert data["focusScore"] == 100
        assert data["recommendations"]
        assert data["advisories"][0]["type"] == "good"

    def test_end_without_session(self, client):
        resp = client.post("/api/session/end")
        assert resp.status_code == 400
        assert "没有进行中的会话" in resp.get_json()["message"]


class TestData:
    def test_idle_data(self, client):
        data = client.get("/api/data").get_json()
        assert data["status"] == "idle"
        assert data["sessionId"] is None
        assert data["metrics"]["blinkCount"] == 0

    def test_metrics_follow_processed_frames(self, client):
        client.post("/api/session/start", json={"sessionId": "w1"})
        controller = web_app.system.controller
        for ts, gaze_x in [(0, 0.5), (1000, 0.9), (2000, 0.5), (2600, 0.5)]:
            controller.process_frame(make_landmark_frame(ts, gaze_x=gaze_x))
        data = client.get("/api/data").get_json()
        assert data["status"] == "active"
        assert data["metrics"]["lookAwayCount"] == 1


class TestHistory:
    def test_empty_history(self, client):
        data = client.get("/api/history").get_json()
        assert data["sessions"] == []
        assert data["statistics"]["totalSessions"] == 0

    def test_history_after_sessions(self, client):
        for sid in ("h1", "h2"):
            client.post("/api/session/start", json={"sessionId": sid})
            client.post("/api/session/end")
        data = client.get("/api/history").get_json()
        assert [s["sessionId"] for s in data["sessions"]] == ["h2", "h1"]
        assert data["statistics"]["totalSessions"] == 2
        assert data["statistics"]["avgScore"] == 100


class TestLogs:
    def test_session_events_logged(self, client):
        _, before = web_app.system.get_logs()
        client.post("/api/session/start", json={})
        data = client.get(f"/api/logs?since={before}").get_json()
        assert any("会话开始" in entry["message"] for entry in data["logs"])
        assert data["total"] > before
