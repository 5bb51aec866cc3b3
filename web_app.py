"""Flask Web 前端 - 专注度监测系统"""

import datetime
import logging
import threading
import time

import cv2
from flask import Flask, Response, jsonify, request

from config import load_config
from detectors.face_detector import FaceDetector
from display.renderer import DisplayRenderer
from evaluators.history import summarize_history
from evaluators.score_finalizer import get_specific_recommendations
from session.controller import DISTRACTION_MESSAGES, SessionController, SessionError
from session.sink import HttpMetricsSink

logger = logging.getLogger(__name__)

app = Flask(__name__)


class WebDetectionSystem:
    """Web 版检测系统，支持 MJPEG 视频流推送、会话控制和实时数据 API。"""

    MAX_LOG_ENTRIES = 200
    MAX_HISTORY = 30

    def __init__(self, config=None):
        self.config = config if config is not None else load_config()
        self._cap = None
        self._thread = None
        self._running = False
        self._lock = threading.Lock()
        self._latest_frame = None
        self._logs = []
        self._log_lock = threading.Lock()
        self._history = []
        self._face_detector = None

        sink_url = self.config["sink_url"]
        self.sink = HttpMetricsSink(sink_url) if sink_url else None
        self.controller = SessionController(
            config=self.config,
            sink=self.sink,
            on_distraction=self._on_distraction,
        )
        self.renderer = DisplayRenderer()
        self._latest_analysis = None
        self._face_detected = False

    # ---- 摄像头 ----

    def start(self):
        """启动摄像头和处理线程。"""
        if self._running:
            return True
        self._cap = cv2.VideoCapture(0)
        if not self._cap.isOpened():
            self._add_log("danger", "无法打开摄像头")
            return False
        if self._face_detector is None:
            self._face_detector = FaceDetector()
        self._running = True
        self._add_log("info", "摄像头已开启")
        self._thread = threading.Thread(target=self._process_loop, daemon=True)
        self._thread.start()
        return True

    def stop(self):
        """停止摄像头；进行中的会话不受影响。"""
        self._running = False
        if self._thread is not None:
            self._thread.join(timeout=1.0)
        if self._cap and self._cap.isOpened():
            self._cap.release()
        self._cap = None
        self._add_log("info", "摄像头已关闭")

    def _process_loop(self):
        """后台处理循环。"""
        while self._running:
            if not self._cap or not self._cap.isOpened():
                break
            ret, frame = self._cap.read()
            if not ret:
                continue

            landmarks = self._face_detector.detect(frame)
            analysis = None
            if landmarks is not None:
                analysis = self.controller.process_frame(landmarks)

            if (landmarks is not None) != self._face_detected:
                self._face_detected = landmarks is not None
                if self._face_detected:
                    self._add_log("info", "检测到人脸")
                else:
                    self._add_log("warning", "人脸丢失")

            rendered = self.renderer.render(
                frame, landmarks, analysis,
                self.controller.state,
                self.controller.status,
                self.controller.remaining_seconds,
            )
            _, jpeg = cv2.imencode(".jpg", rendered, [cv2.IMWRITE_JPEG_QUALITY, 80])
            with self._lock:
                self._latest_frame = jpeg.tobytes()
                self._latest_analysis = analysis

    # ---- 会话 ----

    def start_session(self, session_id=None, planned_minutes=25):
        session_id = self.controller.start(session_id=session_id, planned_minutes=planned_minutes)
        self._add_log("info", f"会话开始，计划 {planned_minutes} 分钟")
        return session_id

    def toggle_pause(self):
        paused = self.controller.toggle_pause()
        self._add_log("info", "会话暂停" if paused else "会话恢复")
        return paused

    def end_session(self):
        summary = self.controller.end()
        with self._lock:
            self._history.append(summary)
            self._history = self._history[-self.MAX_HISTORY:]
        self._add_log("info", f"会话结束，专注分 {summary.focus_score}")
        return summary

    def history(self):
        with self._lock:
            return list(self._history)

    def _on_distraction(self, kind):
        self._add_log("warning", DISTRACTION_MESSAGES.get(kind, kind))

    # ---- 数据 ----

    def _add_log(self, level, message):
        """添加一条系统日志。level: info / warning / danger"""
        entry = {
            "time": datetime.datetime.now().strftime("%H:%M:%S"),
            "level": level,
            "message": message,
        }
        with self._log_lock:
            self._logs.append(entry)
            if len(self._logs) > self.MAX_LOG_ENTRIES:
                self._logs = self._logs[-self.MAX_LOG_ENTRIES:]

    def get_logs(self, since=0):
        """获取日志，since 为起始索引。"""
        with self._log_lock:
            return self._logs[since:], len(self._logs)

    def get_frame(self):
        with self._lock:
            return self._latest_frame

    def get_data(self):
        with self._lock:
            analysis = self._latest_analysis
        data = {
            "sessionId": self.controller.session_id,
            "status": self.controller.status,
            "remaining": self.controller.remaining_seconds,
            "faceDetected": self._face_detected,
            "metrics": self.controller.latest_snapshot.to_dict(),
        }
        if analysis is not None:
            data.update({
                "isBlinking": analysis.is_blinking,
                "isYawning": analysis.is_yawning,
                "isLookingAway": analysis.is_looking_away,
                "focusLevel": analysis.focus_level,
            })
        return data


# 全局检测系统实例
system = WebDetectionSystem()


def _error(message, status=400):
    return jsonify({"success": False, "message": message}), status


# ---- Flask 路由 ----

@app.route("/api/start", methods=["POST"])
def api_start():
    ok = system.start()
    return jsonify({"success": ok, "message": "摄像头启动成功" if ok else "无法打开摄像头"})


@app.route("/api/stop", methods=["POST"])
def api_stop():
    system.stop()
    return jsonify({"success": True, "message": "摄像头已关闭"})


@app.route("/api/session/start", methods=["POST"])
def api_session_start():
    data = request.get_json(silent=True) or {}
    duration = data.get("duration", 25)
    if not isinstance(duration, int) or isinstance(duration, bool):
        return _error("duration 必须为整数")
    try:
        session_id = system.start_session(data.get("sessionId"), duration)
    except (ValueError, SessionError) as e:
        return _error(str(e))
    return jsonify({"success": True, "sessionId": session_id, "duration": duration})


@app.route("/api/session/pause", methods=["POST"])
def api_session_pause():
    try:
        paused = system.toggle_pause()
    except SessionError as e:
        return _error(str(e))
    return jsonify({"success": True, "paused": paused})


@app.route("/api/session/end", methods=["POST"])
def api_session_end():
    try:
        summary = system.end_session()
    except SessionError as e:
        return _error(str(e))
    advisories = get_specific_recommendations(
        summary.blink_count, summary.yawn_count,
        summary.look_away_count, summary.duration_seconds,
    )
    payload = summary.to_dict()
    payload["advisories"] = [
        {"type": a.type, "message": a.message, "tip": a.tip} for a in advisories
    ]
    payload["success"] = True
    return jsonify(payload)


@app.route("/api/data")
def api_data():
    return jsonify(system.get_data())


@app.route("/api/history")
def api_history():
    summaries = system.history()
    stats = summarize_history(summaries)
    return jsonify({
        "sessions": [s.to_dict() for s in reversed(summaries)],
        "statistics": {
            "avgScore": stats.avg_score,
            "totalSessions": stats.total_sessions,
            "totalDuration": stats.total_duration,
            "totalBlinks": stats.total_blinks,
            "totalYawns": stats.total_yawns,
        },
    })


@app.route("/api/logs")
def api_logs():
    since = request.args.get("since", 0, type=int)
    logs, total = system.get_logs(since)
    return jsonify({"logs": logs, "total": total})


@app.route("/video_feed")
def video_feed():
    def generate():
        while True:
            frame = system.get_frame()
            if frame is not None:
                yield (b"--frame\r\nContent-Type: image/jpeg\r\n\r\n" + frame + b"\r\n")
            time.sleep(0.03)
    return Response(generate(), mimetype="multipart/x-mixed-replace; boundary=frame")


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app.run(host="0.0.0.0", port=5000, debug=False, threaded=True)
