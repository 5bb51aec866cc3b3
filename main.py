"""专注度监测系统入口文件"""

import argparse
import json
import logging
import sys
import time

import cv2

from config import load_config
from detectors.face_detector import FaceDetector
from display.renderer import DisplayRenderer
from session.controller import SessionController
from session.sink import HttpMetricsSink

logger = logging.getLogger(__name__)

# 分心提醒在画面上停留的时间（秒）
_ALERT_SECONDS = 3.0


class DetectionSystem:
    """专注度监测主程序，协调关键点检测、会话控制和渲染，并管理视频流主循环。"""

    def __init__(self, config_path=None, sink_url=None, camera_index=0):
        self._cap = None
        self.camera_index = camera_index

        config = load_config(config_path)
        sink_url = sink_url or config["sink_url"]

        self.sink = HttpMetricsSink(sink_url) if sink_url else None
        self.face_detector = FaceDetector()
        self.controller = SessionController(
            config=config,
            sink=self.sink,
            on_distraction=self._on_distraction,
        )
        self.renderer = DisplayRenderer()

        self._alert_kind = None
        self._alert_until = 0.0

    def _on_distraction(self, kind):
        self._alert_kind = kind
        self._alert_until = time.monotonic() + _ALERT_SECONDS

    def _current_alert(self):
        if self._alert_kind is not None and time.monotonic() < self._alert_until:
            return self._alert_kind
        return None

    def run(self, session_id=None, planned_minutes=25):
        """开始会话并启动主检测循环，返回会话汇总。"""
        self._cap = cv2.VideoCapture(self.camera_index)

        if not self._cap.isOpened():
            logger.error("无法打开摄像头 %d", self.camera_index)
            self.stop()
            sys.exit(1)

        summary = None
        try:
            self.controller.start(session_id=session_id, planned_minutes=planned_minutes)
            self._main_loop()
        finally:
            if self.controller.is_running:
                summary = self.controller.end()
            self.stop()
        return summary

    def _main_loop(self):
        """视频流处理主循环：p 暂停/恢复，q 结束会话。"""
        while True:
            ret, frame = self._cap.read()
            if not ret:
                continue

            landmarks = self.face_detector.detect(frame)
            analysis = None
            if landmarks is not None:
                analysis = self.controller.process_frame(landmarks)

            rendered = self.renderer.render(
                frame, landmarks, analysis,
                self.controller.state,
                self.controller.status,
                self.controller.remaining_seconds,
                alert=self._current_alert(),
            )
            cv2.imshow("Focus Monitor", rendered)

            key = cv2.waitKey(1) & 0xFF
            if key == ord("p"):
                self.controller.toggle_pause()
            elif key == ord("q"):
                break

    def stop(self):
        """释放摄像头资源、关闭所有窗口、关闭人脸检测器和推送线程。"""
        if self._cap is not None and self._cap.isOpened():
            self._cap.release()
        cv2.destroyAllWindows()
        self.face_detector.close()
        if self.sink is not None:
            self.sink.close()


def main():
    parser = argparse.ArgumentParser(description="专注度监测系统")
    parser.add_argument("--config", type=str, default=None, help="JSON 阈值配置文件路径")
    parser.add_argument("--session-id", type=str, default=None, help="会话 ID，默认自动生成")
    parser.add_argument("--minutes", type=int, default=25, help="计划时长（分钟，1-120）")
    parser.add_argument("--sink-url", type=str, default=None, help="指标推送服务地址")
    parser.add_argument("--camera", type=int, default=0, help="摄像头编号")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    system = DetectionSystem(
        config_path=args.config,
        sink_url=args.sink_url,
        camera_index=args.camera,
    )
    summary = system.run(session_id=args.session_id, planned_minutes=args.minutes)
    if summary is not None:
        print(json.dumps(summary.to_dict(), indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
