"""界面渲染模块 - 在视频帧上绘制关键点、事件计数、专注度、计时和分心提醒。"""

from typing import Optional

import cv2
import numpy as np

from models.data_models import DetectionState, FrameAnalysis, LandmarkFrame
from session.controller import DISTRACTION_MESSAGES

GREEN = (0, 255, 0)
YELLOW = (0, 255, 255)
RED = (0, 0, 255)
CYAN = (255, 255, 0)


def format_value(v: float) -> str:
    """格式化浮点数为两位小数字符串。"""
    return f"{v:.2f}"


def format_duration(seconds: int) -> str:
    """秒数格式化为 MM:SS。"""
    seconds = max(0, int(seconds))
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


def focus_color(level: int) -> tuple:
    """专注度颜色：>80 绿，>50 黄，其余红。"""
    if level > 80:
        return GREEN
    if level > 50:
        return YELLOW
    return RED


class DisplayRenderer:
    """在视频帧上绘制检测结果、会话状态和分心提醒。"""

    _STATUS_TEXT = {
        "idle": "未开始",
        "active": "专注中",
        "paused": "已暂停",
    }

    _STATUS_TEXT_EN = {
        "idle": "Ready",
        "active": "Focusing",
        "paused": "Paused",
    }

    _ALERT_TEXT_EN = {
        "blink": "You blinked frequently. Rest your eyes.",
        "yawn": "You seem tired. Consider a short break.",
        "lookAway": "Stay focused on your task!",
    }

    def __init__(self, font_path: str = "SimHei"):
        """初始化中文字体，字体不存在时回退到 OpenCV 默认英文字体。"""
        self._pil_font = None
        self._use_pil = False

        try:
            font = self._try_load_font(font_path)
            if font is not None:
                self._pil_font = font
                self._use_pil = True
        except ImportError:
            self._use_pil = False

    @staticmethod
    def _try_load_font(font_path: str):
        """尝试加载字体文件，返回 PIL ImageFont 或 None。"""
        from PIL import ImageFont

        try:
            return ImageFont.truetype(font_path, 20)
        except (OSError, IOError):
            pass

        common_paths = [
            "/usr/share/fonts/truetype/simhei/SimHei.ttf",
            "/usr/share/fonts/SimHei.ttf",
            "C:\\Windows\\Fonts\\simhei.ttf",
            "/System/Library/Fonts/STHeiti Medium.ttc",
        ]
        for path in common_paths:
            try:
                return ImageFont.truetype(path, 20)
            except (OSError, IOError):
                continue

        return None

    def render(
        self,
        frame: np.ndarray,
        landmarks: Optional[LandmarkFrame],
        analysis: Optional[FrameAnalysis],
        state: DetectionState,
        status: str,
        remaining_seconds: int,
        alert: Optional[str] = None,
    ) -> np.ndarray:
        """渲染检测结果到视频帧，返回渲染后的帧图像。"""
        output = frame.copy()

        if landmarks is not None:
            self._draw_landmarks(output, landmarks)

        self._draw_counters(output, analysis, state)
        self._draw_status(output, status, remaining_seconds)

        if alert is not None:
            self._draw_alert(output, alert)

        return output

    @staticmethod
    def _draw_landmarks(frame: np.ndarray, landmarks: LandmarkFrame) -> None:
        """绘制人脸关键点（绿色小圆点），归一化坐标换算为像素。"""
        h, w = frame.shape[:2]
        for x, y, _ in landmarks.points:
            cv2.circle(frame, (int(x * w), int(y * h)), 1, GREEN, -1)

    def _draw_counters(
        self,
        frame: np.ndarray,
        analysis: Optional[FrameAnalysis],
        state: DetectionState,
    ) -> None:
        """左上角绘制各事件计数（进行中为红色）和专注度。"""
        blinking = analysis is not None and analysis.is_blinking
        yawning = analysis is not None and analysis.is_yawning
        looking_away = analysis is not None and analysis.is_looking_away
        level = analysis.focus_level if analysis is not None else state.focus_level

        if self._use_pil:
            labels = ["眨眼", "哈欠", "视线偏离", "专注度"]
        else:
            labels = ["Blink", "Yawn", "Look Away", "Focus"]

        lines = [
            (f"{labels[0]}: {state.blink_count}", RED if blinking else GREEN),
            (f"{labels[1]}: {state.yawn_count}", RED if yawning else GREEN),
            (f"{labels[2]}: {state.look_away_count}", RED if looking_away else GREEN),
            (f"{labels[3]}: {level}%", focus_color(level)),
        ]

        y = 30
        for text, color in lines:
            self._draw_text(frame, text, (10, y), color)
            y += 28

    def _draw_status(self, frame: np.ndarray, status: str, remaining_seconds: int) -> None:
        """右上角绘制会话状态和剩余时间。"""
        h, w = frame.shape[:2]
        if self._use_pil:
            label = self._STATUS_TEXT.get(status, status)
        else:
            label = self._STATUS_TEXT_EN.get(status, status)
        text = f"{label} {format_duration(remaining_seconds)}"
        self._draw_text(frame, text, (w - 200, 30), CYAN)

    def _draw_alert(self, frame: np.ndarray, kind: str) -> None:
        """底部居中显示分心提醒。"""
        h, w = frame.shape[:2]

        if self._use_pil:
            message = DISTRACTION_MESSAGES.get(kind, kind)
            self._draw_text(frame, message, (20, h - 50), YELLOW)
            return

        message = self._ALERT_TEXT_EN.get(kind, kind)
        font_scale = 0.8
        thickness = 2
        (text_w, text_h), _ = cv2.getTextSize(
            message, cv2.FONT_HERSHEY_SIMPLEX, font_scale, thickness
        )
        x = max(0, (w - text_w) // 2)
        y = h - 30
        cv2.putText(
            frame, message, (x, y),
            cv2.FONT_HERSHEY_SIMPLEX, font_scale, YELLOW, thickness,
        )

    def _draw_text(self, frame: np.ndarray, text: str, origin: tuple, color: tuple) -> None:
        """绘制单行文字：有中文字体时用 PIL（BGR color -> RGB fill），否则用 OpenCV。"""
        if not self._use_pil:
            cv2.putText(
                frame, text, origin,
                cv2.FONT_HERSHEY_SIMPLEX, 0.7, color, 2,
            )
            return

        from PIL import Image, ImageDraw

        img_pil = Image.fromarray(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))
        draw = ImageDraw.Draw(img_pil)
        fill = (color[2], color[1], color[0])
        x, y = origin
        draw.text((x, y - 20), text, font=self._pil_font, fill=fill)
        frame[:] = cv2.cvtColor(np.array(img_pil), cv2.COLOR_RGB2BGR)
