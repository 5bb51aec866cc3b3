"""会话结束评分模块：最终专注分、分档建议标签和单项指标建议

get_recommendations 按分数分档给出固定标签；get_specific_recommendations
独立地按眨眼频率、哈欠次数、视线偏离频率逐项给出建议。两者互不依赖，
由展示层决定如何组合。
"""

import math
from typing import List, Optional

from models.data_models import Advisory, SessionSummary


def _per_minute(count: float, duration: float) -> float:
    minutes = duration / 60.0
    return count / minutes if minutes > 0 else 0.0


def calculate_focus_score(
    duration: float,
    blink_count: int,
    yawn_count: int,
    look_away_count: int,
    distraction_time: float,
) -> int:
    """
    计算会话最终专注分。

    Args:
        duration: 会话时长（秒），负数按 0 处理
        blink_count: 眨眼次数
        yawn_count: 哈欠次数
        look_away_count: 视线偏离次数
        distraction_time: 累计分心时间（秒）

    Returns:
        [0, 100] 之间的整数分
    """
    duration = max(0.0, duration)
    blink_rate = _per_minute(blink_count, duration)
    distraction_ratio = distraction_time / duration if duration > 0 else 0.0

    score = 100.0
    score -= min(blink_rate * 2, 20)
    score -= min(yawn_count * 5, 15)
    score -= min(look_away_count * 3, 15)
    score -= min(distraction_ratio * 50, 40)

    # 四舍五入（.5 向上）
    return max(0, min(100, math.floor(score + 0.5)))


def get_recommendations(score: int) -> List[str]:
    """按分数分档返回建议标签，结果不为空"""
    if score >= 90:
        return ["great_job", "keep_it_up", "excellent_focus"]
    if score >= 70:
        return ["good_job", "maintain_posture", "stay_hydrated"]
    if score >= 50:
        return ["take_break", "hydrate", "adjust_lighting", "check_posture"]
    return ["take_break", "hydrate", "adjust_lighting", "meditate", "sleep_more"]


def get_specific_recommendations(
    blink_count: int,
    yawn_count: int,
    look_away_count: int,
    duration: float,
) -> List[Advisory]:
    """
    按单项指标给出建议，没有任何问题时返回一条 "good"。

    正常眨眼频率约 15-20 次/分钟。
    """
    advisories: List[Advisory] = []

    blink_rate = _per_minute(blink_count, duration)
    if blink_rate > 25:
        advisories.append(Advisory(
            type="blink",
            message="眨眼过于频繁",
            tip="眼睛可能干涩或疲劳：闭眼休息 20 秒，调整屏幕亮度，遵循 20-20-20 法则。",
        ))
    elif blink_rate < 5 and blink_count > 0:
        advisories.append(Advisory(
            type="blink",
            message="眨眼次数少于正常水平",
            tip="眨眼过少容易导致眼干：有意识地多眨眼，多喝水，保持室内湿度。",
        ))

    if yawn_count >= 3:
        advisories.append(Advisory(
            type="yawn",
            message="出现明显困倦迹象",
            tip="你可能已经疲劳：喝杯水，起身伸展 2-3 分钟，深呼吸，条件允许时休息 10-15 分钟。",
        ))
    elif yawn_count == 2:
        advisories.append(Advisory(
            type="yawn",
            message="可能有些疲劳",
            tip="喝点水，调整坐姿，开窗换换空气。",
        ))

    look_away_rate = _per_minute(look_away_count, duration)
    if look_away_rate > 4:
        advisories.append(Advisory(
            type="lookAway",
            message="视线离开屏幕过于频繁",
            tip="注意力较分散：关闭无关标签页，手机开启专注模式，尝试番茄工作法。",
        ))
    elif look_away_rate > 2:
        advisories.append(Advisory(
            type="lookAway",
            message="有视线离开屏幕的倾向",
            tip="找出分心来源，把无关想法记下来稍后处理，为每 10 分钟设定一个小目标。",
        ))

    if not advisories:
        advisories.append(Advisory(
            type="good",
            message="专注状态很好",
            tip="继续保持正确坐姿、充足饮水和规律休息。",
        ))

    return advisories


def finalize_session(
    duration_seconds: float,
    blink_count: int = 0,
    yawn_count: int = 0,
    look_away_count: int = 0,
    distraction_time_seconds: float = 0.0,
    session_id: Optional[str] = None,
) -> SessionSummary:
    """根据会话时长和累计指标生成最终汇总"""
    duration = max(0, int(duration_seconds))
    score = calculate_focus_score(
        duration, blink_count, yawn_count, look_away_count, distraction_time_seconds,
    )
    return SessionSummary(
        duration_seconds=duration,
        blink_count=blink_count,
        yawn_count=yawn_count,
        look_away_count=look_away_count,
        distraction_time_seconds=distraction_time_seconds,
        focus_score=score,
        recommendations=tuple(get_recommendations(score)),
        session_id=session_id,
    )
