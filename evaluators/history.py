"""历史会话统计"""

from typing import Iterable

from models.data_models import HistoryStats, SessionSummary


def summarize_history(summaries: Iterable[SessionSummary]) -> HistoryStats:
    """汇总已完成会话的平均分（保留一位小数）、总时长、眨眼与哈欠总数"""
    summaries = list(summaries)
    if summaries:
        avg_score = sum(s.focus_score for s in summaries) / len(summaries)
    else:
        avg_score = 0.0

    return HistoryStats(
        avg_score=round(avg_score * 10) / 10,
        total_sessions=len(summaries),
        total_duration=sum(s.duration_seconds for s in summaries),
        total_blinks=sum(s.blink_count for s in summaries),
        total_yawns=sum(s.yawn_count for s in summaries),
    )
