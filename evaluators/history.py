"""历史会话统计模块"""

from typing import List

from models.data_models import SessionRecord, SessionStats

TREND_WINDOW = 7


def _mean_rate(sessions: List[SessionRecord]) -> float:
    return sum(s.average_blink_rate for s in sessions) / len(sessions)


def compute_session_stats(
    sessions: List[SessionRecord],
    current_rate: int = 0,
    current_time: int = 0,
) -> SessionStats:
    """
    汇总历史会话。

    improvement_trend 为最近 7 次与之前 7 次平均眨眼频率的变化百分比；
    没有历史记录时以当前会话数值代替。
    """
    if not sessions:
        return SessionStats(
            average_blink_rate=float(current_rate),
            total_sessions=1,
            total_time=current_time,
            improvement_trend=0,
        )

    total_time = sum(s.duration for s in sessions)
    average = _mean_rate(sessions)

    recent = sessions[-TREND_WINDOW:]
    previous = sessions[-2 * TREND_WINDOW:-TREND_WINDOW]

    trend = 0.0
    if previous and recent:
        previous_avg = _mean_rate(previous)
        if previous_avg > 0:
            trend = (_mean_rate(recent) - previous_avg) / previous_avg * 100

    return SessionStats(
        average_blink_rate=round(average, 1),
        total_sessions=len(sessions),
        total_time=total_time,
        improvement_trend=round(trend),
    )
