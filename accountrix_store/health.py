"""Session health report computed from stored sessions."""
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field

from .data import Session, utcnow

RISKY_SCORE = 70

_GRADES = ((90, "A"), (80, "B"), (70, "C"), (60, "D"))


class HealthFactors(BaseModel):
    active_session_count: int = 0
    old_session_count: int = 0
    mobile_session_count: int = 0
    unknown_location_count: int = 0
    risky_sessions: int = 0


class HealthReport(BaseModel):
    score: int
    grade: str
    factors: HealthFactors
    recommendations: list[str] = Field(default_factory=list)


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def score_grade(score: int) -> str:
    for threshold, grade in _GRADES:
        if score >= threshold:
            return grade
    return "F"


def recommendations(factors: HealthFactors) -> list[str]:
    tips = []
    if factors.old_session_count > 3:
        tips.append("Consider revoking old sessions that haven't been used recently")
    if factors.unknown_location_count > 2:
        tips.append("Review sessions with unknown locations for potential security risks")
    if factors.risky_sessions > 0:
        tips.append("Investigate high-risk sessions immediately")
    if factors.active_session_count > 10:
        tips.append("You have many active sessions - consider cleaning up unused ones")
    if not tips:
        tips.append("Your session security looks good! Keep monitoring regularly.")
    return tips


def session_health_score(
    sessions: Iterable[Session], now: Optional[datetime] = None,
) -> HealthReport:
    """Score a set of sessions from 0 (poor) to 100 (healthy).

    Recently used sessions raise the score; stale, unknown-location and
    high-risk sessions lower it. The raw total is offset by 50 and clamped.
    """
    now = _aware(now or utcnow())
    factors = HealthFactors()
    total = 0
    for session in sessions:
        days = (now - _aware(session.last_active)).total_seconds() / 86400
        if days < 7:
            factors.active_session_count += 1
            total += 10
        elif days < 30:
            total += 5
        else:
            factors.old_session_count += 1
            total -= 5

        if session.platform == "Mobile":
            factors.mobile_session_count += 1
            total += 2
        if session.location == "Unknown":
            factors.unknown_location_count += 1
            total -= 3
        if session.risk_score and session.risk_score > RISKY_SCORE:
            factors.risky_sessions += 1
            total -= 10

    score = max(0, min(100, total + 50))
    return HealthReport(
        score=score,
        grade=score_grade(score),
        factors=factors,
        recommendations=recommendations(factors),
    )
