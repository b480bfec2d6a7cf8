"""
Timetable conflict detection.

Sessions overlap when they share a weekday and their half-open [start, end)
windows intersect, so back-to-back classes are not a conflict.
"""
from typing import Dict, List, Sequence

from errors import ValidationError
from schemas import SelectedSession

WEEKDAY_NAMES = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]


def time_to_minutes(value: str) -> int:
    parts = value.strip().split(":")
    try:
        hours = int(parts[0])
        minutes = int(parts[1]) if len(parts) > 1 and parts[1] else 0
    except ValueError:
        raise ValidationError(f"Invalid time: {value}")
    return hours * 60 + minutes


def overlaps(a: SelectedSession, b: SelectedSession) -> bool:
    if a.weekday != b.weekday:
        return False
    start = max(time_to_minutes(a.startTime), time_to_minutes(b.startTime))
    end = min(time_to_minutes(a.endTime), time_to_minutes(b.endTime))
    return start < end


def find_conflicts(sessions: Sequence[SelectedSession]) -> List[Dict[str, str]]:
    conflicts = []
    for i, first in enumerate(sessions):
        for second in sessions[i + 1:]:
            if not overlaps(first, second):
                continue
            conflicts.append(
                {
                    "course1": f"{first.code} ({first.classNo})",
                    "course2": f"{second.code} ({second.classNo})",
                    "day": WEEKDAY_NAMES[first.weekday],
                    # window reported is the first session's own slot
                    "time": f"{first.startTime}-{first.endTime}",
                    "campus1": first.campus,
                    "campus2": second.campus,
                }
            )
    return conflicts


def selectable_sessions(course: dict) -> List[SelectedSession]:
    """Flatten a course document's timetable into planner sessions."""
    sessions = []
    for index, session in enumerate(course.get("timetable") or []):
        sessions.append(
            SelectedSession(
                id=f"{course['code']}-{session.get('classNo', '')}-{index}",
                weekday=session["weekday"],
                startTime=session["startTime"],
                endTime=session["endTime"],
                code=course["code"],
                classNo=session.get("classNo", ""),
                campus=session.get("campus", ""),
                title=course.get("title", ""),
                room=session.get("room", ""),
            )
        )
    return sessions
