import pytest

from errors import ValidationError
from schemas import SelectedSession
from timetable import find_conflicts, selectable_sessions, time_to_minutes


def session(id, weekday, start, end, code="COMP1001", class_no="L1", campus="Main"):
    return SelectedSession(
        id=id, weekday=weekday, startTime=start, endTime=end, code=code, classNo=class_no, campus=campus
    )


def test_time_to_minutes():
    assert time_to_minutes("08:00") == 480
    assert time_to_minutes("13:45") == 825
    assert time_to_minutes("9") == 540


def test_time_to_minutes_rejects_garbage():
    with pytest.raises(ValidationError):
        time_to_minutes("ab:cd")


def test_overlapping_sessions_conflict_once():
    a = session("a", 1, "08:00", "10:00", code="COMP1001", class_no="L1", campus="Main")
    b = session("b", 1, "09:00", "11:00", code="MATH2002", class_no="T3", campus="East")

    conflicts = find_conflicts([a, b])

    assert conflicts == [
        {
            "course1": "COMP1001 (L1)",
            "course2": "MATH2002 (T3)",
            "day": "Mon",
            "time": "08:00-10:00",
            "campus1": "Main",
            "campus2": "East",
        }
    ]


def test_back_to_back_sessions_do_not_conflict():
    a = session("a", 1, "08:00", "10:00")
    b = session("b", 1, "10:00", "12:00")
    assert find_conflicts([a, b]) == []


def test_different_weekdays_never_conflict():
    a = session("a", 1, "08:00", "10:00")
    b = session("b", 2, "08:00", "10:00")
    assert find_conflicts([a, b]) == []


def test_each_pair_reported_once():
    sessions = [
        session("a", 3, "09:00", "12:00", code="A"),
        session("b", 3, "10:00", "11:00", code="B"),
        session("c", 3, "11:30", "13:00", code="C"),
    ]

    pairs = [(c["course1"], c["course2"]) for c in find_conflicts(sessions)]

    assert pairs == [("A (L1)", "B (L1)"), ("A (L1)", "C (L1)")]
    assert len(set(frozenset(p) for p in pairs)) == len(pairs)


def test_time_window_is_first_session():
    a = session("a", 0, "14:00", "15:00", code="A")
    b = session("b", 0, "13:00", "16:00", code="B")
    conflicts = find_conflicts([a, b])
    assert conflicts[0]["time"] == "14:00-15:00"
    assert conflicts[0]["day"] == "Sun"


def test_empty_and_single_selection():
    assert find_conflicts([]) == []
    assert find_conflicts([session("a", 1, "08:00", "10:00")]) == []


def test_selectable_sessions_flattens_course_timetable():
    course = {
        "code": "COMP1001",
        "title": "Intro to Programming",
        "timetable": [
            {"weekday": 1, "startTime": "08:30", "endTime": "10:20", "room": "LT1", "classNo": "L1", "campus": "Main"},
            {"weekday": 3, "startTime": "14:30", "endTime": "15:20", "room": "R201", "classNo": "T1"},
        ],
    }

    sessions = selectable_sessions(course)

    assert [s.id for s in sessions] == ["COMP1001-L1-0", "COMP1001-T1-1"]
    assert sessions[0].title == "Intro to Programming"
    assert sessions[1].campus == ""
