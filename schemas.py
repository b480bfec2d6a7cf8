"""
Database Schemas for the EFS Platform

Each Pydantic model corresponds to a MongoDB collection, except CourseSession and
SelectedSession which are embedded documents. Collection names are snake_case plurals
(e.g., PendingAccount -> "pending_accounts").
"""
from datetime import datetime, timezone
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

Role = Literal["user", "admin"]
QuestionnaireStatus = Literal["open", "closed"]

TIME_PATTERN = r"^\d{1,2}(:\d{2})?$"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class User(BaseModel):
    sid: str = Field(..., description="Student identifier")
    email: EmailStr
    password_hash: str
    photoFileId: Optional[Any] = Field(None, description="GridFS id of the identity photo")
    role: Role = "user"
    token: Optional[str] = Field(None, description="Opaque session token issued on approval")
    credits: int = Field(3, ge=0)
    gpa: Optional[float] = None
    dse_score: Optional[str] = None
    phone: Optional[str] = None
    major: Optional[str] = None
    skills: List[str] = []
    courses: List[str] = []
    year_of_study: int = 1
    about_me: str = ""
    createdAt: datetime = Field(default_factory=_now)
    updatedAt: datetime = Field(default_factory=_now)


class PendingAccount(BaseModel):
    sid: str
    email: EmailStr
    password_hash: str
    photoFileId: Optional[Any] = None
    createdAt: datetime = Field(default_factory=_now)


class CourseSession(BaseModel):
    """One scheduled meeting block of a course; weekday 0 is Sunday."""
    weekday: int = Field(..., ge=0, le=6)
    startTime: str = Field(..., pattern=TIME_PATTERN)
    endTime: str = Field(..., pattern=TIME_PATTERN)
    room: str = ""
    classNo: str = ""
    campus: str = ""


class Material(BaseModel):
    id: str
    name: str
    description: str = ""
    fileName: str
    fileId: Any
    size: int
    mimetype: str = "application/octet-stream"
    uploadedBy: str
    uploadedAt: datetime = Field(default_factory=_now)
    downloads: int = 0
    courseCode: str
    courseName: str = ""


class Course(BaseModel):
    code: str
    title: str
    description: str = ""
    timetable: List[CourseSession] = []
    materials: List[Material] = []
    status: Literal["active"] = "active"
    requestedBy: Optional[str] = None
    createdAt: datetime = Field(default_factory=_now)
    updatedAt: datetime = Field(default_factory=_now)


class PendingCourse(BaseModel):
    code: str
    title: str
    requestedBy: str
    createdAt: datetime = Field(default_factory=_now)


class GroupRequest(BaseModel):
    sid: str
    major: str
    description: str = ""
    email: str = ""
    phone: str = ""
    desired_groupmates: str = ""
    gpa: Optional[float] = None
    dse_score: str = ""
    status: Literal["active"] = "active"
    createdAt: datetime = Field(default_factory=_now)
    updatedAt: datetime = Field(default_factory=_now)


class Questionnaire(BaseModel):
    creatorSid: str
    description: str
    link: str
    targetResponses: int = Field(..., ge=1)
    currentResponses: int = 0
    status: QuestionnaireStatus = "open"
    createdAt: datetime = Field(default_factory=_now)


class QuestionnaireFill(BaseModel):
    """One row per (questionnaire, filler); unique index enforces a single fill."""
    questionnaireId: Any
    sid: str
    createdAt: datetime = Field(default_factory=_now)


class SelectedSession(BaseModel):
    """A course session as picked in the timetable planner."""
    id: str
    weekday: int = Field(..., ge=0, le=6)
    startTime: str = Field(..., pattern=TIME_PATTERN)
    endTime: str = Field(..., pattern=TIME_PATTERN)
    code: str
    classNo: str = ""
    campus: str = ""
    title: str = ""
    room: str = ""


class UserTimetable(BaseModel):
    sid: str
    courses: List[SelectedSession] = []
    updatedAt: datetime = Field(default_factory=_now)
