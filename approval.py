"""
Admin approval workflow for accounts and course requests.

A pending record either gets promoted into its permanent collection (approve) or
deleted (reject). Both outcomes remove the pending record, so any later
transition on the same key fails with NotFound and changes nothing.
"""
import logging
import secrets
from enum import Enum
from typing import Any, Dict, Optional

from passlib.hash import bcrypt
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import BlobStore, decode_file_data
from errors import Conflict, NotFound, ValidationError
from schemas import Course, PendingAccount, PendingCourse, User

logger = logging.getLogger(__name__)

INITIAL_CREDITS = 3


class ApprovalState(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


def generate_user_token(sid: str) -> str:
    return f"{sid}-{secrets.token_urlsafe(24)}"


def _log_transition(kind: str, key: str, state: ApprovalState) -> None:
    logger.info("%s %s -> %s", kind, key, state.value)


# ----------------------
# Accounts
# ----------------------

def submit_account(
    db: Database,
    blobs: BlobStore,
    sid: str,
    email: str,
    password: str,
    photo_data: str,
    file_name: str = "student_card.jpg",
) -> Dict[str, Any]:
    sid = sid.strip()
    email = email.lower().strip()
    if not sid or not password or not photo_data:
        raise ValidationError("Missing required fields")
    clash = {"$or": [{"sid": sid}, {"email": email}]}
    if db["users"].find_one(clash) or db["pending_accounts"].find_one(clash):
        raise Conflict("User already exists or pending approval")

    photo = decode_file_data(photo_data)
    photo_id = blobs.put(
        photo,
        file_name,
        {
            "originalName": file_name,
            "mimetype": "image/jpeg",
            "size": len(photo),
            "uploadedBy": sid,
            "type": "student_card",
            "status": "pending_approval",
        },
    )
    doc = PendingAccount(
        sid=sid, email=email, password_hash=bcrypt.hash(password), photoFileId=photo_id
    ).model_dump()
    try:
        db["pending_accounts"].insert_one(doc)
    except DuplicateKeyError:
        blobs.delete(photo_id)
        raise Conflict("User already exists or pending approval")
    _log_transition("account", sid, ApprovalState.PENDING)
    return doc


def approve_account(db: Database, sid: str) -> Dict[str, Any]:
    pending = db["pending_accounts"].find_one({"sid": sid})
    if not pending:
        raise NotFound("Pending account not found")
    user = User(
        sid=pending["sid"],
        email=pending["email"],
        password_hash=pending["password_hash"],
        photoFileId=pending.get("photoFileId"),
        role="user",
        token=generate_user_token(pending["sid"]),
        credits=INITIAL_CREDITS,
    ).model_dump()
    try:
        db["users"].insert_one(user)
    except DuplicateKeyError:
        raise Conflict("A user with this sid or email already exists")
    db["pending_accounts"].delete_one({"_id": pending["_id"]})
    _log_transition("account", sid, ApprovalState.APPROVED)
    return user


def reject_account(db: Database, sid: str, blobs: Optional[BlobStore] = None) -> None:
    pending = db["pending_accounts"].find_one_and_delete({"sid": sid})
    if not pending:
        raise NotFound("Pending account not found")
    if blobs is not None and pending.get("photoFileId") is not None:
        blobs.delete(pending["photoFileId"])
    _log_transition("account", sid, ApprovalState.REJECTED)


# ----------------------
# Courses
# ----------------------

def submit_course_request(db: Database, requester_sid: str, code: str, title: str) -> Dict[str, Any]:
    code = code.strip().upper()
    title = title.strip()
    if not code or not title:
        raise ValidationError("Course code and title are required")
    if db["courses"].find_one({"code": code}):
        raise Conflict("Course already exists")
    doc = PendingCourse(code=code, title=title, requestedBy=requester_sid).model_dump()
    try:
        db["pending_courses"].insert_one(doc)
    except DuplicateKeyError:
        raise Conflict("Course request already pending")
    _log_transition("course", code, ApprovalState.PENDING)
    return doc


def approve_course(db: Database, code: str) -> Dict[str, Any]:
    code = code.upper()
    pending = db["pending_courses"].find_one({"code": code})
    if not pending:
        raise NotFound("Pending course not found")
    course = Course(
        code=pending["code"], title=pending["title"], requestedBy=pending.get("requestedBy")
    ).model_dump()
    try:
        db["courses"].insert_one(course)
    except DuplicateKeyError:
        raise Conflict("Course already exists")
    db["pending_courses"].delete_one({"_id": pending["_id"]})
    _log_transition("course", code, ApprovalState.APPROVED)
    return course


def reject_course(db: Database, code: str) -> None:
    if not db["pending_courses"].find_one_and_delete({"code": code.upper()}):
        raise NotFound("Pending course not found")
    _log_transition("course", code.upper(), ApprovalState.REJECTED)
