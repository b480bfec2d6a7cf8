import logging
import os
from urllib.parse import quote
from datetime import datetime, timezone
from typing import Optional, List, Any, Dict

import nanoid
from bson import ObjectId
from fastapi import FastAPI, Depends, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse, StreamingResponse
from passlib.hash import bcrypt
from pydantic import BaseModel, EmailStr, Field
from pydantic import ValidationError as SchemaError
from pymongo import DESCENDING
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

import approval
import ledger
import schemas
from database import (
    ADMIN_SID,
    BlobStore,
    connect,
    decode_file_data,
    ensure_indexes,
    get_blobs,
    get_db,
    now,
    oid,
    seed_admin,
)
from errors import ApiError, AuthenticationRequired, Conflict, Forbidden, NotFound, ServerError, ValidationError
from timetable import find_conflicts, selectable_sessions

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("efs")

app = FastAPI(title="EFS Platform API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ----------------------
# Utils
# ----------------------


def serialize_doc(value: Any) -> Any:
    if isinstance(value, list):
        return [serialize_doc(v) for v in value]
    if isinstance(value, dict):
        out: Dict[str, Any] = {}
        for k, v in value.items():
            if k == "_id":
                out["_id"] = serialize_doc(v)
                out.setdefault("id", out["_id"])
            elif k != "password_hash":
                out[k] = serialize_doc(v)
        return out
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat()
    return value


def ok(data: Any = None, message: Optional[str] = None, **extra) -> Dict[str, Any]:
    body: Dict[str, Any] = {"ok": True}
    if data is not None:
        body["data"] = serialize_doc(data)
    if message:
        body["message"] = message
    body.update(extra)
    return body


def attachment_header(filename: str) -> str:
    """Content-Disposition with an ASCII fallback plus the RFC 5987 UTF-8 name."""
    fallback = "".join(c for c in filename if 32 <= ord(c) < 127 and c not in '"\\').strip()
    if not fallback.strip("."):
        fallback = "download"
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


# ----------------------
# Request Models
# ----------------------


class RegisterRequest(BaseModel):
    sid: str
    email: EmailStr
    password: str
    photoData: str
    fileName: str = "student_card.jpg"


class LoginRequest(BaseModel):
    sid: Optional[str] = None
    email: Optional[str] = None
    password: str


class ProfileUpdate(BaseModel):
    major: Optional[str] = None
    gpa: Optional[float] = Field(None, ge=0)
    dse_score: Optional[str] = None
    phone: Optional[str] = None
    skills: Optional[List[str]] = None
    year_of_study: Optional[int] = Field(None, ge=1)
    about_me: Optional[str] = None


class CourseCreate(BaseModel):
    code: str
    title: str
    description: str = ""
    timetable: List[schemas.CourseSession] = []


class CourseUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    timetable: Optional[List[schemas.CourseSession]] = None


class CourseRequest(BaseModel):
    code: str
    title: str


class CalendarSave(BaseModel):
    sid: Optional[str] = None
    courses: List[schemas.SelectedSession] = []


class ConflictCheck(BaseModel):
    courses: List[schemas.SelectedSession] = []


class GroupRequestCreate(BaseModel):
    major: Optional[str] = None
    description: str = ""
    email: Optional[str] = None
    phone: Optional[str] = None
    desired_groupmates: str = ""
    gpa: Optional[float] = None
    dse_score: Optional[str] = None


class QuestionnaireCreate(BaseModel):
    description: str
    link: str
    targetResponses: int = Field(30, ge=1)


class CreditGrant(BaseModel):
    amount: Any = None


class MaterialUpload(BaseModel):
    fileData: str
    fileName: str
    fileType: str = "application/octet-stream"
    name: Optional[str] = None
    description: str = ""


# ----------------------
# Auth helpers
# ----------------------


def get_current_user(x_sid: Optional[str] = Header(None), db: Database = Depends(get_db)) -> dict:
    if not x_sid:
        raise AuthenticationRequired()
    user = db["users"].find_one({"sid": x_sid})
    if not user:
        raise NotFound("User not found")
    return user


def require_admin(x_sid: Optional[str] = Header(None), db: Database = Depends(get_db)) -> dict:
    if not x_sid:
        raise AuthenticationRequired()
    user = db["users"].find_one({"sid": x_sid})
    if not user or user.get("role") != "admin":
        raise Forbidden("Admin access required")
    return user


# ----------------------
# Error handlers
# ----------------------


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    return JSONResponse(status_code=exc.status_code, content={"ok": False, "error": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"ok": False, "error": str(exc.detail)})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"{field}: {first.get('msg')}" if field else first.get("msg")
    else:
        message = ValidationError.default_message
    return JSONResponse(status_code=ValidationError.status_code, content={"ok": False, "error": message})


@app.exception_handler(PyMongoError)
async def store_error_handler(request: Request, exc: PyMongoError):
    logger.error("Store failure on %s %s: %s", request.method, request.url.path, exc, exc_info=exc)
    return JSONResponse(status_code=ServerError.status_code, content={"ok": False, "error": ServerError.default_message})


# ----------------------
# Lifecycle
# ----------------------


@app.on_event("startup")
def startup():
    client, db = connect()
    app.state.mongo_client = client
    app.state.db = db
    app.state.blobs = BlobStore(db)
    # don't crash startup if the database is unreachable; requests will report it
    try:
        ensure_indexes(db)
        seed_admin(db)
    except PyMongoError:
        logger.exception("Database initialisation failed")


@app.on_event("shutdown")
def shutdown():
    client = getattr(app.state, "mongo_client", None)
    if client is not None:
        client.close()
        logger.info("MongoDB client closed")


# ----------------------
# Basic routes
# ----------------------
@app.get("/")
def root():
    return {"ok": True, "message": "Welcome to EFS Platform API", "version": app.version}


@app.get("/api/health")
def health():
    return {"ok": True, "message": "EFS API Server is running", "timestamp": now().isoformat()}


@app.get("/test")
def test_database(db: Database = Depends(get_db)):
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
        "database_name": "✅ Set" if os.getenv("DATABASE_NAME") else "❌ Not Set",
        "connection_status": "Not Connected",
        "collections": [],
    }
    try:
        response["collections"] = db.list_collection_names()
        response["database"] = "✅ Connected & Working"
        response["connection_status"] = "Connected"
    except PyMongoError as e:
        response["database"] = f"⚠️ Connected but error: {str(e)[:80]}"
    return response


@app.get("/schema")
def get_schema():
    return {
        "users": schemas.User.model_json_schema(),
        "pending_accounts": schemas.PendingAccount.model_json_schema(),
        "courses": schemas.Course.model_json_schema(),
        "pending_courses": schemas.PendingCourse.model_json_schema(),
        "group_requests": schemas.GroupRequest.model_json_schema(),
        "questionnaires": schemas.Questionnaire.model_json_schema(),
        "questionnaire_fills": schemas.QuestionnaireFill.model_json_schema(),
        "materials": schemas.Material.model_json_schema(),
        "user_timetables": schemas.UserTimetable.model_json_schema(),
    }


# ----------------------
# Auth endpoints
# ----------------------
@app.post("/api/auth/register")
def register(
    payload: RegisterRequest,
    db: Database = Depends(get_db),
    blobs: BlobStore = Depends(get_blobs),
):
    approval.submit_account(
        db, blobs, payload.sid, payload.email, payload.password, payload.photoData, payload.fileName
    )
    logger.info("New account request from %s (%s)", payload.sid, payload.email)
    return ok(message="Account request submitted. Awaiting admin approval.")


@app.post("/api/auth/login")
def login(payload: LoginRequest, db: Database = Depends(get_db)):
    if not payload.sid and not payload.email:
        raise ValidationError("sid or email is required")
    query = {"sid": payload.sid} if payload.sid else {"email": payload.email.lower().strip()}
    user = db["users"].find_one(query)
    if not user:
        if db["pending_accounts"].find_one(query):
            raise Forbidden("Account pending approval")
        raise AuthenticationRequired("Invalid credentials")
    if not bcrypt.verify(payload.password, user.get("password_hash", "")):
        raise AuthenticationRequired("Invalid credentials")
    return ok(
        user,
        sid=user["sid"],
        email=user.get("email"),
        role=user.get("role"),
        isAdmin=user.get("role") == "admin",
        credits=user.get("credits", 0),
        token=user.get("token"),
    )


@app.get("/api/auth/session")
def session(sid: str, db: Database = Depends(get_db)):
    user = db["users"].find_one({"sid": sid})
    if not user:
        raise NotFound("User not found")
    return {"ok": True, "authenticated": True, "user": serialize_doc(user)}


# ----------------------
# Profile endpoints
# ----------------------
@app.get("/api/me")
@app.get("/api/profile/me")
def me(current=Depends(get_current_user)):
    return ok(current)


@app.put("/api/profile/update")
def update_profile(update: ProfileUpdate, current=Depends(get_current_user), db: Database = Depends(get_db)):
    data = {k: v for k, v in update.model_dump().items() if v is not None}
    if not data:
        return ok(current)
    data["updatedAt"] = now()
    db["users"].update_one({"_id": current["_id"]}, {"$set": data})
    refreshed = db["users"].find_one({"_id": current["_id"]})
    return ok(refreshed, message="Profile updated")


# ----------------------
# Course endpoints
# ----------------------
@app.get("/api/courses/list")
def list_courses(db: Database = Depends(get_db)):
    return ok(list(db["courses"].find().sort("code", 1)))


@app.post("/api/courses/request")
def request_course(body: CourseRequest, current=Depends(get_current_user), db: Database = Depends(get_db)):
    doc = approval.submit_course_request(db, current["sid"], body.code, body.title)
    return ok(doc, message="Course request submitted for admin approval")


@app.get("/api/courses/{code}")
def get_course(code: str, db: Database = Depends(get_db)):
    course = db["courses"].find_one({"code": code.upper()})
    if not course:
        raise NotFound("Course not found")
    return ok(course)


@app.post("/api/courses")
def create_course(body: CourseCreate, admin=Depends(require_admin), db: Database = Depends(get_db)):
    code = body.code.strip().upper()
    if not code or not body.title.strip():
        raise ValidationError("Course code and title are required")
    doc = schemas.Course(
        code=code, title=body.title.strip(), description=body.description, timetable=body.timetable
    ).model_dump()
    try:
        db["courses"].insert_one(doc)
    except DuplicateKeyError:
        raise Conflict("Course already exists")
    return ok(doc, message="Course created")


@app.put("/api/courses/{code}")
def update_course(code: str, body: CourseUpdate, admin=Depends(require_admin), db: Database = Depends(get_db)):
    data = body.model_dump(exclude_none=True)
    data["updatedAt"] = now()
    result = db["courses"].update_one({"code": code.upper()}, {"$set": data})
    if result.matched_count == 0:
        raise NotFound("Course not found")
    return ok(db["courses"].find_one({"code": code.upper()}), message="Course updated")


# ----------------------
# Calendar endpoints
# ----------------------
@app.get("/api/calendar/courses")
def calendar_courses(db: Database = Depends(get_db)):
    sessions = []
    for course in db["courses"].find().sort("code", 1):
        sessions.extend(s.model_dump() for s in selectable_sessions(course))
    return ok(sessions)


@app.get("/api/calendar/mytimetable")
def my_timetable(current=Depends(get_current_user), db: Database = Depends(get_db)):
    saved = db["user_timetables"].find_one({"sid": current["sid"]})
    sessions = []
    for stored in (saved or {}).get("courses", []):
        try:
            sessions.append(schemas.SelectedSession(**stored))
        except (SchemaError, TypeError):
            logger.warning("Skipping unreadable saved session for %s: %r", current["sid"], stored)
    return ok([s.model_dump() for s in sessions], conflicts=find_conflicts(sessions))


@app.post("/api/calendar/save")
def save_timetable(body: CalendarSave, current=Depends(get_current_user), db: Database = Depends(get_db)):
    if body.sid and body.sid != current["sid"]:
        raise Forbidden("Cannot save another user's timetable")
    timetable = schemas.UserTimetable(sid=current["sid"], courses=body.courses).model_dump()
    db["user_timetables"].update_one({"sid": current["sid"]}, {"$set": timetable}, upsert=True)
    return ok(
        timetable["courses"],
        message="Timetable saved",
        conflicts=find_conflicts(body.courses),
    )


@app.post("/api/calendar/conflicts")
def check_conflicts(body: ConflictCheck):
    return ok(find_conflicts(body.courses))


# ----------------------
# Group formation endpoints
# ----------------------
@app.get("/api/group/requests")
def list_group_requests(db: Database = Depends(get_db)):
    return ok(list(db["group_requests"].find({"status": "active"}).sort("createdAt", DESCENDING)))


@app.get("/api/group/requests/my")
def my_group_requests(current=Depends(get_current_user), db: Database = Depends(get_db)):
    query = {"sid": current["sid"], "status": "active"}
    return ok(list(db["group_requests"].find(query).sort("createdAt", DESCENDING)))


@app.post("/api/group/requests")
def create_group_request(body: GroupRequestCreate, current=Depends(get_current_user), db: Database = Depends(get_db)):
    if not body.major or not body.major.strip():
        raise ValidationError("Major is required")
    doc = schemas.GroupRequest(
        sid=current["sid"],
        major=body.major.strip(),
        description=body.description,
        email=body.email or current.get("email", ""),
        phone=body.phone or current.get("phone") or "",
        desired_groupmates=body.desired_groupmates,
        gpa=body.gpa,
        dse_score=body.dse_score or "",
    ).model_dump()
    on_insert = {k: v for k, v in doc.items() if k not in ("sid", "status")}
    # one active request per sid, decided atomically by the upsert
    result = db["group_requests"].update_one(
        {"sid": current["sid"], "status": "active"}, {"$setOnInsert": on_insert}, upsert=True
    )
    if result.upserted_id is None:
        raise Conflict("You already have an active group request")
    doc["_id"] = result.upserted_id
    return ok(doc, message="Group request created")


@app.delete("/api/group/requests/{request_id}")
def delete_group_request(request_id: str, current=Depends(get_current_user), db: Database = Depends(get_db)):
    result = db["group_requests"].delete_one({"_id": oid(request_id), "sid": current["sid"]})
    if result.deleted_count == 0:
        raise NotFound("Request not found or not authorized")
    return ok(message="Group request deleted")


# ----------------------
# Questionnaire endpoints
# ----------------------
@app.post("/api/questionnaire")
def create_questionnaire(body: QuestionnaireCreate, current=Depends(get_current_user), db: Database = Depends(get_db)):
    doc, balance = ledger.create_questionnaire(
        db, current["sid"], body.description, body.link, body.targetResponses
    )
    return ok(doc, message=f"Questionnaire posted. {ledger.QUESTIONNAIRE_COST} credits deducted.", credits=balance)


@app.get("/api/questionnaire/fillable")
def fillable_questionnaires(current=Depends(get_current_user), db: Database = Depends(get_db)):
    return ok(ledger.list_fillable(db, current["sid"]))


@app.get("/api/questionnaire/my")
def my_questionnaires(current=Depends(get_current_user), db: Database = Depends(get_db)):
    return ok({"created": ledger.list_own(db, current["sid"])})


@app.get("/api/questionnaire/stats")
def questionnaire_stats(current=Depends(get_current_user), db: Database = Depends(get_db)):
    return ok(ledger.questionnaire_stats(db, current))


@app.post("/api/questionnaire/{questionnaire_id}/fill")
def fill_questionnaire(questionnaire_id: str, current=Depends(get_current_user), db: Database = Depends(get_db)):
    questionnaire, balance = ledger.fill_questionnaire(db, oid(questionnaire_id), current["sid"])
    return ok(questionnaire, message=f"Thanks! You earned {ledger.FILL_REWARD} credit.", credits=balance)


@app.delete("/api/questionnaire/{questionnaire_id}")
def delete_questionnaire(questionnaire_id: str, current=Depends(get_current_user), db: Database = Depends(get_db)):
    ledger.delete_questionnaire(db, oid(questionnaire_id), current["sid"])
    return ok(message="Questionnaire deleted")


# ----------------------
# Material endpoints
# ----------------------
@app.post("/api/materials/course/{code}")
def upload_material(
    code: str,
    body: MaterialUpload,
    admin=Depends(require_admin),
    db: Database = Depends(get_db),
    blobs: BlobStore = Depends(get_blobs),
):
    code = code.upper()
    course = db["courses"].find_one({"code": code})
    if not course:
        raise NotFound("Course not found")
    data = decode_file_data(body.fileData)
    file_id = blobs.put(
        data,
        body.fileName,
        {
            "originalName": body.fileName,
            "mimetype": body.fileType,
            "size": len(data),
            "uploadedBy": admin["sid"],
            "courseCode": code,
            "description": body.description,
            "type": "course_material",
        },
    )
    material = schemas.Material(
        id=nanoid.generate(),
        name=body.name or body.fileName,
        description=body.description,
        fileName=body.fileName,
        fileId=file_id,
        size=len(data),
        mimetype=body.fileType,
        uploadedBy=admin["sid"],
        courseCode=code,
        courseName=course.get("title", ""),
    ).model_dump()
    try:
        db["materials"].insert_one({**material, "_id": material["id"]})
        db["courses"].update_one({"code": code}, {"$push": {"materials": material}})
    except PyMongoError:
        logger.exception("Material upload for %s failed, removing blob", code)
        db["materials"].delete_one({"_id": material["id"]})
        blobs.delete(file_id)
        raise ServerError("Failed to store material")
    logger.info("Material %s uploaded to %s by %s", material["id"], code, admin["sid"])
    return ok(material, message="Material uploaded successfully")


@app.get("/api/materials")
def list_materials(db: Database = Depends(get_db)):
    return ok(list(db["materials"].find().sort("uploadedAt", DESCENDING)))


@app.get("/api/materials/course/{code}")
def course_materials(code: str, db: Database = Depends(get_db)):
    return ok(list(db["materials"].find({"courseCode": code.upper()}).sort("uploadedAt", DESCENDING)))


@app.get("/api/materials/download/{material_id}")
def download_material(material_id: str, db: Database = Depends(get_db), blobs: BlobStore = Depends(get_blobs)):
    material = db["materials"].find_one({"id": material_id})
    if not material:
        raise NotFound("Material not found")
    chunks, _ = blobs.open(material["fileId"])
    response = StreamingResponse(
        chunks,
        media_type=material.get("mimetype") or "application/octet-stream",
        headers={"Content-Disposition": attachment_header(material["fileName"])},
    )
    # count only once the file is open and the response is built
    db["materials"].update_one({"id": material_id}, {"$inc": {"downloads": 1}})
    return response


@app.delete("/api/materials/{material_id}")
def delete_material(
    material_id: str,
    admin=Depends(require_admin),
    db: Database = Depends(get_db),
    blobs: BlobStore = Depends(get_blobs),
):
    material = db["materials"].find_one_and_delete({"id": material_id})
    if not material:
        raise NotFound("Material not found")
    db["courses"].update_one({"code": material["courseCode"]}, {"$pull": {"materials": {"id": material_id}}})
    blobs.delete(material["fileId"])
    return ok(message="Material deleted")


# ----------------------
# Upload endpoints
# ----------------------
@app.get("/api/upload/profile-photo/{file_id}")
def profile_photo(file_id: str, blobs: BlobStore = Depends(get_blobs)):
    chunks, meta = blobs.open(oid(file_id))
    return StreamingResponse(
        chunks,
        media_type=meta.get("mimetype", "image/jpeg"),
        headers={"Cache-Control": "public, max-age=31536000"},
    )


@app.get("/api/upload/profile-photo/user/{sid}")
def profile_photo_by_sid(sid: str, db: Database = Depends(get_db)):
    user = db["users"].find_one({"sid": sid})
    if not user or not user.get("photoFileId"):
        raise NotFound("Profile photo not found")
    return RedirectResponse(f"/api/upload/profile-photo/{user['photoFileId']}")


# ----------------------
# Dashboard
# ----------------------
@app.get("/api/dashboard/summary")
def dashboard_summary(current=Depends(get_current_user), db: Database = Depends(get_db)):
    sid = current["sid"]
    is_admin = current.get("role") == "admin"
    return ok(
        {
            "user": {
                "sid": sid,
                "email": current.get("email"),
                "role": current.get("role"),
                "credits": current.get("credits", 0),
                "major": current.get("major"),
                "year_of_study": current.get("year_of_study"),
            },
            "stats": {
                "courses": db["courses"].count_documents({}),
                "myGroupRequests": db["group_requests"].count_documents({"sid": sid}),
                "myQuestionnaires": db["questionnaires"].count_documents({"creatorSid": sid}),
                "myMaterials": db["materials"].count_documents({"uploadedBy": sid}),
                "pendingApprovals": db["pending_accounts"].count_documents({}) if is_admin else 0,
            },
        }
    )


# ----------------------
# Admin endpoints
# ----------------------
@app.get("/api/admin/pending/accounts")
def pending_accounts(admin=Depends(require_admin), db: Database = Depends(get_db)):
    return ok(list(db["pending_accounts"].find().sort("createdAt", DESCENDING)))


@app.post("/api/admin/pending/accounts/{sid}/approve")
def approve_account(sid: str, admin=Depends(require_admin), db: Database = Depends(get_db)):
    user = approval.approve_account(db, sid)
    return ok(user, message="Account approved successfully")


@app.post("/api/admin/pending/accounts/{sid}/reject")
def reject_account(
    sid: str,
    admin=Depends(require_admin),
    db: Database = Depends(get_db),
    blobs: BlobStore = Depends(get_blobs),
):
    approval.reject_account(db, sid, blobs)
    return ok(message="Account rejected")


@app.get("/api/admin/pending/courses")
def pending_courses(admin=Depends(require_admin), db: Database = Depends(get_db)):
    return ok(list(db["pending_courses"].find().sort("createdAt", DESCENDING)))


@app.post("/api/admin/pending/courses/{code}/approve")
def approve_course(code: str, admin=Depends(require_admin), db: Database = Depends(get_db)):
    course = approval.approve_course(db, code)
    return ok(course, message="Course approved")


@app.post("/api/admin/pending/courses/{code}/reject")
def reject_course(code: str, admin=Depends(require_admin), db: Database = Depends(get_db)):
    approval.reject_course(db, code)
    return ok(message="Course rejected")


@app.get("/api/admin/users")
def list_users(admin=Depends(require_admin), db: Database = Depends(get_db)):
    return ok(list(db["users"].find().sort("createdAt", DESCENDING)))


@app.delete("/api/admin/users/{sid}")
def delete_user(sid: str, admin=Depends(require_admin), db: Database = Depends(get_db)):
    if sid == admin["sid"]:
        raise ValidationError("Cannot delete your own account")
    if sid == ADMIN_SID:
        raise Forbidden("Cannot delete the default admin account")
    result = db["users"].delete_one({"sid": sid})
    if result.deleted_count == 0:
        raise NotFound("User not found")
    logger.info("User %s deleted by %s", sid, admin["sid"])
    return ok(message="User deleted")


@app.post("/api/admin/users/{sid}/credits")
def grant_credits(sid: str, body: CreditGrant, admin=Depends(require_admin), db: Database = Depends(get_db)):
    user = ledger.grant_credits(db, sid, body.amount)
    return ok({"sid": sid, "credits": user["credits"]}, message=f"Granted {body.amount} credits")


@app.get("/api/admin/stats")
def stats(admin=Depends(require_admin), db: Database = Depends(get_db)):
    return ok(
        {
            "totalUsers": db["users"].count_documents({}),
            "totalCourses": db["courses"].count_documents({}),
            "pendingAccounts": db["pending_accounts"].count_documents({}),
            "pendingCourses": db["pending_courses"].count_documents({}),
            "totalMaterials": db["materials"].count_documents({}),
            "totalQuestionnaires": db["questionnaires"].count_documents({}),
        }
    )


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
