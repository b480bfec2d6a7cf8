"""
MongoDB connection, indexes and GridFS blob storage.

The client is created once at application startup (see main.py) and handed to
route handlers through the get_db / get_blobs dependencies.
"""
import base64
import binascii
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional, Tuple

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Request
from gridfs import GridFSBucket, GridOut
from gridfs.errors import NoFile
from passlib.hash import bcrypt
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database

from errors import NotFound, ValidationError

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "efs")

ADMIN_SID = os.getenv("ADMIN_SID", "admin001")
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@efs.com")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin123")

BUCKET_NAME = "uploads"


def now() -> datetime:
    return datetime.now(timezone.utc)


def oid(id_str: str) -> ObjectId:
    try:
        return ObjectId(id_str)
    except (InvalidId, TypeError):
        raise ValidationError("Invalid id format")


def connect(url: str = DATABASE_URL, name: str = DATABASE_NAME) -> Tuple[MongoClient, Database]:
    client = MongoClient(
        url,
        maxPoolSize=15,
        minPoolSize=5,
        maxIdleTimeMS=10000,
        waitQueueTimeoutMS=10000,
        connectTimeoutMS=30000,
        socketTimeoutMS=45000,
        serverSelectionTimeoutMS=5000,
    )
    logger.info("MongoDB client created for database %s", name)
    return client, client[name]


def ensure_indexes(db: Database) -> None:
    db["users"].create_index("sid", unique=True)
    db["users"].create_index("email", unique=True)
    db["users"].create_index("role")
    db["users"].create_index([("createdAt", DESCENDING)])
    db["pending_accounts"].create_index("sid", unique=True)
    db["pending_accounts"].create_index([("createdAt", DESCENDING)])
    db["courses"].create_index("code", unique=True)
    db["pending_courses"].create_index("code", unique=True)
    db["group_requests"].create_index("sid")
    db["group_requests"].create_index("major")
    db["questionnaires"].create_index("creatorSid")
    db["questionnaires"].create_index("status")
    db["questionnaire_fills"].create_index(
        [("questionnaireId", ASCENDING), ("sid", ASCENDING)], unique=True
    )
    db["materials"].create_index("id", unique=True)
    db["materials"].create_index("courseCode")
    db["user_timetables"].create_index("sid", unique=True)


def seed_admin(db: Database) -> None:
    """Create the sentinel admin account if no admin exists yet."""
    if db["users"].find_one({"role": "admin"}):
        return
    db["users"].insert_one(
        {
            "sid": ADMIN_SID,
            "email": ADMIN_EMAIL,
            "password_hash": bcrypt.hash(ADMIN_PASSWORD),
            "role": "admin",
            "credits": 999,
            "major": "Administration",
            "year_of_study": 1,
            "about_me": "System Administrator",
            "skills": [],
            "createdAt": now(),
            "updatedAt": now(),
        }
    )
    logger.info("Created default admin user %s", ADMIN_EMAIL)


class BlobStore:
    """Binary files kept in the GridFS "uploads" bucket."""

    def __init__(self, db: Database, bucket_name: str = BUCKET_NAME):
        self.bucket = GridFSBucket(db, bucket_name=bucket_name)

    def put(self, data: bytes, filename: str, metadata: Optional[Dict[str, Any]] = None) -> ObjectId:
        meta = dict(metadata or {})
        meta["uploadedAt"] = now()
        return self.bucket.upload_from_stream(filename, data, metadata=meta)

    def open(self, file_id: ObjectId) -> Tuple[Iterator[bytes], Dict[str, Any]]:
        """Open a file for streaming; yields the stored GridFS chunks in order."""
        try:
            grid_out = self.bucket.open_download_stream(file_id)
        except NoFile:
            raise NotFound("File not found")
        return _read_chunks(grid_out), dict(grid_out.metadata or {})

    def delete(self, file_id: ObjectId) -> bool:
        try:
            self.bucket.delete(file_id)
        except NoFile:
            return False
        return True


def _read_chunks(grid_out: GridOut) -> Iterator[bytes]:
    try:
        while True:
            chunk = grid_out.read(grid_out.chunk_size)
            if not chunk:
                break
            yield chunk
    finally:
        grid_out.close()


def decode_file_data(data: str) -> bytes:
    """Decode a base64 payload, accepting both raw base64 and data: URLs."""
    if "base64," in data:
        data = data.split(",", 1)[1]
    try:
        decoded = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("Invalid file data")
    if not decoded:
        raise ValidationError("File data is empty")
    return decoded


def get_db(request: Request) -> Database:
    return request.app.state.db


def get_blobs(request: Request) -> BlobStore:
    return request.app.state.blobs
