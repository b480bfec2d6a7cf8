from datetime import datetime, timezone

import mongomock
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from database import ensure_indexes, get_blobs, get_db, seed_admin
from errors import NotFound
from main import app


class MemoryBlobStore:
    """In-memory stand-in for the GridFS bucket used by the app."""

    def __init__(self):
        self.files = {}

    def put(self, data, filename, metadata=None):
        file_id = ObjectId()
        self.files[file_id] = (bytes(data), {"filename": filename, **(metadata or {})})
        return file_id

    def get(self, file_id):
        if file_id not in self.files:
            raise NotFound("File not found")
        return self.files[file_id]

    def open(self, file_id):
        data, meta = self.get(file_id)
        return iter([data]), meta

    def delete(self, file_id):
        return self.files.pop(file_id, None) is not None

    def exists(self, file_id):
        return file_id in self.files


@pytest.fixture
def db():
    database = mongomock.MongoClient()["efs_test"]
    ensure_indexes(database)
    seed_admin(database)
    return database


@pytest.fixture
def blobs():
    return MemoryBlobStore()


@pytest.fixture
def client(db, blobs):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_blobs] = lambda: blobs
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    def _make(sid, credits=3, role="user"):
        doc = {
            "sid": sid,
            "email": f"{sid}@student.efs.edu",
            "password_hash": "unused",
            "role": role,
            "credits": credits,
            "skills": [],
            "createdAt": datetime.now(timezone.utc),
            "updatedAt": datetime.now(timezone.utc),
        }
        db["users"].insert_one(doc)
        return doc

    return _make
