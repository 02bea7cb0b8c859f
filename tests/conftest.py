import io
import os

# Select in-memory settings before any application module reads them
os.environ.setdefault("SETTINGS_MODE", "test")

import pytest
from botocore.exceptions import ClientError
from fastapi.testclient import TestClient
from sqlmodel import Session, create_engine, SQLModel
from sqlmodel.pool import StaticPool

from api.auth.models import User
from core.deps import get_db
from core.security import create_access_token, hash_password
from core.storage import LocalBlobStore, get_blob_store
from main import app


class MockS3Paginator:
    """Mock S3 paginator for list_objects_v2"""

    def __init__(self, client):
        self.client = client

    def paginate(self, Bucket: str, Prefix: str, Delimiter: str | None = None):
        """Return a single page built from the stored objects"""
        if self.client.error_mode == "AccessDenied":
            raise ClientError(
                {"Error": {"Code": "AccessDenied", "Message": "Access Denied"}},
                "ListObjectsV2",
            )

        keys = sorted(
            key for key in self.client.objects.get(Bucket, {}) if key.startswith(Prefix)
        )
        page = {}
        if Delimiter:
            prefixes = []
            contents = []
            for key in keys:
                rest = key[len(Prefix):]
                if Delimiter in rest:
                    common = Prefix + rest.split(Delimiter, 1)[0] + Delimiter
                    if common not in prefixes:
                        prefixes.append(common)
                else:
                    contents.append(key)
            if prefixes:
                page["CommonPrefixes"] = [{"Prefix": p} for p in prefixes]
        else:
            contents = keys
        if contents:
            page["Contents"] = [
                {"Key": key, "Size": len(self.client.objects[Bucket][key])}
                for key in contents
            ]
        yield page


class MockS3Client:
    """Mock S3 client for testing"""

    def __init__(self):
        self.objects = {}  # {bucket: {key: bytes}}
        self.error_mode = None  # For simulating errors

    def _maybe_fail(self, operation: str):
        if self.error_mode == "AccessDenied":
            raise ClientError(
                {"Error": {"Code": "AccessDenied", "Message": "Access Denied"}},
                operation,
            )

    def put_object(self, Bucket: str, Key: str, Body: bytes, **kwargs):
        self._maybe_fail("PutObject")
        self.objects.setdefault(Bucket, {})[Key] = bytes(Body)
        return {"ETag": '"mock"'}

    def get_object(self, Bucket: str, Key: str):
        self._maybe_fail("GetObject")
        try:
            body = self.objects[Bucket][Key]
        except KeyError:
            raise ClientError(
                {"Error": {"Code": "NoSuchKey", "Message": "The specified key does not exist."}},
                "GetObject",
            )
        return {"Body": io.BytesIO(body), "ContentLength": len(body)}

    def delete_object(self, Bucket: str, Key: str):
        self._maybe_fail("DeleteObject")
        self.objects.get(Bucket, {}).pop(Key, None)
        return {}

    def get_paginator(self, operation: str):
        """Return a mock paginator"""
        if operation == "list_objects_v2":
            return MockS3Paginator(self)
        raise NotImplementedError(f"Paginator for {operation} not implemented")

    def simulate_error(self, error_type: str):
        """
        Configure client to raise specific errors

        Args:
            error_type: Currently only "AccessDenied"
        """
        self.error_mode = error_type


def make_user(session: Session, username: str) -> User:
    """Create a user directly in the database"""
    user = User(username=username, hashed_password=hash_password("TestPassword123"))
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def auth_headers(user: User) -> dict:
    """Bearer header for a user"""
    token = create_access_token({"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(name="session")
def session_fixture():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(name="blob_store")
def blob_store_fixture(tmp_path):
    """Local blob store rooted in a temporary directory"""
    return LocalBlobStore(tmp_path / "storage")


@pytest.fixture(name="mock_s3_client")
def mock_s3_client_fixture():
    """Provide a mock S3 client for testing"""
    return MockS3Client()


@pytest.fixture(name="client")
def client_fixture(session: Session, blob_store: LocalBlobStore):
    def get_db_override():
        return session

    def get_blob_store_override():
        return blob_store

    app.dependency_overrides[get_db] = get_db_override
    app.dependency_overrides[get_blob_store] = get_blob_store_override

    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture(name="alice")
def alice_fixture(session: Session) -> User:
    return make_user(session, "alice")


@pytest.fixture(name="bob")
def bob_fixture(session: Session) -> User:
    return make_user(session, "bob")
