"""
Pytest fixtures for the studio portal test suite.

Provides:
- An in-memory SQLite database (shared across threads with StaticPool)
- A PortalStore bound to the test session
- A FastAPI TestClient whose requests use the same session
- Token helpers minting caller identities the way the auth provider does
"""
from typing import Dict, Optional

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from studio_portal.core.config import settings
from studio_portal.db.session import get_db, init_db
from studio_portal.db.store import PortalStore
from studio_portal.main import app
from studio_portal.models.user import Caller, UserRole


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def store(session):
    return PortalStore(session)


@pytest.fixture
def client(session):
    """TestClient sharing the test session, so seeded rows are visible to requests."""
    def get_db_override():
        return session

    app.dependency_overrides[get_db] = get_db_override
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_token(email: str, role: str = "admin", **claims) -> str:
    payload = {"sub": email, "role": role, **claims}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def auth_headers(email: str, role: str = "admin", **claims) -> Dict[str, str]:
    return {"Authorization": f"Bearer {make_token(email, role, **claims)}"}


@pytest.fixture
def admin_headers():
    return auth_headers("admin@studio.io", "admin", name="Ada Admin")


def admin() -> Caller:
    return Caller(email="admin@studio.io", role=UserRole.ADMIN, name="Ada Admin")


def client_caller(email: str, read_only: Optional[bool] = None) -> Caller:
    return Caller(email=email, role=UserRole.CLIENT, name=email.split("@")[0], read_only=read_only)


@pytest.fixture
def seeded(store):
    """
    Two clients and one project owned (legacy) by the first, with one sub-project
    holding a "Design" stage with a task assigned to the first client.
    """
    acme = store.create_client({"name": "Acme", "email": "owner@acme.io"})
    globex = store.create_client({"name": "Globex", "email": "buyer@globex.io"})
    project = store.create_project({"name": "Website"}, [acme.id])
    sub_project = store.create_sub_project(project.id, {"name": "Homepage"})
    content = {
        "stages": [
            {
                "id": "stage-design",
                "name": "Design",
                "items": [
                    {"id": "task-wireframe", "text": "Wireframe", "completed": False, "assignedTo": [acme.id]},
                    {"id": "task-moodboard", "text": "Moodboard", "completed": False, "assignedTo": []},
                ],
            },
            {"id": "stage-build", "name": "Build", "items": []},
        ]
    }
    sub_project = store.save_sub_project_content(sub_project.id, content)
    return {
        "acme": acme,
        "globex": globex,
        "project": project,
        "sub_project": sub_project,
    }
