import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Generator

import bcrypt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from app import app
from database import Base, get_db
from models.database import Project, ProjectMember, Slide, User
from services.auth import create_access_token
from services.collaboration.hub import CollaborationHub
from shared.enums import MemberRole, SlideType
from shared.utils import config as service_config

TEST_PASSWORD = "testpass"


@pytest.fixture(scope="session")
def password_hash() -> str:
    """Hash the shared test password once per run."""
    return bcrypt.hashpw(TEST_PASSWORD.encode("utf-8"), bcrypt.gensalt(rounds=4)).decode("utf-8")


@pytest.fixture
def session_factory(tmp_path: Path) -> Callable[[], Session]:
    """Create a fresh SQLite database and session factory for each test."""
    db_path = tmp_path / "test.db"
    engine = create_engine(f"sqlite:///{db_path}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    yield SessionLocal
    engine.dispose()


@pytest.fixture
def users(session_factory: Callable[[], Session], password_hash: str) -> dict[str, str]:
    """Seed test users and return their ids by username."""
    names = ["testuser", "alice", "bob", "carol", "dave"]
    with session_factory() as session:
        seeded = [
            User(username=name, email=f"{name}@example.com", hashed_password=password_hash)
            for name in names
        ]
        session.add_all(seeded)
        session.commit()
        return {user.username: user.id for user in seeded}


@pytest.fixture
def tokens(users: dict[str, str]) -> dict[str, str]:
    return {name: create_access_token({"sub": user_id}) for name, user_id in users.items()}


@pytest.fixture
def headers(tokens: dict[str, str]) -> dict[str, dict[str, str]]:
    """Bearer auth headers by username."""
    return {name: {"Authorization": f"Bearer {token}"} for name, token in tokens.items()}


@pytest.fixture
def project(session_factory: Callable[[], Session], users: dict[str, str]) -> dict:
    """
    A project owned by alice with bob as editor, carol as viewer and three slides.

    dave is a registered user with no membership.
    """
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    with session_factory() as session:
        project = Project(name="Quarterly review", user_id=users["alice"])
        project.members = [
            ProjectMember(user_id=users["alice"], role=MemberRole.OWNER),
            ProjectMember(user_id=users["bob"], role=MemberRole.EDITOR),
            ProjectMember(user_id=users["carol"], role=MemberRole.VIEWER),
        ]
        slides = [
            Slide(
                title=title,
                content=f"{title} content",
                bullet_points=[f"{title} point"],
                slide_type=slide_type,
                created_at=base + timedelta(minutes=index),
                updated_at=base + timedelta(minutes=index),
            )
            for index, (title, slide_type) in enumerate(
                [
                    ("Intro", SlideType.TITLE),
                    ("Numbers", SlideType.STATS),
                    ("Wrap-up", SlideType.CONCLUSION),
                ]
            )
        ]
        project.slides = slides
        session.add(project)
        session.commit()
        return {"id": project.id, "slide_ids": [slide.id for slide in slides]}


@pytest.fixture
def hub(session_factory: Callable[[], Session]) -> CollaborationHub:
    return CollaborationHub(session_factory)


@pytest.fixture
def client(session_factory: Callable[[], Session], hub: CollaborationHub) -> Generator:
    """TestClient bound to the per-test database and collaboration hub."""

    def _get_test_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    original_hub = app.state.collab_hub
    original_require_auth = service_config.get("collab_require_auth")
    app.dependency_overrides[get_db] = _get_test_db
    app.state.collab_hub = hub
    service_config.set("collab_require_auth", True)
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_db, None)
        app.state.collab_hub = original_hub
        service_config.set("collab_require_auth", original_require_auth)
