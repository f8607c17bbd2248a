from __future__ import annotations

import os

# Must be set before app.settings is imported anywhere.
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime, timedelta
from typing import List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.auth import create_access_token
from app.db import get_db, init_db
from domain.ai import AIServiceUnavailable, SolutionAnalysis, get_problem_solver
from domain.models import LearningSession, ProblemSubmission, User
from infra.utils.validation import generate_content_hash, generate_uuid


class FakeSolver:
    model = "fake-model"

    def __init__(self, analysis: Optional[SolutionAnalysis] = None, error: Optional[Exception] = None):
        self.analysis = analysis
        self.error = error
        self.calls: List[dict] = []

    def is_configured(self) -> bool:
        return not isinstance(self.error, AIServiceUnavailable)

    def solve(self, title, content_hash, description=None, text_content=None):
        self.calls.append({
            "title": title,
            "content_hash": content_hash,
            "description": description,
            "text_content": text_content,
        })
        if self.error is not None:
            raise self.error
        return self.analysis


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def solver():
    return FakeSolver(SolutionAnalysis(
        solution="2 + 2 = 4",
        explanation="Adding two and two gives four.",
        subject="Mathematics",
        difficulty="easy",
        tags=["arithmetic", "addition", "numbers"],
    ))


@pytest.fixture
def api_app(session_factory, solver):
    from app.main import app

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_problem_solver] = lambda: solver
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(api_app):
    return TestClient(api_app)


@pytest.fixture
def make_token():
    def _make(user_id: str, expires_delta: Optional[timedelta] = None) -> str:
        return create_access_token({"sub": user_id}, expires_delta)
    return _make


@pytest.fixture
def seed_submission(db):
    """Insert a user + session + submission row directly."""

    def _seed(is_guest: bool = False, user_id: Optional[str] = None, **fields) -> ProblemSubmission:
        user_id = user_id or generate_uuid()
        if db.get(User, user_id) is None:
            db.add(User.guest(user_id) if is_guest else User.mirrored(user_id))
            db.flush()
        session = LearningSession(id=generate_uuid(), user_id=user_id, total_problems=0, subjects_covered=[])
        db.add(session)
        db.flush()

        values = {
            "id": generate_uuid(),
            "user_id": user_id,
            "session_id": session.id,
            "title": "Seeded problem",
            "input_type": "text",
            "text_content": "What is 3 * 3?",
            "status": "processing",
            "content_hash": generate_content_hash("What is 3 * 3?"),
            "created_at": datetime.utcnow(),
        }
        values.update(fields)
        submission = ProblemSubmission(**values)
        db.add(submission)
        db.commit()
        return submission

    return _seed
