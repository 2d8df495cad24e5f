import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENABLE_SCHEDULER", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from auth import create_access_token
from database import Base, get_db
from main import app
from models import Challenge


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_challenge(db):
    """Crea un desafío del catálogo; por defecto flexible de 7 días, 7 check-ins, 70 puntos"""
    def _make(**overrides):
        fields = {
            "title": "Lutong Bahay Week",
            "description": "Cook all your meals at home for one week.",
            "category": "budgeting",
            "difficulty": "easy",
            "challenge_type": "flexible",
            "duration_days": 7,
            "required_checkins": 7,
            "points_full": 70,
            "points_partial_enabled": True,
            "is_active": True,
            "total_participants": 0,
        }
        fields.update(overrides)
        challenge = Challenge(**fields)
        db.add(challenge)
        db.commit()
        db.refresh(challenge)
        return challenge

    return _make


@pytest.fixture
def auth_headers():
    def _headers(user_id: str = "user-1"):
        return {"Authorization": f"Bearer {create_access_token(user_id)}"}

    return _headers
