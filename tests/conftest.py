import copy
import os
import tempfile
from datetime import datetime, timedelta, timezone
from typing import Callable, Generator

import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("RATE_LIMITING_ENABLED", "false")
os.environ.setdefault("RUN_DB_MIGRATIONS", "false")
os.environ.setdefault("METRICS_ENABLED", "false")
os.environ.setdefault("AUDIT_LOG_DIR", os.path.join(tempfile.gettempdir(), "resource-booking-test-logs"))

from resource_booking.config import reset_settings_cache  # noqa: E402

reset_settings_cache()

from resource_booking.auth import create_access_token  # noqa: E402
from resource_booking.database import Base, SessionLocal, engine  # noqa: E402
from resource_booking.models import RoleEnum, User, new_id  # noqa: E402
from services.booking.app import app, stats_cache  # noqa: E402

ADMIN_EMAIL = "jordan@example.com"
MEMBER_EMAIL = "alex@example.com"
OTHER_EMAIL = "casey@example.com"

RESOURCE_PAYLOAD = {
    "name": "Grand Horizon",
    "type": "Conference Hall",
    "description": "Premium panoramic views.",
    "minLeadTimeHours": 0,
    "icon": "MEETING_ROOM",
    "color": "violet",
    "specs": {"Capacity": "50 Pax", "Floor": "10th"},
    "formFields": [
        {"id": "title", "label": "Meeting Topic", "type": "text", "required": True},
        {"id": "attendees", "label": "Headcount", "type": "number", "required": True},
    ],
}


@pytest.fixture(autouse=True, scope="function")
def _create_test_database() -> Generator[None, None, None]:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    stats_cache.clear()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db_session() -> Generator:
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client() -> Generator[TestClient, None, None]:
    with TestClient(app) as test_client:
        yield test_client


def auth_header(email: str) -> dict[str, str]:
    token = create_access_token({"email": email})
    return {"Authorization": f"Bearer {token}"}


def _make_user(db_session, email: str, role: RoleEnum) -> User:
    user = User(id=new_id(), email=email, role=role)
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture()
def admin_user(db_session) -> User:
    return _make_user(db_session, ADMIN_EMAIL, RoleEnum.ADMIN)


@pytest.fixture()
def member_user(db_session) -> User:
    return _make_user(db_session, MEMBER_EMAIL, RoleEnum.USER)


@pytest.fixture()
def other_user(db_session) -> User:
    return _make_user(db_session, OTHER_EMAIL, RoleEnum.USER)


@pytest.fixture()
def admin_headers(admin_user) -> dict[str, str]:
    return auth_header(admin_user.email)


@pytest.fixture()
def member_headers(member_user) -> dict[str, str]:
    return auth_header(member_user.email)


@pytest.fixture()
def other_headers(other_user) -> dict[str, str]:
    return auth_header(other_user.email)


@pytest.fixture()
def resource_payload() -> dict:
    return copy.deepcopy(RESOURCE_PAYLOAD)


@pytest.fixture()
def resource(client, resource_payload, admin_headers) -> dict:
    response = client.post("/resources", json=resource_payload, headers=admin_headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


@pytest.fixture()
def slot() -> Callable[[float], str]:
    """ISO timestamp ``hours`` after midnight UTC two days from now."""
    base = (datetime.now(timezone.utc) + timedelta(days=2)).replace(
        tzinfo=None, hour=0, minute=0, second=0, microsecond=0
    )

    def at(hours: float) -> str:
        return (base + timedelta(hours=hours)).isoformat()

    return at
