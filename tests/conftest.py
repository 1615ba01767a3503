import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AUTO_CREATE_DB", "false")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("JWT_SECRET", "test-secret")

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import pytest
import pytz
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from shiftdesk.auth.security import create_access_token, get_password_hash
from shiftdesk.db import Base, get_db
from shiftdesk.main import app
from shiftdesk.models.models import Organization, Shift, User
from shiftdesk.services.time_rules import utc_now

PASSWORD = "correct-horse"


def at(hour: int, minute: int = 0, day: int = 4) -> datetime:
    """2024-03-<day> hour:minute UTC (March 4th 2024 is a Monday)."""
    return datetime(2024, 3, day, hour, minute, tzinfo=pytz.UTC)


class FrozenClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@dataclass
class Account:
    id: uuid.UUID
    organization_id: uuid.UUID
    role: str
    email: str

    @property
    def headers(self) -> dict:
        token = create_access_token(str(self.id), role=self.role, organization_id=str(self.organization_id))
        return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def clock():
    return FrozenClock(at(8))


@pytest.fixture
def client(session_factory, clock):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[utc_now] = clock
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_org(session_factory):
    def _make(name: str = "Cafe Nord", timezone: str = "UTC") -> uuid.UUID:
        org_id = uuid.uuid4()
        with session_factory() as db:
            db.add(Organization(id=org_id, name=name, timezone=timezone))
            db.commit()
        return org_id

    return _make


@pytest.fixture
def make_account(session_factory):
    def _make(organization_id: uuid.UUID, role: str = "staff", email: Optional[str] = None) -> Account:
        user_id = uuid.uuid4()
        email = email or f"{role}-{user_id.hex[:8]}@example.com"
        with session_factory() as db:
            db.add(User(
                id=user_id,
                organization_id=organization_id,
                email=email,
                name=email.split("@")[0],
                password_hash=get_password_hash(PASSWORD),
                role=role,
                is_active=True,
            ))
            db.commit()
        return Account(id=user_id, organization_id=organization_id, role=role, email=email)

    return _make


@pytest.fixture
def add_shift(session_factory):
    def _add(account: Account, start: datetime, end: datetime, status: str = "scheduled") -> uuid.UUID:
        shift_id = uuid.uuid4()
        with session_factory() as db:
            db.add(Shift(
                id=shift_id,
                organization_id=account.organization_id,
                user_id=account.id,
                start_time=start,
                end_time=end,
                status=status,
            ))
            db.commit()
        return shift_id

    return _add


@pytest.fixture
def org(make_org):
    return make_org()


@pytest.fixture
def owner(make_account, org):
    return make_account(org, role="owner")


@pytest.fixture
def manager(make_account, org):
    return make_account(org, role="manager")


@pytest.fixture
def staff(make_account, org):
    return make_account(org, role="staff")


@pytest.fixture
def other_owner(make_org, make_account):
    """Owner of a second, unrelated organization."""
    return make_account(make_org("Other Bistro"), role="owner")
