"""Shared fixtures: in-memory database, fixed clock and a recording scheduler."""

import itertools

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from airview.database import get_db
from airview.main import app
from airview.models import Base, Device, Organization, ProviderConfig, Reading, User
from airview.services.scheduler import get_task_scheduler

NOW = 1_760_000_000_000  # 2025-10-09T08:53:20Z
DAY_MS = 24 * 60 * 60 * 1000

_mac_counter = itertools.count(1)


class RecordingScheduler:
    """Collects run_after calls instead of executing them."""

    def __init__(self):
        self.calls = []

    def run_after(self, delay_ms, func, **kwargs):
        self.calls.append((delay_ms, func, kwargs))

    def pop_all(self):
        calls, self.calls = self.calls, []
        return calls


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    yield session
    session.close()


@pytest.fixture
def scheduler():
    return RecordingScheduler()


@pytest.fixture
def make_user(db):
    def _make(email="owner@example.com", plan=None):
        user = User(email=email, plan=plan, created_at=NOW)
        db.add(user)
        db.commit()
        return user
    return _make


@pytest.fixture
def make_org(db):
    def _make(plan="starter", name="Acme"):
        org = Organization(name=name, plan=plan, is_personal=False, created_at=NOW)
        db.add(org)
        db.commit()
        return org
    return _make


@pytest.fixture
def make_device(db):
    def _make(user, mac=None, name="Office", organization=None, **fields):
        device = Device(
            user_id=user.id,
            organization_id=organization.id if organization else None,
            provider="qingping",
            provider_device_id=mac or f"AABBCC{next(_mac_counter):06X}",
            name=name,
            report_interval=3600,
            created_at=NOW,
            **fields,
        )
        db.add(device)
        db.commit()
        return device
    return _make


@pytest.fixture
def add_readings(db):
    def _add(device, timestamps, **metrics):
        for ts in timestamps:
            db.add(Reading(device_id=device.id, device_name=device.name, ts=ts, **metrics))
        db.commit()
    return _add


@pytest.fixture
def make_config(db):
    def _make(user, access_token="token-1", token_expires_at=NOW + DAY_MS,
              app_key="key", app_secret="secret", **fields):
        config = ProviderConfig(
            user_id=user.id,
            provider="qingping",
            access_token=access_token,
            token_expires_at=token_expires_at,
            app_key=app_key,
            app_secret=app_secret,
            **fields,
        )
        db.add(config)
        db.commit()
        return config
    return _make


@pytest.fixture
async def client(db, scheduler):
    """Test client bound to the in-memory database."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_task_scheduler] = lambda: scheduler
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
    app.dependency_overrides.clear()
