from datetime import datetime, timedelta, timezone

import fakeredis
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import Engine, StaticPool, create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.session import Session

from expo_reserve.core.celery_config import celery_app
from expo_reserve.core.security import Principal, create_access_token
from expo_reserve.database.db import Base, get_db
from expo_reserve.main import app
from expo_reserve.models.expos import Expo, ExpoStatus
from expo_reserve.models.resources import Resource, ResourceKind

# Use an in-memory SQLite database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"
engine: Engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Run the event sink inline instead of talking to a broker
celery_app.conf.task_always_eager = True

DEFAULT_ORGANIZER_ID = "org-1"


@pytest.fixture(autouse=True)
def setup_database():
    """Give every test an empty schema."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    db: Session = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def session_factory():
    """The in-memory session maker, for code that opens its own sessions."""
    return TestingSessionLocal


@pytest.fixture
def fake_redis():
    return fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)


@pytest.fixture(autouse=True)
def redis_client(fake_redis, monkeypatch: pytest.MonkeyPatch):
    """Point the capacity ledger's locks at fakeredis."""
    monkeypatch.setattr("expo_reserve.services.ledger.get_redis_client", lambda: fake_redis)
    return fake_redis


# Override the database dependency
def override_get_db():
    db: Session = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client():
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def file_session_factory(tmp_path):
    """Sessions on a file-backed database, one connection per thread, for race tests."""
    file_engine = create_engine(
        f"sqlite:///{tmp_path / 'race.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=file_engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=file_engine)
    file_engine.dispose()


def auth_headers(principal: Principal) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(principal.id, principal.role)}"}


@pytest.fixture
def headers():
    return auth_headers


def make_expo(
    db: Session,
    *,
    status: ExpoStatus = ExpoStatus.PUBLISHED,
    organizer_id: str = DEFAULT_ORGANIZER_ID,
    ends_in: timedelta = timedelta(days=30),
    max_booths_per_exhibitor: int = 1,
    allow_booth_sharing: bool = False,
) -> Expo:
    now = datetime.now(timezone.utc)
    expo = Expo(
        title="Tech Expo",
        organizer_id=organizer_id,
        status=status.value,
        start_date=now - timedelta(days=1),
        end_date=now + ends_in,
        max_booths_per_exhibitor=max_booths_per_exhibitor,
        allow_booth_sharing=allow_booth_sharing,
    )
    db.add(expo)
    db.commit()
    db.refresh(expo)
    return expo


def make_booth(db: Session, expo: Expo, *, capacity: int = 1, name: str = "A1", price_tier: str = "standard") -> Resource:
    booth = Resource(
        expo_id=expo.id,
        kind=ResourceKind.BOOTH.value,
        name=name,
        capacity=capacity,
        confirmed_count=0,
        price_tier=price_tier,
    )
    db.add(booth)
    db.commit()
    db.refresh(booth)
    return booth


def make_session(
    db: Session, expo: Expo, *, capacity: int = 20, name: str = "Keynote", ends_in: timedelta = timedelta(hours=2)
) -> Resource:
    now = datetime.now(timezone.utc)
    session = Resource(
        expo_id=expo.id,
        kind=ResourceKind.SESSION.value,
        name=name,
        capacity=capacity,
        confirmed_count=0,
        starts_at=now + ends_in - timedelta(hours=1),
        ends_at=now + ends_in,
    )
    db.add(session)
    db.commit()
    db.refresh(session)
    return session


@pytest.fixture
def factories():
    """Builders for expos, booths and sessions, shared by the test modules."""

    class Factories:
        expo = staticmethod(make_expo)
        booth = staticmethod(make_booth)
        session = staticmethod(make_session)

    return Factories
