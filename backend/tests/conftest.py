import os

# Settings are cached on first import, so the environment has to be in place before the app loads.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["SMTP_HOST"] = ""

from datetime import datetime, timezone  # noqa: E402

from fastapi import HTTPException, status  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.api.deps import get_background_runner, get_db, get_token_claims  # noqa: E402
from app.core.security import TokenClaims  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.main import app  # noqa: E402
from app.models.course import Course  # noqa: E402
from app.models.room import Room, extract_building_and_floor  # noqa: E402
from app.models.tenant import Tenant  # noqa: E402
from app.models.timetable import TimetableEvent  # noqa: E402
from app.models.zenturie import Zenturie, extract_year  # noqa: E402
from app.services.rate_limit import clear_rate_limiter  # noqa: E402


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture()
def session_factory():
    engine = create_engine(  # isolated in-memory database per test
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
    yield factory
    engine.dispose()


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def tenant(db):
    item = Tenant(
        name="Nordakademie",
        slug="default",
        keycloak_realm_id="default-realm",
        keycloak_url="http://keycloak.test",
        keycloak_client_id="nora-frontend",
        is_active=True,
    )
    db.add(item)
    db.commit()
    return item


@pytest.fixture()
def make_zenturie(db, tenant):
    def _make(name: str) -> Zenturie:
        item = Zenturie(tenant_id=tenant.id, name=name, year=extract_year(name))
        db.add(item)
        db.commit()
        return item

    return _make


@pytest.fixture()
def make_room(db, tenant):
    def _make(room_number: str, room_name: str | None = None) -> Room:
        building, floor = extract_building_and_floor(room_number)
        item = Room(tenant_id=tenant.id, room_number=room_number, building=building, floor=floor, room_name=room_name)
        db.add(item)
        db.commit()
        return item

    return _make


@pytest.fixture()
def make_course(db, tenant):
    def _make(module_number: str, name: str) -> Course:
        item = Course(tenant_id=tenant.id, module_number=module_number, name=name, year="24")
        db.add(item)
        db.commit()
        return item

    return _make


@pytest.fixture()
def make_event(db, tenant):
    def _make(zenturie: Zenturie, uid: str, start: datetime, end: datetime, **fields) -> TimetableEvent:
        item = TimetableEvent(
            tenant_id=tenant.id,
            zenturie_id=zenturie.id,
            uid=uid,
            summary=fields.pop("summary", uid),
            start_time=start,
            end_time=end,
            **fields,
        )
        db.add(item)
        db.commit()
        return item

    return _make


class AuthState:
    """Which identity the overridden token dependency hands out."""

    def __init__(self) -> None:
        self.claims: TokenClaims | None = None

    def login(self, subject: str, email: str, *roles: str) -> TokenClaims:
        self.claims = TokenClaims(subject=subject, email=email, roles=frozenset(roles or ("student",)))
        return self.claims

    def logout(self) -> None:
        self.claims = None


class RecordingRunner:
    def __init__(self) -> None:
        self.calls: list[tuple] = []

    def submit(self, fn, *args, **kwargs):
        self.calls.append((fn, args, kwargs))
        return None


@pytest.fixture()
def auth():
    return AuthState()


@pytest.fixture()
def runner():
    return RecordingRunner()


@pytest.fixture()
def client(session_factory, tenant, auth, runner):
    clear_rate_limiter()  # earlier tests must not eat into the request budget

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    def override_get_token_claims():
        if auth.claims is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Could not validate credentials",
                headers={"WWW-Authenticate": "Bearer"},
            )
        return auth.claims

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_token_claims] = override_get_token_claims
    app.dependency_overrides[get_background_runner] = lambda: runner

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    clear_rate_limiter()
