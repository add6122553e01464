"""
Shared fixtures.

Every test gets a fresh in-memory SQLite database (one shared connection via
StaticPool) and a fresh broadcaster that records what was published.
"""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from groupledger.main import app
from groupledger.core.database import Base, get_db
from groupledger.core.security import create_access_token
from groupledger.models.group import Group
from groupledger.models.member import GroupMember
from groupledger.realtime.broadcaster import Broadcaster, get_broadcaster, make_envelope


class RecordingBroadcaster(Broadcaster):
    """Real broadcaster that also keeps every envelope and can run a hook per event."""

    def __init__(self):
        super().__init__()
        self.sent = []
        self.hooks = {}

    def publish(self, event, data):
        self.sent.append(make_envelope(event, data))
        hook = self.hooks.get(event)
        if hook:
            hook(data)
        return super().publish(event, data)

    @property
    def names(self):
        return [m["event"] for m in self.sent]

    def last(self, event):
        matching = [m for m in self.sent if m["event"] == event]
        return matching[-1] if matching else None


@pytest.fixture
def engine():
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
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def broadcaster():
    return RecordingBroadcaster()


@pytest.fixture
def client(session_factory, broadcaster):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_broadcaster] = lambda: broadcaster
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    token = create_access_token("user-1", email="ana@example.com")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers():
    token = create_access_token("admin-1", email="root@example.com", role="admin")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def make_group(db):
    def _make(name="Roommates", members=()):
        group = Group(name=name)
        db.add(group)
        db.flush()
        for member_name in members:
            db.add(GroupMember(group_id=group.id, name=member_name))
        db.commit()
        db.refresh(group)
        return group

    return _make
