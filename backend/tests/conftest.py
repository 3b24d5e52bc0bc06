from collections.abc import Generator
from datetime import datetime, timezone
from typing import Any, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from maplist.main import app
from maplist.api.v1 import users as users_api
from maplist.clients.discord import UserProfile
from maplist.core.errors import Unauthenticated
from maplist.db.base import Base
from maplist.db.seed import seed_core
from maplist.models.completion import Completion, CompletionMeta, CompPlayer, LeastCostChimps
from maplist.models.config import Config
from maplist.models.map import Map, MapListMeta
from maplist.models.role import UserRole
from maplist.models.user import User


SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

engine = create_engine(SQLALCHEMY_DATABASE_URL, future=True, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)

# Rows built by the factory default to this point in time.
T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def override_get_db() -> Generator:
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


class FakeIdentityProvider:
    """Resolves a bearer token of the form ``"<user id>"`` to that user."""

    def get_user_profile(self, token: str) -> UserProfile:
        if not token.isdigit():
            raise Unauthenticated("Invalid or expired token")
        return UserProfile(id=int(token), username=f"player{token}")


class FakeNotifier:
    def __init__(self, result: bool = True) -> None:
        self.result = result
        self.calls: list[dict[str, Any]] = []
        self.posts: list[dict[str, Any]] = []

    def update_message(self, webhook_url: str, message_id: str, payload: dict[str, Any], fail: bool = False) -> bool:
        self.calls.append({"webhook_url": webhook_url, "message_id": message_id, "payload": payload, "fail": fail})
        return self.result

    def post_message(self, webhook_url: str, payload: dict[str, Any]) -> Optional[str]:
        self.posts.append({"webhook_url": webhook_url, "payload": payload})
        return "9001" if self.result else None


class Factory:
    def __init__(self, db: Session) -> None:
        self.db = db

    def user(self, user_id: int, roles: tuple[int, ...] = (), name: Optional[str] = None) -> User:
        user = User(id=user_id, name=name or f"player{user_id}", is_banned=False)
        self.db.add(user)
        self.db.flush()
        for role_id in roles:
            self.db.add(UserRole(user_id=user_id, role_id=role_id))
        self.db.commit()
        return user

    def map(
        self,
        code: str,
        curver: Optional[int] = None,
        allver: Optional[int] = None,
        difficulty: Optional[int] = None,
        botb_difficulty: Optional[int] = None,
        remake_of: Optional[int] = None,
        created_on: datetime = T0,
    ) -> MapListMeta:
        if not self.db.get(Map, code):
            self.db.add(Map(code=code, name=f"Map {code}"))
            self.db.flush()
        meta = MapListMeta(
            code=code,
            placement_curver=curver,
            placement_allver=allver,
            difficulty=difficulty,
            botb_difficulty=botb_difficulty,
            remake_of=remake_of,
            created_on=created_on,
        )
        self.db.add(meta)
        self.db.commit()
        return meta

    def completion(
        self,
        map_code: str,
        players: list[int],
        format_id: int = 1,
        black_border: bool = False,
        no_geraldo: bool = False,
        lcc: Optional[int] = None,
        accepted_by: Optional[int] = 1,
        created_on: datetime = T0,
        submitted_on: Optional[datetime] = None,
        subm_wh_payload: Optional[str] = None,
    ) -> CompletionMeta:
        completion = Completion(
            map_code=map_code,
            submitted_on=submitted_on or created_on,
            subm_wh_payload=subm_wh_payload,
        )
        self.db.add(completion)
        self.db.flush()
        lcc_id = None
        if lcc is not None:
            row = LeastCostChimps(leftover=lcc)
            self.db.add(row)
            self.db.flush()
            lcc_id = row.id
        meta = CompletionMeta(
            completion_id=completion.id,
            format_id=format_id,
            black_border=black_border,
            no_geraldo=no_geraldo,
            lcc_id=lcc_id,
            accepted_by_id=accepted_by,
            created_on=created_on,
        )
        self.db.add(meta)
        self.db.flush()
        for user_id in players:
            self.db.add(CompPlayer(run=meta.id, user_id=user_id))
        self.db.commit()
        return meta

    def config(self, name: str, value: Any) -> None:
        config = self.db.get(Config, name)
        config.value = str(value)
        self.db.commit()


@pytest.fixture(scope="session", autouse=True)
def setup_database() -> Generator:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    app.dependency_overrides[users_api.get_db] = override_get_db
    app.dependency_overrides[users_api.get_identity_provider] = FakeIdentityProvider

    yield

    Base.metadata.drop_all(bind=engine)
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def core_data() -> Generator:
    db = TestingSessionLocal()
    seed_core(db)
    db.commit()
    db.close()

    yield

    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture()
def db() -> Generator:
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def factory(db: Session) -> Factory:
    return Factory(db)


@pytest.fixture()
def notifier() -> FakeNotifier:
    fake = FakeNotifier()
    app.dependency_overrides[users_api.get_notifier] = lambda: fake
    yield fake
    app.dependency_overrides.pop(users_api.get_notifier, None)


@pytest.fixture()
def client(notifier: FakeNotifier) -> TestClient:
    return TestClient(app)
