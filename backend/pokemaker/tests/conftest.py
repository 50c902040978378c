import os
import tempfile
from collections.abc import Callable, Generator

# Settings are read at import time; keep the app's own engine and storage
# away from the working directory.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("STORAGE_ROOT", tempfile.mkdtemp(prefix="pokemaker-storage-"))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import Engine, func
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine, select

from pokemaker import crud
from pokemaker.api.deps import get_db
from pokemaker.core.config import settings
from pokemaker.drafts.hooks import PostSaveHooks
from pokemaker.drafts.registry import DraftRegistry, get_draft_registry, get_post_save_hooks
from pokemaker.main import app
from pokemaker.models import Creature, User, UserCreate
from pokemaker.storage import ObjectStorage

TEST_PASSWORD = "pikachu123"


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> Callable[[], Session]:
    return lambda: Session(engine)


@pytest.fixture
def db(engine: Engine) -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session


@pytest.fixture
def storage(tmp_path) -> ObjectStorage:
    return ObjectStorage(
        tmp_path / "storage",
        public_base_url="http://testserver",
        default_bucket="pokemon-images",
        max_bytes=1024 * 1024,
    )


@pytest.fixture
def user(db: Session) -> User:
    return crud.create_user(
        session=db, user_create=UserCreate(username="ash", password=TEST_PASSWORD)
    )


@pytest.fixture
def other_user(db: Session) -> User:
    return crud.create_user(
        session=db, user_create=UserCreate(username="gary", password=TEST_PASSWORD)
    )


@pytest.fixture
def hooks() -> PostSaveHooks:
    return PostSaveHooks()


@pytest.fixture
def registry(hooks: PostSaveHooks, session_factory, storage: ObjectStorage) -> DraftRegistry:
    return DraftRegistry(
        hooks=hooks, session_factory=session_factory, storage=storage, autosave_delay=60
    )


@pytest.fixture
def client(engine: Engine, hooks: PostSaveHooks, registry: DraftRegistry) -> Generator[TestClient, None, None]:
    def get_db_override() -> Generator[Session, None, None]:
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_db] = get_db_override
    app.dependency_overrides[get_post_save_hooks] = lambda: hooks
    app.dependency_overrides[get_draft_registry] = lambda: registry
    with TestClient(app) as c:
        yield c
        c.portal.call(registry.close_all)
    app.dependency_overrides.clear()


def auth_headers(client: TestClient, username: str, password: str = TEST_PASSWORD) -> dict[str, str]:
    r = client.post(
        f"{settings.API_V1_STR}/login/access-token",
        data={"username": username, "password": password},
    )
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['access_token']}"}


@pytest.fixture
def user_headers(client: TestClient, user: User) -> dict[str, str]:
    return auth_headers(client, user.username)


@pytest.fixture
def other_headers(client: TestClient, other_user: User) -> dict[str, str]:
    return auth_headers(client, other_user.username)


@pytest.fixture
def creature_count(engine: Engine) -> Callable[[], int]:
    def _count() -> int:
        with Session(engine) as session:
            return session.exec(select(func.count()).select_from(Creature)).one()

    return _count
