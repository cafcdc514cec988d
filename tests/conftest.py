"""Shared pytest fixtures for the tracker test-suite."""

from __future__ import annotations

import sys
from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from partstracker import database  # noqa: E402
from partstracker.auth import AuthClient, LocalAccounts  # noqa: E402
from partstracker.backends import LocalBackend, RemoteBackend  # noqa: E402
from partstracker.config import Settings  # noqa: E402
from partstracker.local_store import LocalStorage  # noqa: E402
from partstracker.repositories import PartRepository, ProfileRepository, SetupRepository  # noqa: E402
from partstracker.server import create_app  # noqa: E402
from partstracker.service import TrackerService  # noqa: E402
from partstracker.session import LOCAL, REMOTE, SessionContext  # noqa: E402

REMOTE_USER = "remote-user-1"
OTHER_USER = "remote-user-2"


def make_engine() -> Engine:
    engine = database.build_engine("sqlite://", poolclass=StaticPool)
    database.init_db(engine)
    return engine


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PARTSTRACKER_LOG_LEVEL", "INFO")
    monkeypatch.delenv("PARTSTRACKER_JSON_LOGS", raising=False)


@pytest.fixture()
def engine() -> Iterator[Engine]:
    test_engine = make_engine()
    yield test_engine
    database.Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture()
def remote_backend(engine: Engine) -> RemoteBackend:
    return RemoteBackend(database.build_session_factory(engine))


@pytest.fixture()
def storage(tmp_path: Path) -> LocalStorage:
    return LocalStorage(tmp_path / "local_storage.json")


@pytest.fixture()
def local_backend(storage: LocalStorage) -> LocalBackend:
    return LocalBackend(storage)


@pytest.fixture()
def remote_ctx(remote_backend: RemoteBackend) -> SessionContext:
    return SessionContext(user_id=REMOTE_USER, mode=REMOTE, backend=remote_backend)


@pytest.fixture()
def local_ctx(storage: LocalStorage, local_backend: LocalBackend) -> SessionContext:
    user = LocalAccounts(storage).register("builder", "hunter2")
    return SessionContext(user_id=user.id, mode=LOCAL, backend=local_backend)


@pytest.fixture(params=[REMOTE, LOCAL])
def ctx(request: pytest.FixtureRequest) -> SessionContext:
    """Run a test once against each storage backend."""

    name = "remote_ctx" if request.param == REMOTE else "local_ctx"
    return request.getfixturevalue(name)


@pytest.fixture()
def parts_repo() -> PartRepository:
    return PartRepository()


@pytest.fixture()
def profiles_repo() -> ProfileRepository:
    return ProfileRepository()


@pytest.fixture()
def setups_repo(parts_repo: PartRepository, profiles_repo: ProfileRepository) -> SetupRepository:
    return SetupRepository(parts_repo, profiles_repo)


@pytest.fixture()
def auth() -> AuthClient:
    return AuthClient()


@pytest.fixture()
def service(engine: Engine, storage: LocalStorage, auth: AuthClient) -> TrackerService:
    settings = Settings(database_url="sqlite://", local_store_path=storage.path)
    return TrackerService.from_settings(settings, engine=engine, auth=auth, storage=storage)


@pytest.fixture()
def client(service: TrackerService) -> Iterator[TestClient]:
    with TestClient(create_app(service)) as test_client:
        yield test_client


@pytest.fixture()
def other_ctx(ctx: SessionContext, storage: LocalStorage) -> SessionContext:
    """A second user on the same backend as ``ctx``."""

    if ctx.mode == REMOTE:
        return SessionContext(user_id=OTHER_USER, mode=REMOTE, backend=ctx.backend)
    user = LocalAccounts(storage).register("other-builder", "secret")
    return SessionContext(user_id=user.id, mode=LOCAL, backend=ctx.backend)
