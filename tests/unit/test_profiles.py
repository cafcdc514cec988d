from __future__ import annotations

import pytest

from partstracker.errors import StorageError
from partstracker.repositories import ProfileRepository
from partstracker.session import LOCAL, SessionContext


def _fail(*_args, **_kwargs):
    raise StorageError("backend down")


def test_first_read_creates_default_profile(remote_ctx: SessionContext, profiles_repo: ProfileRepository) -> None:
    assert remote_ctx.backend.get_profile(remote_ctx.user_id) is None

    lookup = profiles_repo.get_or_create(remote_ctx)

    assert lookup.currency == "PHP"
    assert lookup.created is True
    profile = remote_ctx.backend.get_profile(remote_ctx.user_id)
    assert profile is not None
    assert profile.username == "Anonymous User"
    assert profiles_repo.get_or_create(remote_ctx).created is None


def test_set_then_get_currency(ctx: SessionContext, profiles_repo: ProfileRepository) -> None:
    assert profiles_repo.set_currency(ctx, "EUR") is True
    assert profiles_repo.get_currency(ctx) == "EUR"


def test_read_failure_falls_back_to_default(
    remote_ctx: SessionContext, profiles_repo: ProfileRepository, monkeypatch: pytest.MonkeyPatch
) -> None:
    profiles_repo.set_currency(remote_ctx, "JPY")
    monkeypatch.setattr(remote_ctx.backend, "get_profile", _fail)

    assert profiles_repo.get_currency(remote_ctx) == "PHP"


def test_creation_failure_is_reported_not_raised(
    remote_ctx: SessionContext, profiles_repo: ProfileRepository, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(remote_ctx.backend, "upsert_profile", _fail)

    lookup = profiles_repo.get_or_create(remote_ctx)

    assert lookup.currency == "PHP"
    assert lookup.created is False
    assert profiles_repo.set_currency(remote_ctx, "USD") is False


def test_local_user_keeps_registration_currency(local_ctx: SessionContext, profiles_repo: ProfileRepository) -> None:
    assert profiles_repo.get_currency(local_ctx) == "USD"


def test_local_currency_is_written_to_user_record(
    local_ctx: SessionContext, profiles_repo: ProfileRepository, storage
) -> None:
    assert profiles_repo.set_currency(local_ctx, "GBP") is True

    users = storage.get_json("users")
    assert users[0]["currency"] == "GBP"


def test_local_missing_user_gets_default(local_backend, profiles_repo: ProfileRepository) -> None:
    ctx = SessionContext(user_id="ghost", mode=LOCAL, backend=local_backend)

    lookup = profiles_repo.get_or_create(ctx)

    assert lookup.currency == "PHP"
    assert lookup.created is False
    assert profiles_repo.set_currency(ctx, "EUR") is False


def test_custom_defaults() -> None:
    repo = ProfileRepository(default_currency="EUR", default_username="Guest")

    assert repo.default_currency == "EUR"
    assert repo.default_username == "Guest"
