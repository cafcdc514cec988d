from __future__ import annotations

import logging
from datetime import timedelta
from decimal import Decimal

import pytest

from partstracker.errors import StorageError
from partstracker.repositories import DEFAULT_COMPONENTS, PartRepository, SetupRepository
from partstracker.schemas import PartOrder
from partstracker.session import LOCAL, SessionContext


def _fail(*_args, **_kwargs):
    raise StorageError("backend down")


def test_save_twice_keeps_one_part_with_latest_values(ctx: SessionContext, parts_repo: PartRepository) -> None:
    first = parts_repo.save(ctx, "CPU", "Ryzen 5 7600", Decimal("229.99"))
    second = parts_repo.save(ctx, "CPU", "Ryzen 7 7800X3D", 449)

    assert first is not None and second is not None
    assert second.id == first.id
    parts = parts_repo.list(ctx)
    assert len(parts) == 1
    assert parts[0].name == "Ryzen 7 7800X3D"
    assert parts[0].amount == Decimal("449")


def test_list_defaults_to_insertion_order(ctx: SessionContext, parts_repo: PartRepository) -> None:
    for component in ("GPU", "CPU", "RAM"):
        assert parts_repo.save(ctx, component, "", 0) is not None

    parts = parts_repo.list(ctx)
    assert [part.component for part in parts] == ["GPU", "CPU", "RAM"]
    assert [part.sort_order for part in parts] == [0, 1, 2]


def test_explicit_sort_order_controls_listing(ctx: SessionContext, parts_repo: PartRepository) -> None:
    parts_repo.save(ctx, "Case", "Fractal North", 139, sort_order=5)
    parts_repo.save(ctx, "Storage", "2TB NVMe", 120, sort_order=1)

    assert [part.component for part in parts_repo.list(ctx)] == ["Storage", "Case"]


def test_save_without_sort_order_keeps_existing_position(ctx: SessionContext, parts_repo: PartRepository) -> None:
    parts_repo.save(ctx, "CPU", "", 0, sort_order=3)
    updated = parts_repo.save(ctx, "CPU", "i5-13600K", 280)

    assert updated is not None
    assert updated.sort_order == 3


def test_delete_removes_only_the_owned_part(
    ctx: SessionContext, other_ctx: SessionContext, parts_repo: PartRepository
) -> None:
    mine = parts_repo.save(ctx, "GPU", "RTX 4070", 599)
    theirs = parts_repo.save(other_ctx, "GPU", "RX 7800 XT", 499)
    assert mine is not None and theirs is not None

    assert parts_repo.delete(ctx, theirs.id) is False
    assert [part.id for part in parts_repo.list(other_ctx)] == [theirs.id]

    assert parts_repo.delete(ctx, mine.id) is True
    assert parts_repo.list(ctx) == []
    assert parts_repo.delete(ctx, mine.id) is False


def test_update_orders_persists_a_full_reordering(ctx: SessionContext, parts_repo: PartRepository) -> None:
    for component in ("CPU", "GPU", "RAM"):
        parts_repo.save(ctx, component, component.lower(), 10)
    parts = parts_repo.list(ctx)
    reordered = [part.model_copy(update={"sort_order": len(parts) - index}) for index, part in enumerate(parts)]

    assert parts_repo.update_orders(ctx, reordered) is True
    assert [part.component for part in parts_repo.list(ctx)] == ["RAM", "GPU", "CPU"]


def test_update_orders_logs_payload_on_failure(
    ctx: SessionContext,
    parts_repo: PartRepository,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    part = parts_repo.save(ctx, "RAM", "32GB DDR5", 110)
    assert part is not None
    monkeypatch.setattr(ctx.backend, "upsert_parts", _fail)

    with caplog.at_level(logging.ERROR):
        assert parts_repo.update_orders(ctx, [part.model_copy(update={"sort_order": 4})]) is False

    record = next(rec for rec in caplog.records if getattr(rec, "operation", None) == "update_part_orders")
    assert record.user_id == ctx.user_id
    assert record.context["updates"][0]["id"] == part.id
    assert record.context["updates"][0]["sort_order"] == 4


def test_seed_defaults_is_idempotent(ctx: SessionContext, parts_repo: PartRepository) -> None:
    parts_repo.seed_defaults(ctx)
    parts_repo.seed_defaults(ctx)

    parts = parts_repo.list(ctx)
    assert tuple(part.component for part in parts) == DEFAULT_COMPONENTS
    assert all(part.name == "" and part.amount == 0 for part in parts)


def test_list_returns_empty_on_backend_error(
    ctx: SessionContext, parts_repo: PartRepository, monkeypatch: pytest.MonkeyPatch
) -> None:
    parts_repo.save(ctx, "CPU", "", 0)
    monkeypatch.setattr(ctx.backend, "list_parts", _fail)

    assert parts_repo.list(ctx) == []


def test_save_returns_none_on_backend_error(
    ctx: SessionContext, parts_repo: PartRepository, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(ctx.backend, "find_part", _fail)

    assert parts_repo.save(ctx, "CPU", "", 0) is None


def test_delete_returns_false_on_backend_error(
    ctx: SessionContext, parts_repo: PartRepository, monkeypatch: pytest.MonkeyPatch
) -> None:
    part = parts_repo.save(ctx, "PSU", "850W", 130)
    assert part is not None
    monkeypatch.setattr(ctx.backend, "delete_part", _fail)

    assert parts_repo.delete(ctx, part.id) is False


def test_local_list_synthesizes_missing_fields(storage, local_backend, parts_repo: PartRepository) -> None:
    storage.set_json(
        "users",
        [
            {
                "id": "u1",
                "username": "legacy",
                "parts": [
                    {"id": "a", "component": "CPU", "amount": "12.5"},
                    {"id": "b", "component": "GPU", "name": "Arc A770", "amount": "n/a"},
                ],
            }
        ],
    )
    ctx = SessionContext(user_id="u1", mode=LOCAL, backend=local_backend)

    parts = parts_repo.list(ctx)
    assert [(part.id, part.sort_order) for part in parts] == [("a", 0), ("b", 1)]
    assert parts[0].amount == Decimal("12.5")
    assert parts[0].name == ""
    assert parts[1].amount == 0
    assert all(part.user_id == "u1" for part in parts)


def test_local_unparsable_document_lists_nothing(storage, local_backend, parts_repo: PartRepository) -> None:
    storage.set_item("users", "{not json")
    ctx = SessionContext(user_id="u1", mode=LOCAL, backend=local_backend)

    assert parts_repo.list(ctx) == []
    assert parts_repo.save(ctx, "CPU", "", 0) is None


def test_update_orders_cannot_take_over_another_users_part(
    ctx: SessionContext, other_ctx: SessionContext, parts_repo: PartRepository
) -> None:
    theirs = parts_repo.save(other_ctx, "GPU", "RX 7800 XT", 499)
    assert theirs is not None
    hijack = PartOrder(
        id=theirs.id,
        user_id=ctx.user_id,
        component="GPU",
        name="taken",
        amount=1,
        sort_order=0,
    )

    assert parts_repo.update_orders(ctx, [hijack]) is False
    assert parts_repo.list(ctx) == []
    stored = parts_repo.list(other_ctx)
    assert [(part.id, part.name, part.amount) for part in stored] == [(theirs.id, "RX 7800 XT", Decimal("499"))]


def test_update_orders_writes_the_callers_user_id(
    ctx: SessionContext, other_ctx: SessionContext, parts_repo: PartRepository
) -> None:
    mine = parts_repo.save(ctx, "RAM", "32GB", 95)
    assert mine is not None
    moved = PartOrder(
        **mine.model_dump(include={"id", "component", "name", "amount"}),
        user_id=other_ctx.user_id,
        sort_order=2,
    )

    assert parts_repo.update_orders(ctx, [moved]) is True
    assert [(part.id, part.user_id, part.sort_order) for part in parts_repo.list(ctx)] == [(mine.id, ctx.user_id, 2)]
    assert parts_repo.list(other_ctx) == []


def test_amounts_are_stored_with_two_places(ctx: SessionContext, parts_repo: PartRepository) -> None:
    saved = parts_repo.save(ctx, "Case", "Lancool 216", "229.999")
    cheap = parts_repo.save(ctx, "CPU Cooler", "Peerless Assassin", "0.005")

    assert saved is not None and cheap is not None
    assert saved.amount == Decimal("230.00")
    assert cheap.amount == Decimal("0.01")
    assert [part.amount for part in parts_repo.list(ctx)] == [Decimal("230.00"), Decimal("0.01")]


def test_timestamps_are_utc_aware(ctx: SessionContext, parts_repo: PartRepository) -> None:
    saved = parts_repo.save(ctx, "Storage", "4TB NVMe", 240)
    assert saved is not None

    for part in [saved, *parts_repo.list(ctx)]:
        assert part.created_at.utcoffset() == timedelta(0)
        assert part.updated_at.utcoffset() == timedelta(0)


def test_local_malformed_entries_do_not_escape(
    storage, local_backend, parts_repo: PartRepository, setups_repo: SetupRepository
) -> None:
    storage.set_json(
        "users",
        [
            "junk",
            {
                "id": "u1",
                "username": 42,
                "parts": [{"id": 7, "component": "CPU", "name": None}, "junk"],
                "setups": ["junk", {"id": 9, "name": "Old rig", "parts": [3, {"component": "GPU", "amount": 5}]}],
            },
        ],
    )
    ctx = SessionContext(user_id="u1", mode=LOCAL, backend=local_backend)

    assert [(part.id, part.component) for part in parts_repo.list(ctx)] == [("7", "CPU")]
    updated = parts_repo.save(ctx, "CPU", "Ryzen 9", 500)
    assert updated is not None and updated.id == "7"
    assert [setup.id for setup in setups_repo.list(ctx)] == ["9"]
    assert [child.component for child in setups_repo.get_children(ctx, "9")] == ["GPU"]
    assert parts_repo.delete(ctx, "7") is True
    assert setups_repo.delete(ctx, "9") is True
    assert parts_repo.list(ctx) == []
