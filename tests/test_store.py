"""Tests for the SQL document store and view evaluation."""

from unittest.mock import patch

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine

from cardscience.db.store import SqlDocumentStore, evaluate_view, next_revision
from cardscience.models.card import CARD_SCHEMA
from cardscience.models.failure import StoreConflictError, StoreNotFoundError


class TestExistsAndCreate:
    async def test_not_created(self, async_engine: AsyncEngine) -> None:
        """A fresh database has no document table."""
        store = SqlDocumentStore(async_engine)

        assert await store.exists() is False

    async def test_create(self, async_engine: AsyncEngine) -> None:
        store = SqlDocumentStore(async_engine)

        await store.create()

        assert await store.exists() is True

    async def test_create_is_idempotent(self, store: SqlDocumentStore) -> None:
        await store.create()

        assert await store.exists() is True


class TestGetSaveRemove:
    async def test_save_new_document(self, store: SqlDocumentStore) -> None:
        doc_id, rev = await store.save("doc-1", None, {"type": "card", "title": "Bolt"})

        assert doc_id == "doc-1"
        assert rev.startswith("1-")

    async def test_store_assigns_id(self, store: SqlDocumentStore) -> None:
        doc_id, _ = await store.save(None, None, {"title": "Anonymous"})

        assert doc_id
        body = await store.get(doc_id)
        assert body["title"] == "Anonymous"

    async def test_get_includes_id_and_rev(self, store: SqlDocumentStore) -> None:
        _, rev = await store.save("doc-1", None, {"title": "Bolt"})

        body = await store.get("doc-1")

        assert body == {"_id": "doc-1", "_rev": rev, "title": "Bolt"}

    async def test_get_missing(self, store: SqlDocumentStore) -> None:
        with pytest.raises(StoreNotFoundError) as exc_info:
            await store.get("nope")

        assert exc_info.value.error == "not_found"

    async def test_update_with_current_revision(self, store: SqlDocumentStore) -> None:
        _, rev = await store.save("doc-1", None, {"title": "Bolt"})

        _, new_rev = await store.save("doc-1", rev, {"title": "Lightning Bolt"})

        assert new_rev.startswith("2-")
        assert (await store.get("doc-1"))["title"] == "Lightning Bolt"

    async def test_update_without_revision_conflicts(self, store: SqlDocumentStore) -> None:
        """Blind overwrites are rejected."""
        await store.save("doc-1", None, {"title": "Bolt"})

        with pytest.raises(StoreConflictError) as exc_info:
            await store.save("doc-1", None, {"title": "Clobber"})

        assert exc_info.value.error == "conflict"
        assert (await store.get("doc-1"))["title"] == "Bolt"

    async def test_update_with_stale_revision_conflicts(self, store: SqlDocumentStore) -> None:
        _, first_rev = await store.save("doc-1", None, {"title": "Bolt"})
        await store.save("doc-1", first_rev, {"title": "Bolt v2"})

        with pytest.raises(StoreConflictError):
            await store.save("doc-1", first_rev, {"title": "Bolt v3"})

    async def test_revision_for_missing_document_conflicts(self, store: SqlDocumentStore) -> None:
        with pytest.raises(StoreConflictError):
            await store.save("doc-1", "1-abc", {"title": "Bolt"})

    async def test_id_and_rev_not_stored_in_body(self, store: SqlDocumentStore) -> None:
        _, rev = await store.save("doc-1", None, {"_id": "other", "_rev": "9-x", "title": "Bolt"})

        body = await store.get("doc-1")

        assert body["_id"] == "doc-1"
        assert body["_rev"] == rev

    async def test_remove(self, store: SqlDocumentStore) -> None:
        await store.save("doc-1", None, {"title": "Bolt"})

        await store.remove("doc-1")

        with pytest.raises(StoreNotFoundError):
            await store.get("doc-1")

    async def test_remove_missing(self, store: SqlDocumentStore) -> None:
        with pytest.raises(StoreNotFoundError):
            await store.remove("nope")

    async def test_recreate_after_remove(self, store: SqlDocumentStore) -> None:
        """A removed id can be created again without a revision."""
        await store.save("doc-1", None, {"title": "Bolt"})
        await store.remove("doc-1")

        _, rev = await store.save("doc-1", None, {"title": "Bolt again"})

        assert rev.startswith("1-")


class TestNextRevision:
    def test_first_generation(self) -> None:
        assert next_revision(None).startswith("1-")

    def test_increments_generation(self) -> None:
        assert next_revision("7-abcdef").startswith("8-")

    def test_unique(self) -> None:
        assert next_revision("1-a") != next_revision("1-a")


@pytest.fixture
def bodies() -> list[dict]:
    return [
        {"_id": "mtg_card_2", "type": "card", "title": "Counterspell", "cmc": 2},
        {"_id": "mtg_card_1", "type": "card", "title": "Lightning Bolt", "cmc": 1},
        {"_id": "mtg_card_3", "type": "card", "title": "Grizzly Bears", "cmc": 2},
        {"_id": "deck_1", "type": "deck", "title": "Burn", "cmc": 1},
        {"_id": "mtg_card_4", "type": "card", "cmc": 0},
    ]


def _definition(key: str = "_id", value: str | None = None, reduce: str | None = None) -> dict:
    definition: dict = {"map": {"where": {"type": "card"}, "key": key, "value": value}}
    if reduce:
        definition["reduce"] = reduce
    return definition


class TestEvaluateView:
    def test_selects_by_type_and_sorts_by_key(self, bodies: list[dict]) -> None:
        rows = evaluate_view(_definition(), bodies, {})

        assert [row["id"] for row in rows] == [
            "mtg_card_1",
            "mtg_card_2",
            "mtg_card_3",
            "mtg_card_4",
        ]

    def test_whole_document_emitted_by_default(self, bodies: list[dict]) -> None:
        rows = evaluate_view(_definition(), bodies, {"key": "mtg_card_1"})

        assert rows == [{"id": "mtg_card_1", "key": "mtg_card_1", "value": bodies[1]}]

    def test_documents_without_key_are_skipped(self, bodies: list[dict]) -> None:
        rows = evaluate_view(_definition(key="title"), bodies, {})

        assert "mtg_card_4" not in [row["id"] for row in rows]

    def test_projected_value(self, bodies: list[dict]) -> None:
        rows = evaluate_view(_definition(key="title", value="cmc"), bodies, {"key": "Counterspell"})

        assert rows == [{"id": "mtg_card_2", "key": "Counterspell", "value": 2}]

    def test_keys(self, bodies: list[dict]) -> None:
        rows = evaluate_view(_definition(key="cmc"), bodies, {"keys": [2, 0]})

        assert [row["id"] for row in rows] == ["mtg_card_2", "mtg_card_3", "mtg_card_4"]

    def test_key_range(self, bodies: list[dict]) -> None:
        rows = evaluate_view(_definition(key="cmc"), bodies, {"startkey": 1, "endkey": 2})

        assert [row["key"] for row in rows] == [1, 2, 2]

    def test_exclusive_end(self, bodies: list[dict]) -> None:
        rows = evaluate_view(
            _definition(key="cmc"), bodies, {"endkey": 2, "inclusive_end": False}
        )

        assert [row["key"] for row in rows] == [0, 1]

    def test_descending_range(self, bodies: list[dict]) -> None:
        rows = evaluate_view(
            _definition(key="cmc"), bodies, {"descending": True, "startkey": 1}
        )

        assert [row["key"] for row in rows] == [1, 0]

    def test_skip_and_limit(self, bodies: list[dict]) -> None:
        rows = evaluate_view(_definition(), bodies, {"skip": 1, "limit": 2})

        assert [row["id"] for row in rows] == ["mtg_card_2", "mtg_card_3"]

    def test_count_reduce(self, bodies: list[dict]) -> None:
        rows = evaluate_view(_definition(key="cmc", reduce="_count"), bodies, {})

        assert rows == [{"key": None, "value": 4}]

    def test_grouped_count(self, bodies: list[dict]) -> None:
        rows = evaluate_view(_definition(key="cmc", reduce="_count"), bodies, {"group": True})

        assert rows == [
            {"key": 0, "value": 1},
            {"key": 1, "value": 1},
            {"key": 2, "value": 2},
        ]

    def test_sum_reduce(self, bodies: list[dict]) -> None:
        rows = evaluate_view(_definition(value="cmc", reduce="_sum"), bodies, {})

        assert rows == [{"key": None, "value": 5}]

    def test_reduce_disabled(self, bodies: list[dict]) -> None:
        rows = evaluate_view(
            _definition(key="cmc", reduce="_count"), bodies, {"reduce": False}
        )

        assert len(rows) == 4

    def test_boolean_key_is_not_a_number(self) -> None:
        docs = [
            {"_id": "c0", "type": "card", "flag": 0},
            {"_id": "c1", "type": "card", "flag": 1},
            {"_id": "t", "type": "card", "flag": True},
        ]

        by_key = evaluate_view(_definition(key="flag"), docs, {"key": True})
        by_keys = evaluate_view(_definition(key="flag"), docs, {"keys": [1]})

        assert [row["id"] for row in by_key] == ["t"]
        assert [row["id"] for row in by_keys] == ["c1"]

    def test_integer_and_float_keys_match(self, bodies: list[dict]) -> None:
        rows = evaluate_view(_definition(key="cmc"), bodies, {"key": 1.0})

        assert [row["id"] for row in rows] == ["mtg_card_1"]

    def test_nested_where(self) -> None:
        definition = {
            "map": {"where": {"type": "card", "mana_cost.red": 1}, "key": "_id", "value": None}
        }
        docs = [
            {"_id": "a", "type": "card", "mana_cost": {"red": 1}},
            {"_id": "b", "type": "card", "mana_cost": {"blue": 2}},
        ]

        rows = evaluate_view(definition, docs, {})

        assert [row["id"] for row in rows] == ["a"]


class TestStoreView:
    async def test_view_without_design_document(self, store: SqlDocumentStore) -> None:
        with pytest.raises(StoreNotFoundError, match="_design/cards"):
            await store.view("cards/all", {})

    async def test_view_unknown_name(self, store: SqlDocumentStore) -> None:
        await store.save(CARD_SCHEMA.design_id, None, CARD_SCHEMA.design_document())

        with pytest.raises(StoreNotFoundError, match="by_colour"):
            await store.view("cards/by_colour", {})

    async def test_view_excludes_design_documents(self, store: SqlDocumentStore) -> None:
        await store.save(CARD_SCHEMA.design_id, None, CARD_SCHEMA.design_document())
        await store.save("mtg_card_1", None, {"type": "card", "title": "Bolt", "mid": "1"})

        rows = await store.view("cards/all", {})

        assert [row["id"] for row in rows] == ["mtg_card_1"]
        assert rows[0]["value"]["_rev"].startswith("1-")

    async def test_view_loads_only_its_type(self, store: SqlDocumentStore) -> None:
        """Documents of other types are filtered out before evaluation."""
        await store.save(CARD_SCHEMA.design_id, None, CARD_SCHEMA.design_document())
        await store.save("mtg_card_1", None, {"type": "card", "title": "Bolt"})
        await store.save("deck_1", None, {"type": "deck", "title": "Burn"})
        await store.save("loose_1", None, {"title": "Untyped"})

        with patch("cardscience.db.store.evaluate_view", wraps=evaluate_view) as evaluate:
            rows = await store.view("cards/all", {})

        loaded = evaluate.call_args.args[1]
        assert [body["_id"] for body in loaded] == ["mtg_card_1"]
        assert [row["id"] for row in rows] == ["mtg_card_1"]
