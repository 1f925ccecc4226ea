"""Unit tests for teeforge.core.ledger - append-only variation history."""

import sqlite3
from unittest.mock import MagicMock

import pytest

from teeforge.core.errors import LedgerWriteFailure, NotFound, SchemaNotProvisioned
from teeforge.core.ledger import VariationLedger


class TestAppend:
    """Tests for VariationLedger.append."""

    def test_returns_new_id(self, store, design):
        ledger = VariationLedger(store)
        variation_id = ledger.append(design.id, "https://x/v1.png", "edited", "make it blue")

        assert variation_id
        [variation] = ledger.list_ordered(design.id)
        assert variation.id == variation_id
        assert variation.variation_type == "edited"
        assert variation.prompt == "make it blue"
        assert variation.image_url == "https://x/v1.png"

    def test_instruction_is_optional(self, store, design):
        ledger = VariationLedger(store)
        ledger.append(design.id, "https://x/v1.png", "mockup")
        assert ledger.list_ordered(design.id)[0].prompt is None

    def test_unknown_design_is_a_write_failure(self, store):
        """The foreign key rejects variations for designs that don't exist."""
        with pytest.raises(LedgerWriteFailure):
            VariationLedger(store).append("missing-design", "https://x/v.png", "edited")

    def test_missing_table_raises_schema_not_provisioned(self, unprovisioned_store):
        with pytest.raises(SchemaNotProvisioned) as exc_info:
            VariationLedger(unprovisioned_store).append("d1", "https://x/v.png", "edited")
        assert exc_info.value.table == "design_variations"
        assert exc_info.value.category == "internal"

    def test_other_sqlite_errors_are_wrapped(self):
        store = MagicMock()
        store.insert_variation.side_effect = sqlite3.OperationalError("database is locked")

        with pytest.raises(LedgerWriteFailure) as exc_info:
            VariationLedger(store).append("d1", "https://x/v.png", "edited")
        assert not isinstance(exc_info.value, SchemaNotProvisioned)
        assert "database is locked" in exc_info.value.message


class TestListOrdered:
    """Tests for VariationLedger.list_ordered."""

    def test_insertion_order_is_preserved(self, store, design):
        ledger = VariationLedger(store)
        ids = [ledger.append(design.id, f"https://x/v{i}.png", "edited") for i in range(5)]

        assert [v.id for v in ledger.list_ordered(design.id)] == ids

    def test_reading_twice_gives_same_result(self, store, design):
        ledger = VariationLedger(store)
        ledger.append(design.id, "https://x/a.png", "edited")
        ledger.append(design.id, "https://x/b.png", "upscaled")

        assert ledger.list_ordered(design.id) == ledger.list_ordered(design.id)

    def test_empty_for_design_without_history(self, store, design):
        assert VariationLedger(store).list_ordered(design.id) == []

    def test_histories_are_per_design(self, store, design, caller):
        other = store.insert_design(
            user_id=caller.user_id, title="Other", prompt="", image_url="https://x/o.png"
        )
        ledger = VariationLedger(store)
        ledger.append(design.id, "https://x/a.png", "edited")
        ledger.append(other.id, "https://x/b.png", "edited")

        assert [v.image_url for v in ledger.list_ordered(design.id)] == ["https://x/a.png"]


class TestRemove:
    """Tests for VariationLedger.remove."""

    def test_remove_keeps_relative_order(self, store, design):
        ledger = VariationLedger(store)
        first = ledger.append(design.id, "https://x/1.png", "edited")
        middle = ledger.append(design.id, "https://x/2.png", "edited")
        last = ledger.append(design.id, "https://x/3.png", "edited")

        ledger.remove(design.id, middle)

        assert [v.id for v in ledger.list_ordered(design.id)] == [first, last]

    def test_unknown_variation_raises_not_found(self, store, design):
        with pytest.raises(NotFound):
            VariationLedger(store).remove(design.id, "no-such-variation")

    def test_variation_of_another_design_is_not_removed(self, store, design, caller):
        other = store.insert_design(
            user_id=caller.user_id, title="Other", prompt="", image_url="https://x/o.png"
        )
        ledger = VariationLedger(store)
        foreign = ledger.append(other.id, "https://x/b.png", "edited")

        with pytest.raises(NotFound):
            ledger.remove(design.id, foreign)
        assert [v.id for v in ledger.list_ordered(other.id)] == [foreign]

    def test_design_delete_cascades(self, store, design, caller):
        ledger = VariationLedger(store)
        ledger.append(design.id, "https://x/1.png", "edited")

        assert store.delete_design(design.id, caller.user_id)
        assert ledger.list_ordered(design.id) == []
