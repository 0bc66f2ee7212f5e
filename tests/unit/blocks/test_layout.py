"""Tests for plone_mcp.blocks.layout."""

from __future__ import annotations

import itertools

import pytest

from plone_mcp.blocks.layout import (
    document_payload,
    enforce_title_block,
    insert_block_id,
    reconcile_layout,
)
from plone_mcp.errors import PloneValidationError
from plone_mcp.models import BlocksPayload

TITLE = {"@type": "title"}
TEXT = {"@type": "slate", "plaintext": "x"}


def ids():
    counter = itertools.count(1)
    return lambda: f"new-{next(counter)}"


class TestInsertBlockId:
    @pytest.mark.parametrize(
        ("position", "expected"),
        [
            (0, ["x", "a", "b"]),
            (1, ["a", "x", "b"]),
            (2, ["a", "b", "x"]),
            (3, ["a", "b", "x"]),
            (-1, ["a", "b", "x"]),
            (None, ["a", "b", "x"]),
        ],
    )
    def test_positions(self, position, expected):
        assert insert_block_id(["a", "b"], "x", position) == expected

    def test_input_not_mutated(self):
        layout = ["a"]
        insert_block_id(layout, "x", 0)
        assert layout == ["a"]


class TestReconcileLayout:
    def test_duplicates_keep_first_occurrence(self):
        blocks = {"a": TEXT, "b": TEXT}
        assert reconcile_layout(blocks, ["b", "a", "b"]) == ["b", "a"]

    def test_unlisted_blocks_are_appended(self):
        blocks = {"a": TEXT, "b": TEXT, "c": TEXT}
        assert reconcile_layout(blocks, ["c"]) == ["c", "a", "b"]

    def test_unknown_ids_raise(self):
        with pytest.raises(PloneValidationError) as exc_info:
            reconcile_layout({"a": TEXT}, ["a", "ghost"])
        assert exc_info.value.context["block_ids"] == ["ghost"]
        assert exc_info.value.context["valid_ids"] == ["a"]

    @pytest.mark.parametrize("items", ["a", [1, 2], {"a": 1}])
    def test_malformed_items_raise(self, items):
        with pytest.raises(PloneValidationError):
            reconcile_layout({"a": TEXT}, items)


class TestEnforceTitleBlock:
    def test_synthesizes_missing_title(self):
        result = enforce_title_block(BlocksPayload({"a": TEXT}, ["a"]), ids())
        assert result.layout == ["new-1", "a"]
        assert result.blocks["new-1"] == TITLE

    def test_empty_payload_gets_title_only(self):
        result = enforce_title_block(BlocksPayload(), ids())
        assert result.layout == ["new-1"]
        assert result.blocks == {"new-1": TITLE}

    def test_misplaced_title_moves_to_front(self):
        payload = BlocksPayload({"a": TEXT, "b": TEXT, "t": TITLE}, ["a", "b", "t"])
        result = enforce_title_block(payload, ids())
        assert result.layout == ["t", "a", "b"]
        assert set(result.blocks) == {"a", "b", "t"}

    def test_title_data_is_reset(self):
        payload = BlocksPayload({"t": {"@type": "title", "text": "stale"}}, ["t"])
        result = enforce_title_block(payload, ids())
        assert result.blocks["t"] == TITLE

    def test_surplus_titles_are_dropped(self):
        payload = BlocksPayload(
            {"t1": TITLE, "a": TEXT, "t2": TITLE},
            ["a", "t1", "t2"],
        )
        result = enforce_title_block(payload, ids())
        assert result.layout == ["t1", "a"]
        assert set(result.blocks) == {"t1", "a"}

    def test_title_missing_from_layout_is_reused(self):
        payload = BlocksPayload({"a": TEXT, "t": TITLE}, ["a"])
        result = enforce_title_block(payload, ids())
        assert result.layout == ["t", "a"]

    def test_idempotent(self):
        payload = BlocksPayload({"a": TEXT, "t": TITLE, "b": TEXT}, ["b", "t", "a"])
        once = enforce_title_block(payload, ids())
        twice = enforce_title_block(once, ids())
        assert twice == once

    def test_input_not_mutated(self):
        blocks = {"a": TEXT, "t": {"@type": "title", "x": 1}}
        payload = BlocksPayload(blocks, ["a", "t"])
        enforce_title_block(payload, ids())
        assert payload.layout == ["a", "t"]
        assert blocks["t"] == {"@type": "title", "x": 1}


class TestDocumentPayload:
    def test_copies_blocks_and_layout(self):
        document = {"blocks": {"a": {"@type": "slate"}}, "blocks_layout": {"items": ["a"]}}
        payload = document_payload(document)
        payload.blocks["a"]["@type"] = "changed"
        payload.layout.append("b")
        assert document == {"blocks": {"a": {"@type": "slate"}}, "blocks_layout": {"items": ["a"]}}

    def test_missing_fields_give_empty_payload(self):
        assert document_payload({"title": "Legacy"}) == BlocksPayload()
