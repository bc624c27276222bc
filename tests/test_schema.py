"""Tests for the board document model and payload parsing."""
import json

import pytest

from taskboard.errors import ArchitectureError, ValidationError
from taskboard.schema import (
    Board,
    BoardShape,
    Card,
    Encoded,
    Structured,
    classify_payload,
    parse_payload,
    utc_now,
    validate_board,
    validate_card,
)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Payloads
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestParsePayload:

    def test_classify(self):
        assert isinstance(classify_payload('{"a": 1}'), Encoded)
        assert isinstance(classify_payload({"a": 1}), Structured)
        with pytest.raises(ValidationError, match="Invalid card data type"):
            classify_payload(42)

    def test_string_and_mapping_are_equivalent(self):
        data = {"title": "T", "tags": ["a"]}
        assert parse_payload(json.dumps(data)) == parse_payload(data)

    def test_empty_string(self):
        with pytest.raises(ValidationError, match="cannot be empty"):
            parse_payload("")

    def test_invalid_json_names_context(self):
        with pytest.raises(ValidationError, match="update operation 3"):
            parse_payload("{oops", context="update operation 3")

    def test_json_array_rejected(self):
        with pytest.raises(ValidationError):
            parse_payload("[1, 2]")

    def test_size_limit(self):
        with pytest.raises(ValidationError, match="too large"):
            parse_payload(json.dumps({"content": "x" * 100}), max_chars=50)
        with pytest.raises(ValidationError, match="too large"):
            parse_payload({"content": "x" * 100}, max_chars=50)

    def test_board_kind_in_messages(self):
        with pytest.raises(ValidationError, match="Board data"):
            parse_payload("", kind="board")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Entities
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_card_round_trip_keeps_unknown_keys():
    doc = {
        "id": "c1", "title": "T", "columnId": "col-0", "position": 2,
        "priority": "high", "estimate": 3,
        "created_at": "2024-01-01T00:00:00.000Z", "updated_at": "2024-01-01T00:00:00.000Z",
    }
    card = Card.from_dict(doc)
    assert card.extra == {"priority": "high", "estimate": 3}
    out = card.to_dict()
    assert out["priority"] == "high"
    assert out["columnId"] == "col-0"
    assert "completed_at" not in out


def test_apply_patch_ignores_id_and_clears_lists():
    card = Card(id="c1", title="T", column_id="col-0", tags=["a"])
    card.apply_patch({"id": "c2", "tags": None, "title": "New", "custom": True})
    assert card.id == "c1"
    assert card.tags == []
    assert card.title == "New"
    assert card.extra == {"custom": True}


def test_shape_detection():
    flat = Board.from_dict({"id": "b", "projectName": "B", "columns": [], "cards": []})
    legacy = Board.from_dict({"id": "b", "projectName": "B",
                              "columns": [{"id": "c", "name": "C", "items": []}]})
    assert flat.shape is BoardShape.FLAT
    assert legacy.shape is BoardShape.LEGACY
    assert "cards" not in legacy.to_dict()
    assert legacy.to_dict()["columns"][0]["items"] == []
    with pytest.raises(ArchitectureError, match="card-first"):
        legacy.require_flat()


def test_board_without_columns_is_invalid():
    with pytest.raises(ValidationError, match="columns"):
        Board.from_dict({"id": "b", "cards": []})


def test_board_round_trip_keeps_unknown_keys():
    doc = {
        "id": "b", "projectName": "B", "created_at": "2024-01-01T00:00:00.000Z",
        "columns": [{"id": "c", "name": "C", "wipLimit": 3, "color": "red"}],
        "cards": [],
    }
    out = Board.from_dict(doc).to_dict()
    assert out["created_at"] == doc["created_at"]
    assert out["columns"][0] == {"id": "c", "name": "C", "wipLimit": 3, "color": "red"}


def test_legacy_items_must_be_objects():
    doc = {"id": "b", "projectName": "B",
           "columns": [{"id": "c", "name": "C", "items": [{"id": "i1"}, "stray"]}]}
    with pytest.raises(ValidationError, match="legacy items"):
        Board.from_dict(doc)


def test_cards_in_sorted_by_position(board):
    board.card("c0-0").position, board.card("c0-2").position = 2, 0
    assert [c.id for c in board.cards_in("col-0")] == ["c0-2", "c0-1", "c0-0"]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Validation
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@pytest.mark.parametrize("patch", [
    {"title": ""},
    {"content": 5},
    {"collapsed": "yes"},
    {"subtasks": [1, 2]},
    {"dependencies": "c2"},
    {"completed_at": "yesterday"},
])
def test_validate_card_rejects(patch):
    card = Card(id="c1", title="T", column_id="col-0")
    card.apply_patch(patch)
    with pytest.raises(ValidationError):
        validate_card(card)


def test_validate_card_accepts_timestamps():
    card = Card(id="c1", title="T", column_id="col-0", completed_at=utc_now())
    validate_card(card)


def test_from_dict_keeps_bad_list_for_validation():
    card = Card.from_dict({"id": "c1", "title": "T", "columnId": "col-0", "tags": "a,b"})
    with pytest.raises(ValidationError, match="tags"):
        validate_card(card)


def test_validate_board_duplicate_ids(board):
    board.card("c0-1").id = "c0-0"
    with pytest.raises(ValidationError, match="Duplicate card id"):
        validate_board(board)


def test_utc_now_format():
    stamp = utc_now()
    assert stamp.endswith("Z")
    assert len(stamp) == len("2024-01-01T00:00:00.000Z")
