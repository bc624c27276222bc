"""
Tests for the two-pass batch processor.

Covers:
- Creates run before updates/moves regardless of array order
- $ref: aliases resolve to cards created in the same batch
- Per-operation failure isolation
- Result ordering and the referenceMap
"""
import json
import random

import pytest

from conftest import make_board, positions
from taskboard.batch import BatchOperationProcessor
from taskboard.errors import ArchitectureError, ValidationError
from taskboard.positions import is_contiguous
from taskboard.schema import BoardShape


@pytest.fixture
def processor():
    return BatchOperationProcessor(max_operations=10)


@pytest.fixture
def wide_board():
    return make_board(cards_per_column=(3, 2))


class TestReferences:
    """Aliases created in pass 1 and consumed in pass 2."""

    def test_create_then_move_by_reference(self, processor, wide_board):
        result = processor.apply(wide_board, [
            {"type": "create", "columnId": "col-0", "reference": "x",
             "cardData": {"title": "X"}, "position": "last"},
            {"type": "move", "cardId": "$ref:x", "columnId": "col-1", "position": "first"},
        ])
        assert result.success
        new_id = result.reference_map["x"]
        card = wide_board.card(new_id)
        assert (card.column_id, card.position) == ("col-1", 0)
        assert positions(wide_board, "col-1") == {new_id: 0, "c1-0": 1, "c1-1": 2}
        assert positions(wide_board, "col-0") == {"c0-0": 0, "c0-1": 1, "c0-2": 2}

    def test_reference_used_before_create_in_array(self, processor, wide_board):
        result = processor.apply(wide_board, [
            {"type": "update", "cardId": "$ref:later", "cardData": {"title": "Renamed"}},
            {"type": "create", "reference": "later", "cardData": {"title": "Original"}},
        ])
        assert result.success
        assert wide_board.card(result.reference_map["later"]).title == "Renamed"

    def test_unknown_reference_fails(self, processor, wide_board):
        result = processor.apply(wide_board, [
            {"type": "move", "cardId": "$ref:ghost", "columnId": "col-1", "position": 0},
        ])
        assert not result.success
        assert "ghost" in result.results[0].error
        assert result.reference_map == {}

    def test_reference_to_failed_create(self, processor, wide_board):
        result = processor.apply(wide_board, [
            {"type": "create", "columnId": "nope", "reference": "bad"},
            {"type": "update", "cardId": "$ref:bad", "cardData": {"title": "Y"}},
        ])
        assert [r.success for r in result.results] == [False, False]
        assert "creation failed" in result.results[1].error


class TestFailureIsolation:
    """One failing operation never blocks the others."""

    def test_bad_column_does_not_block_valid_create(self, processor, board):
        result = processor.apply(board, [
            {"type": "create", "columnId": "col-0", "cardData": {"title": "A"}},
            {"type": "create", "columnId": "nope", "cardData": {"title": "B"}},
        ])
        assert result.results[0].success
        assert not result.results[1].success
        assert "does not exist" in result.results[1].error
        assert not result.success
        assert [c.title for c in board.cards if c.title in ("A", "B")] == ["A"]
        assert is_contiguous(board.cards)

    def test_failed_update_leaves_card_untouched(self, processor, board):
        result = processor.apply(board, [
            {"type": "update", "cardId": "c0-0",
             "cardData": {"title": "Changed", "columnId": "ghost"}},
            {"type": "update", "cardId": "c0-1", "cardData": {"title": "OK"}},
        ])
        assert [r.success for r in result.results] == [False, True]
        assert board.card("c0-0").title == "Card 0-0"
        assert board.card("c0-1").title == "OK"

    def test_invalid_type_is_reported_per_operation(self, processor, board):
        result = processor.apply(board, [
            {"type": "archive", "cardId": "c0-0"},
            {"type": "move", "cardId": "c0-0", "columnId": "col-1", "position": 0},
        ])
        assert not result.results[0].success
        assert "Invalid operation type" in result.results[0].error
        assert result.results[1].success

    def test_missing_fields(self, processor, board):
        result = processor.apply(board, [
            {"type": "update", "cardId": "c0-0"},
            {"type": "move", "cardId": "c0-0", "columnId": "col-1"},
            {"type": "update", "cardData": {"title": "X"}},
        ])
        assert not any(r.success for r in result.results)
        assert "cardData is required" in result.results[0].error
        assert "position are required" in result.results[1].error

    def test_encoded_card_data(self, processor, board):
        result = processor.apply(board, [
            {"type": "create", "cardData": json.dumps({"title": "From JSON"})},
            {"type": "create", "cardData": "{not json"},
        ])
        assert [r.success for r in result.results] == [True, False]
        assert "Invalid JSON" in result.results[1].error
        assert "create operation 2" in result.results[1].error

    def test_non_string_card_id(self, processor, board):
        result = processor.apply(board, [
            {"type": "create", "cardData": {"title": "A"}},
            {"type": "move", "cardId": 5, "columnId": "col-1", "position": 0},
            {"type": "update", "cardId": {"id": "c0-0"}, "cardData": {"title": "X"}},
        ])
        assert [r.success for r in result.results] == [True, False, False]
        assert "cardId must be a string" in result.results[1].error
        assert any(c.title == "A" for c in board.cards)
        assert board.card("c0-0").title == "Card 0-0"

    def test_non_string_reference(self, processor, board):
        result = processor.apply(board, [
            {"type": "create", "columnId": "col-0", "position": "first",
             "reference": ["x"], "cardData": {"title": "A"}},
            {"type": "create", "cardData": {"title": "B"}},
        ])
        assert [r.success for r in result.results] == [False, True]
        assert "reference must be a string" in result.results[0].error
        assert result.reference_map == {}
        assert [c.title for c in board.cards if c.title in ("A", "B")] == ["B"]
        assert positions(board, "col-0")["c0-0"] == 0
        assert is_contiguous(board.cards)


class TestOrdering:

    def test_results_sorted_by_operation_index(self, processor, board):
        result = processor.apply(board, [
            {"type": "move", "cardId": "c0-2", "columnId": "col-0", "position": "first"},
            {"type": "create", "cardData": {"title": "N"}},
            {"type": "update", "cardId": "c0-1", "cardData": {"tags": ["x"]}},
        ])
        assert [r.operation for r in result.results] == [1, 2, 3]
        assert [r.type for r in result.results] == ["move", "create", "update"]

    def test_creates_run_first(self, processor, board):
        # the move lands before the create in the array, but the create
        # has already shifted col-0 by the time the move runs
        result = processor.apply(board, [
            {"type": "move", "cardId": "c0-0", "columnId": "col-0", "position": "last"},
            {"type": "create", "columnId": "col-0", "position": "first",
             "cardData": {"title": "Head"}},
        ])
        assert result.success
        head = result.results[1].card_id
        assert positions(board, "col-0") == {head: 0, "c0-1": 1, "c0-2": 2, "c0-0": 3}

    def test_to_dict_shape(self, processor, board):
        data = processor.apply(board, [
            {"type": "create", "reference": "r1", "cardData": {"title": "T"}},
        ]).to_dict()
        assert data["success"] is True
        assert data["results"][0]["operation"] == 1
        assert data["results"][0]["cardId"] == data["referenceMap"]["r1"]
        assert "error" not in data["results"][0]


class TestWholeBatchRejection:

    def test_empty_batch(self, processor, board):
        with pytest.raises(ValidationError):
            processor.apply(board, [])

    def test_not_a_list(self, processor, board):
        with pytest.raises(ValidationError):
            processor.apply(board, "create")

    def test_too_many_operations(self, processor, board):
        ops = [{"type": "create"} for _ in range(11)]
        with pytest.raises(ValidationError, match="Maximum 10 operations"):
            processor.apply(board, ops)
        assert len(board.cards) == 3

    def test_legacy_board(self, processor, board):
        board.shape = BoardShape.LEGACY
        with pytest.raises(ArchitectureError):
            processor.apply(board, [{"type": "create"}])


def test_card_cap_counts_staged_cards(board):
    processor = BatchOperationProcessor(max_cards=4)
    result = processor.apply(board, [
        {"type": "create", "cardData": {"title": "fits"}},
        {"type": "create", "cardData": {"title": "over"}},
    ])
    assert [r.success for r in result.results] == [True, False]
    assert len(board.cards) == 4


def _random_position(rng):
    return rng.choice([0, 1, 2, 5, "first", "last", "up", "down"])


def _random_batch(rng, board, round_no):
    columns = [c.id for c in board.columns] + ["missing"]
    refs = []
    ops = []
    for i in range(rng.randint(1, 8)):
        known = [c.id for c in board.cards] + [f"$ref:{r}" for r in refs] + ["$ref:nobody"]
        kind = rng.choice(["create", "update", "move"])
        if kind == "create":
            ref = f"r{round_no}-{i}"
            refs.append(ref)
            op = {"type": "create", "reference": ref, "cardData": {"title": ref}}
            if rng.random() < 0.8:
                op["columnId"] = rng.choice(columns)
            if rng.random() < 0.8:
                op["position"] = _random_position(rng)
        elif kind == "update":
            patch = {"title": f"u{round_no}-{i}"}
            if rng.random() < 0.5:
                patch["columnId"] = rng.choice(columns)
            if rng.random() < 0.5:
                patch["position"] = _random_position(rng)
            op = {"type": "update", "cardId": rng.choice(known), "cardData": patch}
        else:
            op = {"type": "move", "cardId": rng.choice(known),
                  "columnId": rng.choice(columns), "position": _random_position(rng)}
        ops.append(op)
    return ops


def test_random_batches_keep_positions_contiguous():
    rng = random.Random(2024)
    board = make_board(cards_per_column=(3, 2, 0), column_names=("To Do", "Doing", "Done"))
    processor = BatchOperationProcessor(max_operations=10)
    for round_no in range(150):
        ops = _random_batch(rng, board, round_no)
        result = processor.apply(board, ops)
        assert len(result.results) == len(ops)
        assert is_contiguous(board.cards), f"gap after batch {round_no}: {ops}"
        assert len({c.id for c in board.cards}) == len(board.cards)
