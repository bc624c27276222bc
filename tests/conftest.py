"""Shared test fixtures for the board engine tests."""

import pytest

from taskboard.config import Config
from taskboard.engine import BoardEngine
from taskboard.schema import Board, BoardShape, Card, Column


def make_board(cards_per_column=(3, 0), column_names=("To Do", "Done")) -> Board:
    """Flat board with columns col-0..col-N and cards c<col>-<pos>."""
    columns = [Column(id=f"col-{i}", name=name) for i, name in enumerate(column_names)]
    cards = []
    for i, count in enumerate(cards_per_column):
        for pos in range(count):
            cards.append(Card(
                id=f"c{i}-{pos}",
                title=f"Card {i}-{pos}",
                column_id=f"col-{i}",
                position=pos,
            ))
    return Board(id="board-1", name="Test Board", columns=columns, cards=cards,
                 shape=BoardShape.FLAT)


def positions(board: Board, column_id: str) -> dict:
    """{card_id: position} for one column."""
    return {c.id: c.position for c in board.cards if c.column_id == column_id}


def legacy_document(item_counts=(2, 1, 0)) -> dict:
    columns = []
    for i, count in enumerate(item_counts):
        columns.append({
            "id": f"col-{i}",
            "name": f"Column {i}",
            "items": [
                {"id": f"item-{i}-{j}", "title": f"Item {i}-{j}", "tags": ["legacy"]}
                for j in range(count)
            ],
        })
    return {"id": "legacy-1", "projectName": "Legacy Board", "columns": columns}


@pytest.fixture
def board():
    return make_board()


@pytest.fixture
def config(tmp_path):
    cfg = Config(
        boards_dir=str(tmp_path / "boards"),
        audit_log=str(tmp_path / "audit.jsonl"),
    )
    cfg.resolve_paths()
    return cfg


@pytest.fixture
def engine(config):
    return BoardEngine(config)


@pytest.fixture
def stored_board(engine):
    """A flat board persisted through the engine's store."""
    b = make_board(cards_per_column=(3, 2))
    engine.store.save(b)
    return b
