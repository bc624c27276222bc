"""
Read-only board projections for size-constrained consumers.

  full        the board document as stored
  summary     per-column card counts plus progress stats
  compact     short field names, empty optional fields omitted
  cards-only  just the cards, optionally for a single column

None of these mutate the board.
"""
import math
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from .errors import ValidationError
from .schema import Board, Card


class BoardFormat(Enum):
    FULL = "full"
    SUMMARY = "summary"
    COMPACT = "compact"
    CARDS_ONLY = "cards-only"

    @classmethod
    def from_str(cls, value: str) -> "BoardFormat":
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(f.value for f in cls)
            raise ValidationError(f"Invalid format '{value}'. Allowed: {allowed}")


# Compact card key -> card document key; the first four are always present.
COMPACT_CARD_KEYS = (
    ("id", "id"),
    ("t", "title"),
    ("col", "columnId"),
    ("p", "position"),
    ("c", "content"),
    ("coll", "collapsed"),
    ("sub", "subtasks"),
    ("tag", "tags"),
    ("dep", "dependencies"),
    ("ca", "created_at"),
    ("ua", "updated_at"),
    ("comp", "completed_at"),
)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def progress_stats(board: Board) -> Dict[str, int]:
    total = len(board.cards)
    completed = sum(1 for c in board.cards if c.completed_at)
    percentage = _round_half_up(completed / total * 100) if total else 0
    return {
        "totalCards": total,
        "completedCards": completed,
        "progressPercentage": percentage,
    }


def to_summary(board: Board) -> Dict[str, Any]:
    counts: Dict[str, int] = {}
    for card in board.cards:
        counts[card.column_id] = counts.get(card.column_id, 0) + 1
    return {
        "id": board.id,
        "projectName": board.name,
        "last_updated": board.last_updated,
        "columns": [
            {"id": col.id, "name": col.name, "cardCount": counts.get(col.id, 0)}
            for col in board.columns
        ],
        "stats": progress_stats(board),
    }


def _compact_card(card: Card) -> Dict[str, Any]:
    doc = card.to_dict()
    out: Dict[str, Any] = {}
    for i, (short, key) in enumerate(COMPACT_CARD_KEYS):
        value = doc.get(key)
        if i < 4:
            out[short] = value
        elif value not in (None, "", [], False):
            out[short] = value
    return out


def to_compact(board: Board) -> Dict[str, Any]:
    return {
        "id": board.id,
        "name": board.name,
        "up": board.last_updated,
        "cols": [{"id": col.id, "n": col.name} for col in board.columns],
        "cards": [_compact_card(c) for c in board.cards],
    }


def to_cards_only(board: Board, column_id: Optional[str] = None) -> Dict[str, Any]:
    cards = []
    for card in board.cards:
        if column_id and card.column_id != column_id:
            continue
        entry = {
            "id": card.id,
            "title": card.title,
            "content": card.content,
            "columnId": card.column_id,
            "position": card.position,
            "dependencies": list(card.dependencies),
            "created_at": card.created_at,
            "updated_at": card.updated_at,
        }
        if card.completed_at:
            entry["completed_at"] = card.completed_at
        cards.append(entry)
    return {"cards": cards}


def format_board(board: Board, fmt: Any = BoardFormat.FULL,
                 options: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    """Project ``board`` in the requested format. ``options`` may carry ``columnId``."""
    if not isinstance(fmt, BoardFormat):
        fmt = BoardFormat.from_str(fmt)
    options = options or {}

    if fmt is BoardFormat.SUMMARY:
        return to_summary(board)
    if fmt is BoardFormat.COMPACT:
        return to_compact(board)
    if fmt is BoardFormat.CARDS_ONLY:
        return to_cards_only(board, options.get("columnId"))
    return board.to_dict()
