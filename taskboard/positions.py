"""
Card position arithmetic.

Positions are zero-based ranks scoped to a column. For every column with k
cards the positions must be exactly {0, ..., k-1}. These helpers resolve a
requested position (integer or keyword) to a rank and shift siblings so that
stays true across inserts and moves.
"""
from collections import defaultdict
from typing import Dict, Iterable, List, Optional

from .errors import ValidationError
from .schema import Card, Position, PositionKeyword


def _others_in(cards: Iterable[Card], column_id: str, moving: Optional[Card]) -> List[Card]:
    return [
        c for c in cards
        if c.column_id == column_id and (moving is None or c.id != moving.id)
    ]


def resolve_position(
    cards: Iterable[Card],
    column_id: str,
    requested: Position,
    moving: Optional[Card] = None,
) -> int:
    """
    Resolve ``requested`` to an integer rank in ``column_id``.

    ``cards`` is every card that counts as present (persisted plus anything
    staged in the current batch). ``moving`` is excluded from the count.

    - integer: clamped to [0, count]
    - first:   0
    - last:    count of other cards in the column
    - up/down: only within the moving card's own column; ``down`` is left
               unclamped and gets clamped by apply_shift()
    """
    count = len(_others_in(cards, column_id, moving))

    if isinstance(requested, int):
        return min(max(0, requested), count)

    if requested is PositionKeyword.FIRST:
        return 0
    if requested is PositionKeyword.LAST:
        return count
    if requested in (PositionKeyword.UP, PositionKeyword.DOWN):
        if moving is None or moving.column_id != column_id:
            raise ValidationError(
                f"Cannot use '{requested.value}' when moving to a different column"
            )
        if requested is PositionKeyword.UP:
            return max(0, moving.position - 1)
        return moving.position + 1
    return count


def apply_shift(
    cards: Iterable[Card],
    moving: Card,
    target_column: str,
    target_position: int,
    insert: bool = False,
) -> int:
    """
    Place ``moving`` at (target_column, target_position) and shift siblings.

    With ``insert=True`` the card has no prior column (a create) and only the
    destination column opens a slot. Returns the final position.
    """
    cards = list(cards)
    others = _others_in(cards, target_column, moving)
    target = min(max(0, target_position), len(others))

    if insert:
        for c in others:
            if c.position >= target:
                c.position += 1
    elif moving.column_id == target_column:
        old = moving.position
        for c in others:
            if old < target and old < c.position <= target:
                c.position -= 1
            elif old > target and target <= c.position < old:
                c.position += 1
    else:
        old = moving.position
        for c in _others_in(cards, moving.column_id, moving):
            if c.position > old:
                c.position -= 1
        for c in others:
            if c.position >= target:
                c.position += 1

    moving.column_id = target_column
    moving.position = target
    return target


def close_gap(cards: Iterable[Card], removed: Card) -> None:
    """Shift cards after ``removed`` up by one, as if it left its column."""
    for c in _others_in(cards, removed.column_id, removed):
        if c.position > removed.position:
            c.position -= 1


def normalize_positions(cards: Iterable[Card]) -> None:
    """Renumber every column to 0..k-1, keeping the current relative order."""
    by_column: Dict[str, List[Card]] = defaultdict(list)
    for c in cards:
        by_column[c.column_id].append(c)
    for column_cards in by_column.values():
        column_cards.sort(key=lambda c: c.position)
        for rank, c in enumerate(column_cards):
            c.position = rank


def is_contiguous(cards: Iterable[Card]) -> bool:
    """True when every column's positions are exactly 0..k-1."""
    by_column: Dict[str, List[int]] = defaultdict(list)
    for c in cards:
        by_column[c.column_id].append(c.position)
    return all(sorted(p) == list(range(len(p))) for p in by_column.values())
