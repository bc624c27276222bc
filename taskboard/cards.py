"""
Card operations on an in-memory board: create, update, move, delete.

These functions mutate a loaded Board and never touch disk; the engine wraps
them with backup and persistence. The ``pool`` variants operate on an
explicit card list so the batch processor can include cards staged earlier
in the same batch.
"""
import logging
from typing import Any, List, Mapping, Optional

from .errors import ConflictError, NotFoundError, ValidationError
from .positions import apply_shift, close_gap, resolve_position
from .schema import (
    Board,
    Card,
    Position,
    PositionKeyword,
    make_id,
    parse_position,
    utc_now,
    validate_card,
)

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Untitled Card"

# Keys the engine owns; payloads cannot set them directly.
_MANAGED_ON_CREATE = ("id", "columnId", "position", "created_at", "updated_at")
_STRUCTURAL = ("id", "columnId", "position")


def require_column(board: Board, column_id: str, context: str = "") -> None:
    if not board.has_column(column_id):
        where = f" in {context}" if context else ""
        raise ConflictError(
            f"Target column {column_id} does not exist{where}", column_id=column_id
        )


def get_card(board: Board, card_id: str) -> Card:
    board.require_flat()
    card = board.card(card_id)
    if card is None:
        raise NotFoundError(f"Card with ID {card_id} not found", card_id=card_id)
    return card


def _on_column_change(board: Board, card: Card, now: str) -> None:
    """Completion stamp follows membership of a column named Done."""
    column = board.column(card.column_id)
    if column is not None and column.is_done:
        if not card.completed_at:
            card.completed_at = now
    else:
        card.completed_at = None


# ── pool-level primitives (shared with the batch processor) ──────────────────

def create_in_pool(
    board: Board,
    pool: List[Card],
    payload: Optional[Mapping[str, Any]] = None,
    column_id: Optional[str] = None,
    position: Position = PositionKeyword.LAST,
    context: str = "",
    now: Optional[str] = None,
) -> Card:
    """
    Build a new card and open a slot for it among ``pool``.

    The card is NOT appended to ``pool``; the caller decides where it lands.
    """
    payload = dict(payload or {})
    target = column_id or payload.get("columnId")
    if not target:
        if not board.columns:
            raise ValidationError("Board has no columns to place the card in")
        target = board.columns[0].id
    require_column(board, target, context)

    now = now or utc_now()
    card = Card.from_dict({k: v for k, v in payload.items() if k not in _MANAGED_ON_CREATE})
    card.id = make_id()
    card.title = card.title or DEFAULT_TITLE
    card.column_id = target
    card.created_at = now
    card.updated_at = now
    validate_card(card)

    resolved = resolve_position(pool, target, position)
    card.position = apply_shift(pool, card, target, resolved, insert=True)
    _on_column_change(board, card, now)
    return card


def move_in_pool(
    board: Board,
    pool: List[Card],
    card: Card,
    column_id: str,
    position: Position,
    context: str = "",
    now: Optional[str] = None,
) -> Card:
    require_column(board, column_id, context)
    resolved = resolve_position(pool, column_id, position, moving=card)
    previous_column = card.column_id
    apply_shift(pool, card, column_id, resolved)
    now = now or utc_now()
    card.updated_at = now
    if previous_column != column_id:
        _on_column_change(board, card, now)
    return card


def update_in_pool(
    board: Board,
    pool: List[Card],
    card: Card,
    patch: Mapping[str, Any],
    context: str = "",
    now: Optional[str] = None,
) -> Card:
    """
    Merge ``patch`` over ``card``. A changed ``columnId`` or an explicit
    ``position`` is applied as a move so column positions stay contiguous;
    a column change without a position appends to the new column.
    """
    fields = {k: v for k, v in patch.items() if k not in _STRUCTURAL}
    candidate = card.copy()
    candidate.apply_patch(fields)
    validate_card(candidate)

    target_column = patch.get("columnId") or card.column_id
    if target_column != card.column_id:
        require_column(board, target_column, context)
    requested: Optional[Position] = None
    if patch.get("position") is not None:
        requested = parse_position(patch["position"])
    elif target_column != card.column_id:
        requested = PositionKeyword.LAST

    resolved = None
    if requested is not None:
        resolved = resolve_position(pool, target_column, requested, moving=card)

    now = now or utc_now()
    card.apply_patch(fields)
    if resolved is not None:
        previous_column = card.column_id
        apply_shift(pool, card, target_column, resolved)
        if previous_column != target_column:
            _on_column_change(board, card, now)
    card.updated_at = now
    return card


# ── single-operation paths ───────────────────────────────────────────────────

def create_card(
    board: Board,
    column_id: Optional[str] = None,
    payload: Optional[Mapping[str, Any]] = None,
    position: Any = PositionKeyword.LAST,
    max_cards: Optional[int] = None,
) -> Card:
    """Create a card in ``column_id`` (first column if omitted)."""
    board.require_flat()
    if max_cards is not None and len(board.cards) >= max_cards:
        raise ValidationError(f"Maximum number of cards ({max_cards}) exceeded")
    card = create_in_pool(board, board.cards, payload, column_id, parse_position(position))
    board.cards.append(card)
    logger.info(f"Card created: {card.id} in {card.column_id}@{card.position}")
    return card


def update_card(board: Board, card_id: str, patch: Mapping[str, Any]) -> Card:
    """Merge ``patch`` over an existing card; the patch wins on conflicts."""
    card = get_card(board, card_id)
    update_in_pool(board, board.cards, card, patch)
    logger.info(f"Card updated: {card.id}")
    return card


def move_card(board: Board, card_id: str, column_id: str, position: Any) -> Card:
    """Move a card to ``column_id`` at ``position`` (int or keyword)."""
    card = get_card(board, card_id)
    move_in_pool(board, board.cards, card, column_id, parse_position(position))
    logger.info(f"Card moved: {card.id} -> {card.column_id}@{card.position}")
    return card


def delete_card(board: Board, card_id: str) -> Card:
    """Remove a card and close the gap it leaves. Dependencies on it are kept."""
    card = get_card(board, card_id)
    close_gap(board.cards, card)
    board.cards.remove(card)
    logger.info(f"Card deleted: {card.id}")
    return card
