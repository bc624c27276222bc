"""
Column operations on an in-memory board: add, update, delete, reorder.

Column order is the order of ``board.columns``. Column names are unique per
board. A column that still holds cards (or legacy items) cannot be deleted,
so every card's ``columnId`` keeps resolving.
"""
import logging
from typing import Any, List, Mapping, Optional, Sequence

from .errors import ConflictError, NotFoundError, ValidationError
from .schema import Board, Column, make_id

logger = logging.getLogger(__name__)


def get_column(board: Board, column_id: str) -> Column:
    column = board.column(column_id)
    if column is None:
        raise NotFoundError(f"Column with ID {column_id} not found", column_id=column_id)
    return column


def _check_name(board: Board, name: Any, column_id: Optional[str] = None) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Column name must be a non-empty string")
    name = name.strip()
    for col in board.columns:
        if col.name == name and col.id != column_id:
            raise ValidationError(f"Column name '{name}' already exists")
    return name


def _check_wip_limit(value: Any) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError(f"wipLimit must be a positive integer, got: {value!r}")


def _card_count(board: Board, column: Column) -> int:
    if column.items is not None:
        return len(column.items)
    return sum(1 for c in board.cards if c.column_id == column.id)


def add_column(
    board: Board,
    data: Mapping[str, Any],
    position: Optional[int] = None,
    max_columns: Optional[int] = None,
) -> Column:
    """Insert a new column at ``position`` (appended when omitted)."""
    if max_columns is not None and len(board.columns) >= max_columns:
        raise ValidationError(f"Maximum number of columns ({max_columns}) exceeded")
    name = _check_name(board, data.get("name"))
    _check_wip_limit(data.get("wipLimit"))
    if position is not None and (isinstance(position, bool) or not isinstance(position, int)
                                 or position < 0):
        raise ValidationError(f"Column position must be a non-negative integer, got: {position!r}")

    column = Column.from_dict({k: v for k, v in data.items() if k not in ("id", "items")})
    column.id = make_id()
    column.name = name
    index = len(board.columns) if position is None else min(position, len(board.columns))
    board.columns.insert(index, column)
    logger.info(f"Column added: {column.id} ({column.name}) at {index}")
    return column


def update_column(board: Board, column_id: str, patch: Mapping[str, Any]) -> Column:
    """Merge ``patch`` over a column. ``id`` and legacy ``items`` are not patchable."""
    column = get_column(board, column_id)
    name = column.name
    if "name" in patch:
        name = _check_name(board, patch["name"], column_id)
    if "wipLimit" in patch:
        _check_wip_limit(patch["wipLimit"])

    column.name = name
    for key, value in patch.items():
        if key in ("id", "name", "items"):
            continue
        if key == "wipLimit":
            column.wip_limit = value
        else:
            column.extra[key] = value
    logger.info(f"Column updated: {column.id}")
    return column


def delete_column(board: Board, column_id: str) -> Column:
    column = get_column(board, column_id)
    count = _card_count(board, column)
    if count:
        raise ConflictError(
            f"Cannot delete column {column_id} with {count} cards", column_id=column_id
        )
    board.columns.remove(column)
    logger.info(f"Column deleted: {column_id}")
    return column


def reorder_columns(board: Board, column_order: Sequence[str]) -> List[Column]:
    """Reorder columns; ``column_order`` must name every column exactly once."""
    if not isinstance(column_order, Sequence) or isinstance(column_order, (str, bytes)):
        raise ValidationError("Column order must be a list of column ids")
    if len(column_order) != len(board.columns) or len(set(map(str, column_order))) != len(column_order):
        raise ValidationError("Column order must include all columns exactly once")
    ordered = [get_column(board, column_id) for column_id in column_order]
    board.columns = ordered
    logger.info(f"Columns reordered on {board.id}")
    return ordered
