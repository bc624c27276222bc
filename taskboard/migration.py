"""
Legacy -> flat board migration, and structure verification.

Legacy boards nest cards in ``columns[].items``. Migration lifts them into a
top-level ``cards`` list, stamping each with its owning ``columnId`` and a
column-scoped position. It is the only transition between the two shapes.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .positions import is_contiguous
from .schema import Board, BoardShape, Card, make_id, utc_now

logger = logging.getLogger(__name__)


@dataclass
class MigrationResult:
    board: Board
    migrated: bool
    items_migrated: int = 0
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "boardId": self.board.id,
            "migrated": self.migrated,
            "itemsMigrated": self.items_migrated,
            "message": self.message,
        }


def migrate(board: Board, now: Optional[str] = None) -> MigrationResult:
    """Convert ``board`` in place. Already-flat boards are left untouched."""
    if board.shape is BoardShape.FLAT:
        logger.info(f"Board {board.id} already using card-first architecture")
        return MigrationResult(
            board, False, 0, "Board is already using card-first architecture."
        )

    now = now or utc_now()
    cards: List[Card] = []
    for column in board.columns:
        for position, item in enumerate(column.items or []):
            card = Card.from_dict(item)
            card.id = card.id or make_id()
            card.column_id = column.id
            card.position = position
            card.updated_at = now
            cards.append(card)
        column.items = None

    if not cards:
        logger.warning(f"No items found to migrate on board {board.id}")

    board.cards = cards
    board.shape = BoardShape.FLAT
    board.last_updated = now
    logger.info(f"Board {board.id} migrated: {len(cards)} items -> cards")
    return MigrationResult(
        board, True, len(cards),
        f"Board {board.id} successfully migrated to card-first architecture. "
        f"Migrated {len(cards)} items to cards.",
    )


def verify_structure(board: Board) -> Dict[str, Any]:
    """Non-destructive report on a board's shape and integrity."""
    column_ids = {c.id for c in board.columns}
    analysis = {
        "architecture": board.shape.value,
        "totalColumns": len(board.columns),
        "totalCards": len(board.cards),
        "totalLegacyItems": 0,
        "columnsWithNoItems": 0,
        "columnsWithItems": 0,
        "orphanedCards": 0,
        "malformedEntities": 0,
        "positionsContiguous": is_contiguous(board.cards),
    }

    for column in board.columns:
        if column.items is not None:
            analysis["columnsWithItems"] += 1
            analysis["totalLegacyItems"] += len(column.items)
        else:
            analysis["columnsWithNoItems"] += 1
        if not column.id or not isinstance(column.id, str):
            analysis["malformedEntities"] += 1

    for card in board.cards:
        if not card.column_id or card.column_id not in column_ids:
            analysis["orphanedCards"] += 1
        if not card.id or not isinstance(card.id, str):
            analysis["malformedEntities"] += 1

    recommendations = []
    if board.shape is BoardShape.LEGACY and analysis["totalLegacyItems"] > 0:
        recommendations.append("Board should be migrated to card-first architecture")
    if analysis["orphanedCards"]:
        recommendations.append(
            f"{analysis['orphanedCards']} orphaned cards should be assigned to valid columns"
        )
    if analysis["malformedEntities"]:
        recommendations.append(
            f"{analysis['malformedEntities']} malformed entities should be fixed"
        )
    if not analysis["positionsContiguous"]:
        recommendations.append("Card positions have gaps or duplicates within a column")

    return {
        "boardId": board.id,
        "analysis": analysis,
        "recommendations": recommendations,
        "needsAction": bool(recommendations),
    }
