"""
Batched card operations.

A batch is an ordered list of heterogeneous operations:

  {type: "create", columnId?, cardData?, position?, reference?}
  {type: "update", cardId, cardData}
  {type: "move",   cardId, columnId, position}

Processing is two-pass. Pass 1 runs every create in array order so that
aliases exist before anything refers to them; pass 2 runs updates and moves
in their original relative order. The batch is not atomic: each operation
succeeds or fails on its own and failures never stop later operations.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .cards import create_in_pool, move_in_pool, update_in_pool
from .errors import NotFoundError, TaskboardError, ValidationError
from .references import ReferenceResolver
from .schema import Board, Card, PositionKeyword, parse_payload, parse_position, utc_now

logger = logging.getLogger(__name__)

OPERATION_TYPES = ("create", "update", "move")


@dataclass
class OperationResult:
    """Outcome of one operation. ``operation`` is its 1-based index in the batch."""
    operation: int
    type: str
    success: bool
    card_id: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "operation": self.operation,
            "type": self.type,
            "success": self.success,
        }
        if self.card_id:
            data["cardId"] = self.card_id
        if self.error:
            data["error"] = self.error
        return data


@dataclass
class BatchResult:
    results: List[OperationResult] = field(default_factory=list)
    reference_map: Dict[str, str] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return all(r.success for r in self.results)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "results": [r.to_dict() for r in self.results],
            "referenceMap": dict(self.reference_map),
        }


class BatchOperationProcessor:
    """Applies a batch to an in-memory board. Persistence is the caller's job."""

    def __init__(
        self,
        max_operations: int = 100,
        max_cards: Optional[int] = None,
        max_payload_chars: Optional[int] = None,
    ):
        self.max_operations = max_operations
        self.max_cards = max_cards
        self.max_payload_chars = max_payload_chars

    def check_operations(self, operations: Any) -> None:
        """Reject the batch as a whole when the list itself is malformed."""
        if not isinstance(operations, Sequence) or isinstance(operations, (str, bytes)):
            raise ValidationError("Operations must be a list")
        if not operations:
            raise ValidationError("At least one operation is required")
        if len(operations) > self.max_operations:
            raise ValidationError(
                f"Maximum {self.max_operations} operations allowed, got {len(operations)}"
            )

    def apply(self, board: Board, operations: Sequence[Mapping[str, Any]]) -> BatchResult:
        board.require_flat()
        self.check_operations(operations)

        resolver = ReferenceResolver()
        staged: List[Card] = []
        results: List[OperationResult] = []
        now = utc_now()

        # Pass 1: creates (and anything malformed enough to have no pass)
        for index, op in enumerate(operations, start=1):
            op_type = op.get("type") if isinstance(op, Mapping) else None
            if op_type not in OPERATION_TYPES:
                results.append(self._failed(index, str(op_type), ValidationError(
                    f"Invalid operation type '{op_type}'. Allowed: {', '.join(OPERATION_TYPES)}"
                )))
                continue
            if op_type != "create":
                continue
            try:
                card = self._create(board, staged, op, index, now)
                resolver.register(op.get("reference"), card.id)
            except TaskboardError as e:
                results.append(self._failed(index, op_type, e))
                continue
            staged.append(card)
            results.append(OperationResult(index, op_type, True, card_id=card.id))

        # Pass 2: updates and moves, in original relative order
        for index, op in enumerate(operations, start=1):
            if not isinstance(op, Mapping) or op.get("type") not in ("update", "move"):
                continue
            op_type = op["type"]
            try:
                card = self._locate(board, staged, resolver, op)
                if op_type == "update":
                    self._update(board, staged, card, op, index, now)
                else:
                    self._move(board, staged, card, op, index, now)
            except TaskboardError as e:
                results.append(self._failed(index, op_type, e))
                continue
            results.append(OperationResult(index, op_type, True, card_id=card.id))

        board.cards.extend(staged)
        results.sort(key=lambda r: r.operation)
        result = BatchResult(results, resolver.as_dict())
        failed = sum(1 for r in results if not r.success)
        logger.info(
            f"Batch applied to {board.id}: {len(results) - failed} ok, {failed} failed, "
            f"{len(staged)} cards created"
        )
        return result

    # ── per-operation handlers ──

    def _create(self, board: Board, staged: List[Card], op: Mapping[str, Any],
                index: int, now: str) -> Card:
        context = f"create operation {index}"
        reference = op.get("reference")
        if reference is not None and not isinstance(reference, str):
            # checked before the insert shifts any sibling
            raise ValidationError(f"reference must be a string in {context}")
        if self.max_cards is not None and len(board.cards) + len(staged) >= self.max_cards:
            raise ValidationError(f"Maximum number of cards ({self.max_cards}) exceeded")
        payload = {}
        if op.get("cardData") is not None:
            payload = parse_payload(op["cardData"], context, self.max_payload_chars)
        position = op.get("position")
        position = PositionKeyword.LAST if position is None else parse_position(position)
        return create_in_pool(
            board, board.cards + staged, payload, op.get("columnId"), position, context, now
        )

    def _locate(self, board: Board, staged: List[Card], resolver: ReferenceResolver,
                op: Mapping[str, Any]) -> Card:
        raw_id = op.get("cardId")
        if raw_id is not None and not isinstance(raw_id, str):
            raise ValidationError(f"cardId must be a string, got {type(raw_id).__name__}")
        card_id = resolver.resolve(raw_id)
        if not card_id:
            raise ValidationError(f"cardId is required for '{op['type']}' operation")
        card = board.card(card_id)
        if card is None:
            card = next((c for c in staged if c.id == card_id), None)
        if card is None:
            raise NotFoundError(f"Card {card_id} not found", card_id=card_id)
        return card

    def _update(self, board: Board, staged: List[Card], card: Card, op: Mapping[str, Any],
                index: int, now: str) -> None:
        context = f"update operation {index}"
        if op.get("cardData") is None:
            raise ValidationError("cardData is required for 'update' operation")
        patch = parse_payload(op["cardData"], context, self.max_payload_chars)
        update_in_pool(board, board.cards + staged, card, patch, context, now)

    def _move(self, board: Board, staged: List[Card], card: Card, op: Mapping[str, Any],
              index: int, now: str) -> None:
        if not op.get("columnId") or op.get("position") is None:
            raise ValidationError("columnId and position are required for 'move' operation")
        move_in_pool(
            board, board.cards + staged, card, op["columnId"], parse_position(op["position"]),
            f"move operation {index}", now,
        )

    @staticmethod
    def _failed(index: int, op_type: str, error: TaskboardError) -> OperationResult:
        logger.warning(f"Batch {op_type} operation {index} failed: {error.message}")
        return OperationResult(index, op_type, False, error=error.message)
