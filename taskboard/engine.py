"""
BoardEngine: the operation surface transport layers call into.

Every mutating operation runs the same cycle:

    load -> shape check -> backup -> mutate in memory -> save once -> audit

Single operations raise the first error they hit and save nothing. Batches
isolate errors per operation and still save whatever succeeded.
"""
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from . import cards as card_ops
from . import columns as column_ops
from .audit import AuditLog
from .backup import BackupManager
from .batch import BatchOperationProcessor, BatchResult
from .config import Config
from .errors import ValidationError
from .formats import format_board
from .migration import MigrationResult, migrate, verify_structure
from .positions import normalize_positions
from .schema import (
    Board,
    BoardShape,
    Card,
    Column,
    PositionKeyword,
    parse_payload,
    validate_board,
)
from .store import BoardStore
from .templates import clone_template, get_template, load_template_file

logger = logging.getLogger(__name__)


class BoardEngine:
    """File-backed board operations. One instance per boards directory."""

    def __init__(
        self,
        config: Optional[Config] = None,
        store: Optional[BoardStore] = None,
        backups: Optional[BackupManager] = None,
        audit: Optional[AuditLog] = None,
    ):
        self.config = config or Config.load()
        if not self.config.backups_path:
            self.config.resolve_paths()
        self.store = store or BoardStore(self.config.boards_dir)
        self.backups = backups or BackupManager(
            self.config.backups_path, self.config.backup_retention
        )
        self.audit = audit or AuditLog(self.config.audit_log)
        self.batch_processor = BatchOperationProcessor(
            max_operations=self.config.max_batch_operations,
            max_cards=self.config.max_cards,
            max_payload_chars=self.config.max_card_payload_chars,
        )

    # ── storage ──────────────────────────────────────────────────────────

    def load_board(self, board_id: str) -> Board:
        return self.store.load(board_id)

    def save_board(self, board: Board) -> Path:
        return self.store.save(board)

    def create_backup(self, board_id: str, board: Union[Board, Mapping[str, Any]],
                      label: str) -> Path:
        document = board.to_dict() if isinstance(board, Board) else board
        return self.backups.create(board_id, document, label)

    def list_boards(self) -> List[Dict[str, str]]:
        return self.store.list_boards()

    def _load_for_mutation(self, board_id: str, label: str, flat_only: bool = True) -> Board:
        raw = self.store.load_raw(board_id)
        board = Board.from_dict(raw)
        board.id = board.id or board_id
        if flat_only:
            board.require_flat()
        self.backups.create(board_id, raw, label)
        return board

    # ── boards ───────────────────────────────────────────────────────────

    def create_board(self, name: str, template: Optional[str] = None) -> Board:
        """Create a board by cloning a template (configured file, or a built-in)."""
        if template is None and self.config.template_path:
            template_doc = load_template_file(self.config.template_path)
        else:
            template_doc = get_template(template)
        board = clone_template(template_doc, name)
        self.store.save(board)
        self.audit.record("create-board", board.id, name=board.name)
        logger.info(f"Board created: {board.id} ({board.name})")
        return board

    def replace_board(self, board_data: Any) -> Board:
        """Replace a whole stored board with ``board_data`` (string or mapping)."""
        data = parse_payload(
            board_data, max_chars=self.config.max_board_payload_chars, kind="board"
        )
        board_id = data.get("id")
        if not board_id:
            raise ValidationError("Board ID is required when updating a board")
        existing = self.store.load_raw(board_id)

        board = Board.from_dict(data)
        self._check_limits(board)
        if board.shape is BoardShape.FLAT:
            column_ids = {c.id for c in board.columns}
            for card in board.cards:
                if card.column_id not in column_ids:
                    raise ValidationError(
                        f"Card \"{card.title or card.id}\" references non-existent "
                        f"column ID: {card.column_id}"
                    )
        validate_board(board)
        normalize_positions(board.cards)
        if "created_at" in existing:
            board.extra["created_at"] = existing["created_at"]

        self.backups.create(board_id, existing, "pre_update")
        self.store.save(board)
        self.audit.record("replace-board", board_id)
        return board

    def _check_limits(self, board: Board) -> None:
        if len(board.columns) > self.config.max_columns:
            raise ValidationError(
                f"Maximum number of columns ({self.config.max_columns}) exceeded"
            )
        if board.shape is BoardShape.FLAT:
            total = len(board.cards)
        else:
            total = sum(len(c.items or []) for c in board.columns)
        if total > self.config.max_cards:
            raise ValidationError(
                f"Maximum number of cards ({self.config.max_cards}) exceeded"
            )

    def delete_board(self, board_id: str) -> Dict[str, Any]:
        raw = self.store.load_raw(board_id)
        backup_path = self.backups.create(board_id, raw, "pre_deletion")
        self.store.delete(board_id)
        self.audit.record("delete-board", board_id, backup=str(backup_path))
        return {"success": True, "boardId": board_id, "backup": str(backup_path)}

    # ── columns ──────────────────────────────────────────────────────────

    def add_column(self, board_id: str, column_data: Any,
                   position: Optional[int] = None) -> Column:
        data = parse_payload(
            column_data, max_chars=self.config.max_card_payload_chars, kind="column"
        )
        board = self._load_for_mutation(board_id, "pre_column_add", flat_only=False)
        column = column_ops.add_column(
            board, data, position, max_columns=self.config.max_columns
        )
        self.store.save(board)
        self.audit.record("add-column", board_id, column_id=column.id, name=column.name)
        return column

    def update_column(self, board_id: str, column_id: str, column_data: Any) -> Column:
        patch = parse_payload(
            column_data, max_chars=self.config.max_card_payload_chars, kind="column"
        )
        board = self._load_for_mutation(board_id, "pre_column_update", flat_only=False)
        column = column_ops.update_column(board, column_id, patch)
        self.store.save(board)
        self.audit.record("update-column", board_id, column_id=column.id)
        return column

    def delete_column(self, board_id: str, column_id: str) -> Column:
        board = self._load_for_mutation(board_id, "pre_column_delete", flat_only=False)
        column = column_ops.delete_column(board, column_id)
        self.store.save(board)
        self.audit.record("delete-column", board_id, column_id=column.id)
        return column

    def reorder_columns(self, board_id: str, column_order: Sequence[str]) -> List[Column]:
        board = self._load_for_mutation(board_id, "pre_column_reorder", flat_only=False)
        columns = column_ops.reorder_columns(board, column_order)
        self.store.save(board)
        self.audit.record("reorder-columns", board_id, order=[c.id for c in columns])
        return columns

    # ── cards ────────────────────────────────────────────────────────────

    def get_card(self, board_id: str, card_id: str) -> Card:
        return card_ops.get_card(self.store.load(board_id), card_id)

    def create_card(self, board_id: str, column_id: Optional[str] = None,
                    card_data: Any = None, position: Any = PositionKeyword.LAST) -> Card:
        payload = None
        if card_data is not None:
            payload = parse_payload(card_data, max_chars=self.config.max_card_payload_chars)
        board = self._load_for_mutation(board_id, "pre_card_create")
        card = card_ops.create_card(
            board, column_id, payload, position, max_cards=self.config.max_cards
        )
        self.store.save(board)
        self.audit.record("create-card", board_id, card_id=card.id)
        return card

    def update_card(self, board_id: str, card_id: str, card_data: Any) -> Card:
        patch = parse_payload(card_data, max_chars=self.config.max_card_payload_chars)
        board = self._load_for_mutation(board_id, "pre_card_update")
        card = card_ops.update_card(board, card_id, patch)
        self.store.save(board)
        self.audit.record("update-card", board_id, card_id=card.id)
        return card

    def move_card(self, board_id: str, card_id: str, column_id: str, position: Any) -> Card:
        board = self._load_for_mutation(board_id, "pre_card_move")
        card = card_ops.move_card(board, card_id, column_id, position)
        self.store.save(board)
        self.audit.record(
            "move-card", board_id, card_id=card.id,
            column_id=card.column_id, position=card.position,
        )
        return card

    def delete_card(self, board_id: str, card_id: str) -> Card:
        board = self._load_for_mutation(board_id, "pre_card_delete")
        card = card_ops.delete_card(board, card_id)
        self.store.save(board)
        self.audit.record("delete-card", board_id, card_id=card.id)
        return card

    def apply_batch(self, board_id: str, operations: Sequence[Mapping[str, Any]]) -> BatchResult:
        self.batch_processor.check_operations(operations)
        board = self._load_for_mutation(board_id, "pre_batch")
        result = self.batch_processor.apply(board, operations)
        self.store.save(board)
        self.audit.record(
            "batch-cards", board_id,
            operations=len(result.results),
            failed=sum(1 for r in result.results if not r.success),
        )
        return result

    # ── projections and shape ────────────────────────────────────────────

    def format_board(self, board_id: str, fmt: Any = "full",
                     options: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        return format_board(self.store.load(board_id), fmt, options)

    def verify_board(self, board_id: str) -> Dict[str, Any]:
        return verify_structure(self.store.load(board_id))

    def migrate_board(self, board_id: str) -> MigrationResult:
        """Migrate a legacy board to the flat shape; no-op if already flat."""
        board = self.store.load(board_id)
        if board.shape is BoardShape.FLAT:
            return migrate(board)
        self.backups.create(board_id, self.store.load_raw(board_id), "pre_migration")
        result = migrate(board)
        self.store.save(board)
        self.audit.record("migrate-board", board_id, items=result.items_migrated)
        return result

