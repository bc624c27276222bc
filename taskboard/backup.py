"""
Pre-mutation snapshots of board documents.

Backups are written to ``<boards_dir>/backups/{boardId}_{timestamp}_{label}.json``
and never modified afterwards. They are the only recovery mechanism;
restoring one is a manual step.
"""
import json
import logging
from pathlib import Path
from typing import Any, List, Mapping, Optional

from .errors import StorageError
from .schema import utc_now

logger = logging.getLogger(__name__)


def backup_timestamp() -> str:
    """Filesystem-safe UTC timestamp, e.g. 2024-05-01T10-20-30-123Z."""
    return utc_now().replace(":", "-").replace(".", "-")


class BackupManager:
    """Writes append-only board snapshots, with optional per-board rotation."""

    def __init__(self, backup_dir: str, retention: Optional[int] = None):
        self.backup_dir = Path(backup_dir)
        self.retention = retention

    def create(self, board_id: str, document: Mapping[str, Any], label: str) -> Path:
        """Snapshot ``document`` and return the backup path."""
        name = f"{board_id}_{backup_timestamp()}_{label}"
        try:
            text = json.dumps(document, indent=2, ensure_ascii=False)
            self.backup_dir.mkdir(parents=True, exist_ok=True)
            path = self.backup_dir / f"{name}.json"
            counter = 1
            while path.exists():  # never overwrite an earlier snapshot
                path = self.backup_dir / f"{name}-{counter}.json"
                counter += 1
            with open(path, "x", encoding="utf-8") as f:
                f.write(text)
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Error creating backup for board {board_id}: {e}")
            raise StorageError(f"Failed to create backup: {e}", board_id=board_id)

        logger.info(f"Backup created: {path.name}")
        if self.retention:
            self.rotate(board_id)
        return path

    def list(self, board_id: str) -> List[Path]:
        """Backups for one board, newest first."""
        if not self.backup_dir.exists():
            return []
        files = [
            p for p in self.backup_dir.glob(f"{board_id}_*.json") if p.is_file()
        ]
        return sorted(files, key=lambda p: p.name, reverse=True)

    def rotate(self, board_id: str) -> int:
        """Delete backups beyond ``retention``. Best effort; returns how many went."""
        removed = 0
        for path in self.list(board_id)[self.retention:]:
            try:
                path.unlink()
                removed += 1
            except OSError as e:
                logger.warning(f"Error deleting old backup {path.name}: {e}")
        return removed
