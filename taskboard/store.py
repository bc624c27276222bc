"""
Board storage backend (one JSON file per board).

Layout:
    <boards_dir>/<board_id>.json
    <boards_dir>/backups/...        (see backup.py)

There is no locking between load and save: two writers on the same board
race and the last save wins. Callers must not mutate one board concurrently.
"""
import json
import logging
import os
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List

from .errors import NotFoundError, StorageError, ValidationError
from .schema import Board, utc_now

logger = logging.getLogger(__name__)

BOARD_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]*$")


class BoardStore:
    """JSON-file store for boards, keyed by board id."""

    def __init__(self, boards_dir: str):
        self.boards_dir = Path(boards_dir)
        self.boards_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, board_id: str) -> Path:
        if not isinstance(board_id, str) or not BOARD_ID_RE.match(board_id):
            raise ValidationError(f"Invalid board ID format: {board_id!r}")
        return self.boards_dir / f"{board_id}.json"

    def exists(self, board_id: str) -> bool:
        return self.path_for(board_id).exists()

    def load_raw(self, board_id: str) -> Dict[str, Any]:
        """Read the stored document without interpreting it."""
        path = self.path_for(board_id)
        if not path.exists():
            raise NotFoundError(f"Board with ID {board_id} not found", board_id=board_id)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error reading board {board_id}: {e}")
            raise StorageError(f"Failed to read board {board_id}: {e}", board_id=board_id)
        if not isinstance(data, dict):
            raise StorageError(f"Board file for {board_id} is not a JSON object")
        return data

    def load(self, board_id: str) -> Board:
        board = Board.from_dict(self.load_raw(board_id))
        if not board.id:
            board.id = board_id
        return board

    def save(self, board: Board) -> Path:
        """Persist ``board``, stamping ``last_updated``."""
        path = self.path_for(board.id)
        board.last_updated = utc_now()
        # Atomic write: write to temp, then rename
        tmp_path = path.with_suffix(".json.tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(board.to_dict(), f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, path)
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Error saving board {board.id}: {e}")
            tmp_path.unlink(missing_ok=True)
            raise StorageError(f"Failed to save board {board.id}: {e}", board_id=board.id)
        logger.debug(f"Board saved: {path}")
        return path

    def delete(self, board_id: str) -> None:
        path = self.path_for(board_id)
        if not path.exists():
            raise NotFoundError(f"Board with ID {board_id} not found", board_id=board_id)
        try:
            path.unlink()
        except OSError as e:
            raise StorageError(f"Failed to delete board {board_id}: {e}", board_id=board_id)
        logger.info(f"Board deleted: {board_id}")

    def list_boards(self) -> List[Dict[str, str]]:
        """``[{id, name, lastUpdated}]`` for every board file, sorted by name."""
        boards = []
        for path in self.boards_dir.glob("*.json"):
            if path.name.startswith("_") or not path.is_file():
                continue
            try:
                with open(path, "r", encoding="utf-8") as f:
                    data = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f"Skipping unreadable board file {path.name}: {e}")
                continue
            if not isinstance(data, dict):
                continue
            last_updated = data.get("last_updated") or datetime.fromtimestamp(
                path.stat().st_mtime, tz=timezone.utc
            ).isoformat()
            boards.append({
                "id": data.get("id") or path.stem,
                "name": data.get("projectName") or "Unnamed Board",
                "lastUpdated": last_updated,
            })
        boards.sort(key=lambda b: b["name"].lower())
        return boards
