"""
AuditLog: structured JSON audit trail of board mutations.
"""
import json
import logging
from pathlib import Path
from typing import Optional

from .schema import utc_now

logger = logging.getLogger(__name__)


class AuditLog:
    """
    Appends structured JSON audit entries to a .jsonl file.
    Every successful mutating engine operation is recorded once.
    A log without a path records nothing.
    """

    def __init__(self, log_path: Optional[str] = None):
        self.log_path = Path(log_path) if log_path else None
        if self.log_path:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)

    def record(self, action: str, board_id: str, **extra):
        """Append one audit entry. Extra kwargs are merged in."""
        if not self.log_path:
            return
        entry = {
            "ts": utc_now(),
            "action": action,
            "board_id": board_id,
        }
        # Merge extras, filtering None values for cleanliness
        for k, v in extra.items():
            if v is not None:
                entry[k] = v

        try:
            with open(self.log_path, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry, ensure_ascii=False) + "\n")
        except OSError as e:
            logger.error(f"Failed to write audit log: {e}")
