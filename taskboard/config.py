# Taskboard: configuration
# Override paths and limits via taskboard.yaml or environment variables.

import logging
import os
import sys
import yaml
from pathlib import Path
from dataclasses import dataclass, field, fields
from typing import Optional

CONFIG_PATH = Path(__file__).parent / "taskboard.yaml"

ENV_CONFIG = "TASKBOARD_CONFIG"
ENV_BOARDS_DIR = "TASKBOARD_BOARDS_DIR"
ENV_AUDIT_LOG = "TASKBOARD_AUDIT_LOG"

logger = logging.getLogger(__name__)


@dataclass
class Config:
    """Runtime configuration for the board engine."""

    # Storage
    boards_dir: str = "~/.local/share/taskboard/boards"
    backup_dir_name: str = "backups"
    backup_retention: Optional[int] = None  # None = keep every backup
    audit_log: Optional[str] = None         # None = no audit trail
    template_path: Optional[str] = None     # JSON board template for create_board

    # Limits
    max_columns: int = 20
    max_cards: int = 1000
    max_batch_operations: int = 100
    max_card_payload_chars: int = 200_000
    max_board_payload_chars: int = 1_000_000

    # Derived in resolve_paths()
    backups_path: str = field(default="", repr=False)

    def resolve_paths(self):
        """Apply environment overrides and expand ~."""
        env_dir = os.environ.get(ENV_BOARDS_DIR)
        if env_dir:
            self.boards_dir = env_dir
        env_audit = os.environ.get(ENV_AUDIT_LOG)
        if env_audit:
            self.audit_log = env_audit

        self.boards_dir = str(Path(self.boards_dir).expanduser())
        self.backups_path = str(Path(self.boards_dir) / self.backup_dir_name)
        if self.audit_log:
            self.audit_log = str(Path(self.audit_log).expanduser())
        if self.template_path:
            self.template_path = str(Path(self.template_path).expanduser())

    @classmethod
    def load(cls, path: Optional[str] = None) -> "Config":
        """Load config from YAML file, falling back to defaults."""
        if path:
            cfg_path = Path(path)
        elif os.environ.get(ENV_CONFIG):
            cfg_path = Path(os.environ[ENV_CONFIG])
        else:
            cfg_path = CONFIG_PATH

        known = {f.name for f in fields(cls)}
        if cfg_path.exists():
            try:
                with open(cfg_path, "r") as f:
                    data = yaml.safe_load(f) or {}
                cfg = cls(**{k: v for k, v in data.items() if k in known})
            except (OSError, yaml.YAMLError, TypeError, AttributeError) as e:
                logger.warning(f"Ignoring unreadable config {cfg_path}: {e}")
                cfg = cls()
        else:
            cfg = cls()
        cfg.resolve_paths()
        return cfg


def configure_logging(level: int = logging.INFO, name: str = "taskboard") -> None:
    """Set up stdout logging for processes embedding the engine."""
    logging.basicConfig(
        level=level,
        format=f"%(asctime)s [{name}] %(levelname)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
