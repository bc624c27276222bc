"""
Board templates.

A template is a board document whose ids are placeholders. Creating a board
clones it: every column and card gets a fresh id, ``columnId`` and
``dependencies`` are rewritten through the same id map, and status
timestamps are cleared.
"""
import copy
import json
import logging
from typing import Any, Dict, Mapping, Optional

from .errors import NotFoundError, StorageError, ValidationError
from .positions import normalize_positions
from .schema import Board, BoardShape, make_id, utc_now

logger = logging.getLogger(__name__)


def _columns(*specs) -> list:
    return [
        {"id": f"col-{i}", "name": name, **({"wipLimit": wip} if wip else {})}
        for i, (name, wip) in enumerate(specs)
    ]


BUILTIN_TEMPLATES: Dict[str, Dict[str, Any]] = {
    "basic": {
        "projectName": "New Project",
        "columns": _columns(("To Do", None), ("In Progress", 3), ("Done", None)),
        "cards": [],
    },
    "agile": {
        "projectName": "Sprint Board",
        "columns": _columns(
            ("Backlog", None), ("To Do", None), ("In Progress", 5), ("Review", 3), ("Done", None)
        ),
        "cards": [],
    },
    "bugs": {
        "projectName": "Bug Tracker",
        "columns": _columns(
            ("Reported", None), ("Triaged", None), ("In Progress", 3), ("Testing", 2), ("Resolved", None)
        ),
        "cards": [],
    },
}

DEFAULT_TEMPLATE = "basic"


def load_template_file(path: str) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Error reading board template file at {path}: {e}")
        raise StorageError(f"Could not load board template: {e}")
    if not isinstance(data, dict):
        raise ValidationError(f"Board template {path} is not a JSON object")
    return data


def get_template(name: Optional[str] = None) -> Dict[str, Any]:
    key = name or DEFAULT_TEMPLATE
    if key not in BUILTIN_TEMPLATES:
        raise NotFoundError(
            f"Template '{key}' not found. Available: {', '.join(sorted(BUILTIN_TEMPLATES))}"
        )
    return BUILTIN_TEMPLATES[key]


def clone_template(template: Mapping[str, Any], name: str, now: Optional[str] = None) -> Board:
    """Build a new flat board named ``name`` from ``template``."""
    name = (name or "").strip()
    if not name:
        raise ValidationError("Board name is required")

    data = copy.deepcopy(dict(template))
    now = now or utc_now()
    id_map: Dict[str, str] = {}

    columns = data.get("columns") or []
    for col in columns:
        new_id = make_id()
        id_map[col.get("id", new_id)] = new_id
        col["id"] = new_id
        col.pop("items", None)

    cards = data.get("cards") or []
    for card in cards:
        new_id = make_id()
        if card.get("id"):
            id_map[card["id"]] = new_id
        card["id"] = new_id

    first_column = columns[0]["id"] if columns else None
    for card in cards:
        if card.get("columnId") in id_map:
            card["columnId"] = id_map[card["columnId"]]
        else:
            logger.warning(
                f"Card \"{card.get('title')}\" had invalid/missing columnId, assigned to first column."
            )
            card["columnId"] = first_column
        # dependencies outside the template are dropped
        card["dependencies"] = [
            id_map[d] for d in card.get("dependencies") or [] if d in id_map
        ]
        card["created_at"] = now
        card["updated_at"] = now
        card.pop("completed_at", None)
        card.pop("blocked_at", None)

    data.update({
        "id": make_id(),
        "projectName": name,
        "columns": columns,
        "cards": cards,
        "last_updated": now,
    })
    board = Board.from_dict(data)
    board.shape = BoardShape.FLAT
    normalize_positions(board.cards)
    return board
