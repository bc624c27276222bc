"""
Board document schema.

A board is one JSON document:

  { id, projectName, columns: [...], cards: [...], last_updated }

Cards live in a single flat list and point at their column through
``columnId``; ``position`` is a zero-based rank scoped to that column.
Older documents nest cards inside ``columns[].items`` instead (the legacy
shape). The shape is resolved once, when the document is parsed.

Keys the engine does not know about are carried through untouched.
"""
import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

from .errors import ArchitectureError, ValidationError


def utc_now() -> str:
    """ISO-8601 UTC timestamp with millisecond precision."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


def make_id() -> str:
    """Generate a fresh entity id."""
    return str(uuid.uuid4())


class BoardShape(Enum):
    """How cards are stored inside a board document."""
    LEGACY = "column-items"   # cards nested in columns[].items
    FLAT = "card-first"       # top-level cards list with columnId


class PositionKeyword(Enum):
    """Symbolic positions accepted wherever an integer rank is."""
    FIRST = "first"
    LAST = "last"
    UP = "up"
    DOWN = "down"

    @classmethod
    def from_str(cls, value: str) -> "PositionKeyword":
        try:
            return cls(value.strip().lower())
        except ValueError:
            allowed = ", ".join(k.value for k in cls)
            raise ValidationError(
                f"Invalid position '{value}'. Allowed: {allowed} or a non-negative integer"
            )


Position = Union[int, PositionKeyword]


def parse_position(value: Any) -> Position:
    """Coerce a raw position (int, keyword string, or enum) into a Position."""
    if isinstance(value, PositionKeyword):
        return value
    if isinstance(value, bool):
        raise ValidationError("Position must be an integer or a keyword, got a boolean")
    if isinstance(value, int):
        if value < 0:
            raise ValidationError(f"Position must be non-negative, got: {value}")
        return value
    if isinstance(value, str):
        return PositionKeyword.from_str(value)
    raise ValidationError(f"Invalid position type: {type(value).__name__}")


# ── Payload variant ──────────────────────────────────────────────────────────
# Card and board data may arrive as a JSON string or as an already-decoded
# mapping. Both are resolved to a plain dict before any engine logic runs.

@dataclass(frozen=True)
class Encoded:
    text: str


@dataclass(frozen=True)
class Structured:
    value: Mapping[str, Any]


def classify_payload(data: Any, kind: str = "card") -> Union[Encoded, Structured]:
    if isinstance(data, str):
        return Encoded(data)
    if isinstance(data, Mapping):
        return Structured(data)
    raise ValidationError(
        f"Invalid {kind} data type. Must be a JSON string or an object."
    )


def parse_payload(
    data: Any,
    context: str = "",
    max_chars: Optional[int] = None,
    kind: str = "card",
) -> Dict[str, Any]:
    """Resolve an Encoded/Structured payload to a dict."""
    where = f" in {context}" if context else ""
    payload = classify_payload(data, kind)
    if isinstance(payload, Structured):
        if max_chars is not None and len(json.dumps(payload.value, default=str)) > max_chars:
            raise ValidationError(
                f"{kind.capitalize()} data too large{where} (over {max_chars} characters)"
            )
        return dict(payload.value)

    if not payload.text:
        raise ValidationError(f"{kind.capitalize()} data string cannot be empty{where}")
    if max_chars is not None and len(payload.text) > max_chars:
        raise ValidationError(
            f"{kind.capitalize()} data string too large{where} "
            f"({len(payload.text)} > {max_chars} characters)"
        )
    try:
        decoded = json.loads(payload.text)
    except json.JSONDecodeError:
        raise ValidationError(f"Invalid JSON format for {kind} data{where}")
    if not isinstance(decoded, dict):
        raise ValidationError(
            f"Invalid {kind} data type{where}. Must be a JSON string or an object."
        )
    return decoded


# ── Entities ─────────────────────────────────────────────────────────────────

def _as_list(value: Any) -> Any:
    # non-lists are kept as-is so validate_card can reject them
    if value is None:
        return []
    return list(value) if isinstance(value, list) else value


# attribute name -> document key
CARD_FIELDS = {
    "id": "id",
    "title": "title",
    "content": "content",
    "column_id": "columnId",
    "position": "position",
    "collapsed": "collapsed",
    "subtasks": "subtasks",
    "tags": "tags",
    "dependencies": "dependencies",
    "created_at": "created_at",
    "updated_at": "updated_at",
    "completed_at": "completed_at",
    "blocked_at": "blocked_at",
}
CARD_KEYS = {v: k for k, v in CARD_FIELDS.items()}


@dataclass
class Card:
    """One card. ``position`` is its rank within ``column_id``."""

    id: str
    title: str
    column_id: str
    position: int = 0
    content: Optional[str] = None
    collapsed: Optional[bool] = None
    subtasks: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    dependencies: List[str] = field(default_factory=list)  # soft references, never enforced
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    completed_at: Optional[str] = None
    blocked_at: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict, repr=False)

    def apply_patch(self, patch: Mapping[str, Any]) -> None:
        """Merge patch keys over this card; the patch wins. ``id`` is immutable."""
        for key, value in patch.items():
            if key == "id":
                continue
            attr = CARD_KEYS.get(key)
            if attr is None:
                self.extra[key] = value
            elif attr in ("subtasks", "tags", "dependencies") and value is None:
                setattr(self, attr, [])
            else:
                setattr(self, attr, value)

    def copy(self) -> "Card":
        return Card.from_dict(self.to_dict())

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = dict(self.extra)
        data.update({
            "id": self.id,
            "title": self.title,
            "columnId": self.column_id,
            "position": self.position,
            "subtasks": list(self.subtasks),
            "tags": list(self.tags),
            "dependencies": list(self.dependencies),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        })
        for attr in ("content", "collapsed", "completed_at", "blocked_at"):
            value = getattr(self, attr)
            if value is not None:
                data[CARD_FIELDS[attr]] = value
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Card":
        extra = {k: v for k, v in data.items() if k not in CARD_KEYS}
        position = data.get("position", 0)
        return cls(
            id=data.get("id", ""),
            title=data.get("title", ""),
            column_id=data.get("columnId", ""),
            position=position if isinstance(position, int) and not isinstance(position, bool) else 0,
            content=data.get("content"),
            collapsed=data.get("collapsed"),
            subtasks=_as_list(data.get("subtasks")),
            tags=_as_list(data.get("tags")),
            dependencies=_as_list(data.get("dependencies")),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
            completed_at=data.get("completed_at"),
            blocked_at=data.get("blocked_at"),
            extra=extra,
        )


@dataclass
class Column:
    """A board column. ``items`` is only set on legacy-shaped boards."""

    id: str
    name: str
    wip_limit: Optional[int] = None
    items: Optional[List[Dict[str, Any]]] = None
    extra: Dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def is_done(self) -> bool:
        return self.name.strip().lower() == "done"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = dict(self.extra)
        data["id"] = self.id
        data["name"] = self.name
        if self.wip_limit is not None:
            data["wipLimit"] = self.wip_limit
        if self.items is not None:
            data["items"] = [dict(i) for i in self.items]
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Column":
        known = {"id", "name", "wipLimit", "items"}
        items = data.get("items")
        if isinstance(items, list) and not all(isinstance(i, Mapping) for i in items):
            raise ValidationError(f"Column {data.get('id')}: legacy items must be objects")
        return cls(
            id=data.get("id", ""),
            name=data.get("name", ""),
            wip_limit=data.get("wipLimit"),
            items=[dict(i) for i in items] if isinstance(items, list) else None,
            extra={k: v for k, v in data.items() if k not in known},
        )


@dataclass
class Board:
    """A board document, either legacy-shaped or flat."""

    id: str
    name: str
    columns: List[Column] = field(default_factory=list)
    cards: List[Card] = field(default_factory=list)
    last_updated: Optional[str] = None
    shape: BoardShape = BoardShape.FLAT
    extra: Dict[str, Any] = field(default_factory=dict, repr=False)

    # ── queries ──

    def column(self, column_id: str) -> Optional[Column]:
        for col in self.columns:
            if col.id == column_id:
                return col
        return None

    def has_column(self, column_id: str) -> bool:
        return self.column(column_id) is not None

    def card(self, card_id: str) -> Optional[Card]:
        for card in self.cards:
            if card.id == card_id:
                return card
        return None

    def cards_in(self, column_id: str) -> List[Card]:
        """Cards of one column, ordered by position."""
        return sorted(
            (c for c in self.cards if c.column_id == column_id),
            key=lambda c: c.position,
        )

    def require_flat(self) -> None:
        if self.shape is not BoardShape.FLAT:
            raise ArchitectureError(
                "Board is not using card-first architecture.", board_id=self.id
            )

    # ── serialization ──

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = dict(self.extra)
        data["id"] = self.id
        data["projectName"] = self.name
        data["columns"] = [c.to_dict() for c in self.columns]
        if self.shape is BoardShape.FLAT:
            data["cards"] = [c.to_dict() for c in self.cards]
        if self.last_updated:
            data["last_updated"] = self.last_updated
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Board":
        known = {"id", "projectName", "columns", "cards", "last_updated"}
        raw_cards = data.get("cards")
        shape = BoardShape.FLAT if isinstance(raw_cards, list) else BoardShape.LEGACY
        columns = data.get("columns")
        if not isinstance(columns, list):
            raise ValidationError("Invalid board structure: missing columns array")
        return cls(
            id=data.get("id", ""),
            name=data.get("projectName", "Unnamed Board"),
            columns=[Column.from_dict(c) for c in columns if isinstance(c, Mapping)],
            cards=[Card.from_dict(c) for c in raw_cards if isinstance(c, Mapping)]
            if shape is BoardShape.FLAT else [],
            last_updated=data.get("last_updated"),
            shape=shape,
            extra={k: v for k, v in data.items() if k not in known},
        )


# ── Validation ───────────────────────────────────────────────────────────────

def _is_str_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(v, str) for v in value)


def _is_timestamp(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    try:
        datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return False
    return True


def validate_card(card: Card) -> None:
    """Raise ValidationError if a card's fields have the wrong types."""
    label = card.id or "<new card>"
    if not card.id or not isinstance(card.id, str):
        raise ValidationError("Card id must be a non-empty string")
    if not isinstance(card.title, str) or not card.title:
        raise ValidationError(f"Card {label}: title must be a non-empty string")
    if not isinstance(card.column_id, str) or not card.column_id:
        raise ValidationError(f"Card {label}: columnId must be a non-empty string")
    if card.content is not None and not isinstance(card.content, str):
        raise ValidationError(f"Card {label}: content must be a string")
    if card.collapsed is not None and not isinstance(card.collapsed, bool):
        raise ValidationError(f"Card {label}: collapsed must be a boolean")
    for attr in ("subtasks", "tags", "dependencies"):
        if not _is_str_list(getattr(card, attr)):
            raise ValidationError(f"Card {label}: {attr} must be a list of strings")
    for attr in ("completed_at", "blocked_at"):
        value = getattr(card, attr)
        if value is not None and not _is_timestamp(value):
            raise ValidationError(f"Card {label}: {attr} is not a valid timestamp")


def validate_board(board: Board) -> None:
    """Structural validation of a whole board."""
    if not isinstance(board.name, str):
        raise ValidationError("Board projectName must be a string")
    seen = set()
    for col in board.columns:
        if not col.id or not isinstance(col.id, str):
            raise ValidationError("Every column needs a string id")
        if not isinstance(col.name, str):
            raise ValidationError(f"Column {col.id}: name must be a string")
        if col.id in seen:
            raise ValidationError(f"Duplicate column id: {col.id}")
        seen.add(col.id)
    card_ids = set()
    for card in board.cards:
        validate_card(card)
        if card.id in card_ids:
            raise ValidationError(f"Duplicate card id: {card.id}")
        card_ids.add(card.id)
