"""
Batch-scoped aliases for cards created earlier in the same batch.

A create operation may carry ``reference: "x"``; later operations can then
target the new card as ``cardId: "$ref:x"`` before the caller knows its id.
One ReferenceResolver lives for exactly one batch.
"""
from typing import Dict, Optional

from .errors import NotFoundError, ValidationError

REF_PREFIX = "$ref:"


class ReferenceResolver:
    """Alias -> card id map threaded through one batch."""

    def __init__(self):
        self.alias_to_id: Dict[str, str] = {}

    def register(self, alias: Optional[str], card_id: str) -> None:
        if alias is not None and not isinstance(alias, str):
            raise ValidationError(f"reference must be a string, got {type(alias).__name__}")
        if alias:
            self.alias_to_id[alias] = card_id

    @staticmethod
    def is_reference(value: Optional[str]) -> bool:
        return isinstance(value, str) and value.startswith(REF_PREFIX)

    def resolve(self, card_id: Optional[str]) -> Optional[str]:
        """
        Rewrite ``$ref:<alias>`` to the concrete id; other values pass through.

        Raises NotFoundError if the alias was never registered (unknown, or
        its create operation failed).
        """
        if not self.is_reference(card_id):
            return card_id
        alias = card_id[len(REF_PREFIX):]
        if alias not in self.alias_to_id:
            raise NotFoundError(
                f"Referenced card '{alias}' not found or creation failed"
            )
        return self.alias_to_id[alias]

    def as_dict(self) -> Dict[str, str]:
        return dict(self.alias_to_id)
