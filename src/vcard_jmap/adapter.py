from __future__ import annotations

import logging
from typing import Any

from .contact_rules import STANDARD_RULES
from .io import parse_vcard, serialize
from .legacy import has_properties, new_vcard
from .model import Card
from .rules import PropertyRule, RuleTable
from .values import is_present

logger = logging.getLogger(__name__)


def _merge(current: Any, value: Any) -> Any:
    if current is None:
        return value
    if isinstance(current, dict) and isinstance(value, dict):
        return {**current, **value}
    if isinstance(current, list) and isinstance(value, list):
        return current + value
    return current


class ContactAdapter:
    """Binds one vCard and maps it field by field through a rule table.

    Reading merges the results of every rule feeding a field: maps are united,
    lists concatenated, and the first scalar wins. Writing applies the table's
    writers in table order, each receiving the whole JSON field.
    """

    def __init__(self, rules: RuleTable = STANDARD_RULES, vcard_version: str = "4.0"):
        self.rules = rules
        self.vcard_version = vcard_version
        self.vcard = new_vcard(vcard_version)

    # ── Binding ──────────────────────────────────────────────────────────────

    def load(self, text: str, record_id: str | None = None) -> None:
        self.vcard = parse_vcard(text, record_id)

    def reset(self) -> None:
        self.vcard = new_vcard(self.vcard_version)

    def dump(self) -> str:
        return serialize(self.vcard)

    # ── Fields ───────────────────────────────────────────────────────────────

    def get(self, field: str) -> Any:
        if not has_properties(self.vcard):
            return None
        merged = None
        for rule in self.rules.readers(field):
            merged = _merge(merged, rule.read(self.vcard))
        return merged if is_present(merged) else None

    def apply(self, rule: PropertyRule, value: Any) -> None:
        if rule.write is None or not is_present(value):
            return
        rule.write(self.vcard, value)

    def set(self, field: str, value: Any) -> None:
        for rule in self.rules.for_field(field):
            self.apply(rule, value)

    # ── Whole records ────────────────────────────────────────────────────────

    def to_card(self) -> Card:
        card = Card()
        for field in self.rules.fields():
            setattr(card, field, self.get(field))
        return card

    def from_card(self, card: Card) -> str:
        self.reset()
        for rule in self.rules.writers():
            self.apply(rule, getattr(card, rule.field, None))
        return self.dump()
