from __future__ import annotations

import logging
from typing import Any

from .adapter import ContactAdapter
from .contact_rules import STANDARD_RULES
from .errors import MappingError, Result
from .model import Card
from .rules import RuleTable

logger = logging.getLogger(__name__)


class ContactMapper:
    """Batch conversion between vCard records and JSContact Cards.

    Input records for ``map_to_json`` look like::

        {"c1": {"vCard": "BEGIN:VCARD...", "oxpProperties": {"addressBookId": "ab"}}}

    ``map_from_json`` returns one ``Result`` per creation id, in input order. A
    record whose JSON cannot be expressed as a vCard yields a failed result and
    the batch carries on.
    """

    def __init__(self, rules: RuleTable = STANDARD_RULES, vcard_version: str = "4.0"):
        self.adapter = ContactAdapter(rules, vcard_version)

    def map_to_json(self, records: dict[str, dict[str, Any]]) -> list[Card]:
        cards: list[Card] = []
        for contact_id, record in records.items():
            self.adapter.load(record.get("vCard", ""), contact_id)
            card = self.adapter.to_card()
            card.id = contact_id
            if card.uid is None:
                card.uid = contact_id
            oxp = record.get("oxpProperties") or {}
            card.address_book_id = oxp.get("addressBookId")
            cards.append(card)
        return cards

    def map_from_json(self, cards: dict[str, Card]) -> list[Result]:
        results: list[Result] = []
        for creation_id, card in cards.items():
            try:
                text = self.adapter.from_card(card)
            except MappingError as exc:
                logger.error("Contact %s not converted: %s", creation_id, exc)
                results.append(Result(creation_id, error=exc))
                continue
            value: dict[str, Any] = {"vCard": text}
            if card.address_book_id is not None:
                value["oxpProperties"] = {"addressBookId": card.address_book_id}
            results.append(Result(creation_id, value=value))
        return results
