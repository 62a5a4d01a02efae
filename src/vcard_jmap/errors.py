from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class MappingError(ValueError):
    """A JSON-side value that has no legacy equivalent.

    Raised by setters; the record mappers catch it at the record boundary.
    """


class LegacyParseError(Exception):
    """Legacy text (vCard / iCalendar) that could not be parsed."""

    def __init__(self, message: str, record_id: str | None = None):
        self.record_id = record_id
        if record_id is not None:
            message = f"{message}\nNon-parseable {self.kind}: {record_id}"
        super().__init__(message)

    kind = "record"


class VCardParseError(LegacyParseError):
    kind = "vCard"


class ICalendarParseError(LegacyParseError):
    kind = "iCalendar"


@dataclass(frozen=True)
class Result:
    """Outcome of mapping one record in a batch.

    Exactly one of ``value`` / ``error`` is set. A failed result stands for
    "skip this record", never for an empty record.
    """

    key: str
    value: Any = None
    error: MappingError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def as_pair(self) -> tuple[str, Any]:
        return (self.key, self.value if self.ok else None)
