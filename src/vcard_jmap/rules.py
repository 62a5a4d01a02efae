from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterator

# ── Property rules ─────────────────────────────────────────────────────────────
#
# One rule ties a group of legacy properties to one JSON field:
#
#   read(vcard)          -> JSON value or None
#   write(vcard, value)  -> adds legacy properties (value is the whole field)
#
# Several rules may feed the same field ("online" has one rule per legacy
# property name); their read results are merged by the adapter. A table keeps
# rules in the order writes are applied.

Reader = Callable[[Any], Any]
Writer = Callable[[Any, Any], None]


@dataclass(frozen=True)
class PropertyRule:
    name: str
    field: str
    legacy: tuple[str, ...] = ()
    read: Reader | None = None
    write: Writer | None = None


class RuleTable:
    """Ordered collection of PropertyRule, composable through ``overlay``."""

    def __init__(self, rules: list[PropertyRule] | tuple[PropertyRule, ...] = ()):
        names = [r.name for r in rules]
        dupes = {n for n in names if names.count(n) > 1}
        if dupes:
            raise ValueError(f"Duplicate rule names: {', '.join(sorted(dupes))}")
        self._rules: tuple[PropertyRule, ...] = tuple(rules)

    def __iter__(self) -> Iterator[PropertyRule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, name: str) -> bool:
        return any(r.name == name for r in self._rules)

    def __getitem__(self, name: str) -> PropertyRule:
        for rule in self._rules:
            if rule.name == name:
                return rule
        raise KeyError(name)

    def names(self) -> list[str]:
        return [r.name for r in self._rules]

    def fields(self) -> list[str]:
        """Distinct fields in first-seen order."""
        seen: list[str] = []
        for rule in self._rules:
            if rule.field not in seen:
                seen.append(rule.field)
        return seen

    def for_field(self, field: str) -> list[PropertyRule]:
        return [r for r in self._rules if r.field == field]

    def readers(self, field: str) -> list[PropertyRule]:
        return [r for r in self.for_field(field) if r.read is not None]

    def writers(self) -> list[PropertyRule]:
        return [r for r in self._rules if r.write is not None]

    def overlay(self, *rules: PropertyRule, drop: tuple[str, ...] = ()) -> RuleTable:
        """Return a new table with ``rules`` layered on top of this one.

        A rule whose name already exists replaces it in place. A new rule goes
        right after the last rule feeding the same field, or at the end when the
        field is new. Names in ``drop`` are removed first.
        """
        out = [r for r in self._rules if r.name not in drop]
        for rule in rules:
            names = [r.name for r in out]
            if rule.name in names:
                out[names.index(rule.name)] = rule
                continue
            same_field = [i for i, r in enumerate(out) if r.field == rule.field]
            if same_field:
                out.insert(same_field[-1] + 1, rule)
            else:
                out.append(rule)
        return RuleTable(out)
