from __future__ import annotations

import logging
import re
from pathlib import Path

import vobject
from vobject.base import VObjectError

from .errors import ICalendarParseError, VCardParseError

logger = logging.getLogger(__name__)

# ── Pre-parse sanitisation ─────────────────────────────────────────────────────
#
# Apple exports group properties as itemN.PROP. vobject reads the group fine for
# single-dot prefixes, but the double-dot and bare-dot variants break its
# parser, so they are rewritten in plain text first:
#
#   item1..ADR   double-dot group prefix  → strip prefix, keep property
#   .ADR         bare leading dot         → strip the dot, keep property
#   .X-*         bare leading dot + X-    → drop line entirely

_ITEM_DOUBLE_DOT = re.compile(r"^item\d+\.\.", re.IGNORECASE)
_BARE_DOT_X      = re.compile(r"^\.(X-)", re.IGNORECASE)
_BARE_DOT_STD    = re.compile(r"^\.((?!X-)[A-Z])", re.IGNORECASE)


def _sanitise_vcf(data: str, source_label: str) -> str:
    out: list[str] = []
    skipped = fixed = 0

    for line in data.splitlines(keepends=True):
        if _BARE_DOT_X.match(line):
            skipped += 1
            continue
        if _ITEM_DOUBLE_DOT.match(line):
            line = _ITEM_DOUBLE_DOT.sub("", line)
            fixed += 1
        elif _BARE_DOT_STD.match(line):
            line = _BARE_DOT_STD.sub(r"\1", line)
            fixed += 1
        out.append(line)

    if skipped or fixed:
        logger.debug("%s: %d line(s) fixed, %d dropped", source_label, fixed, skipped)

    return "".join(out)


# ── Parse / serialize ──────────────────────────────────────────────────────────

def _read_one(text: str, name: str):
    for component in vobject.readComponents(text):
        if component.name.upper() == name:
            return component
    return None


def parse_vcard(text: str, record_id: str | None = None):
    """Parse one vCard; raises VCardParseError naming ``record_id`` on failure."""
    data = _sanitise_vcf(text or "", record_id or "vCard")
    try:
        card = _read_one(data, "VCARD")
    except VObjectError as exc:
        raise VCardParseError(str(exc), record_id) from exc
    if card is None:
        raise VCardParseError("No VCARD component found", record_id)
    return card


def parse_calendar(text: str, record_id: str | None = None):
    """Parse one VCALENDAR; raises ICalendarParseError naming ``record_id`` on failure."""
    try:
        calendar = _read_one(text or "", "VCALENDAR")
    except VObjectError as exc:
        raise ICalendarParseError(str(exc), record_id) from exc
    if calendar is None:
        raise ICalendarParseError("No VCALENDAR component found", record_id)
    return calendar


def serialize(component) -> str:
    return component.serialize(validate=False)


# ── Files ──────────────────────────────────────────────────────────────────────

_VCARD_BLOCK = re.compile(r"^BEGIN:VCARD\s*$.*?^END:VCARD\s*$", re.IGNORECASE | re.MULTILINE | re.DOTALL)

LEGACY_SUFFIXES = (".vcf", ".vcard", ".ics")


def split_vcards(text: str) -> list[str]:
    """Cut a multi-contact .vcf export into one text block per vCard."""
    return [m.group(0) + "\n" for m in _VCARD_BLOCK.finditer(text)]


def collect_sources(paths: list[Path]) -> list[Path]:
    """Expand directories into the legacy files directly inside them, sorted by name."""
    out: list[Path] = []
    for p in paths:
        if p.is_dir():
            out.extend(sorted(c for c in p.iterdir() if c.suffix.lower() in LEGACY_SUFFIXES))
        elif p.suffix.lower() in LEGACY_SUFFIXES:
            out.append(p)
        else:
            logger.warning("Skipping %s: not a .vcf or .ics file", p)
    return out


def read_legacy_files(paths: list[Path]) -> tuple[dict[str, str], dict[str, str]]:
    """Return ``(vcards, calendars)``, each keyed by a record id derived from the file name.

    Every vCard in a .vcf file becomes its own record (``<stem>-<n>`` when the
    file holds more than one); each .ics file is one record.
    """
    vcards: dict[str, str] = {}
    calendars: dict[str, str] = {}
    for p in paths:
        raw = p.read_text(encoding="utf-8", errors="replace")
        if p.suffix.lower() == ".ics":
            calendars[p.stem] = raw
            continue
        blocks = split_vcards(raw)
        if len(blocks) == 1:
            vcards[p.stem] = blocks[0]
        else:
            for n, block in enumerate(blocks, start=1):
                vcards[f"{p.stem}-{n}"] = block
    return vcards, calendars
