from __future__ import annotations

import hashlib
import logging
from datetime import datetime

from dateutil import tz

from .errors import MappingError

logger = logging.getLogger(__name__)


# ── Presence ───────────────────────────────────────────────────────────────────

def is_present(value) -> bool:
    """True when ``value`` carries data.

    ``None``, empty strings and empty collections are absent; ``False`` and ``0``
    are present.
    """
    if value is None:
        return False
    if isinstance(value, (bool, int, float)):
        return True
    if isinstance(value, (str, bytes, list, tuple, dict, set)):
        return len(value) > 0
    return True


def none_if_empty(value):
    return value if is_present(value) else None


# ── Map keys ───────────────────────────────────────────────────────────────────
#
# Keys for id-keyed maps carry no meaning. They are md5 hex digests of the
# legacy value so re-reading the same input yields the same keys; callers must
# never parse them.

def content_key(value) -> str:
    if isinstance(value, bytes):
        data = value
    else:
        data = str(value).encode("utf-8")
    return hashlib.md5(data).hexdigest()


def indexed_key(prefix: str, index: str | None, value) -> str:
    """``<PREFIX>-<INDEX>`` when the property carries an INDEX, a content key otherwise."""
    if is_present(index):
        return f"{prefix}-{index}"
    return content_key(value)


def index_from_key(prefix: str, key: str) -> str | None:
    head = f"{prefix}-"
    if key.upper().startswith(head):
        rest = key[len(head):]
        if rest.isdigit():
            return rest
    return None


# ── Dates ──────────────────────────────────────────────────────────────────────

DATE_SENTINEL = "0000-00-00"

_READ_DATE_FORMATS = (
    "%Y%m%d",
    "%Y-%m-%d",
    "%Y%m%dT%H%M%SZ",
    "%Y%m%dT%H%M%S",
    "%Y-%m-%dT%H:%M:%SZ",
    "%Y-%m-%dT%H:%M:%S",
)

_WRITE_DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y-%m-%dT%H:%M:%SZ",
    "%Y-%m-%dT%H:%M:%S",
)


def _parse(value: str, formats) -> datetime | None:
    for fmt in formats:
        try:
            return datetime.strptime(value.strip(), fmt)
        except ValueError:
            continue
    return None


def vcard_date_to_json(value: str, prop_name: str = "date") -> str:
    """BDAY / DEATHDATE / ANNIVERSARY value -> ``YYYY-MM-DD`` (sentinel on failure)."""
    parsed = _parse(str(value), _READ_DATE_FORMATS)
    if parsed is None:
        logger.error("Unable to parse %s value %r, using %s", prop_name, value, DATE_SENTINEL)
        return DATE_SENTINEL
    return parsed.strftime("%Y-%m-%d")


def json_date_to_vcard(value: str, prop_name: str = "date", fmt: str = "%Y%m%d") -> str:
    parsed = _parse(str(value), _WRITE_DATE_FORMATS)
    if parsed is None:
        raise MappingError(f"Couldn't parse JSContact date {value!r} for vCard {prop_name}")
    return parsed.strftime(fmt)


def rev_to_json(value: str) -> str | None:
    parsed = _parse(str(value), _READ_DATE_FORMATS)
    if parsed is None:
        logger.error("Couldn't parse vCard REV value %r", value)
        return None
    return parsed.strftime("%Y-%m-%dT%H:%M:%SZ")


def json_to_rev(value: str) -> str:
    parsed = _parse(str(value), _WRITE_DATE_FORMATS)
    if parsed is None:
        raise MappingError(f"Couldn't parse JSContact updated value {value!r} for vCard REV")
    return parsed.strftime("%Y%m%dT%H%M%SZ")


def is_time_zone(value: str) -> bool:
    """True for identifiers the tz database knows (``Europe/Berlin``, ``Etc/UTC``)."""
    if not is_present(value):
        return False
    return tz.gettz(value) is not None


# ── TYPE <-> contexts ──────────────────────────────────────────────────────────

CONTEXT_TYPES = {"home": "private", "work": "work"}
TYPE_CONTEXTS = {v: k for k, v in CONTEXT_TYPES.items()}


def contexts_from_types(
    types: list[str],
    prop_name: str,
    allow_other: bool = True,
) -> dict[str, bool] | None:
    """Translate TYPE tokens into a JSContact contexts map.

    ``other`` wins over everything and yields ``None``. Tokens this table does not
    know are logged and dropped. ``pref`` is left to the PREF handling.
    """
    contexts: dict[str, bool] = {}
    other = False
    for token in types:
        low = token.lower()
        if low == "pref":
            continue
        if low in CONTEXT_TYPES:
            contexts[CONTEXT_TYPES[low]] = True
        elif low == "other" and allow_other:
            other = True
        else:
            logger.warning("Unknown vCard TYPE value %r for property %s", token, prop_name)
    if other or not contexts:
        return None
    return contexts


def types_from_contexts(contexts: dict[str, bool] | None, prop_name: str) -> list[str]:
    types: list[str] = []
    for context, flag in (contexts or {}).items():
        if context not in TYPE_CONTEXTS:
            raise MappingError(
                f"Unknown contexts value {context!r} for vCard property {prop_name}"
            )
        if flag:
            types.append(TYPE_CONTEXTS[context])
    return types


# ── Phones ─────────────────────────────────────────────────────────────────────

PHONE_FEATURES = ("text", "voice", "fax", "cell", "video", "pager", "textphone")


# ── Names ──────────────────────────────────────────────────────────────────────

# N storage order and the display order the components are emitted in
N_FIELDS = ("family", "given", "additional", "prefix", "suffix")
N_DISPLAY = (("prefix", "prefix"), ("given", "given"), ("surname", "family"),
             ("additional", "additional"), ("suffix", "suffix"))
COMPONENT_FIELDS = {
    "prefix": "prefix",
    "given": "given",
    "surname": "family",
    "additional": "additional",
    "middle": "additional",
    "suffix": "suffix",
}


# ── Addresses ──────────────────────────────────────────────────────────────────

STREET_PARTS = (("box", "postOfficeBox"), ("extended", "extension"), ("street", "name"))
STREET_FIELDS = {json_type: field for field, json_type in STREET_PARTS}
TIMEZONE_LABEL = "timezone"


# ── Gender ─────────────────────────────────────────────────────────────────────

GENDER_TO_JSON = {
    "M": "male",
    "F": "female",
    "N": "neuter",
    "O": "animate",
    "U": None,
}
JSON_TO_GENDER = {
    "male": "M",
    "female": "F",
    "neuter": "N",
    "animate": "O",
}


# ── Personal info ──────────────────────────────────────────────────────────────

EXPERTISE_TO_JSON = {"beginner": "low", "average": "medium", "expert": "high"}
JSON_TO_EXPERTISE = {v: k for k, v in EXPERTISE_TO_JSON.items()}
