from __future__ import annotations

import base64
import logging
from typing import Any

import vobject

logger = logging.getLogger(__name__)

# ── Narrow interface over vobject ──────────────────────────────────────────────
#
# vobject keeps children in ``component.contents`` keyed by lower-case name and
# parameters in ``prop.params`` keyed by upper-case name, each holding a list of
# values. vCard 2.1 bare parameters (``TEL;HOME:``) land in
# ``prop.singletonparams`` instead and are treated as TYPE values here.

UNSUPPORTED_PARAMS = ("ALTID", "LANGUAGE")


def props(component, *names: str) -> list:
    """All children named any of ``names``, in the order the names are given."""
    found = []
    for name in names:
        found.extend(component.contents.get(name.lower(), []))
    return found


def first(component, name: str):
    children = component.contents.get(name.lower(), [])
    return children[0] if children else None


def has_properties(component) -> bool:
    return any(key not in ("version", "begin", "end") for key in component.contents)


def text(prop) -> str:
    """String form of a property value; list values (CATEGORIES, ORG) are comma-joined."""
    value = prop.value
    if isinstance(value, list):
        return ",".join(text_part(v) for v in value)
    if isinstance(value, bytes):
        return base64.b64encode(value).decode("ascii")
    if value is None:
        return ""
    return str(value)


def text_part(value) -> str:
    if isinstance(value, list):
        return ",".join(str(v) for v in value if v)
    return str(value or "")


def text_list(prop) -> list[str]:
    """Values of a multi-text property (CATEGORIES, NICKNAME) as a flat list."""
    value = prop.value
    if isinstance(value, list):
        items = [text_part(v) for v in value]
    else:
        items = str(value or "").split(",")
    return [item.strip() for item in items if item and item.strip()]


# Parameters whose value is a comma-separated list; all others keep commas verbatim.
LIST_PARAMS = frozenset({"TYPE", "DELEGATED-FROM", "DELEGATED-TO", "SCHEDULE-STATUS", "MEMBER"})


def param(prop, name: str) -> str | None:
    if name.upper() in LIST_PARAMS:
        values = param_values(prop, name)
        return values[0] if values else None
    raw = prop.params.get(name.upper())
    return str(raw[0]) if raw and raw[0] else None


def param_values(prop, name: str) -> list[str]:
    """Every value of parameter ``name``; list parameters are also split on commas."""
    out: list[str] = []
    for raw in prop.params.get(name.upper(), []):
        if name.upper() in LIST_PARAMS:
            out.extend(part for part in str(raw).split(",") if part)
        elif raw:
            out.append(str(raw))
    if name.upper() == "TYPE":
        out.extend(getattr(prop, "singletonparams", []) or [])
    return out


def types(prop) -> list[str]:
    return param_values(prop, "TYPE")


def pref(prop) -> int | None:
    value = param(prop, "PREF")
    if value is None:
        # vCard 3 spells preference as TYPE=pref
        if any(t.lower() == "pref" for t in types(prop)):
            return 1
        return None
    try:
        return int(value)
    except ValueError:
        logger.warning("Ignoring non-numeric PREF value %r on %s", value, prop.name)
        return None


def log_unsupported(prop) -> None:
    for name in UNSUPPORTED_PARAMS:
        if prop.params.get(name):
            logger.error("Currently unsupported vCard parameter %s encountered for property %s",
                         name, prop.name)


def add(component, name: str, value: Any, params: dict[str, Any] | None = None):
    """Append a property; parameter values may be scalars or lists."""
    prop = component.add(name.lower())
    prop.value = value
    for key, raw in (params or {}).items():
        if raw is None or raw == [] or raw == "":
            continue
        values = raw if isinstance(raw, list) else [raw]
        prop.params[key.upper()] = [str(v) for v in values]
    return prop


def photo_uri(prop) -> str:
    """PHOTO value as a URI; inline base64 data becomes a ``data:`` URI."""
    value = prop.value
    if isinstance(value, bytes):
        media = (param(prop, "TYPE") or "jpeg").lower()
        if "/" not in media:
            media = f"image/{media}"
        return f"data:{media};base64,{base64.b64encode(value).decode('ascii')}"
    return str(value)


# ── Component construction ─────────────────────────────────────────────────────

def new_vcard(version: str = "4.0"):
    card = vobject.vCard()
    card.add("version").value = version
    return card


def new_calendar():
    return vobject.iCalendar()
