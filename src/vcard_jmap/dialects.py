from __future__ import annotations

import logging

from .contact_rules import (
    STANDARD_RULES,
    PHONE_TYPES,
    anniversary_rule,
    online_rule,
    org_segments,
    phones_rule,
    read_social_profiles,
    scalar_rule,
    social_profile_writer,
    write_related,
)
from .errors import MappingError
from .legacy import add, first, log_unsupported, props, text
from .model import Organization, Relation, SpeakToAs
from .rules import PropertyRule, RuleTable
from .values import content_key, is_present

logger = logging.getLogger(__name__)


class UnknownDialectError(KeyError):
    pass


# ── Nextcloud ──────────────────────────────────────────────────────────────────
#
# Nextcloud stores social profiles as X-SOCIALPROFILE.

NEXTCLOUD_RULES = STANDARD_RULES.overlay(
    PropertyRule(
        "onlineServices",
        "online_services",
        ("SOCIALPROFILE", "X-SOCIALPROFILE"),
        read=lambda vcard: read_social_profiles(vcard, "SOCIALPROFILE", "X-SOCIALPROFILE"),
        write=social_profile_writer("X-SOCIALPROFILE"),
    ),
)


# ── Roundcube ──────────────────────────────────────────────────────────────────

ROUNDCUBE_IMS = ("X-AIM", "X-ICQ", "X-MSN", "X-YAHOO", "X-JABBER", "X-SKYPE-USERNAME")

ROUNDCUBE_PHONE_TYPES = {
    **PHONE_TYPES,
    "home2": (("context", "private"),),
    "work2": (("context", "work"),),
    "homefax": (("context", "private"), ("feature", "fax")),
    "workfax": (("context", "work"), ("feature", "fax")),
}

X_RELATIONS = {"X-MANAGER": "manager", "X-ASSISTANT": "assistant", "X-SPOUSE": "spouse"}


def _x_anniversary(entry) -> bool:
    return entry.type is None and entry.label != "anniversary"


def read_x_gender(vcard):
    prop = first(vcard, "X-GENDER")
    if prop is None or not is_present(text(prop)):
        return None
    value = text(prop)
    if value not in ("male", "female"):
        logger.error("Unknown vCard X-GENDER value %r, leaving grammaticalGender unset", value)
        return None
    return SpeakToAs(grammatical_gender=value)


def write_x_gender(vcard, speak_to_as):
    gender = speak_to_as.grammatical_gender
    if not is_present(gender):
        return
    if gender not in ("male", "female"):
        raise MappingError(f"grammaticalGender {gender!r} has no vCard X-GENDER equivalent")
    add(vcard, "X-GENDER", gender)


def x_relation_rule(prop_name: str, relation: str) -> PropertyRule:
    def read(vcard):
        entries = {
            text(prop): Relation(relation={relation: True})
            for prop in props(vcard, prop_name)
            if is_present(text(prop))
        }
        return entries or None

    def write(vcard, related):
        for uid, rel in related.items():
            if rel is not None and (rel.relation or {}).get(relation) and is_present(uid):
                add(vcard, prop_name, uid)

    return PropertyRule(f"relatedTo.{relation}", "related_to", (prop_name,), read, write)


def read_departments(vcard):
    organizations = {}
    departments = [text(p) for p in props(vcard, "X-DEPARTMENT") if is_present(text(p))]
    for prop in props(vcard, "ORG"):
        segments = org_segments(prop)
        if not is_present(segments[0]):
            continue
        log_unsupported(prop)
        organizations[content_key(segments[0])] = Organization(
            name=segments[0],
            units=list(departments) or None,
        )
    return organizations or None


def write_departments(vcard, organizations):
    for org in organizations.values():
        if org is None or not is_present(org.name):
            continue
        add(vcard, "ORG", [org.name])
        for unit in org.units or []:
            if is_present(unit):
                add(vcard, "X-DEPARTMENT", unit)


ROUNDCUBE_RULES = STANDARD_RULES.overlay(
    *[online_rule(name, name, kind="username") for name in ROUNDCUBE_IMS],
    anniversary_rule(
        "anniversaries.x-anniversary",
        "X-ANNIVERSARY",
        label="x-anniversary",
        match=_x_anniversary,
        date_format="%Y-%m-%d",
    ),
    PropertyRule("speakToAs", "speak_to_as", ("X-GENDER",), read_x_gender, write_x_gender),
    phones_rule(ROUNDCUBE_PHONE_TYPES, other_when_no_contexts=False),
    PropertyRule(
        "relatedTo",
        "related_to",
        ("RELATED",),
        STANDARD_RULES["relatedTo"].read,
        lambda vcard, related: write_related(vcard, related, skip=tuple(X_RELATIONS.values())),
    ),
    *[x_relation_rule(name, relation) for name, relation in X_RELATIONS.items()],
    PropertyRule("organizations", "organizations", ("ORG", "X-DEPARTMENT"),
                 read_departments, write_departments),
    scalar_rule("maidenName", "maiden_name", "X-MAIDENNAME"),
)


# ── Registry ───────────────────────────────────────────────────────────────────

DIALECTS: dict[str, RuleTable] = {
    "standard": STANDARD_RULES,
    "nextcloud": NEXTCLOUD_RULES,
    "roundcube": ROUNDCUBE_RULES,
}


def get_dialect(name: str) -> RuleTable:
    try:
        return DIALECTS[name.lower()]
    except KeyError:
        raise UnknownDialectError(
            f"Unknown dialect {name!r}; expected one of {', '.join(DIALECTS)}"
        ) from None
