from __future__ import annotations

import logging

import vobject

from . import values
from .errors import MappingError
from .legacy import (
    add,
    first,
    log_unsupported,
    param,
    photo_uri,
    pref,
    props,
    text,
    text_list,
    text_part,
    types,
)
from .model import (
    Address,
    Anniversary,
    ContactLanguage,
    EmailAddress,
    File,
    Name,
    NameComponent,
    OnlineService,
    Organization,
    PersonalInformation,
    Phone,
    Relation,
    Resource,
    SpeakToAs,
    StreetComponent,
    Title,
)
from .rules import PropertyRule, RuleTable
from .values import content_key, is_present

logger = logging.getLogger(__name__)


# ── Online resources ───────────────────────────────────────────────────────────

def online_rule(
    prop_name: str,
    label: str,
    kind: str = "uri",
    index_prefix: str | None = None,
) -> PropertyRule:
    """SOURCE, IMPP, LOGO, ... <-> ``online`` entries carrying ``label``."""

    def read(vcard):
        entries: dict[str, Resource] = {}
        for prop in props(vcard, prop_name):
            value = text(prop)
            if not is_present(value):
                continue
            log_unsupported(prop)
            if index_prefix:
                key = values.indexed_key(index_prefix, param(prop, "INDEX"), value)
            else:
                key = content_key(value)
            entries[key] = Resource(
                resource=value,
                type=kind,
                label=label,
                media_type=param(prop, "MEDIATYPE"),
                contexts=values.contexts_from_types(types(prop), prop_name),
                pref=pref(prop),
            )
        return entries or None

    def write(vcard, online):
        for key, resource in online.items():
            if resource is None:
                continue
            if not resource.label:
                raise MappingError(
                    f"online entry {key!r} has no label, needed for vCard {prop_name}"
                )
            if resource.label != label or not is_present(resource.resource):
                continue
            params = {
                "TYPE": values.types_from_contexts(resource.contexts, prop_name) or ["other"],
                "PREF": resource.pref,
                "MEDIATYPE": resource.media_type,
            }
            if index_prefix:
                params["INDEX"] = values.index_from_key(index_prefix, key)
            add(vcard, prop_name, resource.resource, params)

    return PropertyRule(f"online.{prop_name.lower()}", "online", (prop_name,), read, write)


ONLINE_RULES = [
    online_rule("SOURCE", "source"),
    online_rule("IMPP", "XMPP", kind="username"),
    online_rule("LOGO", "logo"),
    online_rule("CONTACT-URI", "contact-uri"),
    online_rule("ORG-DIRECTORY", "org-directory", index_prefix="ORG-DIRECTORY"),
    online_rule("SOUND", "sound"),
    online_rule("URL", "url"),
    online_rule("KEY", "key"),
    online_rule("FBURL", "fburl"),
    online_rule("CALADRURI", "caladruri"),
    online_rule("CALURI", "caluri"),
]


# ── Online services ────────────────────────────────────────────────────────────

def read_social_profiles(vcard, *names: str) -> dict[str, OnlineService] | None:
    entries: dict[str, OnlineService] = {}
    for prop in props(vcard, *names):
        value = text(prop)
        if not is_present(value):
            continue
        service = OnlineService(
            service=param(prop, "SERVICE-TYPE"),
            vcard_name=prop.name.lower(),
            contexts=values.contexts_from_types(types(prop), prop.name),
            pref=pref(prop),
        )
        if (param(prop, "VALUE") or "").lower() == "text":
            service.user = value
        else:
            service.uri = value
        entries[content_key(value)] = service
    return entries or None


def social_profile_writer(social_name: str):
    def write(vcard, services):
        for service in services.values():
            if service is None:
                continue
            value = service.uri or service.user
            if not is_present(value):
                continue
            name = "IMPP" if (service.vcard_name or "").lower() == "impp" else social_name
            params = {
                "TYPE": values.types_from_contexts(service.contexts, name),
                "PREF": service.pref,
            }
            if name != "IMPP":
                params["SERVICE-TYPE"] = service.service
                if service.uri is None:
                    params["VALUE"] = "text"
            add(vcard, name, value, params)

    return write


ONLINE_SERVICES = PropertyRule(
    "onlineServices",
    "online_services",
    ("SOCIALPROFILE",),
    read=lambda vcard: read_social_profiles(vcard, "SOCIALPROFILE"),
    write=social_profile_writer("SOCIALPROFILE"),
)


# ── Identity ───────────────────────────────────────────────────────────────────

def read_kind(vcard):
    prop = first(vcard, "KIND")
    if prop is None or not is_present(text(prop)):
        return None
    value = text(prop).lower()
    if value == "group" or props(vcard, "MEMBER"):
        logger.error("vCard MEMBER is set and/or KIND is 'group', which a single card cannot represent")
        return None
    return value


def write_kind(vcard, kind):
    add(vcard, "KIND", kind)


def read_full_name(vcard):
    prop = first(vcard, "FN")
    if prop is None:
        return None
    log_unsupported(prop)
    return values.none_if_empty(text(prop))


def write_full_name(vcard, full_name):
    add(vcard, "FN", full_name)


def read_name(vcard):
    prop = first(vcard, "N")
    if prop is None:
        return None
    log_unsupported(prop)
    value = prop.value
    components = []
    for json_type, attr in values.N_DISPLAY:
        part = text_part(getattr(value, attr, ""))
        if is_present(part):
            components.append(NameComponent(type=json_type, value=part))
    return Name(components=components) if components else None


def write_name(vcard, name):
    parts = dict.fromkeys(values.N_FIELDS, "")
    for component in name.components or []:
        if component is None or not is_present(component.value):
            continue
        attr = values.COMPONENT_FIELDS.get(component.type)
        if attr is None:
            raise MappingError(
                f"Unknown NameComponent type {component.type!r} for vCard N"
            )
        parts[attr] = component.value
    if not any(parts.values()):
        return
    add(vcard, "N", vobject.vcard.Name(**parts))


def derive_full_name(vcard, name):
    """Write FN from the name components when the card carries none."""
    if first(vcard, "FN") is not None:
        return
    parts = {c.type: c.value for c in name.components or [] if c is not None and c.value}
    ordered = [parts[t] for t in ("prefix", "given", "additional", "middle", "surname", "suffix") if t in parts]
    if ordered:
        add(vcard, "FN", " ".join(ordered))


def read_nick_names(vcard):
    names: list[str] = []
    for prop in props(vcard, "NICKNAME"):
        log_unsupported(prop)
        names.extend(text_list(prop))
    return names or None


def write_nick_names(vcard, nick_names):
    for nick in nick_names:
        if is_present(nick):
            add(vcard, "NICKNAME", nick)


def read_photos(vcard):
    photos: dict[str, File] = {}
    for prop in props(vcard, "PHOTO"):
        href = photo_uri(prop)
        if not is_present(href):
            continue
        photos[content_key(href)] = File(href=href, media_type=param(prop, "MEDIATYPE"), pref=pref(prop))
    return photos or None


def write_photos(vcard, photos):
    for photo in photos.values():
        if photo is None or not is_present(photo.href):
            continue
        add(vcard, "PHOTO", photo.href, {"PREF": photo.pref, "MEDIATYPE": photo.media_type})


# ── Anniversaries ──────────────────────────────────────────────────────────────

def _place(vcard, prop_name: str) -> Address | None:
    prop = first(vcard, prop_name)
    if prop is None:
        return None
    log_unsupported(prop)
    value = text(prop)
    if not is_present(value):
        return None
    if value.startswith("geo:"):
        return Address(coordinates=value)
    return Address(full_address=value)


def anniversary_rule(
    name: str,
    date_prop: str,
    place_prop: str | None = None,
    type_: str | None = None,
    label: str | None = None,
    match=None,
    date_format: str = "%Y%m%d",
) -> PropertyRule:
    """BDAY / DEATHDATE / ANNIVERSARY (+ place) <-> one ``anniversaries`` entry each.

    Entries are written back when ``match`` accepts them; by default that is the
    entries carrying ``type_``, or the untyped ones labelled ``label``.
    """

    def read(vcard):
        entries: dict[str, Anniversary] = {}
        for prop in props(vcard, date_prop):
            raw = text(prop)
            if not is_present(raw):
                continue
            log_unsupported(prop)
            entry = Anniversary(type=type_, label=label, date=values.vcard_date_to_json(raw, date_prop))
            if place_prop:
                entry.place = _place(vcard, place_prop)
            entries[content_key(f"{date_prop}:{raw}")] = entry
        return entries or None

    def matches(entry: Anniversary) -> bool:
        if match is not None:
            return match(entry)
        if type_ is not None:
            return entry.type == type_
        return entry.type is None and entry.label == label

    def write(vcard, anniversaries):
        for entry in anniversaries.values():
            if entry is None or not matches(entry):
                continue
            if is_present(entry.date):
                add(vcard, date_prop, values.json_date_to_vcard(entry.date, date_prop, date_format))
            if place_prop and entry.place is not None:
                place = entry.place.coordinates or entry.place.full_address
                if is_present(place):
                    add(vcard, place_prop, place)

    return PropertyRule(name, "anniversaries", tuple(p for p in (date_prop, place_prop) if p), read, write)


# ── Gender ─────────────────────────────────────────────────────────────────────

def read_speak_to_as(vcard):
    prop = first(vcard, "GENDER")
    if prop is None:
        return None
    sex = text(prop).split(";")[0].strip().upper()
    if not sex:
        return None
    if sex not in values.GENDER_TO_JSON:
        logger.warning("Unknown vCard GENDER value %r", sex)
        return None
    gender = values.GENDER_TO_JSON[sex]
    return SpeakToAs(grammatical_gender=gender) if gender else None


def write_speak_to_as(vcard, speak_to_as):
    gender = speak_to_as.grammatical_gender
    if not is_present(gender):
        return
    if gender not in values.JSON_TO_GENDER:
        raise MappingError(f"grammaticalGender {gender!r} has no vCard GENDER equivalent")
    add(vcard, "GENDER", values.JSON_TO_GENDER[gender])


# ── Addresses ──────────────────────────────────────────────────────────────────

ADR_FIELDS = ("box", "extended", "street", "city", "region", "code", "country")


def _adr_key(value) -> str:
    return content_key(";".join(text_part(getattr(value, f, "")) for f in ADR_FIELDS))


def read_addresses(vcard):
    entries: dict[str, Address] = {}
    for prop in props(vcard, "ADR"):
        value = prop.value
        parts = {f: text_part(getattr(value, f, "")) for f in ADR_FIELDS}
        full = param(prop, "LABEL")
        if not any(parts.values()) and not is_present(full):
            continue
        log_unsupported(prop)
        street = [
            StreetComponent(type=json_type, value=parts[attr])
            for attr, json_type in values.STREET_PARTS
            if is_present(parts[attr])
        ]
        entries[_adr_key(value)] = Address(
            full_address=full,
            street=street or None,
            locality=values.none_if_empty(parts["city"]),
            region=values.none_if_empty(parts["region"]),
            postcode=values.none_if_empty(parts["code"]),
            country=values.none_if_empty(parts["country"]),
            country_code=param(prop, "CC"),
            coordinates=param(prop, "GEO"),
            time_zone=param(prop, "TZ"),
            contexts=values.contexts_from_types(types(prop), "ADR", allow_other=False),
            pref=pref(prop),
        )
    return entries or None


def write_addresses(vcard, addresses):
    for address in addresses.values():
        if address is None or address.label == values.TIMEZONE_LABEL:
            continue
        parts = dict.fromkeys(ADR_FIELDS, "")
        for component in address.street or []:
            attr = values.STREET_FIELDS.get(component.type)
            if attr is None:
                raise MappingError(
                    f"Unknown StreetComponent type {component.type!r} for vCard ADR"
                )
            if is_present(component.value):
                parts[attr] = " ".join(p for p in (parts[attr], component.value) if p)
        parts["city"] = address.locality or ""
        parts["region"] = address.region or ""
        parts["code"] = address.postcode or ""
        parts["country"] = address.country or ""
        if not any(parts.values()) and not is_present(address.full_address):
            continue
        params = {
            "TYPE": values.types_from_contexts(address.contexts, "ADR"),
            "PREF": address.pref,
            "LABEL": address.full_address,
            "GEO": address.coordinates,
            "TZ": address.time_zone,
            "CC": address.country_code,
        }
        add(vcard, "ADR", vobject.vcard.Address(**parts), params)


def read_time_zone(vcard):
    entries: dict[str, Address] = {}
    for prop in props(vcard, "TZ"):
        value = text(prop)
        if not is_present(value):
            continue
        if not values.is_time_zone(value):
            logger.error("Unknown time zone identifier %r in vCard TZ", value)
            continue
        entries[content_key(value)] = Address(time_zone=value, label=values.TIMEZONE_LABEL)
    return entries or None


def write_time_zone(vcard, addresses):
    for address in addresses.values():
        if address is None or address.label != values.TIMEZONE_LABEL:
            continue
        if is_present(address.time_zone):
            add(vcard, "TZ", address.time_zone)


# ── Phones ─────────────────────────────────────────────────────────────────────
#
# Each TYPE token maps to a tuple of (slot, value) pairs where slot is
# "context", "feature" or "other". Unlisted tokens become free-text labels.

PHONE_TYPES: dict[str, tuple[tuple[str, str | None], ...]] = {
    "home": (("context", "private"),),
    "work": (("context", "work"),),
    "other": (("other", None),),
    **{feature: (("feature", feature),) for feature in values.PHONE_FEATURES},
}


def phone_from_tel(prop, type_map) -> Phone:
    contexts: dict[str, bool] = {}
    features: dict[str, bool] = {}
    labels: list[str] = []
    other = False
    for token in types(prop):
        if token.lower() == "pref":
            continue
        slots = type_map.get(token.lower())
        if slots is None:
            logger.warning("Unknown vCard TYPE value %r for TEL, keeping it as label", token)
            labels.append(token)
            continue
        for slot, value in slots:
            if slot == "context":
                contexts[value] = True
            elif slot == "feature":
                features[value] = True
            else:
                other = True
    return Phone(
        phone=text(prop),
        contexts=None if other or not contexts else contexts,
        features=features or None,
        label=",".join(labels) or None,
        pref=pref(prop),
    )


def phones_rule(type_map=PHONE_TYPES, other_when_no_contexts: bool = True) -> PropertyRule:

    def read(vcard):
        entries: dict[str, Phone] = {}
        for prop in props(vcard, "TEL"):
            value = text(prop)
            if not is_present(value):
                continue
            log_unsupported(prop)
            entries[content_key(value)] = phone_from_tel(prop, type_map)
        return entries or None

    def write(vcard, phones):
        for phone in phones.values():
            if phone is None or not is_present(phone.phone):
                continue
            tel_types = values.types_from_contexts(phone.contexts, "TEL")
            if not tel_types and other_when_no_contexts:
                tel_types = ["other"]
            tel_types += [f for f, flag in (phone.features or {}).items() if flag]
            if phone.label:
                tel_types += [part for part in phone.label.split(",") if part]
            add(vcard, "TEL", phone.phone, {"TYPE": tel_types, "PREF": phone.pref})

    return PropertyRule("phones", "phones", ("TEL",), read, write)


# ── Emails ─────────────────────────────────────────────────────────────────────

def read_emails(vcard):
    entries: dict[str, EmailAddress] = {}
    for prop in props(vcard, "EMAIL"):
        value = text(prop)
        if not is_present(value):
            continue
        log_unsupported(prop)
        email_types = [t for t in types(prop) if t.lower() != "internet"]
        entries[content_key(value)] = EmailAddress(
            email=value,
            contexts=values.contexts_from_types(email_types, "EMAIL"),
            pref=pref(prop),
        )
    return entries or None


def write_emails(vcard, emails):
    for email in emails.values():
        if email is None or not is_present(email.email):
            continue
        email_types = values.types_from_contexts(email.contexts, "EMAIL") or ["other"]
        add(vcard, "EMAIL", email.email, {"TYPE": email_types, "PREF": email.pref})


# ── Languages ──────────────────────────────────────────────────────────────────

def read_languages(vcard):
    languages: dict[str, list[ContactLanguage]] = {}
    for prop in props(vcard, "LANG"):
        tag = text(prop)
        if not is_present(tag):
            continue
        entries = languages.setdefault(tag, [])
        lang_types = types(prop)
        lang_pref = pref(prop)
        if not lang_types and lang_pref is None:
            continue
        entries.append(ContactLanguage(
            contexts=values.contexts_from_types(lang_types, "LANG", allow_other=False),
            pref=lang_pref,
        ))
    return languages or None


def write_languages(vcard, languages):
    for tag, entries in languages.items():
        if not is_present(tag):
            continue
        if not entries:
            add(vcard, "LANG", tag)
            continue
        for entry in entries:
            add(vcard, "LANG", tag, {
                "TYPE": values.types_from_contexts(entry.contexts, "LANG"),
                "PREF": entry.pref,
            })


# ── Work ───────────────────────────────────────────────────────────────────────

def read_titles(vcard):
    entries: dict[str, Title] = {}
    for prop in props(vcard, "TITLE", "ROLE"):
        value = text(prop)
        if not is_present(value):
            continue
        log_unsupported(prop)
        entries[content_key(value)] = Title(title=value)
    return entries or None


def write_titles(vcard, titles):
    for title in titles.values():
        if title is not None and is_present(title.title):
            add(vcard, "TITLE", title.title)


def org_segments(prop) -> list[str]:
    value = prop.value
    if isinstance(value, list):
        return [text_part(v) for v in value]
    return str(value or "").split(";")


def read_organizations(vcard):
    entries: dict[str, Organization] = {}
    for prop in props(vcard, "ORG"):
        segments = org_segments(prop)
        if not any(is_present(s) for s in segments):
            continue
        log_unsupported(prop)
        units = [s for s in segments[1:] if is_present(s)]
        entries[content_key(";".join(segments))] = Organization(
            name=values.none_if_empty(segments[0]),
            units=units or None,
        )
    return entries or None


def write_organizations(vcard, organizations):
    for org in organizations.values():
        if org is None:
            continue
        segments = [org.name or ""] + [u for u in org.units or [] if is_present(u)]
        if any(segments):
            add(vcard, "ORG", segments)


def read_related(vcard):
    entries: dict[str, Relation] = {}
    for prop in props(vcard, "RELATED"):
        value = text(prop)
        if not is_present(value):
            continue
        relation = {t.lower(): True for t in types(prop)}
        entries[value] = Relation(relation=relation)
    return entries or None


def write_related(vcard, related, skip: tuple[str, ...] = ()):
    for uid, relation in related.items():
        if relation is None or not is_present(uid):
            continue
        kinds = [k for k, flag in (relation.relation or {}).items() if flag]
        if skip and any(k in skip for k in kinds):
            continue
        add(vcard, "RELATED", uid, {"TYPE": kinds})


# ── Personal information ───────────────────────────────────────────────────────

def personal_info_rule(prop_name: str, info_type: str) -> PropertyRule:
    """EXPERTISE / HOBBY / INTEREST <-> ``personalInfo`` entries of ``info_type``."""
    is_expertise = info_type == "expertise"

    def read(vcard):
        entries: dict[str, PersonalInformation] = {}
        for prop in props(vcard, prop_name):
            value = text(prop)
            if not is_present(value):
                continue
            log_unsupported(prop)
            level = (param(prop, "LEVEL") or "").lower() or None
            if level and is_expertise:
                if level not in values.EXPERTISE_TO_JSON:
                    logger.warning("Unknown vCard LEVEL value %r for EXPERTISE", level)
                level = values.EXPERTISE_TO_JSON.get(level)
            key = values.indexed_key(prop_name, param(prop, "INDEX"), value)
            entries[key] = PersonalInformation(type=info_type, value=value, level=level)
        return entries or None

    def write(vcard, personal_info):
        for key, info in personal_info.items():
            if info is None or info.type != info_type or not is_present(info.value):
                continue
            level = info.level
            if level and is_expertise:
                if level not in values.JSON_TO_EXPERTISE:
                    raise MappingError(f"Unknown expertise level {level!r} for vCard EXPERTISE")
                level = values.JSON_TO_EXPERTISE[level]
            add(vcard, prop_name, info.value, {
                "LEVEL": level,
                "INDEX": values.index_from_key(prop_name, key),
            })

    return PropertyRule(f"personalInfo.{info_type}", "personal_info", (prop_name,), read, write)


# ── Misc ───────────────────────────────────────────────────────────────────────

def read_categories(vcard):
    found: dict[str, bool] = {}
    for prop in props(vcard, "CATEGORIES"):
        for category in text_list(prop):
            found[category] = True
    return found or None


def write_categories(vcard, categories):
    chosen = [c for c, flag in categories.items() if flag and is_present(c)]
    if chosen:
        add(vcard, "CATEGORIES", chosen)


def read_notes(vcard):
    notes = [text(p) for p in props(vcard, "NOTE") if is_present(text(p))]
    return "\n".join(notes) or None


def write_notes(vcard, notes):
    for line in notes.split("\n"):
        if is_present(line):
            add(vcard, "NOTE", line)


def scalar_rule(name: str, field: str, prop_name: str, to_json=None, to_vcard=None) -> PropertyRule:
    def read(vcard):
        prop = first(vcard, prop_name)
        if prop is None or not is_present(text(prop)):
            return None
        value = text(prop)
        return to_json(value) if to_json else value

    def write(vcard, value):
        add(vcard, prop_name, to_vcard(value) if to_vcard else value)

    return PropertyRule(name, field, (prop_name,), read, write)


# ── Standard table ─────────────────────────────────────────────────────────────
#
# Table order is the write order.

STANDARD_RULES = RuleTable([
    *ONLINE_RULES,
    ONLINE_SERVICES,
    PropertyRule("kind", "kind", ("KIND", "MEMBER"), read_kind, write_kind),
    PropertyRule("fullName", "full_name", ("FN",), read_full_name, write_full_name),
    PropertyRule("name", "name", ("N",), read_name, write_name),
    PropertyRule("nickNames", "nick_names", ("NICKNAME",), read_nick_names, write_nick_names),
    PropertyRule("photos", "photos", ("PHOTO",), read_photos, write_photos),
    anniversary_rule("anniversaries.birth", "BDAY", "BIRTHPLACE", type_="birth"),
    anniversary_rule("anniversaries.death", "DEATHDATE", "DEATHPLACE", type_="death"),
    anniversary_rule("anniversaries.anniversary", "ANNIVERSARY", label="anniversary"),
    PropertyRule("speakToAs", "speak_to_as", ("GENDER",), read_speak_to_as, write_speak_to_as),
    PropertyRule("addresses.adr", "addresses", ("ADR",), read_addresses, write_addresses),
    PropertyRule("addresses.tz", "addresses", ("TZ",), read_time_zone, write_time_zone),
    phones_rule(),
    PropertyRule("emails", "emails", ("EMAIL",), read_emails, write_emails),
    PropertyRule("preferredContactLanguages", "preferred_contact_languages", ("LANG",),
                 read_languages, write_languages),
    PropertyRule("titles", "titles", ("TITLE", "ROLE"), read_titles, write_titles),
    PropertyRule("organizations", "organizations", ("ORG",), read_organizations, write_organizations),
    PropertyRule("relatedTo", "related_to", ("RELATED",), read_related, write_related),
    personal_info_rule("EXPERTISE", "expertise"),
    personal_info_rule("HOBBY", "hobby"),
    personal_info_rule("INTEREST", "interest"),
    PropertyRule("categories", "categories", ("CATEGORIES",), read_categories, write_categories),
    PropertyRule("notes", "notes", ("NOTE",), read_notes, write_notes),
    scalar_rule("prodId", "prod_id", "PRODID"),
    scalar_rule("updated", "updated", "REV", values.rev_to_json, values.json_to_rev),
    scalar_rule("uid", "uid", "UID"),
    PropertyRule("fullName.derived", "name", ("FN",), write=derive_full_name),
])
