from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, ClassVar

# ── JSON record base ───────────────────────────────────────────────────────────
#
# Records are plain dataclasses with snake_case attributes. Each attribute maps
# to a camelCase JSON member unless its metadata names one explicitly, and
# nested records are declared by class name so they can be rebuilt on load:
#
#   kind  = "Address"   nested record class
#   shape = "map"       {key: record}
#           "list"      [record, ...]
#           "map_list"  {key: [record, ...]}

_BY_NAME: dict[str, type[JsonRecord]] = {}
_BY_TYPE: dict[str, type[JsonRecord]] = {}


def prop(json: str | None = None, kind: str | None = None, shape: str | None = None):
    return field(default=None, metadata={"json": json, "kind": kind, "shape": shape})


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _json_name(f) -> str:
    return f.metadata.get("json") or _camel(f.name)


def _dump(value: Any) -> Any:
    if isinstance(value, JsonRecord):
        return value.to_json()
    if isinstance(value, dict):
        return {k: _dump(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_dump(v) for v in value]
    return value


def _load_one(data: Any, kind: str) -> Any:
    if not isinstance(data, dict):
        return data
    cls = _BY_TYPE.get(data.get("@type", "")) or _BY_NAME[kind]
    return cls.from_json(data)


def _load(data: Any, kind: str | None, shape: str | None) -> Any:
    if kind is None:
        return data
    if shape == "map":
        return {k: _load_one(v, kind) for k, v in data.items()}
    if shape == "list":
        return [_load_one(v, kind) for v in data]
    if shape == "map_list":
        return {k: [_load_one(v, kind) for v in items] for k, items in data.items()}
    return _load_one(data, kind)


@dataclass
class JsonRecord:
    json_type: ClassVar[str | None] = None

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        _BY_NAME[cls.__name__] = cls
        if cls.json_type:
            _BY_TYPE[cls.json_type] = cls

    def to_json(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.json_type:
            out["@type"] = self.json_type
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            out[_json_name(f)] = _dump(value)
        return out

    @classmethod
    def from_json(cls, data: dict[str, Any]):
        kwargs = {}
        for f in fields(cls):
            value = data.get(_json_name(f))
            if value is None:
                continue
            kwargs[f.name] = _load(value, f.metadata.get("kind"), f.metadata.get("shape"))
        return cls(**kwargs)


# ── JSContact ──────────────────────────────────────────────────────────────────

@dataclass
class NameComponent(JsonRecord):
    json_type = "NameComponent"
    type: str | None = None   # prefix|given|surname|additional|suffix
    value: str | None = None


@dataclass
class Name(JsonRecord):
    json_type = "Name"
    components: list[NameComponent] | None = prop(kind="NameComponent", shape="list")
    locale: str | None = None


@dataclass
class StreetComponent(JsonRecord):
    json_type = "StreetComponent"
    type: str | None = None   # postOfficeBox|extension|name
    value: str | None = None


@dataclass
class Address(JsonRecord):
    json_type = "Address"
    full_address: str | None = None
    street: list[StreetComponent] | None = prop(kind="StreetComponent", shape="list")
    locality: str | None = None
    region: str | None = None
    country: str | None = None
    postcode: str | None = None
    country_code: str | None = None
    coordinates: str | None = None
    time_zone: str | None = None
    contexts: dict[str, bool] | None = None
    label: str | None = None
    pref: int | None = None


@dataclass
class Phone(JsonRecord):
    json_type = "Phone"
    phone: str | None = None
    features: dict[str, bool] | None = None
    contexts: dict[str, bool] | None = None
    label: str | None = None
    pref: int | None = None


@dataclass
class EmailAddress(JsonRecord):
    json_type = "EmailAddress"
    email: str | None = None
    contexts: dict[str, bool] | None = None
    pref: int | None = None


@dataclass
class Resource(JsonRecord):
    json_type = "Resource"
    resource: str | None = None
    type: str | None = None   # uri|username
    label: str | None = None
    media_type: str | None = None
    contexts: dict[str, bool] | None = None
    pref: int | None = None


@dataclass
class OnlineService(JsonRecord):
    json_type = "OnlineService"
    service: str | None = None
    uri: str | None = None
    user: str | None = None
    vcard_name: str | None = prop(json="vCardName")
    contexts: dict[str, bool] | None = None
    label: str | None = None
    pref: int | None = None


@dataclass
class File(JsonRecord):
    json_type = "File"
    href: str | None = None
    media_type: str | None = None
    pref: int | None = None


@dataclass
class Anniversary(JsonRecord):
    json_type = "Anniversary"
    type: str | None = None   # birth|death
    label: str | None = None
    date: str | None = None
    place: Address | None = prop(kind="Address")


@dataclass
class SpeakToAs(JsonRecord):
    json_type = "SpeakToAs"
    grammatical_gender: str | None = None
    pronouns: dict[str, Any] | None = None


@dataclass
class Title(JsonRecord):
    json_type = "Title"
    title: str | None = None
    organization: str | None = None


@dataclass
class Organization(JsonRecord):
    json_type = "Organization"
    name: str | None = None
    units: list[str] | None = None


@dataclass
class Relation(JsonRecord):
    json_type = "Relation"
    relation: dict[str, bool] | None = None


@dataclass
class PersonalInformation(JsonRecord):
    json_type = "PersonalInformation"
    type: str | None = None   # expertise|hobby|interest
    value: str | None = None
    level: str | None = None


@dataclass
class ContactLanguage(JsonRecord):
    json_type = "ContactLanguage"
    contexts: dict[str, bool] | None = None
    pref: int | None = None


@dataclass
class Card(JsonRecord):
    json_type = "Card"
    id: str | None = None
    uid: str | None = None
    address_book_id: str | None = None
    prod_id: str | None = None
    updated: str | None = None
    kind: str | None = None
    full_name: str | None = None
    name: Name | None = prop(kind="Name")
    nick_names: list[str] | None = None
    photos: dict[str, File] | None = prop(kind="File", shape="map")
    anniversaries: dict[str, Anniversary] | None = prop(kind="Anniversary", shape="map")
    speak_to_as: SpeakToAs | None = prop(kind="SpeakToAs")
    addresses: dict[str, Address] | None = prop(kind="Address", shape="map")
    phones: dict[str, Phone] | None = prop(kind="Phone", shape="map")
    emails: dict[str, EmailAddress] | None = prop(kind="EmailAddress", shape="map")
    preferred_contact_languages: dict[str, list[ContactLanguage]] | None = prop(
        kind="ContactLanguage", shape="map_list"
    )
    titles: dict[str, Title] | None = prop(kind="Title", shape="map")
    organizations: dict[str, Organization] | None = prop(kind="Organization", shape="map")
    related_to: dict[str, Relation] | None = prop(kind="Relation", shape="map")
    personal_info: dict[str, PersonalInformation] | None = prop(
        kind="PersonalInformation", shape="map"
    )
    categories: dict[str, bool] | None = None
    notes: str | None = None
    online: dict[str, Resource] | None = prop(kind="Resource", shape="map")
    online_services: dict[str, OnlineService] | None = prop(kind="OnlineService", shape="map")
    maiden_name: str | None = prop(json="audriga.eu/roundcube:maidenName")
