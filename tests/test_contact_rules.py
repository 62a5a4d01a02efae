"""vCard <-> JSContact through the standard rule table."""
from __future__ import annotations

import logging

import pytest

from vcard_jmap.adapter import ContactAdapter
from vcard_jmap.errors import MappingError, VCardParseError
from vcard_jmap.io import parse_vcard
from vcard_jmap.legacy import param, props, text, text_list
from vcard_jmap.mapper import ContactMapper
from vcard_jmap.model import (
    Address,
    Anniversary,
    Card,
    ContactLanguage,
    EmailAddress,
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
)
from vcard_jmap.values import content_key


# ── helpers ────────────────────────────────────────────────────────────────────

def _vcf(*lines: str) -> str:
    return "\r\n".join(["BEGIN:VCARD", "VERSION:4.0", *lines, "END:VCARD"]) + "\r\n"


def _read(*lines: str) -> Card:
    adapter = ContactAdapter()
    adapter.load(_vcf(*lines), "c1")
    return adapter.to_card()


def _write(card: Card):
    return parse_vcard(ContactAdapter().from_card(card), "out")


def _only(mapping: dict):
    assert len(mapping) == 1
    return next(iter(mapping.values()))


# ── Reading ────────────────────────────────────────────────────────────────────

def test_empty_vcard_maps_to_empty_card():
    card = _read()
    assert card.to_json() == {"@type": "Card"}


def test_full_name_and_name_components():
    card = _read("FN:Alice Example", "N:Example;Alice;Marie;Dr.;PhD")
    assert card.full_name == "Alice Example"
    assert [(c.type, c.value) for c in card.name.components] == [
        ("prefix", "Dr."),
        ("given", "Alice"),
        ("surname", "Example"),
        ("additional", "Marie"),
        ("suffix", "PhD"),
    ]


def test_emails_contexts_and_pref():
    card = _read(
        "EMAIL;TYPE=work:alice@example.com",
        "EMAIL;TYPE=INTERNET,HOME;PREF=1:alice@home.example",
        "EMAIL:plain@example.com",
    )
    emails = card.emails
    assert emails[content_key("alice@example.com")].contexts == {"work": True}
    home = emails[content_key("alice@home.example")]
    assert home.contexts == {"private": True}
    assert home.pref == 1
    assert emails[content_key("plain@example.com")].contexts is None


def test_phone_types_partition():
    card = _read("TEL;TYPE=cell,home:+49 30 1234", "TEL;TYPE=fax,work,main:+49 30 5678")
    cell = card.phones[content_key("+49 30 1234")]
    assert cell.contexts == {"private": True}
    assert cell.features == {"cell": True}
    assert cell.label is None
    fax = card.phones[content_key("+49 30 5678")]
    assert fax.contexts == {"work": True}
    assert fax.features == {"fax": True}
    assert fax.label == "main"


def test_phone_other_clears_contexts():
    card = _read("TEL;TYPE=other,voice:+1 555 0100")
    phone = _only(card.phones)
    assert phone.contexts is None
    assert phone.features == {"voice": True}


def test_organization_units_are_remaining_segments():
    card = _read("ORG:Example Corp;Research;Lab")
    org = _only(card.organizations)
    assert org.name == "Example Corp"
    assert org.units == ["Research", "Lab"]


def test_titles_from_title_and_role():
    card = _read("TITLE:Chemist", "ROLE:Team lead")
    assert sorted(t.title for t in card.titles.values()) == ["Chemist", "Team lead"]


def test_birthday_and_place():
    card = _read("BDAY:19850412", "BIRTHPLACE:Vienna")
    birth = _only(card.anniversaries)
    assert birth.type == "birth"
    assert birth.date == "1985-04-12"
    assert birth.place.full_address == "Vienna"


def test_unparseable_birthday_uses_sentinel(caplog):
    with caplog.at_level(logging.ERROR):
        card = _read("BDAY:sometime")
    assert _only(card.anniversaries).date == "0000-00-00"
    assert "BDAY" in caplog.text


def test_anniversary_gets_label():
    card = _read("ANNIVERSARY:20100601")
    entry = _only(card.anniversaries)
    assert entry.type is None
    assert entry.label == "anniversary"
    assert entry.date == "2010-06-01"


def test_gender():
    assert _read("GENDER:F").speak_to_as.grammatical_gender == "female"
    assert _read("GENDER:U", "FN:x").speak_to_as is None


def test_unknown_gender_is_logged(caplog):
    with caplog.at_level(logging.WARNING):
        card = _read("GENDER:X")
    assert card.speak_to_as is None
    assert "GENDER" in caplog.text


def test_address_components():
    card = _read("ADR;TYPE=home:;;Main Street 1;Berlin;;10115;Germany")
    adr = _only(card.addresses)
    assert adr.street[0].type == "name"
    assert adr.street[0].value == "Main Street 1"
    assert adr.locality == "Berlin"
    assert adr.region is None
    assert adr.postcode == "10115"
    assert adr.country == "Germany"
    assert adr.contexts == {"private": True}


def test_address_without_type_has_no_contexts():
    adr = _only(_read("ADR:;;Main Street 1;Berlin;;;").addresses)
    assert adr.contexts is None


def test_address_label_and_geo_keep_commas():
    adr = _only(_read(
        'ADR;LABEL="123 Main St, Springfield";GEO="geo:48.1,11.5":;;123 Main St;Springfield;;;'
    ).addresses)
    assert adr.full_address == "123 Main St, Springfield"
    assert adr.coordinates == "geo:48.1,11.5"


def test_address_label_and_geo_survive_write():
    card = Card(full_name="A", addresses={"a": Address(
        locality="Springfield",
        full_address="123 Main St, Springfield",
        coordinates="geo:48.1,11.5",
    )})
    adr = props(_write(card), "ADR")[0]
    assert param(adr, "LABEL") == "123 Main St, Springfield"
    assert param(adr, "GEO") == "geo:48.1,11.5"


def test_languages():
    card = _read("LANG;TYPE=work;PREF=1:de", "LANG:en")
    langs = card.preferred_contact_languages
    assert langs["en"] == []
    assert langs["de"][0].contexts == {"work": True}
    assert langs["de"][0].pref == 1


def test_related_without_type_is_empty_relation():
    card = _read("RELATED;TYPE=friend:urn:uuid:abc", "RELATED:urn:uuid:def")
    assert card.related_to["urn:uuid:abc"].relation == {"friend": True}
    assert card.related_to["urn:uuid:def"].relation == {}


def test_expertise_keys_and_levels():
    card = _read("EXPERTISE;LEVEL=expert;INDEX=1:chemistry", "HOBBY:climbing")
    expertise = card.personal_info["EXPERTISE-1"]
    assert expertise.type == "expertise"
    assert expertise.level == "high"
    hobby = card.personal_info[content_key("climbing")]
    assert hobby.type == "hobby"


def test_online_resources():
    card = _read(
        "URL:https://example.com/alice",
        "ORG-DIRECTORY;INDEX=2:https://dir.example.com",
        "IMPP;TYPE=work:xmpp:alice@example.com",
    )
    url = card.online[content_key("https://example.com/alice")]
    assert (url.type, url.label) == ("uri", "url")
    assert card.online["ORG-DIRECTORY-2"].label == "org-directory"
    impp = card.online[content_key("xmpp:alice@example.com")]
    assert (impp.type, impp.label) == ("username", "XMPP")
    assert impp.contexts == {"work": True}


def test_social_profile():
    card = _read("SOCIALPROFILE;SERVICE-TYPE=Mastodon:https://mastodon.example/@alice")
    service = _only(card.online_services)
    assert service.service == "Mastodon"
    assert service.uri == "https://mastodon.example/@alice"
    assert service.vcard_name == "socialprofile"


def test_categories_notes_and_misc():
    card = _read(
        "CATEGORIES:friends",
        "NOTE:line one",
        "NOTE:line two",
        "PRODID:-//Example//EN",
        "REV:20240102T030405Z",
        "UID:urn:uuid:1234",
        "NICKNAME:Ali",
    )
    assert card.categories == {"friends": True}
    assert card.notes == "line one\nline two"
    assert card.prod_id == "-//Example//EN"
    assert card.updated == "2024-01-02T03:04:05Z"
    assert card.uid == "urn:uuid:1234"
    assert card.nick_names == ["Ali"]


def test_group_kind_is_not_mapped(caplog):
    with caplog.at_level(logging.ERROR):
        card = _read("KIND:group", "FN:Team")
    assert card.kind is None
    assert "group" in caplog.text


def test_altid_is_reported(caplog):
    with caplog.at_level(logging.ERROR):
        _read("FN;ALTID=1:Alice")
    assert "ALTID" in caplog.text


# ── Writing ────────────────────────────────────────────────────────────────────

def test_fn_is_derived_from_name():
    card = Card(name=Name(components=[
        NameComponent(type="given", value="Alice"),
        NameComponent(type="surname", value="Example"),
    ]))
    vcard = _write(card)
    assert text(props(vcard, "FN")[0]) == "Alice Example"
    assert vcard.n.value.family == "Example"
    assert vcard.n.value.given == "Alice"


def test_explicit_fn_is_kept():
    card = Card(full_name="Ali", name=Name(components=[NameComponent(type="given", value="Alice")]))
    vcard = _write(card)
    assert [text(p) for p in props(vcard, "FN")] == ["Ali"]


def test_middle_name_alias():
    card = Card(full_name="A", name=Name(components=[NameComponent(type="middle", value="Marie")]))
    assert _write(card).n.value.additional == "Marie"


def test_unknown_name_component_raises():
    card = Card(name=Name(components=[NameComponent(type="title", value="Sir")]))
    with pytest.raises(MappingError):
        ContactAdapter().from_card(card)


def test_email_without_contexts_is_other():
    card = Card(full_name="A", emails={
        "e1": EmailAddress(email="a@example.com"),
        "e2": EmailAddress(email="b@example.com", contexts={"work": True}, pref=1),
    })
    emails = {text(p): p for p in props(_write(card), "EMAIL")}
    assert emails["a@example.com"].params["TYPE"] == ["other"]
    assert emails["b@example.com"].params["TYPE"] == ["work"]
    assert param(emails["b@example.com"], "PREF") == "1"


def test_unknown_context_raises():
    card = Card(full_name="A", emails={"e": EmailAddress(email="a@example.com", contexts={"billing": True})})
    with pytest.raises(MappingError):
        ContactAdapter().from_card(card)


def test_phone_types_written():
    card = Card(full_name="A", phones={
        "p1": Phone(phone="+1 555 0100", contexts={"private": True}, features={"cell": True}),
        "p2": Phone(phone="+1 555 0101", label="main"),
    })
    phones = {text(p): [t.lower() for t in p.params["TYPE"]] for p in props(_write(card), "TEL")}
    assert phones["+1 555 0100"] == ["home", "cell"]
    assert phones["+1 555 0101"] == ["other", "main"]


def test_address_written_without_type_when_no_contexts():
    card = Card(full_name="A", addresses={"a": Address(
        street=[StreetComponent(type="name", value="Main Street 1")],
        locality="Berlin",
        postcode="10115",
    )})
    adr = props(_write(card), "ADR")[0]
    assert "TYPE" not in adr.params
    assert adr.value.street == "Main Street 1"
    assert adr.value.city == "Berlin"
    assert adr.value.code == "10115"


def test_unknown_street_component_raises():
    card = Card(addresses={"a": Address(street=[StreetComponent(type="floor", value="3")])})
    with pytest.raises(MappingError):
        ContactAdapter().from_card(card)


def test_timezone_entry_goes_to_tz_not_adr():
    card = Card(full_name="A", addresses={"tz": Address(time_zone="Europe/Berlin", label="timezone")})
    vcard = _write(card)
    assert text(props(vcard, "TZ")[0]) == "Europe/Berlin"
    assert props(vcard, "ADR") == []


def test_online_written_by_label():
    card = Card(full_name="A", online={
        "o1": Resource(resource="https://example.com", type="uri", label="url"),
        "ORG-DIRECTORY-4": Resource(resource="https://dir.example.com", type="uri", label="org-directory"),
    })
    vcard = _write(card)
    url = props(vcard, "URL")[0]
    assert text(url) == "https://example.com"
    assert url.params["TYPE"] == ["other"]
    assert param(props(vcard, "ORG-DIRECTORY")[0], "INDEX") == "4"


def test_online_without_label_raises():
    card = Card(online={"o1": Resource(resource="https://example.com", type="uri")})
    with pytest.raises(MappingError):
        ContactAdapter().from_card(card)


def test_online_service_vcard_name_picks_property():
    card = Card(full_name="A", online_services={
        "s1": OnlineService(service="Mastodon", uri="https://mastodon.example/@a"),
        "s2": OnlineService(uri="xmpp:a@example.com", vcard_name="impp"),
    })
    vcard = _write(card)
    social = props(vcard, "SOCIALPROFILE")[0]
    assert param(social, "SERVICE-TYPE") == "Mastodon"
    assert text(props(vcard, "IMPP")[0]) == "xmpp:a@example.com"


def test_gender_written():
    vcard = _write(Card(full_name="A", speak_to_as=SpeakToAs(grammatical_gender="male")))
    assert text(props(vcard, "GENDER")[0]) == "M"


def test_inanimate_gender_raises():
    with pytest.raises(MappingError):
        ContactAdapter().from_card(Card(speak_to_as=SpeakToAs(grammatical_gender="inanimate")))


def test_anniversaries_written_by_type():
    card = Card(full_name="A", anniversaries={
        "b": Anniversary(type="birth", date="1985-04-12", place=Address(full_address="Vienna")),
        "a": Anniversary(label="anniversary", date="2010-06-01"),
    })
    vcard = _write(card)
    assert text(props(vcard, "BDAY")[0]) == "19850412"
    assert text(props(vcard, "BIRTHPLACE")[0]) == "Vienna"
    assert text(props(vcard, "ANNIVERSARY")[0]) == "20100601"


def test_bad_anniversary_date_raises():
    card = Card(anniversaries={"b": Anniversary(type="birth", date="someday")})
    with pytest.raises(MappingError):
        ContactAdapter().from_card(card)


def test_personal_info_written_per_type():
    card = Card(full_name="A", personal_info={
        "EXPERTISE-3": PersonalInformation(type="expertise", value="chemistry", level="medium"),
        "h": PersonalInformation(type="hobby", value="climbing"),
    })
    vcard = _write(card)
    expertise = props(vcard, "EXPERTISE")[0]
    assert param(expertise, "LEVEL") == "average"
    assert param(expertise, "INDEX") == "3"
    assert [text(p) for p in props(vcard, "HOBBY")] == ["climbing"]
    assert props(vcard, "INTEREST") == []


def test_bad_expertise_level_raises():
    card = Card(personal_info={"e": PersonalInformation(type="expertise", value="x", level="guru")})
    with pytest.raises(MappingError):
        ContactAdapter().from_card(card)


def test_languages_organizations_and_relations_written():
    card = Card(
        full_name="A",
        preferred_contact_languages={"de": [ContactLanguage(contexts={"work": True}, pref=1)], "en": []},
        organizations={"o": Organization(name="Example Corp", units=["Research"])},
        related_to={"urn:uuid:abc": Relation(relation={"friend": True})},
    )
    vcard = _write(card)
    langs = {text(p): p for p in props(vcard, "LANG")}
    assert langs["de"].params["TYPE"] == ["work"]
    assert "TYPE" not in langs["en"].params
    assert vcard.org.value == ["Example Corp", "Research"]
    related = props(vcard, "RELATED")[0]
    assert text(related) == "urn:uuid:abc"
    assert related.params["TYPE"] == ["friend"]


def test_notes_categories_rev_written():
    card = Card(
        full_name="A",
        notes="line one\nline two",
        categories={"friends": True, "old": False},
        updated="2024-01-02T03:04:05Z",
        uid="urn:uuid:1234",
    )
    vcard = _write(card)
    assert [text(p) for p in props(vcard, "NOTE")] == ["line one", "line two"]
    assert text_list(props(vcard, "CATEGORIES")[0]) == ["friends"]
    assert text(props(vcard, "REV")[0]) == "20240102T030405Z"
    assert text(props(vcard, "UID")[0]) == "urn:uuid:1234"


# ── Mapper ─────────────────────────────────────────────────────────────────────

def test_map_to_json_sets_ids():
    records = {
        "c1": {"vCard": _vcf("FN:Alice"), "oxpProperties": {"addressBookId": "ab1"}},
        "c2": {"vCard": _vcf("FN:Bob", "UID:bob-uid")},
    }
    alice, bob = ContactMapper().map_to_json(records)
    assert (alice.id, alice.uid, alice.address_book_id) == ("c1", "c1", "ab1")
    assert (bob.id, bob.uid, bob.address_book_id) == ("c2", "bob-uid", None)
    assert alice.to_json()["fullName"] == "Alice"


def test_map_to_json_names_unparseable_record():
    with pytest.raises(VCardParseError) as info:
        ContactMapper().map_to_json({"broken": {"vCard": ""}})
    assert "Non-parseable vCard: broken" in str(info.value)


def test_map_from_json_isolates_failures(caplog):
    cards = {
        "good": Card(full_name="Alice", address_book_id="ab1"),
        "bad": Card(full_name="Bob", speak_to_as=SpeakToAs(grammatical_gender="inanimate")),
        "after": Card(full_name="Carol"),
    }
    with caplog.at_level(logging.ERROR):
        results = ContactMapper().map_from_json(cards)
    assert [r.key for r in results] == ["good", "bad", "after"]
    assert [r.ok for r in results] == [True, False, True]
    assert results[0].value["oxpProperties"] == {"addressBookId": "ab1"}
    assert "FN:Alice" in results[0].value["vCard"]
    assert results[1].as_pair() == ("bad", None)
    assert "bad" in caplog.text


def test_card_json_round_trip_through_model():
    data = {
        "@type": "Card",
        "fullName": "Alice",
        "phones": {"p": {"@type": "Phone", "phone": "+1 555 0100", "features": {"cell": True}}},
        "audriga.eu/roundcube:maidenName": "Smith",
    }
    card = Card.from_json(data)
    assert card.phones["p"].features == {"cell": True}
    assert card.maiden_name == "Smith"
    assert card.to_json() == data


def test_map_to_json_keys_are_stable_across_runs():
    records = {"c1": {"vCard": _vcf(
        "FN:Alice",
        "EMAIL;TYPE=work:alice@example.com",
        "EMAIL;TYPE=home:alice@home.example",
        "TEL;TYPE=cell:+1 555 0100",
        "ADR;TYPE=home:;;Main Street 1;Berlin;;10115;Germany",
        "URL:https://example.com",
        "NOTE:First note",
        "LANG:de",
    )}}

    first_run = ContactMapper().map_to_json(records)[0].to_json()
    second_run = ContactMapper().map_to_json(records)[0].to_json()

    assert first_run == second_run
    for name in ("emails", "phones", "addresses", "online", "preferredContactLanguages"):
        assert name in first_run
        assert list(first_run[name]) == list(second_run[name])
