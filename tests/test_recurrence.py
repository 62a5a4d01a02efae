"""RRULE, participant parameter and duration translation."""
from __future__ import annotations

import logging
from datetime import timedelta

import pytest

from vcard_jmap import ical_values
from vcard_jmap.calendar_model import NDay, RecurrenceRule
from vcard_jmap.errors import MappingError
from vcard_jmap.event_mapper import EventMapper


# ── RRULE ──────────────────────────────────────────────────────────────────────

def test_rrule_to_json_basic():
    rule = ical_values.rrule_to_json("FREQ=WEEKLY;BYDAY=MO,WE;COUNT=10")
    assert rule.frequency == "weekly"
    assert rule.by_day == [NDay(day="mo"), NDay(day="we")]
    assert rule.count == 10
    assert rule.interval is None


def test_rrule_interval_only_when_given():
    assert ical_values.rrule_to_json("FREQ=DAILY;INTERVAL=3").interval == 3


def test_rrule_nth_weekday():
    rule = ical_values.rrule_to_json("FREQ=MONTHLY;BYDAY=1MO,-1FR")
    assert rule.by_day == [NDay(day="mo", nth_of_period=1), NDay(day="fr", nth_of_period=-1)]


def test_rrule_leading_plus_is_logged(caplog):
    with caplog.at_level(logging.INFO):
        rule = ical_values.rrule_to_json("FREQ=MONTHLY;BYDAY=+2TU")
    assert rule.by_day == [NDay(day="tu", nth_of_period=2)]
    assert "+2TU" in caplog.text


def test_rrule_lowercase_tokens_are_rejected():
    rule = ical_values.rrule_to_json("FREQ=weekly;WKST=mo")
    assert rule.frequency is None
    assert rule.first_day_of_week is None


def test_rrule_lists_and_until():
    rule = ical_values.rrule_to_json(
        "FREQ=YEARLY;BYMONTH=1,7;BYMONTHDAY=1,15;BYSETPOS=-1;UNTIL=20251231T235959Z"
    )
    assert rule.by_month == ["1", "7"]
    assert rule.by_month_day == [1, 15]
    assert rule.by_set_position == [-1]
    assert rule.until == "2025-12-31T23:59:59"


def test_rrule_bad_until_is_logged(caplog):
    with caplog.at_level(logging.ERROR):
        rule = ical_values.rrule_to_json("FREQ=DAILY;UNTIL=20251231")
    assert rule.until is None
    assert "UNTIL" in caplog.text


def test_rrule_non_numeric_tokens_are_dropped(caplog):
    with caplog.at_level(logging.WARNING):
        rule = ical_values.rrule_to_json(
            "FREQ=MONTHLY;INTERVAL=two;COUNT=many;BYMONTHDAY=x,15;BYHOUR=y"
        )
    assert rule.frequency == "monthly"
    assert rule.interval is None
    assert rule.count is None
    assert rule.by_month_day == [15]
    assert rule.by_hour is None
    assert "'x'" in caplog.text
    assert "COUNT" in caplog.text


def test_bad_rrule_token_does_not_abort_the_batch():
    ics = (
        "BEGIN:VCALENDAR\r\nVERSION:2.0\r\nPRODID:-//Example//Test//EN\r\n"
        "BEGIN:VEVENT\r\nUID:abc\r\nDTSTART:20240101T100000Z\r\n"
        "RRULE:FREQ=MONTHLY;BYMONTHDAY=x\r\nEND:VEVENT\r\nEND:VCALENDAR\r\n"
    )
    (event,) = EventMapper().map_to_json({"e1": {"iCalendar": ics}})
    assert event.recurrence_rules == [RecurrenceRule(frequency="monthly")]


def test_rrule_to_ical():
    rule = RecurrenceRule(
        frequency="monthly",
        interval=2,
        by_day=[NDay(day="mo", nth_of_period=1), NDay(day="fr", nth_of_period=-1)],
        until="2025-12-31T23:59:59",
    )
    assert ical_values.rrule_to_ical(rule) == "FREQ=MONTHLY;INTERVAL=2;BYDAY=1MO,-1FR;UNTIL=20251231T235959Z"


def test_rrule_to_ical_drops_unknown_tokens():
    rule = RecurrenceRule(frequency="fortnightly", count=3)
    assert ical_values.rrule_to_ical(rule) == "COUNT=3"
    assert ical_values.rrule_to_ical(RecurrenceRule()) is None


# ── Participants ───────────────────────────────────────────────────────────────

def test_role_to_roles():
    assert ical_values.role_to_roles("CHAIR") == {"attendee": True, "chair": True}
    assert ical_values.role_to_roles("OPT-PARTICIPANT") == {"attendee": True, "optional": True}
    assert ical_values.role_to_roles("NON-PARTICIPANT") == {"informational": True}
    assert ical_values.role_to_roles(None) is None


def test_roles_to_role():
    assert ical_values.roles_to_role({"attendee": True, "chair": True}) == "CHAIR"
    assert ical_values.roles_to_role({"attendee": True, "owner": True}) == "REQ-PARTICIPANT"
    assert ical_values.roles_to_role({"attendee": True, "optional": True}) == "OPT-PARTICIPANT"
    assert ical_values.roles_to_role({"informational": True}) == "NON-PARTICIPANT"
    assert ical_values.roles_to_role({"contact": True}) == "CONTACT"
    assert ical_values.roles_to_role({"owner": True}) is None


def test_roles_to_role_rejects_ambiguous_roles():
    with pytest.raises(MappingError):
        ical_values.roles_to_role({"chair": True, "optional": True})


def test_cutype_and_kind():
    assert ical_values.cutype_to_kind("ROOM") == "location"
    assert ical_values.cutype_to_kind("UNKNOWN") is None
    assert ical_values.kind_to_cutype("location") == "ROOM"
    assert ical_values.kind_to_cutype("individual") == "INDIVIDUAL"


def test_partstat_and_rsvp():
    assert ical_values.partstat_to_json("ACCEPTED") == "accepted"
    assert ical_values.partstat_to_json("NEEDS-ACTION") is None
    assert ical_values.rsvp_to_json("TRUE") is True
    assert ical_values.rsvp_to_json("FALSE") is None
    assert ical_values.rsvp_to_ical(False) == "FALSE"
    assert ical_values.rsvp_to_ical(None) is None


# ── Durations ──────────────────────────────────────────────────────────────────

def test_duration_to_json():
    assert ical_values.duration_to_json(timedelta(hours=1, minutes=30)) == "PT1H30M"
    assert ical_values.duration_to_json(timedelta(days=1)) == "P1D"
    assert ical_values.duration_to_json(timedelta(0)) == "PT0S"
    assert ical_values.duration_to_json(None) == "PT0S"


def test_json_to_duration():
    assert ical_values.json_to_duration("PT1H") == timedelta(hours=1)
    assert ical_values.json_to_duration("-PT15M") == timedelta(minutes=-15)
    assert ical_values.json_to_duration(None) is None
