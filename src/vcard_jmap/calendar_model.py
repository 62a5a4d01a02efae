from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .model import JsonRecord, prop

# ── JSCalendar ─────────────────────────────────────────────────────────────────


@dataclass
class NDay(JsonRecord):
    json_type = "NDay"
    day: str | None = None
    nth_of_period: int | None = None


@dataclass
class RecurrenceRule(JsonRecord):
    json_type = "RecurrenceRule"
    frequency: str | None = None
    interval: int | None = None
    rscale: str | None = None
    skip: str | None = None
    first_day_of_week: str | None = None
    by_day: list[NDay] | None = prop(kind="NDay", shape="list")
    by_month_day: list[int] | None = None
    by_month: list[str] | None = None
    by_year_day: list[int] | None = None
    by_week_no: list[int] | None = None
    by_hour: list[int] | None = None
    by_minute: list[int] | None = None
    by_second: list[int] | None = None
    by_set_position: list[int] | None = None
    count: int | None = None
    until: str | None = None


@dataclass
class Location(JsonRecord):
    json_type = "Location"
    name: str | None = None


@dataclass
class OffsetTrigger(JsonRecord):
    json_type = "OffsetTrigger"
    offset: str | None = None
    relative_to: str | None = None


@dataclass
class AbsoluteTrigger(JsonRecord):
    json_type = "AbsoluteTrigger"
    when: str | None = None


@dataclass
class Alert(JsonRecord):
    json_type = "Alert"
    # OffsetTrigger or AbsoluteTrigger, told apart by @type on load
    trigger: Any = prop(kind="OffsetTrigger")
    action: str | None = None


@dataclass
class Participant(JsonRecord):
    json_type = "Participant"
    name: str | None = None
    kind: str | None = None
    roles: dict[str, bool] | None = None
    send_to: dict[str, str] | None = None
    participation_status: str | None = None
    expect_reply: bool | None = None
    delegated_from: list[str] | None = None
    delegated_to: list[str] | None = None
    language: str | None = None
    invited_by: str | None = None
    schedule_agent: str | None = None
    schedule_force_send: str | None = None
    schedule_status: list[str] | None = None


@dataclass
class CalendarEvent(JsonRecord):
    json_type = "Event"
    id: str | None = None
    uid: str | None = None
    calendar_id: str | None = None
    prod_id: str | None = None
    created: str | None = None
    updated: str | None = None
    sequence: int | None = None
    title: str | None = None
    description: str | None = None
    start: str | None = None
    duration: str | None = None
    time_zone: str | None = None
    show_without_time: bool | None = None
    keywords: dict[str, bool] | None = None
    locations: dict[str, Location] | None = prop(kind="Location", shape="map")
    free_busy_status: str | None = None
    status: str | None = None
    color: str | None = None
    priority: int | None = None
    privacy: str | None = None
    alerts: dict[str, Alert] | None = prop(kind="Alert", shape="map")
    participants: dict[str, Participant] | None = prop(kind="Participant", shape="map")
    recurrence_rules: list[RecurrenceRule] | None = prop(kind="RecurrenceRule", shape="list")
    # obsolete singular form, only kept so it can be rejected on write
    recurrence_rule: RecurrenceRule | None = prop(kind="RecurrenceRule")
    recurrence_overrides: dict[str, CalendarEvent] | None = prop(kind="CalendarEvent", shape="map")
    excluded: bool | None = None
