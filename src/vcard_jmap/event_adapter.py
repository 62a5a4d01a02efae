from __future__ import annotations

import logging
from datetime import date, datetime, timedelta

from dateutil import tz

from . import ical_values
from .calendar_model import AbsoluteTrigger, Alert, Location, OffsetTrigger, Participant, RecurrenceRule
from .errors import MappingError
from .legacy import add, first, new_calendar, param, param_values, props, text, text_list
from .values import content_key, is_present, is_time_zone

logger = logging.getLogger(__name__)

UTC_ZONE = "Etc/UTC"
LOCAL_FORMAT = "%Y-%m-%dT%H:%M:%S"
UTC_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

STATUS_TO_JSON = {"TENTATIVE": "tentative", "CONFIRMED": "confirmed", "CANCELLED": "cancelled"}
JSON_TO_STATUS = {v: k for k, v in STATUS_TO_JSON.items()}
CLASS_TO_PRIVACY = {"CONFIDENTIAL": "secret", "PRIVATE": "private", "PUBLIC": "public"}
PRIVACY_TO_CLASS = {v: k for k, v in CLASS_TO_PRIVACY.items()}


# ── Date helpers ───────────────────────────────────────────────────────────────

def _as_utc(value) -> datetime:
    if not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)
    if value.tzinfo is None:
        return value.replace(tzinfo=tz.UTC)
    return value.astimezone(tz.UTC)


def utc_text(value) -> str:
    return _as_utc(value).strftime(UTC_FORMAT)


def local_text(value) -> str:
    """Wall-clock form of a DATE or DATE-TIME value, zone dropped."""
    if not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)
    return value.strftime(LOCAL_FORMAT)


def zone_of(prop) -> str | None:
    """The zone a date-time property is expressed in.

    vobject moves TZID into X-VOBJ-ORIGINAL-TZID while parsing; an aware value
    without either parameter was written in UTC.
    """
    for key in ("X-VOBJ-ORIGINAL-TZID", "TZID"):
        raw = prop.params.get(key)
        while isinstance(raw, list):
            raw = raw[0] if raw else None
        if raw:
            return str(raw)
    value = prop.value
    if isinstance(value, datetime) and value.tzinfo is not None:
        return UTC_ZONE
    return None


def parse_local(value: str, what: str) -> datetime | date:
    for fmt in (LOCAL_FORMAT, "%Y-%m-%d"):
        try:
            parsed = datetime.strptime(value, fmt)
        except ValueError:
            continue
        return parsed if fmt == LOCAL_FORMAT else parsed.date()
    raise MappingError(f"Unable to parse {what} value {value!r}")


def parse_utc(value: str, what: str) -> datetime:
    try:
        return datetime.strptime(value, UTC_FORMAT).replace(tzinfo=tz.UTC)
    except ValueError as exc:
        raise MappingError(f"Unable to parse {what} value {value!r}") from exc


def zoned(value: str, time_zone: str | None, show_without_time: bool | None, what: str):
    """Parse a JSCalendar local date-time into a value plus TZID for vobject."""
    parsed = parse_local(value, what)
    if show_without_time or not isinstance(parsed, datetime):
        if isinstance(parsed, datetime):
            parsed = parsed.date()
        return parsed, None
    if time_zone is None:
        return parsed, None
    if time_zone == UTC_ZONE:
        return parsed.replace(tzinfo=tz.UTC), None
    if not is_time_zone(time_zone):
        raise MappingError(f"Unknown time zone {time_zone!r} for {what}")
    return parsed, time_zone


def _strip_zone(a, b):
    if isinstance(a, datetime) and isinstance(b, datetime):
        if (a.tzinfo is None) != (b.tzinfo is None):
            return a.replace(tzinfo=None), b.replace(tzinfo=None)
    elif isinstance(a, datetime) or isinstance(b, datetime):
        a = a if isinstance(a, datetime) else datetime(a.year, a.month, a.day)
        b = b if isinstance(b, datetime) else datetime(b.year, b.month, b.day)
        return a.replace(tzinfo=None), b.replace(tzinfo=None)
    return a, b


# ── Adapter ────────────────────────────────────────────────────────────────────

class EventAdapter:
    """Binds one VCALENDAR and one of its VEVENTs.

    Getters read the bound VEVENT (PRODID comes from the calendar); setters add
    properties to it. ``bind`` moves the adapter to another VEVENT of the same
    calendar, which is how overrides are read and written.
    """

    def __init__(self):
        self.reset()

    def reset(self) -> None:
        self.calendar = new_calendar()
        self.event = self.calendar.add("vevent")

    def bind(self, calendar, event) -> None:
        self.calendar = calendar
        self.event = event

    def add_event(self):
        self.event = self.calendar.add("vevent")
        return self.event

    def _text(self, name: str) -> str | None:
        prop = first(self.event, name)
        if prop is None:
            return None
        return text(prop) or None

    # ── Simple text ─────────────────────────────────────────────────────────

    def get_title(self) -> str | None:
        return self._text("SUMMARY")

    def set_title(self, title: str | None) -> None:
        if is_present(title):
            add(self.event, "SUMMARY", title)

    def get_description(self) -> str | None:
        return self._text("DESCRIPTION")

    def set_description(self, description: str | None) -> None:
        if is_present(description):
            add(self.event, "DESCRIPTION", description)

    def get_color(self) -> str | None:
        return self._text("COLOR")

    def set_color(self, color: str | None) -> None:
        if is_present(color):
            add(self.event, "COLOR", color)

    def get_uid(self) -> str | None:
        return self._text("UID")

    def set_uid(self, uid: str | None) -> None:
        if not is_present(uid):
            return
        for prop in props(self.event, "UID"):
            self.event.remove(prop)
        add(self.event, "UID", uid)

    def get_prod_id(self) -> str | None:
        prop = first(self.calendar, "PRODID")
        if prop is None:
            return None
        return text(prop) or None

    def set_prod_id(self, prod_id: str | None) -> None:
        if not is_present(prod_id):
            return
        for prop in props(self.calendar, "PRODID"):
            self.calendar.remove(prop)
        add(self.calendar, "PRODID", prod_id)

    # ── Numbers and enumerations ────────────────────────────────────────────

    def _int(self, name: str) -> int | None:
        value = self._text(name)
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            logger.warning("Ignoring non-numeric %s value %r", name, value)
            return None

    def get_sequence(self) -> int | None:
        return self._int("SEQUENCE")

    def set_sequence(self, sequence: int | None) -> None:
        if sequence is not None:
            add(self.event, "SEQUENCE", str(sequence))

    def get_priority(self) -> int | None:
        return self._int("PRIORITY")

    def set_priority(self, priority: int | None) -> None:
        if priority is not None:
            add(self.event, "PRIORITY", str(priority))

    def get_status(self) -> str | None:
        return STATUS_TO_JSON.get((self._text("STATUS") or "").upper())

    def set_status(self, status: str | None) -> None:
        if status in JSON_TO_STATUS:
            add(self.event, "STATUS", JSON_TO_STATUS[status])

    def get_privacy(self) -> str | None:
        return CLASS_TO_PRIVACY.get((self._text("CLASS") or "").upper())

    def set_privacy(self, privacy: str | None) -> None:
        if privacy in PRIVACY_TO_CLASS:
            add(self.event, "CLASS", PRIVACY_TO_CLASS[privacy])

    def get_free_busy_status(self) -> str | None:
        value = self._text("TRANSP")
        if value is None:
            return None
        return "free" if value.upper() == "TRANSPARENT" else "busy"

    def set_free_busy_status(self, status: str | None) -> None:
        if is_present(status):
            add(self.event, "TRANSP", "TRANSPARENT" if status == "free" else "OPAQUE")

    # ── Timestamps ──────────────────────────────────────────────────────────

    def get_created(self) -> str | None:
        prop = first(self.event, "CREATED")
        return utc_text(prop.value) if prop is not None and prop.value else None

    def set_created(self, created: str | None) -> None:
        if is_present(created):
            add(self.event, "CREATED", parse_utc(created, "created"))

    def get_updated(self) -> str | None:
        """The later of LAST-MODIFIED and DTSTAMP."""
        stamps = [_as_utc(p.value) for p in props(self.event, "LAST-MODIFIED", "DTSTAMP") if p.value]
        return max(stamps).strftime(UTC_FORMAT) if stamps else None

    def set_updated(self, updated: str | None) -> None:
        if not is_present(updated):
            return
        for prop in props(self.event, "DTSTAMP"):
            self.event.remove(prop)
        add(self.event, "DTSTAMP", parse_utc(updated, "updated"))

    # ── Start, duration, zone ───────────────────────────────────────────────

    def get_start(self) -> str | None:
        prop = first(self.event, "DTSTART")
        return local_text(prop.value) if prop is not None and prop.value else None

    def get_show_without_time(self) -> bool | None:
        prop = first(self.event, "DTSTART")
        if prop is None or isinstance(prop.value, datetime):
            return None
        return True

    def get_time_zone(self) -> str | None:
        prop = first(self.event, "DTSTART")
        if prop is None or not isinstance(prop.value, datetime):
            return None
        return zone_of(prop)

    def get_duration(self) -> str | None:
        start = first(self.event, "DTSTART")
        if start is None:
            return None
        end = first(self.event, "DTEND")
        if end is None:
            return ical_values.ZERO_DURATION
        a, b = _strip_zone(start.value, end.value)
        return ical_values.duration_to_json(b - a)

    def _add_dated(self, name: str, value, zone: str | None):
        return add(self.event, name, value, {"TZID": zone})

    def set_start(self, start: str | None, time_zone: str | None, show_without_time: bool | None) -> None:
        if not is_present(start):
            return
        value, zone = zoned(start, time_zone, show_without_time, "start")
        self._add_dated("DTSTART", value, zone)

    def set_end(self, start: str | None, duration: str | None, time_zone: str | None,
                show_without_time: bool | None) -> None:
        if not is_present(start) or not is_present(duration):
            return
        delta = ical_values.json_to_duration(duration)
        if not delta:
            return
        value, zone = zoned(start, time_zone, show_without_time, "start")
        self._add_dated("DTEND", value + delta, zone)

    # ── Keywords, locations ─────────────────────────────────────────────────

    def get_keywords(self) -> dict[str, bool] | None:
        found = {c: True for p in props(self.event, "CATEGORIES") for c in text_list(p)}
        return found or None

    def set_keywords(self, keywords: dict[str, bool] | None) -> None:
        chosen = [k for k, flag in (keywords or {}).items() if flag]
        if chosen:
            add(self.event, "CATEGORIES", chosen)

    def get_locations(self) -> dict[str, Location] | None:
        name = self._text("LOCATION")
        return {"1": Location(name=name)} if name else None

    def set_locations(self, locations: dict[str, Location] | None) -> None:
        # iCalendar LOCATION holds one name; the first entry wins
        for location in (locations or {}).values():
            if location is not None and is_present(location.name):
                add(self.event, "LOCATION", location.name)
                return

    # ── Alerts ──────────────────────────────────────────────────────────────

    def get_alerts(self) -> dict[str, Alert] | None:
        alerts: dict[str, Alert] = {}
        for alarm in self.event.contents.get("valarm", []):
            prop = first(alarm, "TRIGGER")
            value = prop.value if prop is not None else None
            if isinstance(value, timedelta):
                related = param(prop, "RELATED")
                trigger = OffsetTrigger(
                    offset=ical_values.duration_to_json(value),
                    relative_to=related.lower() if related else None,
                )
            elif isinstance(value, datetime):
                trigger = AbsoluteTrigger(when=utc_text(value))
            else:
                logger.error("Unable to map VALARM TRIGGER value %r", value)
                continue
            action = (text(first(alarm, "ACTION")) if first(alarm, "ACTION") is not None else "").upper()
            alert = Alert(trigger=trigger)
            if action in ("DISPLAY", "AUDIO"):
                alert.action = "display"
            elif action == "EMAIL":
                alert.action = "email"
            alerts[str(len(alerts) + 1)] = alert
        return alerts or None

    def set_alerts(self, alerts: dict[str, Alert] | None) -> None:
        for key, alert in (alerts or {}).items():
            if alert is None:
                continue
            trigger = alert.trigger
            params = {}
            if isinstance(trigger, OffsetTrigger):
                value = ical_values.json_to_duration(trigger.offset)
                if value is None:
                    logger.error("Alert %s has an offset trigger without offset, skipped", key)
                    continue
                params["RELATED"] = ical_values.upper_or_none(trigger.relative_to)
            elif isinstance(trigger, AbsoluteTrigger):
                try:
                    value = parse_utc(trigger.when or "", "alert trigger")
                except MappingError as exc:
                    logger.error("Alert %s skipped: %s", key, exc)
                    continue
            else:
                logger.error("Alert %s skipped: unknown trigger type %r", key, type(trigger).__name__)
                continue
            alarm = self.event.add("valarm")
            add(alarm, "ACTION", "EMAIL" if alert.action == "email" else "DISPLAY")
            add(alarm, "TRIGGER", value, params)

    # ── Participants ────────────────────────────────────────────────────────

    @staticmethod
    def _send_to(value: str) -> dict[str, str]:
        if value.split(":", 1)[0].lower() == "mailto":
            return {"imip": value}
        return {"other": value}

    @staticmethod
    def _apply_params(prop, participant: Participant) -> None:
        if param(prop, "CN"):
            participant.name = param(prop, "CN")
        if param(prop, "CUTYPE"):
            participant.kind = ical_values.cutype_to_kind(param(prop, "CUTYPE"))
        if param_values(prop, "DELEGATED-FROM"):
            participant.delegated_from = param_values(prop, "DELEGATED-FROM")
        if param_values(prop, "DELEGATED-TO"):
            participant.delegated_to = param_values(prop, "DELEGATED-TO")
        if param(prop, "LANGUAGE"):
            participant.language = param(prop, "LANGUAGE")
        if param(prop, "PARTSTAT"):
            participant.participation_status = ical_values.partstat_to_json(param(prop, "PARTSTAT"))
        if param(prop, "ROLE"):
            participant.roles = ical_values.role_to_roles(param(prop, "ROLE"))
        if param(prop, "RSVP"):
            participant.expect_reply = ical_values.rsvp_to_json(param(prop, "RSVP"))
        if param(prop, "SCHEDULE-AGENT"):
            participant.schedule_agent = ical_values.lower_or_none(param(prop, "SCHEDULE-AGENT"))
        if param(prop, "SCHEDULE-FORCE-SEND"):
            participant.schedule_force_send = ical_values.lower_or_none(param(prop, "SCHEDULE-FORCE-SEND"))
        if param_values(prop, "SCHEDULE-STATUS"):
            participant.schedule_status = param_values(prop, "SCHEDULE-STATUS")
        if param(prop, "SENT-BY"):
            participant.invited_by = param(prop, "SENT-BY")

    def get_participants(self) -> dict[str, Participant] | None:
        participants: dict[str, Participant] = {}
        for prop in props(self.event, "ATTENDEE"):
            value = text(prop)
            if not value:
                continue
            participant = Participant(send_to=self._send_to(value))
            self._apply_params(prop, participant)
            participants[content_key(value)] = participant

        organizer = first(self.event, "ORGANIZER")
        if organizer is not None and text(organizer):
            value = text(organizer)
            match = next(
                (p for p in participants.values() if value in (p.send_to or {}).values()),
                None,
            )
            if match is None:
                match = Participant(send_to=self._send_to(value))
                participants[content_key(value)] = match
            else:
                match.roles = {**(match.roles or {}), "owner": True}
            self._apply_params(organizer, match)
            match.expect_reply = False
            if not match.roles:
                match.roles = {"owner": True}
        return participants or None

    @staticmethod
    def _participant_params(participant: Participant) -> dict:
        return {
            "CN": participant.name,
            "CUTYPE": ical_values.kind_to_cutype(participant.kind),
            "LANGUAGE": participant.language,
            "PARTSTAT": ical_values.upper_or_none(participant.participation_status),
            "RSVP": ical_values.rsvp_to_ical(participant.expect_reply),
            "DELEGATED-FROM": participant.delegated_from,
            "DELEGATED-TO": participant.delegated_to,
            "SCHEDULE-AGENT": ical_values.upper_or_none(participant.schedule_agent),
            "SCHEDULE-FORCE-SEND": ical_values.upper_or_none(participant.schedule_force_send),
            "SCHEDULE-STATUS": participant.schedule_status,
            "SENT-BY": participant.invited_by,
        }

    def set_participants(self, participants: dict[str, Participant] | None) -> None:
        for key, participant in (participants or {}).items():
            if participant is None:
                continue
            send_to = participant.send_to or {}
            value = send_to.get("imip") or send_to.get("other")
            if not value:
                logger.error("Participant %s has no sendTo address, skipped", key)
                continue
            params = self._participant_params(participant)
            roles = dict(participant.roles or {})
            if roles.pop("owner", False):
                add(self.event, "ORGANIZER", value, params)
                if not roles:
                    continue
            try:
                role = ical_values.roles_to_role(roles)
            except MappingError as exc:
                logger.error("Participant %s skipped: %s", key, exc)
                continue
            add(self.event, "ATTENDEE", value, {**params, "ROLE": role})

    # ── Recurrence ──────────────────────────────────────────────────────────

    def get_recurrence_rules(self) -> list[RecurrenceRule] | None:
        rules = [ical_values.rrule_to_json(text(p)) for p in props(self.event, "RRULE") if text(p)]
        return rules or None

    def set_recurrence_rules(self, rules: list[RecurrenceRule] | None) -> None:
        for rule in rules or []:
            value = ical_values.rrule_to_ical(rule) if rule is not None else None
            if value:
                add(self.event, "RRULE", value)

    def get_excluded_dates(self) -> list[str]:
        out: list[str] = []
        for prop in props(self.event, "EXDATE"):
            values = prop.value if isinstance(prop.value, list) else [prop.value]
            out.extend(local_text(v) for v in values if v)
        return out

    def add_excluded_date(self, recurrence_id: str, time_zone: str | None,
                          show_without_time: bool | None) -> None:
        value, zone = zoned(recurrence_id, time_zone, show_without_time, "recurrence id")
        self._add_dated("EXDATE", [value], zone)

    def get_recurrence_id(self) -> str | None:
        prop = first(self.event, "RECURRENCE-ID")
        return local_text(prop.value) if prop is not None and prop.value else None

    def set_recurrence_id(self, recurrence_id: str, time_zone: str | None,
                          show_without_time: bool | None) -> None:
        value, zone = zoned(recurrence_id, time_zone, show_without_time, "recurrence id")
        self._add_dated("RECURRENCE-ID", value, zone)
