from __future__ import annotations

import logging
import uuid
from typing import Any

from .calendar_model import CalendarEvent
from .errors import MappingError, Result
from .event_adapter import EventAdapter
from .io import parse_calendar, serialize
from .legacy import first

logger = logging.getLogger(__name__)


class EventMapper:
    """Batch conversion between iCalendar objects and JSCalendar Events.

    A VCALENDAR may hold several master VEVENTs. VEVENTs carrying a
    RECURRENCE-ID are modified occurrences and end up in the
    ``recurrenceOverrides`` of the master with the same UID anywhere in the
    batch, keyed by their recurrence id.
    """

    def __init__(self):
        self.adapter = EventAdapter()

    # ── iCalendar -> JSCalendar ──────────────────────────────────────────────

    def _read_common(self, event: CalendarEvent) -> None:
        a = self.adapter
        event.title = a.get_title()
        event.description = a.get_description()
        event.created = a.get_created()
        event.updated = a.get_updated()
        event.sequence = a.get_sequence()
        event.start = a.get_start()
        event.show_without_time = a.get_show_without_time()
        event.duration = a.get_duration()
        event.time_zone = a.get_time_zone()
        event.keywords = a.get_keywords()
        event.locations = a.get_locations()
        event.free_busy_status = a.get_free_busy_status()
        event.status = a.get_status()
        event.color = a.get_color()
        event.priority = a.get_priority()
        event.alerts = a.get_alerts()
        event.participants = a.get_participants()

    def _read_master(self, event: CalendarEvent) -> None:
        a = self.adapter
        event.uid = a.get_uid()
        event.prod_id = a.get_prod_id()
        event.privacy = a.get_privacy()
        event.recurrence_rules = a.get_recurrence_rules()
        event.recurrence_overrides = {
            recurrence_id: CalendarEvent(excluded=True) for recurrence_id in a.get_excluded_dates()
        }

    def map_to_json(self, records: dict[str, dict[str, Any]]) -> list[CalendarEvent]:
        masters: list[tuple[str, dict[str, Any], Any, Any]] = []
        modified: list[tuple[Any, Any]] = []
        for event_id, record in records.items():
            calendar = parse_calendar(record.get("iCalendar", ""), event_id)
            oxp = record.get("oxpProperties") or {}
            for vevent in calendar.contents.get("vevent", []):
                if first(vevent, "RECURRENCE-ID") is None:
                    masters.append((event_id, oxp, calendar, vevent))
                else:
                    modified.append((calendar, vevent))

        # modified occurrences are matched by UID across the whole batch
        by_uid: dict[str | None, list[tuple[Any, Any]]] = {}
        for calendar, vevent in modified:
            self.adapter.bind(calendar, vevent)
            by_uid.setdefault(self.adapter.get_uid(), []).append((calendar, vevent))

        events: list[CalendarEvent] = []
        for event_id, oxp, calendar, vevent in masters:
            self.adapter.bind(calendar, vevent)
            event = CalendarEvent(id=event_id, calendar_id=oxp.get("calendarId"))
            self._read_common(event)
            self._read_master(event)

            exceptions = by_uid.get(event.uid, []) if event.uid else []
            for exception_calendar, exception in exceptions:
                self.adapter.bind(exception_calendar, exception)
                override = CalendarEvent()
                self._read_common(override)
                if override.time_zone == event.time_zone:
                    override.time_zone = None
                event.recurrence_overrides[self.adapter.get_recurrence_id()] = override

            event.recurrence_overrides = event.recurrence_overrides or None
            events.append(event)
        return events

    # ── JSCalendar -> iCalendar ──────────────────────────────────────────────

    def _write_common(self, event: CalendarEvent, time_zone: str | None) -> None:
        a = self.adapter
        a.set_title(event.title)
        a.set_description(event.description)
        a.set_created(event.created)
        a.set_updated(event.updated)
        a.set_start(event.start, time_zone, event.show_without_time)
        a.set_end(event.start, event.duration, time_zone, event.show_without_time)
        a.set_keywords(event.keywords)
        a.set_locations(event.locations)
        a.set_free_busy_status(event.free_busy_status)
        a.set_status(event.status)
        a.set_color(event.color)
        a.set_priority(event.priority)
        a.set_alerts(event.alerts)
        a.set_participants(event.participants)

    def _write_event(self, event: CalendarEvent) -> str:
        if event.recurrence_rule is not None and event.recurrence_rules is None:
            raise MappingError(
                "Event uses the obsolete recurrenceRule property; only recurrenceRules is supported"
            )
        a = self.adapter
        a.reset()
        uid = event.uid or str(uuid.uuid4())

        self._write_common(event, event.time_zone)
        a.set_uid(uid)
        a.set_prod_id(event.prod_id)
        a.set_sequence(event.sequence)
        a.set_privacy(event.privacy)
        a.set_recurrence_rules(event.recurrence_rules)
        master = a.event

        for recurrence_id, override in (event.recurrence_overrides or {}).items():
            if override is None:
                continue
            if override.excluded:
                a.event = master
                a.add_excluded_date(recurrence_id, event.time_zone, event.show_without_time)
                continue
            a.add_event()
            a.set_recurrence_id(recurrence_id, event.time_zone, event.show_without_time)
            self._write_common(override, override.time_zone or event.time_zone)
            a.set_uid(uid)
            a.set_sequence(event.sequence)
            a.set_privacy(event.privacy)
        return serialize(a.calendar)

    def map_from_json(self, events: dict[str, CalendarEvent]) -> list[Result]:
        results: list[Result] = []
        for creation_id, event in events.items():
            try:
                text = self._write_event(event)
            except MappingError as exc:
                logger.error("Event %s not converted: %s", creation_id, exc)
                results.append(Result(creation_id, error=exc))
                continue
            value: dict[str, Any] = {"iCalendar": text}
            if event.calendar_id is not None:
                value["oxpProperties"] = {"calendarId": event.calendar_id}
            results.append(Result(creation_id, value=value))
        return results
