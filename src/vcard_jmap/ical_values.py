from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta

from vobject.base import ParseError
from vobject.icalendar import stringToDurations, timedeltaToString

from .calendar_model import NDay, RecurrenceRule
from .errors import MappingError

logger = logging.getLogger(__name__)

# ── RRULE tokens ───────────────────────────────────────────────────────────────
#
# JSCalendar spells every RRULE token in lower case; the sets below are the
# values both sides agree on. Anything else reads as None.

FREQUENCIES = ("yearly", "monthly", "weekly", "daily", "hourly", "minutely", "secondly")
SKIPS = ("omit", "backward", "forward")
WEEKDAYS = ("mo", "tu", "we", "th", "fr", "sa", "su")

_BYDAY = re.compile(r"^([+-]?)(\d*)([A-Za-z]{2})$")


def _lower_in(value: str | None, allowed) -> str | None:
    if not value:
        return None
    low = value.lower()
    return low if low in allowed else None


def _upper_in(value: str | None, allowed) -> str | None:
    if not value or value not in allowed:
        return None
    return value.upper()


def freq_to_json(value: str | None) -> str | None:
    if value is None or value != value.upper():
        return None
    return _lower_in(value, FREQUENCIES)


def freq_to_ical(value: str | None) -> str | None:
    return _upper_in(value, FREQUENCIES)


def _to_int(token: str, key: str) -> int | None:
    try:
        return int(token)
    except ValueError:
        logger.warning("Ignoring non-numeric RRULE %s value %r", key, token)
        return None


def interval_to_json(value: str | None) -> int | None:
    return _to_int(value, "INTERVAL") if value else 1


def skip_to_json(value: str | None) -> str | None:
    if value is None or value != value.upper():
        return None
    return _lower_in(value, SKIPS)


def skip_to_ical(value: str | None) -> str | None:
    return _upper_in(value, SKIPS)


def wkst_to_json(value: str | None) -> str | None:
    if value is None or value != value.upper():
        return None
    return _lower_in(value, WEEKDAYS)


def wkst_to_ical(value: str | None) -> str | None:
    return _upper_in(value, WEEKDAYS)


def byday_to_json(value: str | None) -> list[NDay] | None:
    """``1MO,-1FR,SU`` -> ``[NDay(mo, 1), NDay(fr, -1), NDay(su)]``."""
    if not value:
        return None
    days: list[NDay] = []
    for token in value.split(","):
        match = _BYDAY.match(token.strip())
        if match is None:
            logger.warning("Unable to parse BYDAY value %r", token)
            continue
        sign, number, day = match.groups()
        if sign == "+":
            logger.info("Encountered a leading '+' in BYDAY value %r", token)
        nday = NDay(day=day.lower())
        if number:
            nday.nth_of_period = -int(number) if sign == "-" else int(number)
        days.append(nday)
    return days or None


def byday_to_ical(days: list[NDay] | None) -> str | None:
    parts = []
    for nday in days or []:
        token = ""
        if nday.nth_of_period is not None:
            token += str(nday.nth_of_period)
        if nday.day:
            token += nday.day.upper()
        if token:
            parts.append(token)
    return ",".join(parts) or None


def int_list(value: str | None, key: str = "BY") -> list[int] | None:
    if not value:
        return None
    numbers = [_to_int(part, key) for part in value.split(",") if part.strip()]
    return [n for n in numbers if n is not None] or None


def str_list(value: str | None) -> list[str] | None:
    if not value:
        return None
    return [part for part in value.split(",") if part]


def join_list(values) -> str | None:
    if not values:
        return None
    return ",".join(str(v) for v in values)


def until_to_json(value: str | None) -> str | None:
    if not value:
        return None
    try:
        parsed = datetime.strptime(value, "%Y%m%dT%H%M%SZ")
    except ValueError:
        logger.error("Unable to create date from iCalendar UNTIL value %r", value)
        return None
    return parsed.strftime("%Y-%m-%dT%H:%M:%S")


def until_to_ical(value: str | None) -> str | None:
    if not value:
        return None
    try:
        parsed = datetime.strptime(value, "%Y-%m-%dT%H:%M:%S")
    except ValueError:
        logger.error("Unable to create date from JSCalendar until value %r", value)
        return None
    return parsed.strftime("%Y%m%dT%H%M%SZ")


def rrule_to_json(value: str) -> RecurrenceRule:
    """Split one RRULE value into a RecurrenceRule."""
    rule = RecurrenceRule()
    for part in value.split(";"):
        key, _, token = part.partition("=")
        key = key.strip().upper()
        if key == "FREQ":
            rule.frequency = freq_to_json(token)
        elif key == "INTERVAL":
            rule.interval = interval_to_json(token)
        elif key == "RSCALE":
            rule.rscale = token.lower() or None
        elif key == "SKIP":
            rule.skip = skip_to_json(token)
        elif key == "WKST":
            rule.first_day_of_week = wkst_to_json(token)
        elif key == "BYDAY":
            rule.by_day = byday_to_json(token)
        elif key == "BYMONTHDAY":
            rule.by_month_day = int_list(token, key)
        elif key == "BYMONTH":
            rule.by_month = str_list(token)
        elif key == "BYYEARDAY":
            rule.by_year_day = int_list(token, key)
        elif key == "BYWEEKNO":
            rule.by_week_no = int_list(token, key)
        elif key == "BYHOUR":
            rule.by_hour = int_list(token, key)
        elif key == "BYMINUTE":
            rule.by_minute = int_list(token, key)
        elif key == "BYSECOND":
            rule.by_second = int_list(token, key)
        elif key == "BYSETPOS":
            rule.by_set_position = int_list(token, key)
        elif key == "COUNT":
            rule.count = _to_int(token, key) if token else None
        elif key == "UNTIL":
            rule.until = until_to_json(token)
        elif key:
            logger.warning("Ignoring unknown RRULE part %r", part)
    return rule


def rrule_to_ical(rule: RecurrenceRule) -> str | None:
    parts: list[tuple[str, str | None]] = [
        ("FREQ", freq_to_ical(rule.frequency)),
        ("INTERVAL", str(rule.interval) if rule.interval is not None else None),
        ("RSCALE", rule.rscale.upper() if rule.rscale else None),
        ("SKIP", skip_to_ical(rule.skip)),
        ("WKST", wkst_to_ical(rule.first_day_of_week)),
        ("BYDAY", byday_to_ical(rule.by_day)),
        ("BYMONTHDAY", join_list(rule.by_month_day)),
        ("BYMONTH", join_list(rule.by_month)),
        ("BYYEARDAY", join_list(rule.by_year_day)),
        ("BYWEEKNO", join_list(rule.by_week_no)),
        ("BYHOUR", join_list(rule.by_hour)),
        ("BYMINUTE", join_list(rule.by_minute)),
        ("BYSECOND", join_list(rule.by_second)),
        ("BYSETPOS", join_list(rule.by_set_position)),
        ("COUNT", str(rule.count) if rule.count is not None else None),
        ("UNTIL", until_to_ical(rule.until)),
    ]
    text = ";".join(f"{key}={value}" for key, value in parts if value is not None)
    return text or None


# ── Participant parameters ─────────────────────────────────────────────────────

CUTYPE_TO_KIND = {
    "INDIVIDUAL": "individual",
    "GROUP": "group",
    "RESOURCE": "resource",
    "ROOM": "location",
    "UNKNOWN": None,
}
KIND_TO_CUTYPE = {v: k for k, v in CUTYPE_TO_KIND.items() if v is not None}

ROLE_TO_ROLES = {
    "CHAIR": ("attendee", "chair"),
    "REQ-PARTICIPANT": ("attendee",),
    "OPT-PARTICIPANT": ("attendee", "optional"),
    "NON-PARTICIPANT": ("informational",),
}


def cutype_to_kind(value: str | None) -> str | None:
    if not value:
        return None
    upper = value.upper()
    if upper in CUTYPE_TO_KIND:
        return CUTYPE_TO_KIND[upper]
    return value.lower()


def kind_to_cutype(value: str | None) -> str | None:
    if not value:
        return None
    return KIND_TO_CUTYPE.get(value, value.upper())


def partstat_to_json(value: str | None) -> str | None:
    if not value or value.upper() == "NEEDS-ACTION":
        return None
    return value.lower()


def role_to_roles(value: str | None) -> dict[str, bool] | None:
    if not value:
        return None
    roles = ROLE_TO_ROLES.get(value.upper(), (value.lower(),))
    return {role: True for role in roles}


def roles_to_role(roles: dict[str, bool]) -> str | None:
    """Collapse JSCalendar roles (minus ``owner``) into one ROLE value.

    Raises MappingError when several roles have no single iCalendar spelling.
    """
    remaining = [role for role, flag in roles.items() if flag and role != "owner"]
    if "attendee" in remaining:
        if "chair" in remaining:
            return "CHAIR"
        if "optional" in remaining:
            return "OPT-PARTICIPANT"
        return "REQ-PARTICIPANT"
    if "informational" in remaining:
        return "NON-PARTICIPANT"
    if len(remaining) == 1:
        return remaining[0].upper()
    if len(remaining) > 1:
        raise MappingError(f"Unable to map multiple roles {', '.join(remaining)} to one ROLE")
    return None


def rsvp_to_json(value: str | None) -> bool | None:
    return True if value and value.upper() == "TRUE" else None


def rsvp_to_ical(value: bool | None) -> str | None:
    if value is None:
        return None
    return "TRUE" if value else "FALSE"


def lower_or_none(value: str | None) -> str | None:
    return value.lower() if value else None


def upper_or_none(value: str | None) -> str | None:
    return value.upper() if value else None


# ── Durations ──────────────────────────────────────────────────────────────────

ZERO_DURATION = "PT0S"


def duration_to_json(delta: timedelta | None) -> str:
    """``timedelta`` -> ``P[nD][T[nH][nM][nS]]``; zero or missing is ``PT0S``."""
    if not delta:
        return ZERO_DURATION
    return timedeltaToString(delta)


def json_to_duration(value: str | None) -> timedelta | None:
    if not value:
        return None
    try:
        return stringToDurations(value)[0]
    except (ParseError, ValueError, IndexError) as exc:
        raise MappingError(f"Unable to parse duration {value!r}") from exc
