"""Ordered pattern-rule tables, one per intent category.

Each rule pairs a compiled pattern with a builder that turns the match into an
extracted item. Rules are data: the extractor walks every table with the same
driver, so a table can be read, reordered or tested without touching it.
Descriptions are lower-cased before matching.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

from .schema import (
    ExtractedAction,
    ExtractedCondition,
    ExtractedNotification,
    ExtractedTransformation,
    ExtractedTrigger,
)

T = TypeVar("T")


@dataclass(frozen=True)
class PatternRule(Generic[T]):
    name: str
    pattern: re.Pattern[str]
    build: Callable[[re.Match[str], float], Optional[T]]
    confidence: float


def _rule(name: str, pattern: str, build: Callable[[re.Match[str], float], Optional[T]], confidence: float) -> PatternRule[T]:
    return PatternRule(name=name, pattern=re.compile(pattern), build=build, confidence=confidence)


# ----------------------------------------------------------------------
# Schedules
# ----------------------------------------------------------------------

DEFAULT_SCHEDULE = "0 9 * * 1-5"  # weekdays at 09:00

_UNIT_ALIASES = {"min": "minute", "mins": "minute", "hr": "hour", "hrs": "hour"}

_WEEKDAYS = {
    "sunday": 0,
    "monday": 1,
    "tuesday": 2,
    "wednesday": 3,
    "thursday": 4,
    "friday": 5,
    "saturday": 6,
}

_CLOCK = r"(\d{1,2})(?::(\d{2}))?\s*(am|pm)?"


def interval_to_cron(count: int, unit: str) -> str:
    """Map ``every <count> <unit>`` onto a cron expression."""
    if count < 1:
        return DEFAULT_SCHEDULE
    unit = _UNIT_ALIASES.get(unit, unit)
    if unit.endswith("s"):
        unit = unit[:-1]
    if unit == "minute":
        return f"*/{count} * * * *"
    if unit == "hour":
        return f"0 */{count} * * *"
    if unit == "day":
        return f"0 9 */{count} * *"
    if unit == "week":
        return "0 9 * * 1"
    if unit == "month":
        return f"0 9 1 */{count} *"
    return DEFAULT_SCHEDULE


def _clock_to_hour_minute(hour_text: str, minute_text: Optional[str], meridiem: Optional[str]) -> Optional[tuple[int, int]]:
    hour = int(hour_text)
    minute = int(minute_text) if minute_text else 0
    if meridiem == "pm" and hour < 12:
        hour += 12
    elif meridiem == "am" and hour == 12:
        hour = 0
    if hour > 23 or minute > 59:
        return None
    return hour, minute


def _interval_trigger(match: re.Match[str], confidence: float) -> ExtractedTrigger:
    return ExtractedTrigger(
        kind="schedule",
        schedule=interval_to_cron(int(match.group(1)), match.group(2)),
        source_text=match.group(0),
        confidence=confidence,
    )


def _daily_trigger(match: re.Match[str], confidence: float) -> ExtractedTrigger:
    clock = _clock_to_hour_minute(match.group(1), match.group(2), match.group(3))
    schedule = f"{clock[1]} {clock[0]} * * *" if clock else DEFAULT_SCHEDULE
    return ExtractedTrigger(kind="schedule", schedule=schedule, source_text=match.group(0), confidence=confidence)


def _weekday_trigger(match: re.Match[str], confidence: float) -> ExtractedTrigger:
    hour, minute = 9, 0
    if match.group(2):
        clock = _clock_to_hour_minute(match.group(2), match.group(3), match.group(4))
        if clock:
            hour, minute = clock
    day = _WEEKDAYS[match.group(1)]
    return ExtractedTrigger(
        kind="schedule",
        schedule=f"{minute} {hour} * * {day}",
        source_text=match.group(0),
        confidence=confidence,
    )


def _trigger(kind: str) -> Callable[[re.Match[str], float], ExtractedTrigger]:
    def build(match: re.Match[str], confidence: float) -> ExtractedTrigger:
        return ExtractedTrigger(kind=kind, source_text=match.group(0), confidence=confidence)

    return build


_DAYS = "|".join(_WEEKDAYS)

TRIGGER_RULES: list[PatternRule[ExtractedTrigger]] = [
    _rule("interval", r"\bevery (\d+) ([a-z]+)\b", _interval_trigger, 0.9),
    _rule("daily", rf"\b(?:daily|every day|each day) at {_CLOCK}", _daily_trigger, 0.9),
    _rule("weekday", rf"\b(?:weekly on|every|each|on) ({_DAYS})s?(?: at {_CLOCK})?\b", _weekday_trigger, 0.85),
    _rule("schedule_noun", r"\b(?:cron|schedule|scheduled|timer|interval)\b", _trigger("schedule"), 0.6),
    _rule(
        "webhook_arrival",
        r"\bwhen (?:i receive|someone sends|there's|there is|we get) an? (?:webhook|http request|api call)\b",
        _trigger("webhook"),
        0.85,
    ),
    _rule("webhook_noun", r"\b(?:webhook|http|api) (?:trigger|endpoint|call)\b", _trigger("webhook"), 0.7),
    _rule(
        "webhook_invoked",
        r"\bwhen (?:called|triggered) (?:via|through|by) (?:an? )?(?:api|http|webhook)\b",
        _trigger("webhook"),
        0.8,
    ),
    _rule(
        "email_arrival",
        r"\bwhen (?:i receive|i get|someone sends|there's|there is) an? (?:new )?e-?mail\b",
        _trigger("email"),
        0.8,
    ),
    _rule("email_received", r"\b(?:email|gmail) (?:arrives|is received|received|sent to)\b", _trigger("email"), 0.75),
    _rule("email_inbox", r"\bnew e-?mails? (?:in|arrives in) (?:my |the )?(?:inbox|folder)\b", _trigger("email"), 0.8),
    _rule(
        "manual",
        r"\b(?:(?:start|run|trigger) (?:it )?)?(?:manually|on demand|on-demand|when i click)\b",
        _trigger("manual"),
        0.75,
    ),
]


# ----------------------------------------------------------------------
# Actions
# ----------------------------------------------------------------------

DEFAULT_TARGETS: dict[str, str] = {
    "messaging": "general",
    "email": "team@company.com",
    "http": "https://api.example.com/webhook",
    "database": "main_table",
    "file": "output.json",
    "spreadsheet": "Data Sheet",
}

_EMAIL_ADDRESS = r"[\w.+-]+@[\w-]+(?:\.[\w-]+)+"


def _action(service: str, operation: str, target_group: Optional[int] = None) -> Callable[[re.Match[str], float], ExtractedAction]:
    def build(match: re.Match[str], confidence: float) -> ExtractedAction:
        target = match.group(target_group) if target_group else None
        return ExtractedAction(
            service=service,
            target=(target or DEFAULT_TARGETS[service]).rstrip(".,;:!?"),
            operation=operation,
            confidence=confidence,
        )

    return build


def _file_write(match: re.Match[str], confidence: float) -> ExtractedAction:
    extension = match.group(1)
    target = DEFAULT_TARGETS["file"] if extension == "file" else f"output.{extension}"
    return ExtractedAction(service="file", target=target, operation="write", confidence=confidence)


def _database_write(match: re.Match[str], confidence: float) -> ExtractedAction:
    operation = match.group(1)
    if operation in ("save", "store", "write", "insert"):
        operation = "insert"
    return ExtractedAction(
        service="database",
        target=match.group(2) or DEFAULT_TARGETS["database"],
        operation=operation,
        confidence=confidence,
    )


ACTION_RULES: list[PatternRule[ExtractedAction]] = [
    # Messaging
    _rule(
        "slack_message",
        r"\b(?:send|post) (?:an? )?(?:message|notification|update) (?:to|on|in) slack(?: channel)?(?: #([\w-]+))?",
        _action("messaging", "send_message", 1),
        0.85,
    ),
    _rule("slack_notify_team", r"\bnotify (?:the )?team (?:on|via|through) slack\b", _action("messaging", "send_message"), 0.8),
    _rule("slack_post", r"\bpost (?:it |them )?to slack(?: channel)?(?: #([\w-]+))?", _action("messaging", "send_message", 1), 0.8),
    # Email
    _rule(
        "email_send",
        rf"\bsend (?:an? )?(?:email|e-mail|gmail)(?: to ({_EMAIL_ADDRESS}))?",
        _action("email", "send", 1),
        0.85,
    ),
    _rule("email_address", rf"\bemail ({_EMAIL_ADDRESS})", _action("email", "send", 1), 0.8),
    # HTTP
    _rule("http_send", r"\bsend (?:an? )?(?:http|api) (?:request|call) to (\S+)", _action("http", "request", 1), 0.85),
    _rule("http_call", r"\b(?:call|post to|get from) (?:the |an? )?(?:api|endpoint|url)\b", _action("http", "request"), 0.75),
    # Database
    _rule(
        "database_save",
        r"\b(save|store|write) (?:it |them |this |data |results |the results )?(?:to|in|into) (?:the |a )?(?:database|db)(?: table (\w+))?",
        _database_write,
        0.85,
    ),
    _rule(
        "database_query",
        r"\b(insert|update|delete) (?:rows? |records? )?(?:in|into|from) (?:the )?(?:database|table)(?: (?:table )?named (\w+))?",
        _database_write,
        0.8,
    ),
    # Files
    _rule("file_write", r"\bsave (?:it |them |results |the results )?(?:to|as) (?:an? )?(file|csv|json|pdf)\b", _file_write, 0.8),
    _rule("file_read", r"\b(?:read|load) (?:data )?from (?:a |the )?file\b", lambda m, c: ExtractedAction(service="file", target="input.json", operation="read", confidence=c), 0.8),
    # Spreadsheets
    _rule(
        "sheet_append",
        r"\b(?:add to|append to|update|save in|save to) (?:a |the |my )?(?:google )?(?:sheet|sheets|spreadsheet)\b",
        _action("spreadsheet", "append"),
        0.85,
    ),
    _rule("sheet_mention", r"\b(?:spreadsheet|google sheets?)\b", _action("spreadsheet", "append"), 0.7),
]


# ----------------------------------------------------------------------
# Conditions
# ----------------------------------------------------------------------

_FIELD = r"([\w.]+)"
_VALUE = r"([^,\s]+)"

# Subjects that read as a condition but are really sentence glue ("when there is ...").
_NON_FIELDS = frozenset({"i", "we", "you", "it", "there", "this", "that", "someone", "a", "an", "the"})


def _condition(operator: str) -> Callable[[re.Match[str], float], Optional[ExtractedCondition]]:
    def build(match: re.Match[str], confidence: float) -> Optional[ExtractedCondition]:
        field, value = match.group(1), match.group(2).rstrip(".;:!?")
        if field in _NON_FIELDS or not value:
            return None
        following = match.string[match.end():match.end() + 4]
        return ExtractedCondition(
            field=field,
            operator=operator,
            value=value,
            logic="or" if following.startswith(" or") else "and",
            confidence=confidence,
        )

    return build


CONDITION_RULES: list[PatternRule[ExtractedCondition]] = [
    _rule("only_if_equals", rf"\bonly if {_FIELD} (?:equals|is|=) {_VALUE}", _condition("equals"), 0.85),
    _rule("if_greater", rf"\bif {_FIELD} (?:is )?(?:greater than|more than|above|>) {_VALUE}", _condition("greater"), 0.8),
    _rule("if_lesser", rf"\bif {_FIELD} (?:is )?(?:less than|fewer than|below|<) {_VALUE}", _condition("lesser"), 0.8),
    _rule("if_contains", rf"\bif {_FIELD} (?:contains|includes) {_VALUE}", _condition("contains"), 0.8),
    _rule("if_equals", rf"\bif {_FIELD} (?:equals|is|=) {_VALUE}", _condition("equals"), 0.8),
    _rule("when_equals", rf"\bwhen {_FIELD} (?:is|equals) {_VALUE}", _condition("equals"), 0.7),
]


# ----------------------------------------------------------------------
# Transformations
# ----------------------------------------------------------------------


def _transformation(kind: str, source: Optional[int], target: Optional[int], expression: Optional[int] = None) -> Callable[[re.Match[str], float], ExtractedTransformation]:
    def build(match: re.Match[str], confidence: float) -> ExtractedTransformation:
        def group(index: Optional[int]) -> Optional[str]:
            return match.group(index) if index else None

        return ExtractedTransformation(
            kind=kind,
            source_field=group(source),
            target_field=group(target),
            operation=match.group(1),
            expression=group(expression),
            confidence=confidence,
        )

    return build


def _calculation(match: re.Match[str], confidence: float) -> ExtractedTransformation:
    verb, field = match.group(1), match.group(2)
    return ExtractedTransformation(
        kind="calculate",
        source_field=field,
        target_field=f"{verb}_{field}".replace(".", "_"),
        operation=verb,
        expression=f"{verb}({field})",
        confidence=confidence,
    )


TRANSFORMATION_RULES: list[PatternRule[ExtractedTransformation]] = [
    _rule(
        "format",
        r"\b(format|transform|convert) (?:the )?([\w.]+)(?: (?:to|as|into) ([\w.]+))?",
        _transformation("format", 2, 3),
        0.7,
    ),
    _rule(
        "filter",
        r"\b(filter) (?:out )?(?:the )?([\w.]+)(?: (?:where|that|which) ([^,.]+))?",
        _transformation("filter", 2, None, 3),
        0.7,
    ),
    _rule("map", r"\b(map) (?:the )?([\w.]+) (?:to|onto) (?:the )?([\w.]+)", _transformation("map", 2, 3), 0.7),
    _rule("extract", r"\b(extract) (?:the )?([\w.]+) from (?:the )?([\w.]+)", _transformation("map", 3, 2), 0.7),
    _rule("calculate", r"\b(calculate|compute|sum|count|average) (?:the |up )?([\w.]+)", _calculation, 0.7),
    _rule(
        "merge",
        r"\b(combine|merge|join) (?:the )?([\w.]+) (?:with|and) (?:the )?([\w.]+)",
        _transformation("merge", 2, 3),
        0.7,
    ),
]


# ----------------------------------------------------------------------
# Notifications
# ----------------------------------------------------------------------

_AUDIENCE = r"(me|the team|team|everyone|someone)"


def normalize_target(target: str) -> str:
    if target == "me":
        return "user"
    if target in ("everyone", "the team"):
        return "team"
    return target


def _notification(channel: str, default_target: str = "team") -> Callable[[re.Match[str], float], ExtractedNotification]:
    def build(match: re.Match[str], confidence: float) -> ExtractedNotification:
        groups: tuple[Any, ...] = match.groups()
        target = groups[0] if groups and groups[0] else default_target
        return ExtractedNotification(channel=channel, target=normalize_target(target), confidence=confidence)

    return build


NOTIFICATION_RULES: list[PatternRule[ExtractedNotification]] = [
    _rule(
        "slack_alert",
        rf"\b(?:notify|alert|tell|ping) {_AUDIENCE}(?: (?:via|through|on|in))? slack\b",
        _notification("slack"),
        0.8,
    ),
    _rule(
        "email_alert",
        rf"\b(?:email|e-mail|send an email to|send email to) (me|the team|team|everyone|{_EMAIL_ADDRESS})",
        _notification("email"),
        0.8,
    ),
    _rule("sms_alert", rf"\b(?:text|sms) {_AUDIENCE}\b", _notification("sms"), 0.8),
    _rule(
        "webhook_alert",
        r"\bsend (?:it |results |the results |data )?(?:to|via) (?:a |the )?webhook\b",
        _notification("webhook", default_target="webhook"),
        0.75,
    ),
]
