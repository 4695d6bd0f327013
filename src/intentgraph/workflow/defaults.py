"""Minimum-viable parameter defaults per node type.

Synthesis starts every node from these values and repair fills the same keys
back in, so a hand-edited graph converges on the shape a freshly synthesized
one has. Required parameters absent from this table (credentials, document
IDs) cannot be defaulted safely.
"""

from __future__ import annotations

import copy
from typing import Any

from ..catalog import builtin
from ..catalog.builtin import DEPRECATED_TYPES, GENERIC_STEP
from ..intent.rules import DEFAULT_SCHEDULE, DEFAULT_TARGETS

_EMPTY_CONDITIONS = {"combinator": "and", "conditions": []}

NODE_DEFAULTS: dict[str, dict[str, Any]] = {
    builtin.MANUAL_TRIGGER: {},
    builtin.SCHEDULE_TRIGGER: {"rule": DEFAULT_SCHEDULE, "timezone": "UTC"},
    builtin.WEBHOOK_TRIGGER: {
        "httpMethod": "POST",
        "path": "automation-webhook",
        "responseMode": "onReceived",
    },
    builtin.EMAIL_TRIGGER: {
        "filters": {"q": "is:unread in:inbox"},
        "pollTimes": {"item": [{"mode": "everyMinute"}]},
    },
    builtin.FILE_TRIGGER: {"path": "/data/inbox", "events": ["add"]},
    builtin.IF: {"conditions": _EMPTY_CONDITIONS},
    builtin.SWITCH: {"rules": {"values": []}, "fallbackOutput": 0},
    builtin.FILTER: {"conditions": _EMPTY_CONDITIONS},
    builtin.MERGE: {"mode": "append"},
    builtin.SET: {
        "mode": "manual",
        "assignments": {"assignments": []},
        "options": {"keepOnlySet": False, "dotNotation": False},
    },
    builtin.CODE: {"jsCode": "return $input.all();"},
    builtin.HTTP_REQUEST: {"method": "GET", "url": DEFAULT_TARGETS["http"], "options": {}},
    builtin.SLACK: {
        "resource": "message",
        "operation": "post",
        "select": "channel",
        "channelId": {"__rl": True, "mode": "name", "value": DEFAULT_TARGETS["messaging"]},
        "text": "Automated message: {{ $json.message || \"Workflow completed successfully\" }}",
    },
    builtin.SEND_EMAIL: {
        "toEmail": DEFAULT_TARGETS["email"],
        "subject": "Workflow Notification",
        "emailFormat": "html",
        "html": "<p>Your workflow has completed successfully.</p>",
    },
    builtin.POSTGRES: {"operation": "insert", "table": DEFAULT_TARGETS["database"]},
    builtin.READ_WRITE_FILE: {"operation": "write", "fileName": DEFAULT_TARGETS["file"]},
    builtin.GOOGLE_SHEETS: {"operation": "append", "sheetName": DEFAULT_TARGETS["spreadsheet"]},
    builtin.TWILIO: {"to": "user", "message": "Workflow notification"},
}


def canonical_type(type_id: str | None) -> str:
    """Resolve a missing or deprecated type id to the id it should carry."""
    if not type_id:
        return GENERIC_STEP
    return DEPRECATED_TYPES.get(type_id, type_id)


def default_parameters(type_id: str | None) -> dict[str, Any]:
    return copy.deepcopy(NODE_DEFAULTS.get(canonical_type(type_id), {}))


def is_blank(value: Any) -> bool:
    """None, whitespace-only strings and empty containers count as missing. 0 and False do not."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict, tuple, set)):
        return len(value) == 0
    return False


def placeholder(param: str) -> str:
    """Expression pointing at a workflow variable the user still has to define."""
    return f"={{{{ $vars.{param} }}}}"
