"""Deterministic Intent -> WorkflowGraph construction."""

from __future__ import annotations

import uuid
from collections.abc import Iterator
from typing import Any

from ..catalog import builtin
from ..catalog.registry import CatalogUnavailableError, TypeCatalog, default_catalog
from ..catalog.types import TypeDescriptor
from ..config import Settings, get_settings
from ..intent.rules import DEFAULT_SCHEDULE, DEFAULT_TARGETS
from ..intent.schema import (
    ExtractedAction,
    ExtractedCondition,
    ExtractedNotification,
    ExtractedTransformation,
    ExtractedTrigger,
    Intent,
)
from ..logging import get_logger
from .defaults import default_parameters, is_blank, placeholder
from .inference import should_connect
from .layout import lane_position
from .schema import WorkflowGraph, WorkflowNode

logger = get_logger(__name__)

# Synthesized node ids are UUID5 values under this namespace.
NODE_ID_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_URL, "https://intentgraph.dev/nodes")

TRIGGER_TYPES: dict[str, str] = {
    "schedule": builtin.SCHEDULE_TRIGGER,
    "webhook": builtin.WEBHOOK_TRIGGER,
    "email": builtin.EMAIL_TRIGGER,
    "file": builtin.FILE_TRIGGER,
    "manual": builtin.MANUAL_TRIGGER,
}

ACTION_TYPES: dict[str, str] = {
    "messaging": builtin.SLACK,
    "email": builtin.SEND_EMAIL,
    "http": builtin.HTTP_REQUEST,
    "database": builtin.POSTGRES,
    "file": builtin.READ_WRITE_FILE,
    "spreadsheet": builtin.GOOGLE_SHEETS,
}

TRANSFORMATION_TYPES: dict[str, str] = {
    "format": builtin.SET,
    "map": builtin.SET,
    "filter": builtin.FILTER,
    "calculate": builtin.CODE,
    "merge": builtin.MERGE,
}

NOTIFICATION_TYPES: dict[str, str] = {
    "slack": builtin.SLACK,
    "email": builtin.SEND_EMAIL,
    "webhook": builtin.HTTP_REQUEST,
    "sms": builtin.TWILIO,
}

CONDITION_TYPE = builtin.IF

NOTIFICATION_WEBHOOK_URL = "https://hooks.example.com/notify"


class SynthesisError(ValueError):
    """Raised when synthesis is called with an invalid precondition."""


def _field_expression(field: str) -> str:
    return f"={{{{ $json.{field} }}}}"


def _condition_parameters(condition: ExtractedCondition) -> dict[str, Any]:
    numeric = condition.operator in ("greater", "lesser")
    operation = {"equals": "equals", "contains": "contains", "greater": "gt", "lesser": "lt"}[condition.operator]
    return {
        "conditions": {
            "combinator": condition.logic,
            "conditions": [
                {
                    "leftValue": _field_expression(condition.field),
                    "operator": {"type": "number" if numeric else "string", "operation": operation},
                    "rightValue": condition.value,
                }
            ],
        }
    }


def _transformation_parameters(item: ExtractedTransformation) -> dict[str, Any]:
    if item.kind in ("format", "map"):
        return {
            "assignments": {
                "assignments": [
                    {
                        "name": item.target_field or "transformedValue",
                        "type": "string",
                        "value": item.expression or _field_expression(item.source_field or "input"),
                    }
                ]
            }
        }
    if item.kind == "filter":
        condition = {
            "leftValue": _field_expression(item.source_field or "input"),
            "operator": {"type": "string", "operation": "exists"},
            "rightValue": "",
        }
        params: dict[str, Any] = {"conditions": {"combinator": "and", "conditions": [condition]}}
        if item.expression:
            params["notes"] = item.expression.strip()
        return params
    if item.kind == "calculate":
        field = item.source_field or "value"
        target = item.target_field or "calculated"
        return {
            "jsCode": (
                "return $input.all().map(item => ({\n"
                f"  json: {{ ...item.json, {target}: item.json.{field} }}\n"
                "}));"
            )
        }
    return {"mode": "append"}


def _action_parameters(action: ExtractedAction) -> dict[str, Any]:
    target = action.target or DEFAULT_TARGETS[action.service]
    if action.service == "messaging":
        return {"channelId": {"__rl": True, "mode": "name", "value": target}}
    if action.service == "email":
        return {"toEmail": target, "subject": "Automated Notification"}
    if action.service == "http":
        return {"method": "POST" if action.operation == "request" else "GET", "url": target}
    if action.service == "database":
        return {"operation": action.operation, "table": target}
    if action.service == "file":
        return {"operation": action.operation, "fileName": target}
    return {"operation": action.operation, "sheetName": target}


def _notification_parameters(notification: ExtractedNotification) -> dict[str, Any]:
    message = notification.message_template
    if notification.channel == "slack":
        params: dict[str, Any] = {
            "channelId": {"__rl": True, "mode": "name", "value": notification.target},
        }
        if message:
            params["text"] = message
        return params
    if notification.channel == "email":
        to = notification.target if "@" in notification.target else DEFAULT_TARGETS["email"]
        params = {"toEmail": to, "subject": "Workflow Notification"}
        if message:
            params["html"] = message
        return params
    if notification.channel == "webhook":
        return {
            "method": "POST",
            "url": NOTIFICATION_WEBHOOK_URL,
            "sendBody": True,
            "bodyContentType": "json",
            "jsonBody": '={{ { "message": $json.message, "target": "%s" } }}' % notification.target,
        }
    return {"to": notification.target, "message": message or "Workflow notification"}


_TRIGGER_NAMES = {
    builtin.SCHEDULE_TRIGGER: "Schedule Trigger",
    builtin.WEBHOOK_TRIGGER: "Webhook Trigger",
    builtin.EMAIL_TRIGGER: "Email Trigger",
    builtin.FILE_TRIGGER: "File Trigger",
    builtin.MANUAL_TRIGGER: "Manual Trigger",
}

_TRANSFORMATION_NAMES = {
    "format": "Transform Data",
    "map": "Map Fields",
    "filter": "Filter Items",
    "calculate": "Calculate Values",
    "merge": "Merge Data",
}

_ACTION_NAMES = {
    "messaging": "Send Slack Message",
    "email": "Send Email",
    "http": "HTTP Request",
    "database": "Save to Database",
    "file": "Write File",
    "spreadsheet": "Append to Sheet",
}

_NOTIFICATION_NAMES = {
    "slack": "Notify Team",
    "email": "Email Notification",
    "webhook": "Send Notification",
    "sms": "Send SMS",
}


class GraphSynthesizer:
    """Builds a linear workflow graph from an Intent, one node per extracted item."""

    def __init__(self, catalog: TypeCatalog | None, settings: Settings | None = None):
        if catalog is None:
            raise CatalogUnavailableError("Graph synthesis requires a node type catalog")
        self.catalog = catalog
        self.settings = settings or get_settings()

    def synthesize(self, intent: Intent, name: str) -> WorkflowGraph:
        if intent is None:
            raise SynthesisError("Cannot synthesize a workflow without an intent")

        lane = self.settings.lane_layout()
        graph = WorkflowGraph(
            name=name,
            nodes=[],
            connections={},
            settings={**self.settings.default_workflow_settings(), "executionOrder": "v1"},
            static_data={},
            meta={"primaryAction": intent.primary_action, "confidence": intent.overall_confidence},
        )
        notes: list[str] = []
        used_names: dict[str, int] = {}
        previous: tuple[WorkflowNode, TypeDescriptor] | None = None

        for index, (preferred, fallback, base_name, params) in enumerate(self._plan(intent)):
            type_id, descriptor = self._resolve(preferred, fallback, notes)
            parameters = default_parameters(type_id)
            parameters.update(params)
            for required in sorted(descriptor.required_params):
                if is_blank(parameters.get(required)):
                    parameters[required] = placeholder(required)

            node = WorkflowNode(
                id=str(uuid.uuid5(NODE_ID_NAMESPACE, f"{name}/{index}/{type_id}")),
                name=self._unique_name(base_name, used_names),
                type_id=type_id,
                position=lane_position(index, lane),
                parameters=parameters,
            )
            graph.nodes.append(node)

            if previous is not None and should_connect(previous[1], descriptor):
                graph.connect(previous[0].id, node.id)
            previous = (node, descriptor)

        if notes:
            graph.meta["synthesisNotes"] = notes
        logger.info("workflow_synthesized", name=name, nodes=len(graph.nodes), fallbacks=len(notes))
        return graph

    def _plan(self, intent: Intent) -> Iterator[tuple[str | None, str, str, dict[str, Any]]]:
        """Yield (preferred type, fallback type, display name, parameters) in emission order."""
        for trigger in intent.triggers:
            yield self._trigger_step(trigger)
        for condition in intent.conditions:
            yield CONDITION_TYPE, builtin.GENERIC_STEP, "Condition Check", _condition_parameters(condition)
        for item in intent.transformations:
            yield (
                TRANSFORMATION_TYPES.get(item.kind),
                builtin.GENERIC_STEP,
                _TRANSFORMATION_NAMES.get(item.kind, "Process Data"),
                _transformation_parameters(item),
            )
        for action in intent.actions:
            name = _ACTION_NAMES.get(action.service, "Custom Action")
            if action.service == "file" and action.operation == "read":
                name = "Read File"
            yield ACTION_TYPES.get(action.service), builtin.GENERIC_STEP, name, _action_parameters(action)
        for notification in intent.notifications:
            yield (
                NOTIFICATION_TYPES.get(notification.channel),
                builtin.GENERIC_STEP,
                _NOTIFICATION_NAMES.get(notification.channel, "Send Notification"),
                _notification_parameters(notification),
            )

    def _trigger_step(self, trigger: ExtractedTrigger) -> tuple[str | None, str, str, dict[str, Any]]:
        preferred = TRIGGER_TYPES.get(trigger.kind)
        params: dict[str, Any] = {}
        if preferred == builtin.SCHEDULE_TRIGGER:
            params["rule"] = trigger.schedule or DEFAULT_SCHEDULE
        name = _TRIGGER_NAMES.get(preferred or builtin.MANUAL_TRIGGER, "Manual Trigger")
        return preferred, builtin.MANUAL_TRIGGER, name, params

    def _resolve(self, preferred: str | None, fallback: str, notes: list[str]) -> tuple[str, TypeDescriptor]:
        if preferred is not None:
            descriptor = self.catalog.resolve(preferred)
            if descriptor is not None:
                return preferred, descriptor
        # The node type always matches the descriptor its parameters were built from.
        descriptor = self.catalog.describe(fallback)
        note = f"No catalog type for {preferred or 'unmapped item'}; using {descriptor.type_id}"
        notes.append(note)
        logger.info("synthesis_type_fallback", preferred=preferred, fallback=descriptor.type_id)
        return descriptor.type_id, descriptor

    @staticmethod
    def _unique_name(base: str, used: dict[str, int]) -> str:
        count = used.get(base, 0) + 1
        used[base] = count
        return base if count == 1 else f"{base} {count}"


def synthesize(intent: Intent, name: str, catalog: TypeCatalog | None = None) -> WorkflowGraph:
    """Build a graph for ``intent`` against ``catalog`` (bundled types by default)."""
    return GraphSynthesizer(catalog if catalog is not None else default_catalog()).synthesize(intent, name)
