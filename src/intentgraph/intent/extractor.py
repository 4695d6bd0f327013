"""Rule-based extraction of a structured Intent from a free-text description."""

from __future__ import annotations

from typing import Optional, TypeVar

from ..logging import get_logger
from .rules import (
    ACTION_RULES,
    CONDITION_RULES,
    NOTIFICATION_RULES,
    TRANSFORMATION_RULES,
    TRIGGER_RULES,
    PatternRule,
)
from .schema import (
    ExtractedAction,
    ExtractedCondition,
    ExtractedNotification,
    ExtractedTransformation,
    ExtractedTrigger,
    Intent,
)

logger = get_logger(__name__)

T = TypeVar("T")

CATEGORY_WEIGHTS = {
    "trigger": 0.3,
    "action": 0.4,
    "condition": 0.1,
    "transformation": 0.1,
    "notification": 0.1,
}

DEFAULT_TRIGGER_CONFIDENCE = 0.5


def apply_rules(text: str, rules: list[PatternRule[T]]) -> list[T]:
    """Run one category's rule table over ``text``.

    Every rule contributes at most its first match. A match that overlaps
    text already claimed by an earlier rule in the same table is skipped.
    """
    items: list[T] = []
    claimed: list[tuple[int, int]] = []
    for rule in rules:
        match = rule.pattern.search(text)
        if match is None:
            continue
        start, end = match.span()
        if any(start < c_end and c_start < end for c_start, c_end in claimed):
            continue
        item = rule.build(match, rule.confidence)
        if item is None:
            continue
        claimed.append((start, end))
        items.append(item)
    return items


def _max_confidence(items: list) -> Optional[float]:
    if not items:
        return None
    return max(item.confidence for item in items)


def overall_confidence(
    triggers: list[ExtractedTrigger],
    actions: list[ExtractedAction],
    conditions: list[ExtractedCondition],
    transformations: list[ExtractedTransformation],
    notifications: list[ExtractedNotification],
) -> float:
    confidence = 0.0
    for category, items in (
        ("trigger", triggers),
        ("action", actions),
        ("condition", conditions),
        ("transformation", transformations),
        ("notification", notifications),
    ):
        best = _max_confidence(items)
        if best is not None:
            confidence += CATEGORY_WEIGHTS[category] * best
    return min(max(confidence, 0.0), 1.0)


def complexity_score(
    triggers: list[ExtractedTrigger],
    actions: list[ExtractedAction],
    conditions: list[ExtractedCondition],
    transformations: list[ExtractedTransformation],
) -> float:
    weighted = (
        len(triggers) * 1
        + len(actions) * 2
        + len(conditions) * 1.5
        + len(transformations) * 2.5
    )
    return min(weighted / 10, 1.0)


def estimate_execution_time(node_count: int, complexity: float) -> str:
    total_seconds = 2 + node_count * 0.5 + complexity * 3
    if total_seconds < 60:
        return f"{round(total_seconds)} seconds"
    return f"{round(total_seconds / 60)} minutes"


def primary_action(actions: list[ExtractedAction], text: str) -> str:
    if actions:
        return actions[0].service
    if "notify" in text or "send" in text:
        return "notification"
    return "process_data"


class IntentExtractor:
    """Turns a description into an Intent. Total: never raises on text input."""

    def __init__(
        self,
        trigger_rules: list[PatternRule[ExtractedTrigger]] | None = None,
        action_rules: list[PatternRule[ExtractedAction]] | None = None,
        condition_rules: list[PatternRule[ExtractedCondition]] | None = None,
        transformation_rules: list[PatternRule[ExtractedTransformation]] | None = None,
        notification_rules: list[PatternRule[ExtractedNotification]] | None = None,
    ):
        self.trigger_rules = trigger_rules if trigger_rules is not None else TRIGGER_RULES
        self.action_rules = action_rules if action_rules is not None else ACTION_RULES
        self.condition_rules = condition_rules if condition_rules is not None else CONDITION_RULES
        self.transformation_rules = (
            transformation_rules if transformation_rules is not None else TRANSFORMATION_RULES
        )
        self.notification_rules = notification_rules if notification_rules is not None else NOTIFICATION_RULES

    def extract_triggers(self, text: str) -> list[ExtractedTrigger]:
        triggers = apply_rules(text, self.trigger_rules)
        if not triggers:
            # Synthesis always needs an entry point.
            triggers.append(ExtractedTrigger(kind="manual", confidence=DEFAULT_TRIGGER_CONFIDENCE))
        return triggers

    def extract(self, description: str | None) -> Intent:
        text = (description or "").lower()

        triggers = self.extract_triggers(text)
        actions = apply_rules(text, self.action_rules)
        conditions = apply_rules(text, self.condition_rules)
        transformations = apply_rules(text, self.transformation_rules)
        notifications = apply_rules(text, self.notification_rules)

        complexity = complexity_score(triggers, actions, conditions, transformations)
        node_count = (
            len(triggers) + len(actions) + len(conditions) + len(transformations) + len(notifications) + 1
        )
        intent = Intent(
            description=description or "",
            triggers=triggers,
            actions=actions,
            conditions=conditions,
            transformations=transformations,
            notifications=notifications,
            primary_action=primary_action(actions, text),
            overall_confidence=overall_confidence(triggers, actions, conditions, transformations, notifications),
            complexity_score=complexity,
            estimated_node_count=node_count,
            estimated_execution_time=estimate_execution_time(node_count, complexity),
        )

        logger.info(
            "intent_extracted",
            triggers=len(triggers),
            actions=len(actions),
            conditions=len(conditions),
            transformations=len(transformations),
            notifications=len(notifications),
            confidence=round(intent.overall_confidence, 3),
        )
        return intent


_default_extractor = IntentExtractor()


def extract(description: str | None) -> Intent:
    """Extract an Intent using the built-in rule tables."""
    return _default_extractor.extract(description)
