"""Intent extraction: free text in, structured Intent out."""

from .extractor import IntentExtractor, apply_rules, extract
from .rules import PatternRule, interval_to_cron
from .schema import (
    ExtractedAction,
    ExtractedCondition,
    ExtractedNotification,
    ExtractedTransformation,
    ExtractedTrigger,
    Intent,
)

__all__ = [
    "ExtractedAction",
    "ExtractedCondition",
    "ExtractedNotification",
    "ExtractedTransformation",
    "ExtractedTrigger",
    "Intent",
    "IntentExtractor",
    "PatternRule",
    "apply_rules",
    "extract",
    "interval_to_cron",
]
