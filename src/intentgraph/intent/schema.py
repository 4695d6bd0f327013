"""Pydantic models for the structured intent extracted from a description."""

from typing import Annotated, Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

TriggerKind = Literal["schedule", "webhook", "manual", "email", "file", "database"]
Service = Literal["messaging", "email", "http", "database", "file", "spreadsheet"]
Operator = Literal["equals", "contains", "greater", "lesser"]
TransformKind = Literal["filter", "map", "format", "calculate", "merge"]
Channel = Literal["slack", "email", "webhook", "sms"]

Confidence = Annotated[float, Field(ge=0.0, le=1.0)]


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class ExtractedTrigger(_Frozen):
    kind: TriggerKind
    schedule: Optional[str] = None  # cron expression, schedule triggers only
    source_text: str = ""
    confidence: Confidence


class ExtractedAction(_Frozen):
    service: Service
    target: str
    operation: str
    parameters: dict[str, Any] = {}
    confidence: Confidence


class ExtractedCondition(_Frozen):
    field: str
    operator: Operator
    value: str
    logic: Literal["and", "or"] = "and"
    confidence: Confidence


class ExtractedTransformation(_Frozen):
    kind: TransformKind
    source_field: Optional[str] = None
    target_field: Optional[str] = None
    operation: Optional[str] = None  # the verb that matched, e.g. "convert"
    expression: Optional[str] = None
    confidence: Confidence


class ExtractedNotification(_Frozen):
    channel: Channel
    target: str
    message_template: Optional[str] = None
    confidence: Confidence


class Intent(_Frozen):
    """Everything the extractor understood about one description."""

    description: str = ""
    triggers: list[ExtractedTrigger]
    actions: list[ExtractedAction] = []
    conditions: list[ExtractedCondition] = []
    transformations: list[ExtractedTransformation] = []
    notifications: list[ExtractedNotification] = []
    primary_action: str = "process_data"
    overall_confidence: Confidence
    complexity_score: Confidence
    estimated_node_count: int = Field(ge=1)
    estimated_execution_time: str = ""

    @property
    def item_count(self) -> int:
        return (
            len(self.triggers)
            + len(self.actions)
            + len(self.conditions)
            + len(self.transformations)
            + len(self.notifications)
        )
