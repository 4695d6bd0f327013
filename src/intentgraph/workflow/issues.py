"""Issue model for validation and repair, with markdown rendering."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Union

from pydantic import BaseModel

from .schema import WorkflowGraph


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class IssueCode(str, Enum):
    MISSING_WORKFLOW_NAME = "missing_workflow_name"
    MISSING_NODES = "missing_nodes"
    INVALID_NODES = "invalid_nodes"
    MISSING_CONNECTIONS = "missing_connections"
    INVALID_CONNECTIONS = "invalid_connections"
    MALFORMED_CONNECTION = "malformed_connection"
    INVALID_NODE_ID = "invalid_node_id"
    DUPLICATE_NODE_ID = "duplicate_node_id"
    MISSING_NODE_NAME = "missing_node_name"
    DUPLICATE_NODE_NAME = "duplicate_node_name"
    MISSING_PARAMETERS = "missing_parameters"
    MISSING_DEFAULT_PARAMETER = "missing_default_parameter"
    MISSING_REQUIRED_PARAMETER = "missing_required_parameter"
    LEGACY_PARAMETERS = "legacy_parameters"
    CONNECTION_REFERENCE = "connection_reference"
    DANGLING_SOURCE = "dangling_source"
    DANGLING_TARGET = "dangling_target"
    INPUT_INDEX_OUT_OF_RANGE = "input_index_out_of_range"
    INVALID_POSITION = "invalid_position"
    POSITION_OUT_OF_BOUNDS = "position_out_of_bounds"
    MISSING_TYPE = "missing_type"
    DEPRECATED_TYPE = "deprecated_type"
    UNKNOWN_TYPE = "unknown_type"
    MISSING_SETTINGS = "missing_settings"
    INVALID_SETTINGS = "invalid_settings"
    MISSING_STATIC_DATA = "missing_static_data"
    UNREACHABLE_NODE = "unreachable_node"


class Issue(BaseModel):
    """A single finding about a workflow graph."""

    code: IssueCode
    severity: Severity
    message: str
    node_id: Optional[str] = None

    @classmethod
    def error(cls, code: IssueCode, message: str, node_id: Optional[str] = None) -> "Issue":
        return cls(code=code, severity=Severity.ERROR, message=message, node_id=node_id)

    @classmethod
    def warning(cls, code: IssueCode, message: str, node_id: Optional[str] = None) -> "Issue":
        return cls(code=code, severity=Severity.WARNING, message=message, node_id=node_id)

    @classmethod
    def fixed(cls, code: IssueCode, message: str, node_id: Optional[str] = None) -> "Issue":
        return cls(code=code, severity=Severity.INFO, message=message, node_id=node_id)


@dataclass(frozen=True)
class Fix:
    """A finding the repairer may act on. ``apply`` mutates the working graph
    and returns the issue recorded in ``issues_fixed``."""

    issue: Issue
    apply: Callable[[], Issue]


@dataclass(frozen=True)
class Diagnostic:
    """A finding that is only ever reported."""

    issue: Issue


Finding = Union[Fix, Diagnostic]


class RepairResult(BaseModel):
    """Outcome of one validate-and-repair call."""

    success: bool
    original_workflow: WorkflowGraph
    repaired: WorkflowGraph
    issues_found: list[Issue] = []
    issues_fixed: list[Issue] = []
    validation_errors: list[Issue] = []
    id_map: dict[str, str] = {}

    @property
    def errors(self) -> list[Issue]:
        return [i for i in self.validation_errors if i.severity == Severity.ERROR]

    @property
    def warnings(self) -> list[Issue]:
        return [i for i in self.validation_errors if i.severity == Severity.WARNING]

    def to_markdown(self) -> str:
        name = self.repaired.name or "(unnamed workflow)"
        lines = [
            f"# Repair Report: {name}",
            "",
            f"**Success:** {'yes' if self.success else 'no'}",
            f"**Issues found:** {len(self.issues_found)}",
            f"**Issues fixed:** {len(self.issues_fixed)}",
            f"**Errors:** {len(self.errors)}",
            f"**Warnings:** {len(self.warnings)}",
            "",
        ]

        if self.id_map:
            lines.append("## Reassigned Node IDs")
            for old, new in self.id_map.items():
                lines.append(f"- `{old}` -> `{new}`")
            lines.append("")

        for title, issues in (("Fixed", self.issues_fixed), ("Remaining", self.validation_errors)):
            if not issues:
                continue
            lines.append(f"## {title}")
            lines.append("")
            lines.append("| Severity | Code | Node | Message |")
            lines.append("|----------|------|------|---------|")
            for issue in issues:
                node = f"`{issue.node_id}`" if issue.node_id else ""
                lines.append(f"| {issue.severity.value} | {issue.code.value} | {node} | {issue.message} |")
            lines.append("")

        return "\n".join(lines)

    def to_dict(self) -> dict:
        return self.model_dump(mode="json")
