"""API models for the intent-to-graph service."""

from typing import Any, Optional

from pydantic import BaseModel, Field

from .intent.schema import Intent
from .workflow.schema import WorkflowGraph


class ExtractRequest(BaseModel):
    """Request to extract an intent from a description."""

    description: str = Field(..., description="Natural language description of the desired automation")


class SynthesizeRequest(BaseModel):
    """Request to build a workflow graph from an already extracted intent."""

    intent: Intent
    name: str = Field(..., min_length=1, description="Name of the workflow to build")


class RepairRequest(BaseModel):
    """Request to validate (and optionally repair) a workflow graph."""

    workflow: dict[str, Any] = Field(..., description="Workflow graph; may be hand-edited or incomplete")
    auto_fix: Optional[bool] = Field(None, description="Apply safe fixes (defaults to the configured value)")
    preserve_complexity: Optional[bool] = Field(
        None,
        description="Reposition nodes with invalid or out-of-bounds positions",
    )


class GenerateRequest(BaseModel):
    """Request to run the full extract -> synthesize -> repair pipeline."""

    description: str = Field(..., description="Natural language description of the desired automation")
    name: str = Field(..., min_length=1, description="Name of the generated workflow")


class SynthesizeResponse(BaseModel):
    workflow: WorkflowGraph


class CatalogTypeEntry(BaseModel):
    type_id: str
    input_arity: int
    output_arity: int
    is_trigger: bool
    required_params: list[str]
    description: str = ""


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    service: str = "IntentGraph Engine"
    catalog_loaded: bool = True
    catalog_types: int = 0
