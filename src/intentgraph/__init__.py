"""Turn natural-language automation requests into validated workflow graphs."""

from .intent import Intent, extract
from .workflow.issues import Issue, RepairResult
from .workflow.pipeline import GenerationResult, IntentGraphEngine, generate
from .workflow.repair import validate_and_repair
from .workflow.schema import WorkflowGraph
from .workflow.synthesizer import synthesize

__all__ = [
    "GenerationResult",
    "Intent",
    "IntentGraphEngine",
    "Issue",
    "RepairResult",
    "WorkflowGraph",
    "extract",
    "generate",
    "synthesize",
    "validate_and_repair",
]
