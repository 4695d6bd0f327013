"""Generation pipeline: description -> intent -> graph -> validated graph."""

from __future__ import annotations

from typing import Any, Union

from pydantic import BaseModel

from ..catalog.registry import CatalogProvider, TypeCatalog, default_catalog
from ..config import Settings, get_settings
from ..intent.extractor import IntentExtractor
from ..intent.schema import Intent
from ..logging import get_logger
from .issues import RepairResult
from .repair import WorkflowRepairer
from .schema import WorkflowGraph
from .synthesizer import GraphSynthesizer

logger = get_logger(__name__)


class GenerationResult(BaseModel):
    """Everything produced by one generate() call."""

    graph: WorkflowGraph
    intent: Intent
    repair_result: RepairResult

    def to_dict(self) -> dict:
        return self.model_dump(mode="json")


class IntentGraphEngine:
    """Entry points over a catalog provider.

    Each call takes a single catalog snapshot and uses it for every lookup it
    makes, so a concurrent ``provider.replace`` is never observed mid-call.
    """

    def __init__(
        self,
        provider: CatalogProvider | None = None,
        settings: Settings | None = None,
        extractor: IntentExtractor | None = None,
    ):
        self.provider = provider or CatalogProvider(default_catalog())
        self.settings = settings or get_settings()
        self.extractor = extractor or IntentExtractor()

    def extract(self, text: str) -> Intent:
        return self.extractor.extract(text)

    def synthesize(self, intent: Intent, name: str) -> WorkflowGraph:
        return GraphSynthesizer(self.provider.snapshot(), self.settings).synthesize(intent, name)

    def validate_and_repair(
        self,
        workflow: Union[WorkflowGraph, dict[str, Any]],
        *,
        auto_fix: bool | None = None,
        preserve_complexity: bool | None = None,
    ) -> RepairResult:
        repairer = WorkflowRepairer(self.provider.snapshot(), self.settings)
        return repairer.repair(workflow, auto_fix=auto_fix, preserve_complexity=preserve_complexity)

    def generate(self, text: str, name: str) -> GenerationResult:
        catalog = self.provider.snapshot()
        intent = self.extractor.extract(text)
        graph = GraphSynthesizer(catalog, self.settings).synthesize(intent, name)
        repair_result = WorkflowRepairer(catalog, self.settings).repair(graph, auto_fix=True)
        logger.info(
            "workflow_generated",
            name=name,
            nodes=len(repair_result.repaired.node_list),
            confidence=intent.overall_confidence,
            success=repair_result.success,
        )
        return GenerationResult(graph=repair_result.repaired, intent=intent, repair_result=repair_result)


def generate(text: str, name: str, catalog: TypeCatalog | None = None) -> GenerationResult:
    """Extract, synthesize and validate in one call against ``catalog`` (bundled types by default)."""
    provider = CatalogProvider(catalog if catalog is not None else default_catalog())
    return IntentGraphEngine(provider).generate(text, name)
