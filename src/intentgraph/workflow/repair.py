"""Structural validator and repairer for workflow graphs.

Repair runs a fixed sequence of passes over an independent copy of the input.
Each pass yields findings: a ``Fix`` is applied immediately when auto-fix is
on, so later passes see the repaired state, while a ``Diagnostic`` is only
reported. A final read-only pass re-checks every graph invariant.
"""

from __future__ import annotations

import copy
import json
import uuid
from collections import Counter, deque
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any, Callable, Union

from ..catalog import builtin
from ..catalog.registry import CatalogUnavailableError, TypeCatalog, default_catalog
from ..config import Settings, get_settings
from ..logging import get_logger
from .defaults import NODE_DEFAULTS, canonical_type, is_blank
from .issues import Diagnostic, Finding, Fix, Issue, IssueCode, RepairResult, Severity
from .layout import grid_position, is_valid_position, within_canvas
from .schema import Edge, OutputConnections, WorkflowGraph, WorkflowNode, is_slot

logger = get_logger(__name__)


def new_node_id() -> str:
    return str(uuid.uuid4())


@dataclass
class _RepairRun:
    """Mutable state shared by the passes of one repair call."""

    graph: WorkflowGraph
    id_map: dict[str, str] = field(default_factory=dict)


def _label(node: WorkflowNode, index: int) -> str:
    return node.name or f"#{index}"


def _ref(node: WorkflowNode) -> str | None:
    return node.id if isinstance(node.id, str) else None


def _invalid_nodes_message(nodes: Any) -> str:
    if isinstance(nodes, list):
        return "Workflow nodes array contains entries that are not node objects"
    return f"Workflow nodes must be an array, got {type(nodes).__name__}"


class WorkflowRepairer:
    """Validates a workflow graph and repairs what can be fixed safely."""

    def __init__(self, catalog: TypeCatalog | None, settings: Settings | None = None):
        if catalog is None:
            raise CatalogUnavailableError("Workflow validation requires a node type catalog")
        self.catalog = catalog
        self.settings = settings or get_settings()

    def repair(
        self,
        workflow: Union[WorkflowGraph, dict[str, Any]],
        *,
        auto_fix: bool | None = None,
        preserve_complexity: bool | None = None,
    ) -> RepairResult:
        if auto_fix is None:
            auto_fix = self.settings.default_auto_fix
        if preserve_complexity is None:
            preserve_complexity = self.settings.default_preserve_complexity

        if isinstance(workflow, WorkflowGraph):
            original = workflow.model_copy(deep=True)
        else:
            original = WorkflowGraph.model_validate(copy.deepcopy(workflow))
        run = _RepairRun(graph=original.model_copy(deep=True))

        passes: list[Callable[[_RepairRun], Iterator[Finding]]] = [
            self._identity_pass,
            self._parameter_pass,
            self._connection_pass,
        ]
        if preserve_complexity:
            passes.append(self._position_pass)
        passes += [self._type_pass, self._settings_pass]

        issues_found: list[Issue] = []
        issues_fixed: list[Issue] = []
        for run_pass in passes:
            for finding in run_pass(run):
                issues_found.append(finding.issue)
                if auto_fix and isinstance(finding, Fix):
                    fixed = finding.apply()
                    logger.debug("repair_fix_applied", code=fixed.code.value, node_id=fixed.node_id)
                    issues_fixed.append(fixed)

        validation_errors = list(self.validate(run.graph))
        has_errors = any(i.severity == Severity.ERROR for i in validation_errors)
        result = RepairResult(
            success=bool(issues_fixed) or not has_errors,
            original_workflow=original,
            repaired=run.graph,
            issues_found=issues_found,
            issues_fixed=issues_fixed,
            validation_errors=validation_errors,
            id_map=run.id_map,
        )
        logger.info(
            "workflow_repaired",
            name=run.graph.name,
            found=len(issues_found),
            fixed=len(issues_fixed),
            errors=len(result.errors),
            warnings=len(result.warnings),
        )
        return result

    # ------------------------------------------------------------------
    # Passes
    # ------------------------------------------------------------------

    def _valid_id(self, node_id: Any) -> bool:
        return isinstance(node_id, str) and len(node_id) >= self.settings.min_node_id_length

    def _identity_pass(self, run: _RepairRun) -> Iterator[Finding]:
        # A missing or malformed nodes array is reported, never replaced.
        if run.graph.nodes is None:
            yield Diagnostic(Issue.error(IssueCode.MISSING_NODES, "Workflow has no nodes array"))
        elif not run.graph.nodes_loaded:
            yield Diagnostic(Issue.error(IssueCode.INVALID_NODES, _invalid_nodes_message(run.graph.nodes)))

        nodes = run.graph.node_list
        counts = Counter(str(node.id) for node in nodes if node.id is not None)

        seen: set[str] = set()
        for index, node in enumerate(nodes):
            if self._valid_id(node.id) and node.id not in seen:
                seen.add(node.id)
                continue
            if self._valid_id(node.id):
                issue = Issue.error(
                    IssueCode.DUPLICATE_NODE_ID,
                    f"Node '{_label(node, index)}' reuses ID '{node.id}'",
                    node_id=node.id,
                )
                # An id shared by several nodes cannot be redirected unambiguously.
                remap = False
            else:
                issue = Issue.error(
                    IssueCode.INVALID_NODE_ID,
                    f"Node '{_label(node, index)}' has a missing or invalid ID: {node.id!r}",
                    node_id=str(node.id) if node.id is not None else None,
                )
                remap = node.id is not None and str(node.id) != "" and counts[str(node.id)] == 1
            yield Fix(issue, self._reassign_id(run, node, index, seen, remap))

    def _reassign_id(
        self, run: _RepairRun, node: WorkflowNode, index: int, seen: set[str], remap: bool
    ) -> Callable[[], Issue]:
        def apply() -> Issue:
            old = node.id
            node.id = new_node_id()
            seen.add(node.id)
            if remap:
                run.id_map[str(old)] = node.id
            return Issue.fixed(
                IssueCode.INVALID_NODE_ID,
                f"Fixed node ID for '{_label(node, index)}': {old!r} -> {node.id}",
                node_id=node.id,
            )

        return apply

    def _parameter_pass(self, run: _RepairRun) -> Iterator[Finding]:
        for index, node in enumerate(run.graph.node_list):
            label = _label(node, index)
            if not isinstance(node.parameters, dict):
                problem = "has no parameters" if node.parameters is None else "has malformed parameters"
                yield Fix(
                    Issue.warning(IssueCode.MISSING_PARAMETERS, f"Node '{label}' {problem}", _ref(node)),
                    self._set_attr(node, "parameters", {}, IssueCode.MISSING_PARAMETERS,
                                   f"Fixed missing parameters on '{label}'"),
                )
                if not isinstance(node.parameters, dict):
                    continue

            type_id = canonical_type(node.type_id)
            defaults = NODE_DEFAULTS.get(type_id, {})
            descriptor = self.catalog.resolve(type_id)
            required = descriptor.required_params if descriptor else frozenset()

            for key, value in defaults.items():
                current = node.parameters.get(key)
                if key in node.parameters and not (key in required and is_blank(current)):
                    continue
                yield Fix(
                    Issue.warning(
                        IssueCode.MISSING_DEFAULT_PARAMETER,
                        f"Node '{label}' is missing parameter '{key}'",
                        _ref(node),
                    ),
                    self._fill_parameter(node, key, value, label),
                )

            for key in sorted(required - defaults.keys()):
                if is_blank(node.parameters.get(key)):
                    yield Diagnostic(
                        Issue.error(
                            IssueCode.MISSING_REQUIRED_PARAMETER,
                            f"Node '{label}' requires parameter '{key}' which cannot be defaulted",
                            _ref(node),
                        )
                    )

            body = node.parameters.get("body")
            if type_id == builtin.HTTP_REQUEST and isinstance(body, dict) and body.get("mode") == "json":
                yield Fix(
                    Issue.warning(
                        IssueCode.LEGACY_PARAMETERS,
                        f"Node '{label}' uses the legacy HTTP body format",
                        _ref(node),
                    ),
                    self._migrate_http_body(node, label),
                )

    @staticmethod
    def _set_attr(obj: Any, attr: str, value: Any, code: IssueCode, message: str) -> Callable[[], Issue]:
        def apply() -> Issue:
            setattr(obj, attr, value)
            return Issue.fixed(code, message, _ref(obj) if isinstance(obj, WorkflowNode) else None)

        return apply

    @staticmethod
    def _fill_parameter(node: WorkflowNode, key: str, value: Any, label: str) -> Callable[[], Issue]:
        def apply() -> Issue:
            node.parameters[key] = copy.deepcopy(value)
            return Issue.fixed(
                IssueCode.MISSING_DEFAULT_PARAMETER,
                f"Fixed parameter '{key}' on '{label}' with its default",
                _ref(node),
            )

        return apply

    @staticmethod
    def _migrate_http_body(node: WorkflowNode, label: str) -> Callable[[], Issue]:
        def apply() -> Issue:
            body = node.parameters.pop("body")
            payload = body.get("json", "{}")
            node.parameters["sendBody"] = True
            node.parameters["bodyContentType"] = "json"
            node.parameters["jsonBody"] = payload if isinstance(payload, str) else json.dumps(payload)
            return Issue.fixed(
                IssueCode.LEGACY_PARAMETERS,
                f"Fixed legacy HTTP body on '{label}'",
                _ref(node),
            )

        return apply

    def _connection_pass(self, run: _RepairRun) -> Iterator[Finding]:
        graph = run.graph
        if graph.connections is None:
            yield Fix(
                Issue.warning(IssueCode.MISSING_CONNECTIONS, "Workflow has no connections map"),
                self._set_attr(graph, "connections", {}, IssueCode.MISSING_CONNECTIONS,
                               "Fixed missing connections map"),
            )
            if graph.connections is None:
                return
        if not isinstance(graph.connections, dict):
            yield Diagnostic(
                Issue.error(
                    IssueCode.INVALID_CONNECTIONS,
                    f"Workflow connections must be a map, got {type(graph.connections).__name__}",
                )
            )
            return

        # Malformed entries and slots are emptied before anything is re-keyed.
        for key, outputs in list(graph.connections.items()):
            if not isinstance(outputs, list):
                yield Fix(
                    Issue.warning(IssueCode.MALFORMED_CONNECTION, f"Connections of '{key}' are not a slot list"),
                    self._clear_outputs(graph, key),
                )
                continue
            for output_index, slot in enumerate(outputs):
                if not is_slot(slot):
                    yield Fix(
                        Issue.warning(
                            IssueCode.MALFORMED_CONNECTION,
                            f"Connections of '{key}' output {output_index} are not a list of edges",
                        ),
                        self._clear_slot(outputs, key, output_index),
                    )

        for key in list(graph.connections):
            source = self._resolve_reference(run, key)
            if source is None:
                yield Diagnostic(
                    Issue.error(
                        IssueCode.DANGLING_SOURCE,
                        f"Connection source '{key}' does not match any node",
                    )
                )
            elif source != key:
                yield Fix(
                    Issue.warning(
                        IssueCode.CONNECTION_REFERENCE,
                        f"Connections of '{key}' are keyed by name or a replaced ID",
                        source,
                    ),
                    self._rekey_connections(graph, key, source),
                )

        # Edges are visited once, after re-keying has merged any entries.
        for key, output_index, edge in graph.edges():
            target = self._resolve_reference(run, edge.target_node_id)
            if target is None:
                # Never guess a target: the final pass reports the dangling edge.
                yield Diagnostic(
                    Issue.error(
                        IssueCode.DANGLING_TARGET,
                        f"Edge from '{key}' output {output_index} points at unknown "
                        f"node '{edge.target_node_id}'",
                    )
                )
            elif target != edge.target_node_id:
                yield Fix(
                    Issue.warning(
                        IssueCode.CONNECTION_REFERENCE,
                        f"Edge from '{key}' targets '{edge.target_node_id}' by name or a replaced ID",
                        target,
                    ),
                    self._retarget_edge(edge, target),
                )

    @staticmethod
    def _clear_outputs(graph: WorkflowGraph, key: str) -> Callable[[], Issue]:
        def apply() -> Issue:
            graph.connections[key] = []
            return Issue.fixed(IssueCode.MALFORMED_CONNECTION, f"Fixed malformed connections of '{key}'")

        return apply

    @staticmethod
    def _clear_slot(outputs: list, key: str, output_index: int) -> Callable[[], Issue]:
        def apply() -> Issue:
            outputs[output_index] = []
            return Issue.fixed(
                IssueCode.MALFORMED_CONNECTION,
                f"Fixed malformed connections of '{key}' output {output_index} to an empty slot",
            )

        return apply

    def _resolve_reference(self, run: _RepairRun, ref: str) -> str | None:
        """Map a connection reference to a node id: current id, then replaced id, then display name."""
        nodes = run.graph.node_list
        if any(node.id == ref for node in nodes):
            return ref
        if ref in run.id_map:
            return run.id_map[ref]
        for node in nodes:
            if node.name == ref and isinstance(node.id, str):
                return node.id
        return None

    @staticmethod
    def _rekey_connections(graph: WorkflowGraph, old: str, new: str) -> Callable[[], Issue]:
        def apply() -> Issue:
            moved = graph.connections.pop(old)
            merged: OutputConnections = graph.connections.setdefault(new, [])
            for output_index, slot in enumerate(moved):
                while len(merged) <= output_index:
                    merged.append([])
                merged[output_index].extend(slot)
            return Issue.fixed(
                IssueCode.CONNECTION_REFERENCE,
                f"Fixed connection reference '{old}' -> {new}",
                new,
            )

        return apply

    @staticmethod
    def _retarget_edge(edge: Edge, target: str) -> Callable[[], Issue]:
        def apply() -> Issue:
            old = edge.target_node_id
            edge.target_node_id = target
            return Issue.fixed(
                IssueCode.CONNECTION_REFERENCE,
                f"Fixed connection reference '{old}' -> {target}",
                target,
            )

        return apply

    def _position_pass(self, run: _RepairRun) -> Iterator[Finding]:
        layout = self.settings.grid_layout()
        bound = self.settings.canvas_bound
        for index, node in enumerate(run.graph.node_list):
            label = _label(node, index)
            if not is_valid_position(node.position):
                issue = Issue.warning(
                    IssueCode.INVALID_POSITION,
                    f"Node '{label}' has an invalid position: {node.position!r}",
                    _ref(node),
                )
            elif not within_canvas(node.position, bound):
                issue = Issue.warning(
                    IssueCode.POSITION_OUT_OF_BOUNDS,
                    f"Node '{label}' is outside the canvas: {node.position!r}",
                    _ref(node),
                )
            else:
                continue
            slot = grid_position(index, layout)
            yield Fix(
                issue,
                self._set_attr(node, "position", slot, issue.code, f"Fixed position of '{label}' to {slot}"),
            )

    def _type_pass(self, run: _RepairRun) -> Iterator[Finding]:
        for index, node in enumerate(run.graph.node_list):
            label = _label(node, index)
            if not node.type_id:
                yield Fix(
                    Issue.error(IssueCode.MISSING_TYPE, f"Node '{label}' has no type", _ref(node)),
                    self._set_attr(node, "type_id", builtin.GENERIC_STEP, IssueCode.MISSING_TYPE,
                                   f"Fixed missing type on '{label}' with {builtin.GENERIC_STEP}"),
                )
            elif node.type_id in builtin.DEPRECATED_TYPES:
                replacement = builtin.DEPRECATED_TYPES[node.type_id]
                yield Fix(
                    Issue.warning(
                        IssueCode.DEPRECATED_TYPE,
                        f"Node '{label}' uses deprecated type '{node.type_id}'",
                        _ref(node),
                    ),
                    self._set_attr(node, "type_id", replacement, IssueCode.DEPRECATED_TYPE,
                                   f"Fixed deprecated type on '{label}': {node.type_id} -> {replacement}"),
                )

    def _settings_pass(self, run: _RepairRun) -> Iterator[Finding]:
        graph = run.graph
        defaults = self.settings.default_workflow_settings()
        if graph.settings is not None and not isinstance(graph.settings, dict):
            yield Fix(
                Issue.warning(IssueCode.INVALID_SETTINGS, "Workflow settings are not a map"),
                self._set_attr(graph, "settings", dict(defaults), IssueCode.INVALID_SETTINGS,
                               "Fixed workflow settings with the defaults"),
            )
            if not isinstance(graph.settings, dict):
                return
        missing = [key for key in defaults if key not in (graph.settings or {})]
        if missing:
            def fill_settings() -> Issue:
                graph.settings = {**defaults, **(graph.settings or {})}
                return Issue.fixed(IssueCode.MISSING_SETTINGS, f"Fixed workflow settings: {', '.join(missing)}")

            yield Fix(
                Issue.warning(IssueCode.MISSING_SETTINGS, f"Workflow settings are missing: {', '.join(missing)}"),
                fill_settings,
            )
        if not isinstance(graph.static_data, dict):
            yield Fix(
                Issue.warning(IssueCode.MISSING_STATIC_DATA, "Workflow has no static data container"),
                self._set_attr(graph, "static_data", {}, IssueCode.MISSING_STATIC_DATA,
                               "Fixed missing static data container"),
            )

    # ------------------------------------------------------------------
    # Final validation
    # ------------------------------------------------------------------

    def validate(self, graph: WorkflowGraph) -> Iterator[Issue]:
        """Re-check every invariant; read-only."""
        if is_blank(graph.name):
            yield Issue.error(IssueCode.MISSING_WORKFLOW_NAME, "Workflow has no name")
        if graph.nodes is None:
            yield Issue.error(IssueCode.MISSING_NODES, "Workflow has no nodes array")
        elif not graph.nodes_loaded:
            yield Issue.error(IssueCode.INVALID_NODES, _invalid_nodes_message(graph.nodes))
        if graph.connections is None:
            yield Issue.error(IssueCode.MISSING_CONNECTIONS, "Workflow has no connections map")
        elif not isinstance(graph.connections, dict):
            yield Issue.error(IssueCode.INVALID_CONNECTIONS, "Workflow connections must be a map")
        else:
            for key, outputs in graph.connections.items():
                if not isinstance(outputs, list) or not all(is_slot(slot) for slot in outputs):
                    yield Issue.error(IssueCode.MALFORMED_CONNECTION, f"Connections of '{key}' are malformed")
        if graph.settings is not None and not isinstance(graph.settings, dict):
            yield Issue.error(IssueCode.INVALID_SETTINGS, "Workflow settings are not a map")

        nodes = graph.node_list
        yield from self._validate_nodes(nodes)

        by_id = {node.id: node for node in nodes if isinstance(node.id, str)}
        yield from self._validate_edges(graph, by_id)
        yield from self._validate_reachability(graph, nodes, by_id)

    def _validate_nodes(self, nodes: list[WorkflowNode]) -> Iterator[Issue]:
        seen_ids: set[str] = set()
        seen_names: set[str] = set()
        bound = self.settings.canvas_bound
        for index, node in enumerate(nodes):
            label = _label(node, index)
            node_id = node.id if isinstance(node.id, str) else None
            if not self._valid_id(node.id):
                yield Issue.error(IssueCode.INVALID_NODE_ID, f"Node '{label}' has a missing or invalid ID: {node.id!r}")
            elif node.id in seen_ids:
                yield Issue.error(IssueCode.DUPLICATE_NODE_ID, f"Duplicate node ID '{node.id}'", node_id)
            else:
                seen_ids.add(node.id)

            if is_blank(node.name):
                yield Issue.error(IssueCode.MISSING_NODE_NAME, f"Node at index {index} has no name", node_id)
            elif node.name in seen_names:
                yield Issue.warning(IssueCode.DUPLICATE_NODE_NAME, f"Duplicate node name '{node.name}'", node_id)
            else:
                seen_names.add(node.name)

            if not node.type_id:
                yield Issue.error(IssueCode.MISSING_TYPE, f"Node '{label}' has no type", node_id)
            elif node.type_id not in self.catalog:
                yield Issue.error(IssueCode.UNKNOWN_TYPE, f"Node '{label}' has unknown type '{node.type_id}'", node_id)

            if not is_valid_position(node.position):
                yield Issue.error(IssueCode.INVALID_POSITION, f"Node '{label}' has an invalid position", node_id)
            elif not within_canvas(node.position, bound):
                yield Issue.warning(IssueCode.POSITION_OUT_OF_BOUNDS, f"Node '{label}' is outside the canvas", node_id)

            descriptor = self.catalog.resolve(node.type_id)
            parameters = node.parameters if isinstance(node.parameters, dict) else {}
            for key in sorted(descriptor.required_params if descriptor else ()):
                if is_blank(parameters.get(key)):
                    yield Issue.error(
                        IssueCode.MISSING_REQUIRED_PARAMETER,
                        f"Node '{label}' is missing required parameter '{key}'",
                        node_id,
                    )

    def _validate_edges(self, graph: WorkflowGraph, by_id: dict[str, WorkflowNode]) -> Iterator[Issue]:
        for source, output_index, edge in graph.edges():
            if source not in by_id:
                yield Issue.error(IssueCode.DANGLING_SOURCE, f"Connection source '{source}' does not match any node")
            target = by_id.get(edge.target_node_id)
            if target is None:
                yield Issue.error(
                    IssueCode.DANGLING_TARGET,
                    f"Connection from '{source}' references non-existent target node '{edge.target_node_id}'",
                )
                continue
            arity = self.catalog.describe(target.type_id).input_arity
            if not 0 <= edge.target_input_index < arity:
                yield Issue.error(
                    IssueCode.INPUT_INDEX_OUT_OF_RANGE,
                    f"Connection from '{source}' output {output_index} uses input "
                    f"{edge.target_input_index} of '{target.name}', which has {arity} input(s)",
                    target.id,
                )

    def _validate_reachability(
        self, graph: WorkflowGraph, nodes: list[WorkflowNode], by_id: dict[str, WorkflowNode]
    ) -> Iterator[Issue]:
        def is_trigger(node: WorkflowNode) -> bool:
            descriptor = self.catalog.resolve(node.type_id)
            return descriptor is not None and descriptor.is_trigger

        adjacency: dict[str, list[str]] = {}
        for source, _, edge in graph.edges():
            adjacency.setdefault(source, []).append(edge.target_node_id)

        reached = {node.id for node in nodes if is_trigger(node) and isinstance(node.id, str)}
        queue = deque(reached)
        while queue:
            for target in adjacency.get(queue.popleft(), []):
                if target in by_id and target not in reached:
                    reached.add(target)
                    queue.append(target)

        for index, node in enumerate(nodes):
            if is_trigger(node) or (isinstance(node.id, str) and node.id in reached):
                continue
            yield Issue.warning(
                IssueCode.UNREACHABLE_NODE,
                f"Node '{_label(node, index)}' is not reachable from any trigger",
                _ref(node),
            )


def validate_and_repair(
    workflow: Union[WorkflowGraph, dict[str, Any]],
    catalog: TypeCatalog | None = None,
    *,
    auto_fix: bool = True,
    preserve_complexity: bool = True,
) -> RepairResult:
    """Validate and repair ``workflow`` against ``catalog`` (bundled types by default)."""
    return WorkflowRepairer(catalog if catalog is not None else default_catalog()).repair(
        workflow, auto_fix=auto_fix, preserve_complexity=preserve_complexity
    )
