"""Editing helpers for existing workflow graphs.

Every helper that creates an edge goes through ``should_connect`` so edited
graphs are wired the same way synthesized ones are.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field

from ..catalog.registry import CatalogUnavailableError, TypeCatalog
from ..config import Settings, get_settings
from ..logging import get_logger
from .defaults import default_parameters, is_blank, placeholder
from .inference import should_connect
from .layout import is_valid_position, lane_position
from .repair import new_node_id
from .schema import WorkflowGraph, WorkflowNode

logger = get_logger(__name__)


class GraphEditError(ValueError):
    """Raised when an edit references a missing node or targets a malformed graph."""


class UpdateParameter(BaseModel):
    op: Literal["update_parameter"] = "update_parameter"
    node: str
    key: str
    value: Any = None


class RenameNode(BaseModel):
    op: Literal["rename_node"] = "rename_node"
    node: str
    name: str


class InsertNode(BaseModel):
    op: Literal["insert_node"] = "insert_node"
    type_id: str
    after: Optional[str] = None  # node id or name; defaults to the last node
    name: Optional[str] = None
    parameters: dict[str, Any] = {}


Modification = Annotated[Union[UpdateParameter, RenameNode, InsertNode], Field(discriminator="op")]


def find_node(graph: WorkflowGraph, ref: str) -> WorkflowNode:
    """Look a node up by id, then by display name."""
    node = graph.node_by_id(ref) or graph.node_by_name(ref)
    if node is None:
        raise GraphEditError(f"Workflow '{graph.name}' has no node '{ref}'")
    return node


def _default_name(type_id: str) -> str:
    short = type_id.rsplit(".", 1)[-1]
    words = "".join(f" {c}" if c.isupper() else c for c in short).replace("-", " ")
    return words.strip().title()


def _unique_name(graph: WorkflowGraph, base: str) -> str:
    taken = {node.name for node in graph.node_list}
    if base not in taken:
        return base
    suffix = 2
    while f"{base} {suffix}" in taken:
        suffix += 1
    return f"{base} {suffix}"


def _require_loaded(graph: WorkflowGraph) -> None:
    malformed_nodes = graph.nodes is not None and not graph.nodes_loaded
    malformed_connections = graph.connections is not None and not graph.connections_loaded
    if malformed_nodes or malformed_connections:
        raise GraphEditError(f"Workflow '{graph.name}' is malformed; repair it before editing")


def _has_edge(graph: WorkflowGraph, source_id: str, target_id: str) -> bool:
    return any(
        source == source_id and edge.target_node_id == target_id
        for source, _, edge in graph.edges()
    )


def add_node(
    graph: WorkflowGraph,
    type_id: str,
    catalog: TypeCatalog | None,
    *,
    name: str | None = None,
    parameters: dict[str, Any] | None = None,
    position: list[int] | None = None,
    connect_from: str | None = None,
    settings: Settings | None = None,
) -> WorkflowNode:
    """Append a node with default parameters and auto-wire it.

    The new node is wired from ``connect_from`` (id or name) or, when that is
    omitted, from the current last node, provided ``should_connect`` allows it.
    """
    if catalog is None:
        raise CatalogUnavailableError("Editing a workflow requires a node type catalog")
    _require_loaded(graph)
    if graph.nodes is None:
        graph.nodes = []

    source = find_node(graph, connect_from) if connect_from else (graph.nodes[-1] if graph.nodes else None)
    descriptor = catalog.describe(type_id)

    params = default_parameters(type_id)
    params.update(parameters or {})
    for required in sorted(descriptor.required_params):
        if is_blank(params.get(required)):
            params[required] = placeholder(required)

    if position is None:
        layout = (settings or get_settings()).lane_layout()
        if source is not None and is_valid_position(source.position):
            position = [source.position[0] + layout.spacing, source.position[1]]
        else:
            position = lane_position(len(graph.nodes), layout)

    node = WorkflowNode(
        id=new_node_id(),
        name=_unique_name(graph, name or _default_name(type_id)),
        type_id=type_id,
        position=position,
        parameters=params,
    )
    graph.nodes.append(node)

    if source is not None and should_connect(catalog.describe(source.type_id), descriptor):
        graph.connect(source.id, node.id)
    logger.info("node_added", workflow=graph.name, node=node.name, type_id=type_id)
    return node


def link_sequential(graph: WorkflowGraph, catalog: TypeCatalog | None) -> int:
    """Connect each pair of consecutive nodes that should be linked but is not.

    Returns the number of edges added.
    """
    if catalog is None:
        raise CatalogUnavailableError("Editing a workflow requires a node type catalog")
    _require_loaded(graph)
    nodes = graph.node_list
    added = 0
    for previous, current in zip(nodes, nodes[1:]):
        if not (isinstance(previous.id, str) and isinstance(current.id, str)):
            continue
        if _has_edge(graph, previous.id, current.id):
            continue
        if should_connect(catalog.describe(previous.type_id), catalog.describe(current.type_id)):
            graph.connect(previous.id, current.id)
            added += 1
    return added


def clone_workflow(
    graph: WorkflowGraph,
    new_name: str,
    catalog: TypeCatalog | None,
    modifications: list[Modification] | None = None,
    settings: Settings | None = None,
) -> WorkflowGraph:
    """Independent copy with fresh node ids, optionally modified."""
    if catalog is None:
        raise CatalogUnavailableError("Editing a workflow requires a node type catalog")
    _require_loaded(graph)
    clone = graph.model_copy(deep=True)
    clone.name = new_name

    id_map: dict[str, str] = {}
    for node in clone.node_list:
        fresh = new_node_id()
        if isinstance(node.id, str):
            id_map[node.id] = fresh
        node.id = fresh

    if clone.connections is not None:
        rekeyed = {}
        for source, outputs in clone.connections.items():
            for slot in outputs:
                for edge in slot:
                    edge.target_node_id = id_map.get(edge.target_node_id, edge.target_node_id)
            rekeyed[id_map.get(source, source)] = outputs
        clone.connections = rekeyed

    # Modifications may name nodes by their id in the source graph.
    for modification in modifications or []:
        if isinstance(modification, UpdateParameter):
            node = find_node(clone, id_map.get(modification.node, modification.node))
            if not isinstance(node.parameters, dict):
                node.parameters = {}
            node.parameters[modification.key] = modification.value
        elif isinstance(modification, RenameNode):
            node = find_node(clone, id_map.get(modification.node, modification.node))
            if modification.name != node.name and clone.node_by_name(modification.name):
                raise GraphEditError(f"Node name '{modification.name}' is already in use")
            node.name = modification.name
        else:
            add_node(
                clone,
                modification.type_id,
                catalog,
                name=modification.name,
                parameters=modification.parameters,
                connect_from=id_map.get(modification.after, modification.after) if modification.after else None,
                settings=settings,
            )

    logger.info("workflow_cloned", source=graph.name, name=new_name, modifications=len(modifications or []))
    return clone
