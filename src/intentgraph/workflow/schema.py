"""Pydantic models defining the workflow graph structure.

The model is deliberately lenient: hand-edited graphs may arrive with missing
IDs, malformed positions or connections keyed by display name, and the
repairer must be able to load them in order to report and fix those problems.
Containers that do not have the expected shape are kept verbatim instead of
being rejected.
"""

from typing import Any, Optional

from pydantic import BaseModel, TypeAdapter, ValidationError, field_validator


class Edge(BaseModel):
    """A link from one output slot of a node to an input slot of another."""

    target_node_id: str  # canonical node id; a display name only before repair
    target_input_index: int = 0


# Output slot index -> edges leaving that slot.
OutputConnections = list[list[Edge]]

_SLOT = TypeAdapter(list[Edge])


def _load_slot(slot: Any) -> Any:
    if not isinstance(slot, list):
        return slot
    try:
        return _SLOT.validate_python(slot)
    except ValidationError:
        return slot


def is_slot(value: Any) -> bool:
    """True for a loaded output slot (a list of edges)."""
    return isinstance(value, list) and all(isinstance(edge, Edge) for edge in value)


class WorkflowNode(BaseModel):
    """A single typed, parameterized step."""

    id: Any = None
    name: Optional[str] = None
    type_id: Optional[str] = None
    position: Any = None  # [x, y] once valid
    parameters: Any = None  # dict once valid


_NODES = TypeAdapter(list[WorkflowNode])


class WorkflowGraph(BaseModel):
    """A complete workflow graph: nodes plus id-keyed connections."""

    name: Optional[str] = None
    nodes: Any = None  # list[WorkflowNode] when well formed
    connections: Any = None  # dict[str, OutputConnections] when well formed
    settings: Any = None
    static_data: Any = None
    meta: dict[str, Any] = {}

    @field_validator("nodes")
    @classmethod
    def _load_nodes(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return value
        try:
            return _NODES.validate_python(value)
        except ValidationError:
            return value

    @field_validator("connections")
    @classmethod
    def _load_connections(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return value
        return {
            key: [_load_slot(slot) for slot in outputs] if isinstance(outputs, list) else outputs
            for key, outputs in value.items()
        }

    @property
    def nodes_loaded(self) -> bool:
        return isinstance(self.nodes, list) and all(isinstance(node, WorkflowNode) for node in self.nodes)

    @property
    def node_list(self) -> list[WorkflowNode]:
        """The nodes, or an empty list when the nodes array is missing or malformed."""
        return self.nodes if self.nodes_loaded else []

    @property
    def connections_loaded(self) -> bool:
        return isinstance(self.connections, dict) and all(
            isinstance(outputs, list) and all(is_slot(slot) for slot in outputs)
            for outputs in self.connections.values()
        )

    def node_by_id(self, node_id: str) -> WorkflowNode | None:
        for node in self.node_list:
            if node.id == node_id:
                return node
        return None

    def node_by_name(self, name: str) -> WorkflowNode | None:
        for node in self.node_list:
            if node.name == name:
                return node
        return None

    def edges(self) -> list[tuple[str, int, Edge]]:
        """Flatten connections into (source key, output index, edge) triples.

        Malformed entries and slots are skipped.
        """
        flat: list[tuple[str, int, Edge]] = []
        if not isinstance(self.connections, dict):
            return flat
        for source, outputs in self.connections.items():
            if not isinstance(outputs, list):
                continue
            for output_index, slot in enumerate(outputs):
                if not is_slot(slot):
                    continue
                for edge in slot:
                    flat.append((source, output_index, edge))
        return flat

    def connect(self, source_id: str, target_id: str, output_index: int = 0, input_index: int = 0) -> None:
        """Append an edge, growing the source's output slot list as needed."""
        if self.connections is None:
            self.connections = {}
        outputs = self.connections.setdefault(source_id, [])
        while len(outputs) <= output_index:
            outputs.append([])
        outputs[output_index].append(Edge(target_node_id=target_id, target_input_index=input_index))
