"""Capability metadata for a node type."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class TypeDescriptor:
    type_id: str
    input_arity: int
    output_arity: int
    is_trigger: bool = False
    required_params: frozenset[str] = field(default_factory=frozenset)
    description: str = ""

    def __post_init__(self) -> None:
        if self.input_arity < 0 or self.output_arity < 0:
            raise ValueError(f"{self.type_id}: arity cannot be negative")
        if self.is_trigger and self.input_arity != 0:
            raise ValueError(f"{self.type_id}: a trigger type cannot declare inputs")

    def to_dict(self) -> dict:
        return {
            "type_id": self.type_id,
            "input_arity": self.input_arity,
            "output_arity": self.output_arity,
            "is_trigger": self.is_trigger,
            "required_params": sorted(self.required_params),
            "description": self.description,
        }
