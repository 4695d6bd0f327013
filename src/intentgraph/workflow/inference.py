"""Capability-aware auto-wiring rule shared by every component that links nodes."""

from __future__ import annotations

from ..catalog.types import TypeDescriptor


def should_connect(source: TypeDescriptor, target: TypeDescriptor) -> bool:
    """Whether ``source`` should feed ``target`` when the two are placed in sequence.

    Triggers are entry points and never receive edges.
    """
    return source.output_arity > 0 and target.input_arity > 0 and not target.is_trigger
