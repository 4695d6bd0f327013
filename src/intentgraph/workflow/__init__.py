"""Workflow graphs: schema, synthesis, validation and repair, editing."""
