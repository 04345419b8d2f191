"""Persisted dependency state.

The persisted form is a serialization of the graph (nodes and edges, with
their states) plus every template's output registry, keyed by template id.
Loading it rebuilds an OutputRegistry and DependencyManager that answer
resolution and blast-radius queries exactly like the ones that were saved.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

from infraref.dependencies import DependencyEdge, DependencyManager, EdgeState
from infraref.errors import StateFormatError
from infraref.outputs import DEFAULT_NAMESPACE, OutputBinding, OutputRegistry, TemplateOutputs
from infraref.reference import ResourceReference, TokenFormat

logger = logging.getLogger(__name__)

STATE_VERSION = 1


class OutputState(BaseModel):
    resource: str  # "type.name" address within the template
    attribute: str


class ResourceState(BaseModel):
    resource_type: str
    name: str
    template_id: str
    attributes: dict[str, Any] = Field(default_factory=dict)
    outputs: dict[str, str] = Field(default_factory=dict)


class TemplateState(BaseModel):
    namespace: str = DEFAULT_NAMESPACE
    frozen: bool = False
    resources: list[ResourceState] = Field(default_factory=list)
    outputs: dict[str, OutputState] = Field(default_factory=dict)


class EdgeRecord(BaseModel):
    consumer: str
    producer: str
    output: str
    state: EdgeState = EdgeState.PENDING
    error: str = ""


class StateSnapshot(BaseModel):
    version: int = STATE_VERSION
    token_style: str = "terraform"
    # graph nodes in insertion order; templates known only as producers have no entry below
    nodes: list[str] = Field(default_factory=list)
    templates: dict[str, TemplateState] = Field(default_factory=dict)
    edges: list[EdgeRecord] = Field(default_factory=list)

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.model_dump(mode="json"), default_flow_style=False, sort_keys=False)

    def to_json(self, indent: int = 2) -> str:
        return self.model_dump_json(indent=indent)


def snapshot(manager: DependencyManager) -> StateSnapshot:
    """Capture the graph and all output registries of a run."""
    outputs = manager.outputs
    templates: dict[str, TemplateState] = {}
    for template_id in outputs.templates():
        templates[template_id] = TemplateState(
            namespace=outputs.namespace_of(template_id) or DEFAULT_NAMESPACE,
            frozen=outputs.is_frozen(template_id),
            resources=[ResourceState(**ref.to_dict()) for ref in outputs.references(template_id)],
            outputs={
                name: OutputState(resource=b.reference.address, attribute=b.attribute)
                for name, b in outputs.bindings(template_id).items()
            },
        )
    return StateSnapshot(
        token_style=outputs.token_format.style,
        nodes=manager.templates(),
        templates=templates,
        edges=[
            EdgeRecord(consumer=e.consumer, producer=e.producer, output=e.output_name, state=e.state, error=e.error)
            for e in manager.edges()
        ],
    )


def restore(state: StateSnapshot, token_format: TokenFormat | None = None) -> DependencyManager:
    """Rebuild a DependencyManager (and its OutputRegistry) from a snapshot."""
    if state.version != STATE_VERSION:
        raise StateFormatError(f"Unsupported state version {state.version} (expected {STATE_VERSION})")
    fmt = token_format or TokenFormat(state.token_style)
    outputs = OutputRegistry(fmt)

    for template_id, tstate in state.templates.items():
        entry = TemplateOutputs(template_id, tstate.namespace, frozen=tstate.frozen)
        for rstate in tstate.resources:
            try:
                ref = ResourceReference.from_dict(rstate.model_dump(), token_format=fmt)
            except (TypeError, ValueError) as exc:
                address = f"{rstate.resource_type}.{rstate.name}"
                raise StateFormatError(f"Bad resource {address} in template {template_id}: {exc}") from exc
            entry.resources[ref.address] = ref
        for name, ostate in tstate.outputs.items():
            ref = entry.resources.get(ostate.resource)
            if ref is None:
                raise StateFormatError(f"Output {template_id}.{name} points at unknown resource {ostate.resource}")
            entry.bindings[name] = OutputBinding(ref, ostate.attribute)
        outputs._restore(entry)

    manager = DependencyManager(outputs)
    for template_id in state.nodes:
        manager.add_template(template_id)
    for record in state.edges:
        manager._restore_edge(
            DependencyEdge(record.consumer, record.producer, record.output, record.state, record.error)
        )
    return manager


def save_state(path: str | Path, manager: DependencyManager, fmt: str | None = None, default_format: str = "yaml") -> Path:
    """Write state as YAML or JSON, picked by fmt, then file suffix, then default_format."""
    p = Path(path)
    state = snapshot(manager)
    if fmt is None:
        fmt = {".yaml": "yaml", ".yml": "yaml", ".json": "json"}.get(p.suffix, default_format)
    p.write_text(state.to_yaml() if fmt == "yaml" else state.to_json())
    logger.info("Saved state for %d template(s) to %s", len(state.templates), p)
    return p


def load_state(path: str | Path, token_format: TokenFormat | None = None) -> DependencyManager:
    p = Path(path)
    try:
        text = p.read_text()
        data = json.loads(text) if p.suffix == ".json" else yaml.safe_load(text)
        state = StateSnapshot.model_validate(data)
    except (OSError, UnicodeDecodeError, yaml.YAMLError, json.JSONDecodeError, ValidationError) as exc:
        raise StateFormatError(f"Cannot read state from {p}: {exc}") from exc
    manager = restore(state, token_format=token_format)
    logger.info("Loaded state for %d template(s) from %s", len(state.templates), p)
    return manager
