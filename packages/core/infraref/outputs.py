"""Per-template output registry.

Each template owns a registry of named outputs, filled in while the template
evaluates and frozen once it finishes. Only frozen registries can satisfy a
dependency; freeze listeners (the DependencyManager) are told about every
freeze so pending edges can settle.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping

from infraref.errors import DuplicateOutputError, TemplateAlreadyFrozen
from infraref.reference import (
    TERRAFORM,
    DeferredToken,
    OutputToken,
    ResourceReference,
    TokenFormat,
    qualified_output,
)

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "default"


@dataclass(frozen=True)
class OutputBinding:
    """An output name bound to one attribute of one resource."""

    reference: ResourceReference
    attribute: str

    @property
    def token(self) -> OutputToken:
        return self.reference.ref(self.attribute)


@dataclass
class TemplateOutputs:
    template_id: str
    namespace: str = DEFAULT_NAMESPACE
    frozen: bool = False
    bindings: dict[str, OutputBinding] = field(default_factory=dict)
    resources: dict[str, ResourceReference] = field(default_factory=dict)


class OutputRegistry:
    """Stores (template_id, output_name) -> OutputBinding for every template in a run."""

    def __init__(self, token_format: TokenFormat = TERRAFORM):
        self.token_format = token_format
        self._lock = threading.RLock()
        self._templates: dict[str, TemplateOutputs] = {}
        self._listeners: list[Callable[[str], None]] = []

    # --- lifecycle ---

    def begin(self, template_id: str, namespace: str = DEFAULT_NAMESPACE) -> None:
        """Open a template for declarations. Idempotent while the template is open."""
        with self._lock:
            entry = self._templates.get(template_id)
            if entry is None:
                self._templates[template_id] = TemplateOutputs(template_id, namespace)
                logger.debug("Opened output registry for template %s (namespace %s)", template_id, namespace)
                return
            if entry.frozen:
                raise TemplateAlreadyFrozen(template_id)

    def freeze(self, template_id: str) -> None:
        """Make a template's outputs read-only and notify listeners. Idempotent."""
        with self._lock:
            entry = self._templates.get(template_id)
            if entry is None:
                entry = self._templates[template_id] = TemplateOutputs(template_id)
            if entry.frozen:
                return
            entry.frozen = True
            listeners = list(self._listeners)
            count = len(entry.bindings)
        logger.info("Froze template %s with %d output(s)", template_id, count)
        # listeners run outside our lock; they take their own
        for listener in listeners:
            listener(template_id)

    def on_freeze(self, listener: Callable[[str], None]) -> None:
        with self._lock:
            self._listeners.append(listener)

    def discard(self, template_id: str) -> None:
        """Forget a template entirely (incremental/watch teardown)."""
        with self._lock:
            self._templates.pop(template_id, None)

    # --- declarations ---

    def declare(
        self,
        template_id: str,
        resource_type: str,
        resource_name: str,
        outputs: Iterable[str],
        attributes: Mapping[str, Any] | None = None,
        token_format: TokenFormat | None = None,
    ) -> ResourceReference:
        """Register a resource's outputs and return its reference.

        Every output is stored under its qualified name ``type.name.attr``.
        Nothing is recorded if the call fails.
        """
        fmt = token_format or self.token_format
        attrs = ["id"] + [str(o) for o in outputs if str(o) != "id"]
        attrs = list(dict.fromkeys(attrs))
        tokens = {attr: OutputToken.build(template_id, resource_type, str(resource_name), attr, fmt) for attr in attrs}
        reference = ResourceReference(
            resource_type=resource_type,
            name=str(resource_name),
            template_id=template_id,
            attributes=attributes or {},
            outputs=tokens,
            token_format=fmt,
        )

        with self._lock:
            entry = self._templates.get(template_id)
            if entry is None:
                entry = self._templates[template_id] = TemplateOutputs(template_id)
            if entry.frozen:
                raise TemplateAlreadyFrozen(template_id)
            if reference.address in entry.resources:
                raise DuplicateOutputError(template_id, reference.address)
            names = {qualified_output(resource_type, reference.name, attr): attr for attr in attrs}
            for name in names:
                if name in entry.bindings:
                    raise DuplicateOutputError(template_id, name)
            entry.resources[reference.address] = reference
            for name, attr in names.items():
                entry.bindings[name] = OutputBinding(reference, attr)

        logger.debug("Declared %s in template %s (%d outputs)", reference.address, template_id, len(attrs))
        return reference

    def export(self, template_id: str, output_name: str, token: DeferredToken) -> OutputBinding:
        """Publish a template-level output name (e.g. ``vpc_id``) for a resource token."""
        if not output_name or not isinstance(output_name, str):
            raise ValueError("output_name must be a non-empty string")
        if not isinstance(token, OutputToken):
            raise ValueError(f"Only resource output tokens can be exported, got {token!r}")
        if token.template_id != template_id:
            raise ValueError(
                f"Cannot export {token.output_name!r} from template {template_id!r}: "
                f"it belongs to template {token.template_id!r}"
            )
        with self._lock:
            entry = self._templates.get(template_id)
            if entry is None:
                raise KeyError(f"Unknown template {template_id!r}")
            if entry.frozen:
                raise TemplateAlreadyFrozen(template_id)
            if output_name in entry.bindings:
                raise DuplicateOutputError(template_id, output_name)
            reference = entry.resources.get(f"{token.resource_type}.{token.resource_name}")
            if reference is None:
                raise KeyError(f"Resource {token.resource_type}.{token.resource_name} is not declared in {template_id!r}")
            binding = OutputBinding(reference, token.attribute)
            entry.bindings[output_name] = binding
        logger.debug("Exported %s.%s -> %s", template_id, output_name, token.output_name)
        return binding

    # --- queries ---

    def lookup(self, template_id: str, output_name: str) -> ResourceReference | None:
        """Reference behind an output, or None for unknown templates/outputs."""
        binding = self.binding(template_id, output_name)
        return binding.reference if binding else None

    def binding(self, template_id: str, output_name: str) -> OutputBinding | None:
        with self._lock:
            entry = self._templates.get(template_id)
            return entry.bindings.get(output_name) if entry else None

    def has_output(self, template_id: str, output_name: str) -> bool:
        return self.binding(template_id, output_name) is not None

    def is_known(self, template_id: str) -> bool:
        with self._lock:
            return template_id in self._templates

    def is_frozen(self, template_id: str) -> bool:
        with self._lock:
            entry = self._templates.get(template_id)
            return bool(entry and entry.frozen)

    def namespace_of(self, template_id: str) -> str | None:
        with self._lock:
            entry = self._templates.get(template_id)
            return entry.namespace if entry else None

    def output_names(self, template_id: str) -> list[str]:
        with self._lock:
            entry = self._templates.get(template_id)
            return list(entry.bindings) if entry else []

    def bindings(self, template_id: str) -> dict[str, OutputBinding]:
        with self._lock:
            entry = self._templates.get(template_id)
            return dict(entry.bindings) if entry else {}

    def references(self, template_id: str) -> list[ResourceReference]:
        with self._lock:
            entry = self._templates.get(template_id)
            return list(entry.resources.values()) if entry else []

    def templates(self) -> list[str]:
        with self._lock:
            return list(self._templates)

    def _restore(self, entry: TemplateOutputs) -> None:
        """Install a fully built entry (used when loading persisted state)."""
        with self._lock:
            self._templates[entry.template_id] = entry
