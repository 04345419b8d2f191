"""Templates and workspaces: where resource construction meets the dependency core.

A Workspace is one run: it owns the validator, the output registry and the
dependency manager, and hands out Template contexts. Template.resource() is
the seam every provider constructor goes through:

    validate -> depend_on (foreign tokens) -> declare -> emit block

Checks that can fail run before anything is recorded.
"""

from __future__ import annotations

import copy
import logging
import re
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping

from infraref.config import Settings, get_settings
from infraref.dependencies import DependencyEdge, DependencyManager
from infraref.errors import DuplicateOutputError, TemplateAlreadyFrozen
from infraref.outputs import DEFAULT_NAMESPACE, OutputBinding, OutputRegistry
from infraref.providers import BoundProvider
from infraref.reference import (
    DeferredToken,
    RemoteOutputToken,
    ResourceReference,
    TokenFormat,
    check_resource_name,
    remote_output_key,
)
from infraref.registry import ResourceRegistry, get_registry
from infraref.schema import ResourceSchema
from infraref.validator import AttributeValidator

logger = logging.getLogger(__name__)

_ID_PATTERN = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_-]*$")

RemoteStateConfig = Callable[[str, str], dict[str, Any]]


def local_remote_state(template_id: str, namespace: str) -> dict[str, Any]:
    """Default remote-state data block: a local state file per template."""
    return {"backend": "local", "config": {"path": f"{namespace}/{template_id}.tfstate"}}


def _foreign_tokens(value: Any, template_id: str) -> list[DeferredToken]:
    found: list[DeferredToken] = []
    if isinstance(value, DeferredToken):
        if value.template_id != template_id:
            found.append(value)
    elif isinstance(value, Mapping):
        for v in value.values():
            found.extend(_foreign_tokens(v, template_id))
    elif isinstance(value, (list, tuple)):
        for v in value:
            found.extend(_foreign_tokens(v, template_id))
    return found


def _render(value: Any, template_id: str, token_format: TokenFormat) -> Any:
    """Plain document value: foreign tokens become remote-state lookups, None is dropped."""
    if isinstance(value, DeferredToken):
        return str(value) if value.template_id == template_id else value.remote(token_format)
    if isinstance(value, Mapping):
        return {k: _render(v, template_id, token_format) for k, v in value.items() if v is not None}
    if isinstance(value, (list, tuple)):
        return [_render(v, template_id, token_format) for v in value]
    return value


class Template:
    """Evaluation context for one independently deployable unit."""

    def __init__(self, workspace: Workspace, template_id: str, namespace: str = DEFAULT_NAMESPACE):
        if not _ID_PATTERN.match(template_id):
            raise ValueError(f"Template id {template_id!r} must match [a-zA-Z_][a-zA-Z0-9_-]*")
        self.workspace = workspace
        self.id = template_id
        self.namespace = namespace
        self._document: dict[str, Any] = {}
        # restored templates may already be frozen
        if not workspace.outputs.is_frozen(template_id):
            workspace.outputs.begin(template_id, namespace)
        workspace.dependencies.add_template(template_id)

    def __repr__(self) -> str:
        return f"Template({self.id!r}, namespace={self.namespace!r}, frozen={self.frozen})"

    @property
    def frozen(self) -> bool:
        return self.workspace.outputs.is_frozen(self.id)

    # --- construction ---

    def provider(self, namespace: str) -> BoundProvider:
        return BoundProvider(self.workspace.registry.require(namespace), self)

    def resource(
        self,
        resource_type: str,
        name: str,
        attributes: Mapping[Any, Any] | None = None,
        schema: ResourceSchema | None = None,
    ) -> ResourceReference:
        """Validate, register and emit one resource; return its reference."""
        ws = self.workspace
        schema = schema or ws.registry.schema_for(resource_type)
        attrs = ws.validator.validate(resource_type, attributes, schema=schema)

        name = check_resource_name(name)
        if self.frozen:
            raise TemplateAlreadyFrozen(self.id)
        if f"{resource_type}.{name}" in {r.address for r in ws.outputs.references(self.id)}:
            raise DuplicateOutputError(self.id, f"{resource_type}.{name}")

        foreign = _foreign_tokens(attrs, self.id)
        edges = ws.dependencies.depend_on_many(self.id, [(t.template_id, t.output_name) for t in foreign])

        reference = ws.outputs.declare(
            self.id, resource_type, name, schema.outputs, attributes=attrs, token_format=ws.token_format
        )

        block = _render(attrs, self.id, ws.token_format)
        self._document.setdefault("resource", {}).setdefault(resource_type, {})[name] = block
        for edge in edges:
            self._add_remote_state(edge)
        return reference

    def _add_remote_state(self, edge: DependencyEdge) -> None:
        data = self._document.setdefault("data", {}).setdefault("terraform_remote_state", {})
        if edge.producer not in data:
            namespace = self.workspace.outputs.namespace_of(edge.producer) or self.namespace
            data[edge.producer] = self.workspace.remote_state_config(edge.producer, namespace)

    def remote_output(self, producer: str, output_name: str) -> RemoteOutputToken:
        """Token for another template's output; usable before that template is evaluated."""
        return RemoteOutputToken.build(producer, output_name, self.workspace.token_format)

    def depends_on(self, producer: str, output_name: str) -> DependencyEdge:
        """Declare a dependency explicitly, without passing a token through attributes."""
        edge = self.workspace.dependencies.depend_on(self.id, producer, output_name)
        self._add_remote_state(edge)
        return edge

    def export(self, output_name: str, token: DeferredToken) -> OutputBinding:
        return self.workspace.outputs.export(self.id, output_name, token)

    def freeze(self) -> None:
        """Finish evaluation: refuse if a dependency failed, then publish outputs read-only."""
        if self.frozen:
            return
        self.workspace.dependencies.check_consumer(self.id)
        outputs = self._document.setdefault("output", {})
        for output_name, binding in self.workspace.outputs.bindings(self.id).items():
            outputs[remote_output_key(output_name)] = {"value": str(binding.token)}
        self.workspace.outputs.freeze(self.id)

    # --- inspection ---

    def document(self) -> dict[str, Any]:
        """Copy of the generated infrastructure document."""
        return copy.deepcopy(self._document)

    def references(self) -> list[ResourceReference]:
        return self.workspace.outputs.references(self.id)

    def dependencies(self) -> list[DependencyEdge]:
        return self.workspace.dependencies.edges(consumer=self.id)


class Workspace:
    """One evaluation run across any number of templates."""

    def __init__(
        self,
        registry: ResourceRegistry | None = None,
        settings: Settings | None = None,
        validator: AttributeValidator | None = None,
        remote_state_config: RemoteStateConfig = local_remote_state,
        outputs: OutputRegistry | None = None,
        dependencies: DependencyManager | None = None,
    ):
        self.settings = settings or get_settings()
        self.registry = registry if registry is not None else get_registry()
        self.token_format = TokenFormat(self.settings.token_style)
        self.validator = validator or AttributeValidator(strict=self.settings.strict_unknown_fields)
        self.remote_state_config = remote_state_config
        if dependencies is not None:
            self.outputs = dependencies.outputs
            self.dependencies = dependencies
        else:
            self.outputs = outputs if outputs is not None else OutputRegistry(self.token_format)
            self.dependencies = DependencyManager(self.outputs)
        self._templates: dict[str, Template] = {}

    def template(self, template_id: str, namespace: str | None = None) -> Template:
        """Return the template context for ``template_id``, creating it on first use."""
        tpl = self._templates.get(template_id)
        if tpl is None:
            ns = namespace or self.outputs.namespace_of(template_id) or DEFAULT_NAMESPACE
            tpl = self._templates[template_id] = Template(self, template_id, ns)
        return tpl

    def get(self, template_id: str) -> Template | None:
        return self._templates.get(template_id)

    def templates(self) -> list[Template]:
        return list(self._templates.values())

    def evaluate(
        self,
        builders: Mapping[str, Callable[[Template], Any]] | Iterable[tuple[str, Callable[[Template], Any]]],
        freeze: bool = True,
    ) -> list[str]:
        """Run template builders one after another, in the order given."""
        items = builders.items() if isinstance(builders, Mapping) else builders
        done = []
        for template_id, build in items:
            tpl = self.template(template_id)
            logger.debug("Evaluating template %s", template_id)
            build(tpl)
            if freeze:
                tpl.freeze()
            done.append(template_id)
        return done

    def order(self, template_ids: Iterable[str] | None = None) -> list[str]:
        ids = list(template_ids) if template_ids is not None else self.dependencies.templates()
        return self.dependencies.topological_order(ids)

    def blast_radius(self, template_id: str) -> set[str]:
        return self.dependencies.blast_radius(template_id)

    def finish(self) -> None:
        """End of run: every dependency must have resolved."""
        self.dependencies.assert_complete()
        logger.info("Run complete: %d template(s), %d edge(s)", len(self.dependencies.templates()), len(self.dependencies.edges()))

    # --- persistence ---

    def save_state(self, path: str | Path, fmt: str | None = None) -> Path:
        from infraref.state import save_state

        return save_state(path, self.dependencies, fmt=fmt, default_format=self.settings.state_format)

    @classmethod
    def load_state(
        cls,
        path: str | Path,
        registry: ResourceRegistry | None = None,
        settings: Settings | None = None,
    ) -> Workspace:
        from infraref.state import load_state

        settings = settings or get_settings()
        manager = load_state(path, token_format=TokenFormat(settings.token_style))
        return cls(registry=registry, settings=settings, dependencies=manager)
