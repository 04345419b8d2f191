"""Error taxonomy for infraref.

Validation errors are local to one resource and recoverable by fixing the
attributes. Everything under DependencyError is structural: the declaration
itself is wrong, so nothing is ever retried.
"""

from __future__ import annotations

from typing import Any, Iterable, Sequence


class InfrarefError(Exception):
    """Base class for every error raised by infraref."""


class ValidationError(InfrarefError):
    """A resource's attributes do not satisfy its schema."""

    def __init__(self, resource_type: str, violations: Sequence[Any]):
        self.resource_type = resource_type
        self.violations = list(violations)
        lines = [f"  {v.field}: {v.message}" for v in self.violations]
        super().__init__(f"Invalid attributes for {resource_type}:\n" + "\n".join(lines))

    @property
    def fields(self) -> set[str]:
        return {v.field for v in self.violations}

    @property
    def messages(self) -> dict[str, list[str]]:
        out: dict[str, list[str]] = {}
        for v in self.violations:
            out.setdefault(v.field, []).append(v.message)
        return out


class UnknownResourceType(InfrarefError):
    def __init__(self, resource_type: str):
        self.resource_type = resource_type
        super().__init__(f"No schema registered for resource type {resource_type!r}")


class RegistrationConflict(InfrarefError):
    """A different provider is already registered under the namespace."""

    def __init__(self, namespace: str, existing: Any, attempted: Any):
        self.namespace = namespace
        self.existing = existing
        self.attempted = attempted
        super().__init__(
            f"Namespace {namespace!r} is already registered to {type(existing).__name__}; "
            f"refusing to replace it with {type(attempted).__name__}"
        )


class ProviderNotFound(InfrarefError):
    def __init__(self, namespace: str):
        self.namespace = namespace
        super().__init__(f"No provider registered for namespace {namespace!r}")


class TemplateAlreadyFrozen(InfrarefError):
    def __init__(self, template_id: str):
        self.template_id = template_id
        super().__init__(f"Template {template_id!r} is frozen; its outputs are read-only")


class DuplicateOutputError(InfrarefError):
    def __init__(self, template_id: str, output_name: str):
        self.template_id = template_id
        self.output_name = output_name
        super().__init__(f"Output {output_name!r} is already declared in template {template_id!r}")


class DependencyError(InfrarefError):
    """Base class for structural errors in the template dependency graph."""


class SelfDependencyError(DependencyError):
    def __init__(self, template_id: str, output_name: str):
        self.template_id = template_id
        self.output_name = output_name
        super().__init__(f"Template {template_id!r} cannot depend on its own output {output_name!r}")


class CyclicDependencyError(DependencyError):
    """Adding an edge would close a cycle. ``path`` starts and ends on the same template."""

    def __init__(self, path: Sequence[str]):
        self.path = list(path)
        super().__init__(f"Cyclic dependency: {format_path(self.path)}")


class UnresolvedOutputError(DependencyError):
    """One or more consumed outputs do not exist in a frozen producer.

    ``missing`` holds ``(consumer, producer, output_name)`` triples.
    """

    def __init__(self, missing: Iterable[tuple[str, str, str]], reason: str = "not declared"):
        self.missing = sorted(set(missing))
        self.reason = reason
        detail = ", ".join(f"{c} -> {p}.{o}" for c, p, o in self.missing)
        super().__init__(f"Unresolved output(s) ({reason}): {detail}")

    @property
    def consumers(self) -> set[str]:
        return {c for c, _, _ in self.missing}

    @property
    def producers(self) -> set[str]:
        return {p for _, p, _ in self.missing}


class InvalidEdgeTransition(DependencyError):
    def __init__(self, edge: Any, target: Any):
        self.edge = edge
        self.target = target
        super().__init__(f"Edge {edge} cannot move from {edge.state.value} to {target.value}")


class StateFormatError(InfrarefError):
    """A persisted state file could not be read back."""


def format_path(path: Sequence[str]) -> str:
    return " → ".join(path)
