"""infraref: declarative infrastructure resources with cross-template remote-state references."""

from infraref.dependencies import DependencyEdge, DependencyManager, EdgeState
from infraref.errors import (
    CyclicDependencyError,
    DependencyError,
    DuplicateOutputError,
    InfrarefError,
    ProviderNotFound,
    RegistrationConflict,
    SelfDependencyError,
    TemplateAlreadyFrozen,
    UnknownResourceType,
    UnresolvedOutputError,
    ValidationError,
)
from infraref.outputs import OutputRegistry
from infraref.reference import DeferredToken, OutputToken, RemoteOutputToken, ResourceReference
from infraref.validator import AttributeValidator, ValidationReport

__version__ = "0.1.0"

__all__ = [
    "Analyzer",
    "AttributeValidator",
    "CyclicDependencyError",
    "DeferredToken",
    "DependencyEdge",
    "DependencyError",
    "DependencyManager",
    "DuplicateOutputError",
    "EdgeState",
    "get_registry",
    "InfrarefError",
    "load_state",
    "OutputRegistry",
    "OutputToken",
    "ProviderNotFound",
    "RegistrationConflict",
    "RemoteOutputToken",
    "ResourceReference",
    "ResourceRegistry",
    "save_state",
    "SelfDependencyError",
    "Template",
    "TemplateAlreadyFrozen",
    "UnknownResourceType",
    "UnresolvedOutputError",
    "ValidationError",
    "ValidationReport",
    "Workspace",
]


def __getattr__(name: str):
    # Lazy imports: providers load bundled schema files on first use
    if name == "ResourceRegistry":
        from infraref.registry import ResourceRegistry

        return ResourceRegistry
    if name == "get_registry":
        from infraref.registry import get_registry

        return get_registry
    if name == "Template":
        from infraref.template import Template

        return Template
    if name == "Workspace":
        from infraref.template import Workspace

        return Workspace
    if name == "Analyzer":
        from infraref.analyzer import Analyzer

        return Analyzer
    if name == "save_state":
        from infraref.state import save_state

        return save_state
    if name == "load_state":
        from infraref.state import load_state

        return load_state
    raise AttributeError(f"module 'infraref' has no attribute {name!r}")
