"""Resource registry: which provider namespaces are loaded in this process.

Maps a namespace (``aws``, ``cloudflare``, ``hcloud``) to the ResourceProvider
that contributes its constructors. Registration is idempotent so modules can
re-register on repeated loads; a different provider under a taken namespace
is a conflict.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Any

from infraref.errors import ProviderNotFound, RegistrationConflict, UnknownResourceType
from infraref.providers import ResourceProvider
from infraref.schema import ResourceSchema

logger = logging.getLogger(__name__)


def _normalize_namespace(namespace: Any) -> str:
    if isinstance(namespace, Enum):
        namespace = namespace.value
    text = str(namespace).strip().lstrip(":").lower()
    if not text:
        raise ValueError("namespace must be non-empty")
    return text


class ResourceRegistry:
    """Catalog of provider namespaces. Mutations are serialized by a lock."""

    def __init__(self):
        self._lock = threading.RLock()
        self._providers: dict[str, ResourceProvider] = {}

    def register(self, namespace: Any, provider: ResourceProvider) -> ResourceProvider:
        """Register ``provider`` under ``namespace``.

        Re-registering the same provider (same instance or same class) is a
        no-op and returns the provider already in place.
        """
        if not isinstance(provider, ResourceProvider):
            raise TypeError(f"Expected a ResourceProvider, got {type(provider).__name__}")
        ns = _normalize_namespace(namespace)
        with self._lock:
            existing = self._providers.get(ns)
            if existing is not None:
                if existing is provider or type(existing) is type(provider):
                    return existing
                raise RegistrationConflict(ns, existing, provider)
            self._providers[ns] = provider
        logger.debug("Registered provider %s under namespace %s", type(provider).__name__, ns)
        return provider

    def unregister(self, namespace: Any) -> None:
        with self._lock:
            self._providers.pop(_normalize_namespace(namespace), None)

    def lookup(self, namespace: Any) -> ResourceProvider | None:
        """Return the provider for a namespace, or None if not registered."""
        with self._lock:
            return self._providers.get(_normalize_namespace(namespace))

    def require(self, namespace: Any) -> ResourceProvider:
        provider = self.lookup(namespace)
        if provider is None:
            raise ProviderNotFound(_normalize_namespace(namespace))
        return provider

    def namespaces(self) -> list[str]:
        """Sorted list of registered namespaces."""
        with self._lock:
            return sorted(self._providers)

    def resource_types(self, namespace: Any | None = None) -> list[str]:
        with self._lock:
            providers = (
                [self.require(namespace)] if namespace is not None else list(self._providers.values())
            )
        return sorted(t for p in providers for t in p.resource_types())

    def provider_for(self, resource_type: str) -> ResourceProvider:
        """Provider that owns a resource type, matched on the type's namespace prefix."""
        with self._lock:
            candidates = sorted(self._providers.items(), key=lambda kv: len(kv[0]), reverse=True)
        for ns, provider in candidates:
            if resource_type.startswith(f"{ns}_") and provider.supports(resource_type):
                return provider
        for _, provider in candidates:
            if provider.supports(resource_type):
                return provider
        raise UnknownResourceType(resource_type)

    def schema_for(self, resource_type: str) -> ResourceSchema:
        return self.provider_for(resource_type).schema(resource_type)

    def reset(self) -> None:
        """Forget every registration (test harnesses)."""
        with self._lock:
            self._providers.clear()

    def __contains__(self, namespace: Any) -> bool:
        return self.lookup(namespace) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._providers)


def load_builtin_providers(registry: ResourceRegistry) -> ResourceRegistry:
    """Register the bundled aws, cloudflare and hcloud providers."""
    from infraref.providers.aws import AWSProvider
    from infraref.providers.cloudflare import CloudflareProvider
    from infraref.providers.hcloud import HetznerProvider

    for provider in (AWSProvider(), CloudflareProvider(), HetznerProvider()):
        registry.register(provider.namespace, provider)
    return registry


def load_plugin_providers(registry: ResourceRegistry) -> list[str]:
    """Register providers published under the ``infraref.providers`` entry point group.

    Broken plugins are logged and skipped. Returns the namespaces registered.
    """
    from infraref.plugins import discover_providers

    loaded = []
    for name, obj in discover_providers().items():
        provider = obj() if isinstance(obj, type) else obj
        try:
            registry.register(getattr(provider, "namespace", name), provider)
        except (TypeError, RegistrationConflict) as exc:
            logger.warning("Skipping provider plugin %s: %s", name, exc)
            continue
        loaded.append(name)
    return loaded


# Module-level default, populated lazily on first access
_registry: ResourceRegistry | None = None


def get_registry() -> ResourceRegistry:
    """Return the shared registry, loading the built-in providers if needed."""
    global _registry
    if _registry is None:
        _registry = load_builtin_providers(ResourceRegistry())
    return _registry


def reset_registry() -> None:
    """Drop the shared registry (useful in tests)."""
    global _registry
    _registry = None
