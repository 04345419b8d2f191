"""Resource providers: one capability object per cloud namespace."""

from __future__ import annotations

from abc import ABC
from typing import TYPE_CHECKING, Any, Mapping

from infraref.errors import UnknownResourceType
from infraref.schema import ResourceSchema, bundled_schemas

if TYPE_CHECKING:
    from infraref.reference import ResourceReference
    from infraref.template import Template


class ResourceProvider(ABC):
    """Capability interface implemented by every provider namespace.

    Subclasses set ``namespace`` and add one constructor method per resource
    type; each constructor delegates to build(). Schemas default to the
    bundled data/schemas/<namespace>.yaml.
    """

    namespace: str

    def schemas(self) -> dict[str, ResourceSchema]:
        return dict(bundled_schemas(self.namespace))

    def resource_types(self) -> list[str]:
        return sorted(self.schemas())

    def schema(self, resource_type: str) -> ResourceSchema:
        schema = self.schemas().get(resource_type)
        if schema is None:
            raise UnknownResourceType(resource_type)
        return schema

    def supports(self, resource_type: str) -> bool:
        return resource_type in self.schemas()

    def build(
        self,
        template: Template,
        resource_type: str,
        name: str,
        attributes: Mapping[str, Any] | None = None,
    ) -> ResourceReference:
        """Validate, declare and emit one resource into ``template``."""
        return template.resource(resource_type, name, attributes, schema=self.schema(resource_type))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(namespace={self.namespace!r})"


class BoundProvider:
    """A provider with its template argument filled in: ``tpl.provider("aws").aws_vpc("main", {...})``."""

    def __init__(self, provider: ResourceProvider, template: Template):
        self._provider = provider
        self._template = template

    def __getattr__(self, name: str):
        if not self._provider.supports(name):
            raise AttributeError(f"{self._provider.namespace!r} provider has no resource {name!r}")
        method = getattr(self._provider, name, None)

        def construct(resource_name: str, attributes: Mapping[str, Any] | None = None) -> ResourceReference:
            if method is not None:
                return method(self._template, resource_name, attributes)
            return self._provider.build(self._template, name, resource_name, attributes)

        return construct


__all__ = ["BoundProvider", "ResourceProvider"]
