"""Hetzner Cloud resource constructors."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping

from infraref.providers import ResourceProvider

if TYPE_CHECKING:
    from infraref.reference import ResourceReference
    from infraref.template import Template

Attrs = Mapping[str, Any] | None


class HetznerProvider(ResourceProvider):
    namespace = "hcloud"

    def hcloud_network(self, template: Template, name: str, attributes: Attrs = None) -> ResourceReference:
        return self.build(template, "hcloud_network", name, attributes)

    def hcloud_server(self, template: Template, name: str, attributes: Attrs = None) -> ResourceReference:
        return self.build(template, "hcloud_server", name, attributes)

    def hcloud_firewall(self, template: Template, name: str, attributes: Attrs = None) -> ResourceReference:
        return self.build(template, "hcloud_firewall", name, attributes)
