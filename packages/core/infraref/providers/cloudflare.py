"""Cloudflare resource constructors."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping

from infraref.providers import ResourceProvider

if TYPE_CHECKING:
    from infraref.reference import ResourceReference
    from infraref.template import Template

Attrs = Mapping[str, Any] | None


class CloudflareProvider(ResourceProvider):
    namespace = "cloudflare"

    def cloudflare_zone(self, template: Template, name: str, attributes: Attrs = None) -> ResourceReference:
        return self.build(template, "cloudflare_zone", name, attributes)

    def cloudflare_record(self, template: Template, name: str, attributes: Attrs = None) -> ResourceReference:
        return self.build(template, "cloudflare_record", name, attributes)

    def cloudflare_worker_script(self, template: Template, name: str, attributes: Attrs = None) -> ResourceReference:
        return self.build(template, "cloudflare_worker_script", name, attributes)
