"""Facts derived from a resource's validated attributes.

Values that are still deferred (tokens or ``${...}`` expressions) are unknown
at evaluation time, so the facts that depend on them come back as ``None``.
"""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Mapping

from infraref.formats import is_interpolation

if TYPE_CHECKING:
    from infraref.reference import ResourceReference

AWS_RESERVED_SUBNET_IPS = 5


def _known(value: Any) -> Any:
    return None if is_interpolation(value) or hasattr(value, "template_id") else value


def _network(cidr: Any) -> ipaddress.IPv4Network | ipaddress.IPv6Network | None:
    cidr = _known(cidr)
    if not isinstance(cidr, str):
        return None
    try:
        return ipaddress.ip_network(cidr, strict=False)
    except ValueError:
        return None


def _flag(attrs: Mapping[str, Any], key: str, default: bool | None = False) -> bool | None:
    value = _known(attrs.get(key, default))
    return value if value is None else bool(value)


@dataclass(frozen=True)
class VpcComputedAttributes:
    cidr_block: str | None
    dns_enabled: bool | None
    is_default_vpc: bool
    supports_ipv6: bool | None
    is_private_cidr: bool | None
    estimated_subnet_capacity: int | None  # /24 subnets that fit in the block

    @classmethod
    def from_attributes(cls, attrs: Mapping[str, Any]) -> VpcComputedAttributes:
        net = _network(attrs.get("cidr_block"))
        support = _flag(attrs, "enable_dns_support", True)
        hostnames = _flag(attrs, "enable_dns_hostnames", True)
        dns = None if support is None or hostnames is None else support and hostnames
        capacity = None
        if net is not None:
            capacity = 2 ** (24 - net.prefixlen) if net.prefixlen <= 24 else 0
        return cls(
            cidr_block=str(net) if net is not None else None,
            dns_enabled=dns,
            is_default_vpc=bool(_flag(attrs, "is_default")),
            supports_ipv6=_flag(attrs, "assign_generated_ipv6_cidr_block"),
            is_private_cidr=net.is_private if net is not None else None,
            estimated_subnet_capacity=capacity,
        )


@dataclass(frozen=True)
class SubnetComputedAttributes:
    is_public: bool | None
    ip_capacity: int | None  # usable addresses after AWS reservations

    @property
    def is_private(self) -> bool | None:
        return None if self.is_public is None else not self.is_public

    @property
    def subnet_type(self) -> str | None:
        if self.is_public is None:
            return None
        return "public" if self.is_public else "private"

    @classmethod
    def from_attributes(cls, attrs: Mapping[str, Any]) -> SubnetComputedAttributes:
        net = _network(attrs.get("cidr_block"))
        capacity = None
        if net is not None:
            capacity = max(net.num_addresses - AWS_RESERVED_SUBNET_IPS, 0)
        return cls(is_public=_flag(attrs, "map_public_ip_on_launch"), ip_capacity=capacity)


@dataclass(frozen=True)
class InstanceComputedAttributes:
    compute_family: str | None
    compute_size: str | None
    will_have_public_ip: bool | None

    @classmethod
    def from_attributes(cls, attrs: Mapping[str, Any]) -> InstanceComputedAttributes:
        instance_type = _known(attrs.get("instance_type"))
        family = size = None
        if isinstance(instance_type, str) and "." in instance_type:
            family, size = instance_type.split(".", 1)
        return cls(
            compute_family=family,
            compute_size=size,
            will_have_public_ip=_flag(attrs, "associate_public_ip_address"),
        )


COMPUTED_ATTRIBUTES = {
    "aws_vpc": VpcComputedAttributes,
    "aws_subnet": SubnetComputedAttributes,
    "aws_instance": InstanceComputedAttributes,
}


def computed_attributes(
    reference: ResourceReference,
) -> VpcComputedAttributes | SubnetComputedAttributes | InstanceComputedAttributes | None:
    """Derived facts for a reference, or None when its type has none."""
    factory = COMPUTED_ATTRIBUTES.get(reference.resource_type)
    if factory is None:
        return None
    return factory.from_attributes(reference.attributes)
