"""Resource references and deferred output tokens.

A ResourceReference is what a resource constructor hands back: the resource's
identity, a read-only snapshot of its validated attributes, and one deferred
token per output. Tokens are str subclasses so they can be embedded anywhere a
string is expected; their typed fields (template, resource, attribute) are
what the dependency core reads. The text itself is left to a TokenFormat.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Mapping

from infraref.frozen import FrozenMap

_NAME_PATTERN = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_-]*$")


def check_resource_name(name: str) -> str:
    name = str(name)
    if not _NAME_PATTERN.match(name):
        raise ValueError(f"Resource name {name!r} is not IaC-safe (must match [a-zA-Z_][a-zA-Z0-9_-]*)")
    return name


def qualified_output(resource_type: str, resource_name: str, attribute: str) -> str:
    """Template-unique output name for one attribute of one resource."""
    return f"{resource_type}.{resource_name}.{attribute}"


def remote_output_key(output_name: str) -> str:
    """Output names as they appear in a remote-state block (no dots)."""
    return output_name.replace(".", "__")


class TokenFormat:
    """Renders the textual form of deferred tokens."""

    def __init__(self, style: str = "terraform"):
        if style not in ("terraform", "plain"):
            raise ValueError(f"Unknown token style {style!r}. Supported: terraform, plain")
        self.style = style

    def resource(self, resource_type: str, resource_name: str, attribute: str) -> str:
        body = f"{resource_type}.{resource_name}.{attribute}"
        return f"${{{body}}}" if self.style == "terraform" else body

    def remote(self, template_id: str, output_name: str) -> str:
        body = f"data.terraform_remote_state.{template_id}.outputs.{remote_output_key(output_name)}"
        return f"${{{body}}}" if self.style == "terraform" else body

    def __eq__(self, other: object) -> bool:
        return isinstance(other, TokenFormat) and other.style == self.style

    def __hash__(self) -> int:
        return hash(self.style)

    def __repr__(self) -> str:
        return f"TokenFormat({self.style!r})"


TERRAFORM = TokenFormat("terraform")
PLAIN = TokenFormat("plain")


class DeferredToken(str):
    """A not-yet-evaluated output of some template, usable as a plain string."""

    template_id: str
    output_name: str

    def __new__(cls, text: str, template_id: str, output_name: str):
        obj = super().__new__(cls, text)
        obj.template_id = template_id
        obj.output_name = output_name
        return obj

    def remote(self, token_format: TokenFormat = TERRAFORM) -> str:
        """The text a consumer in another template embeds for this value."""
        return token_format.remote(self.template_id, self.output_name)

    def __reduce__(self):
        return (type(self), (str(self), self.template_id, self.output_name))

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str(self)!r}, template={self.template_id!r})"


class OutputToken(DeferredToken):
    """Token for one attribute of a declared resource."""

    resource_type: str
    resource_name: str
    attribute: str

    def __new__(
        cls,
        text: str,
        template_id: str,
        resource_type: str,
        resource_name: str,
        attribute: str,
    ):
        obj = super().__new__(cls, text, template_id, qualified_output(resource_type, resource_name, attribute))
        obj.resource_type = resource_type
        obj.resource_name = resource_name
        obj.attribute = attribute
        return obj

    @classmethod
    def build(
        cls,
        template_id: str,
        resource_type: str,
        resource_name: str,
        attribute: str,
        token_format: TokenFormat = TERRAFORM,
    ) -> OutputToken:
        text = token_format.resource(resource_type, resource_name, attribute)
        return cls(text, template_id, resource_type, resource_name, attribute)

    def __reduce__(self):
        return (
            type(self),
            (str(self), self.template_id, self.resource_type, self.resource_name, self.attribute),
        )


class RemoteOutputToken(DeferredToken):
    """Token for a template-level output that may not be declared yet."""

    @classmethod
    def build(cls, template_id: str, output_name: str, token_format: TokenFormat = TERRAFORM) -> RemoteOutputToken:
        return cls(token_format.remote(template_id, output_name), template_id, output_name)


@dataclass(frozen=True)
class ResourceReference:
    """Immutable handle for one declared resource."""

    resource_type: str
    name: str
    template_id: str
    attributes: Mapping[str, Any] = field(default_factory=FrozenMap)
    outputs: Mapping[str, OutputToken] = field(default_factory=FrozenMap)
    token_format: TokenFormat = field(default=TERRAFORM, compare=False, repr=False)

    def __post_init__(self):
        if not isinstance(self.resource_type, str) or not self.resource_type:
            raise TypeError("resource_type must be a non-empty string")
        object.__setattr__(self, "name", check_resource_name(self.name))
        if not isinstance(self.attributes, FrozenMap):
            object.__setattr__(self, "attributes", FrozenMap(self.attributes))
        if not isinstance(self.outputs, FrozenMap):
            object.__setattr__(self, "outputs", FrozenMap(self.outputs))

    @property
    def address(self) -> str:
        return f"{self.resource_type}.{self.name}"

    def ref(self, attribute: str) -> OutputToken:
        """Token for any attribute, declared as an output or not."""
        attribute = str(attribute)
        token = self.outputs.get(attribute)
        if token is not None:
            return token
        return OutputToken.build(self.template_id, self.resource_type, self.name, attribute, self.token_format)

    @property
    def id(self) -> OutputToken:
        return self.ref("id")

    @property
    def arn(self) -> OutputToken:
        return self.ref("arn")

    @property
    def computed_attributes(self) -> Any:
        """Derived facts (subnet type, CIDR capacity, ...) or None for types without any."""
        from infraref.computed import computed_attributes

        return computed_attributes(self)

    def output_names(self) -> list[str]:
        return [qualified_output(self.resource_type, self.name, attr) for attr in self.outputs]

    def to_dict(self) -> dict[str, Any]:
        return {
            "resource_type": self.resource_type,
            "name": self.name,
            "template_id": self.template_id,
            "attributes": _plain(self.attributes),
            "outputs": {attr: str(token) for attr, token in self.outputs.items()},
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], token_format: TokenFormat = TERRAFORM) -> ResourceReference:
        template_id = data["template_id"]
        resource_type = data["resource_type"]
        name = data["name"]
        outputs = {
            attr: OutputToken(text, template_id, resource_type, name, attr)
            for attr, text in (data.get("outputs") or {}).items()
        }
        return cls(
            resource_type=resource_type,
            name=name,
            template_id=template_id,
            attributes=data.get("attributes") or {},
            outputs=outputs,
            token_format=token_format,
        )


def _plain(value: Any) -> Any:
    """Thaw a frozen value and strip token subclasses down to str."""
    if isinstance(value, Mapping):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if isinstance(value, DeferredToken):
        return str(value)
    return value
