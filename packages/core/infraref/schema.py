"""Static resource schema descriptors.

A ResourceSchema is plain data: field specs, exposed outputs, and the names of
cross-field checks. Schemas live in data/schemas/<namespace>.yaml, one file
per provider namespace, and are consumed by the generic AttributeValidator.
"""

from __future__ import annotations

import re
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from infraref.formats import FORMATS

_SCHEMA_DIR = Path(__file__).parent / "data" / "schemas"

FieldType = Literal["string", "integer", "number", "boolean", "list", "map", "object", "any"]


class FieldSpec(BaseModel):
    type: FieldType = "string"
    required: bool = False
    default: Any = None
    description: str = ""
    enum: list[Any] | None = None
    pattern: str | None = None
    format: str | None = None
    min: float | None = None
    max: float | None = None
    min_length: int | None = None
    max_length: int | None = None
    min_items: int | None = None
    max_items: int | None = None
    # element spec for lists, value spec for maps
    items: FieldSpec | None = None
    # nested shape for objects
    fields: dict[str, FieldSpec] = Field(default_factory=dict)
    allow_unknown: bool = False

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str | None) -> str | None:
        if v is not None and v not in FORMATS:
            raise ValueError(f"Unknown format {v!r}")
        return v

    @field_validator("pattern")
    @classmethod
    def validate_pattern(cls, v: str | None) -> str | None:
        if v is not None:
            try:
                re.compile(v)
            except re.error as exc:
                raise ValueError(f"Invalid pattern {v!r}: {exc}") from None
        return v

    @model_validator(mode="after")
    def check_shape(self) -> FieldSpec:
        if self.fields and self.type != "object":
            raise ValueError(f"'fields' only applies to object fields, not {self.type}")
        if self.required and self.default is not None:
            raise ValueError("A required field cannot declare a default")
        return self


class ResourceSchema(BaseModel):
    resource_type: str
    namespace: str
    description: str = ""
    fields: dict[str, FieldSpec] = Field(default_factory=dict)
    outputs: list[str] = Field(default_factory=lambda: ["id"])
    checks: list[str] = Field(default_factory=list)
    allow_unknown: bool = False

    @model_validator(mode="after")
    def ensure_id_output(self) -> ResourceSchema:
        if "id" not in self.outputs:
            self.outputs.insert(0, "id")
        return self

    def required_fields(self) -> list[str]:
        return [name for name, spec in self.fields.items() if spec.required]


FieldSpec.model_rebuild()


def parse_schemas(data: dict[str, Any]) -> dict[str, ResourceSchema]:
    """Build ResourceSchema objects from a parsed schema document."""
    namespace = data["namespace"]
    schemas: dict[str, ResourceSchema] = {}
    for resource_type, body in (data.get("resources") or {}).items():
        schemas[resource_type] = ResourceSchema.model_validate(
            {"resource_type": resource_type, "namespace": namespace, **(body or {})}
        )
    return schemas


def load_schema_file(path: str | Path) -> dict[str, ResourceSchema]:
    return parse_schemas(yaml.safe_load(Path(path).read_text()))


@lru_cache(maxsize=None)
def bundled_schemas(namespace: str) -> dict[str, ResourceSchema]:
    """Schemas shipped with the package for one namespace (empty if none)."""
    path = _SCHEMA_DIR / f"{namespace}.yaml"
    if not path.exists():
        return {}
    return load_schema_file(path)
