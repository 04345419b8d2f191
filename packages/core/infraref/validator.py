"""Schema-driven attribute validation.

One generic validator walks a ResourceSchema and the caller's raw attributes,
collecting every violation instead of stopping at the first. On success it
returns NormalizedAttributes: canonical keys, defaults applied, values frozen.
"""

from __future__ import annotations

import copy
import logging
import re
from collections.abc import Mapping
from enum import Enum
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field

from infraref.errors import UnknownResourceType, ValidationError
from infraref.formats import get_format, is_interpolation
from infraref.frozen import FrozenMap, thaw
from infraref.reference import DeferredToken
from infraref.schema import FieldSpec, ResourceSchema

logger = logging.getLogger(__name__)

REQUIRED_MISSING = "required-missing"
TYPE_MISMATCH = "type-mismatch"
ENUM_VIOLATION = "enum-violation"
CONSTRAINT_VIOLATION = "constraint-violation"
FORMAT_VIOLATION = "format-violation"
UNKNOWN_FIELD = "unknown-field"

_CAMEL = re.compile(r"(?<=[a-z0-9])([A-Z])")
_INVALID = object()


class NormalizedAttributes(FrozenMap):
    """Validated, read-only attribute set for one resource."""

    __slots__ = ()


class Violation(BaseModel):
    model_config = ConfigDict(frozen=True)

    field: str
    code: str
    message: str


class ValidationReport(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    resource_type: str
    valid: bool
    attributes: NormalizedAttributes | None = None
    violations: list[Violation] = Field(default_factory=list)


def normalize_key(key: Any) -> str:
    """Canonical attribute key: snake_case, no dashes, no surrounding whitespace."""
    if isinstance(key, Enum):
        key = key.value
    text = str(key).strip()
    text = text.replace("-", "_").replace(" ", "_")
    return _CAMEL.sub(r"_\1", text).lower()


# --- Cross-field checks ---
# Each receives the plain normalized attributes and returns (field, message) pairs.

CrossCheck = Callable[[dict[str, Any]], list[tuple[str, str]]]
CHECKS: dict[str, CrossCheck] = {}


def cross_check(name: str) -> Callable[[CrossCheck], CrossCheck]:
    def decorator(fn: CrossCheck) -> CrossCheck:
        CHECKS[name] = fn
        return fn

    return decorator


def _concrete(value: Any) -> bool:
    return value is not None and not isinstance(value, DeferredToken) and not is_interpolation(value)


@cross_check("port_ranges")
def _check_port_ranges(attrs: dict[str, Any]) -> list[tuple[str, str]]:
    problems = []
    for list_field in ("ingress", "egress", "rule"):
        for i, rule in enumerate(attrs.get(list_field) or []):
            lo, hi = rule.get("from_port"), rule.get("to_port")
            if _concrete(lo) and _concrete(hi) and lo > hi:
                problems.append((f"{list_field}[{i}].from_port", f"from_port ({lo}) cannot exceed to_port ({hi})"))
            port = rule.get("port")
            if _concrete(port) and "-" in str(port):
                start, end = (int(p) for p in str(port).split("-", 1))
                if start > end or end > 65535:
                    problems.append((f"{list_field}[{i}].port", f"Invalid port range {port}"))
    return problems


@cross_check("lambda_package")
def _check_lambda_package(attrs: dict[str, Any]) -> list[tuple[str, str]]:
    problems = []
    if attrs.get("package_type") == "Image":
        if not attrs.get("image_uri"):
            problems.append(("image_uri", "image_uri is required when package_type is 'Image'"))
        if attrs.get("handler") or attrs.get("runtime"):
            problems.append(("handler", "handler and runtime should not be specified for container images"))
        return problems
    if attrs.get("image_uri"):
        problems.append(("image_uri", "image_uri can only be used when package_type is 'Image'"))
    if not attrs.get("filename") and not attrs.get("s3_bucket"):
        problems.append(("filename", "Either filename or s3_bucket/s3_key must be specified for Zip package type"))
    if attrs.get("s3_bucket") and not attrs.get("s3_key"):
        problems.append(("s3_key", "s3_key is required when s3_bucket is specified"))
    for required in ("handler", "runtime"):
        if not attrs.get(required):
            problems.append((required, f"{required} is required for Zip package type"))
    return problems


@cross_check("storage_autoscaling")
def _check_storage_autoscaling(attrs: dict[str, Any]) -> list[tuple[str, str]]:
    allocated, ceiling = attrs.get("allocated_storage"), attrs.get("max_allocated_storage")
    if _concrete(allocated) and _concrete(ceiling) and ceiling < allocated:
        return [("max_allocated_storage", f"max_allocated_storage ({ceiling}) must be >= allocated_storage ({allocated})")]
    return []


@cross_check("record_content")
def _check_record_content(attrs: dict[str, Any]) -> list[tuple[str, str]]:
    has_content, has_data = attrs.get("content") is not None, bool(attrs.get("data"))
    if has_content == has_data:
        return [("content", "Exactly one of content or data must be set")]
    if attrs.get("type") in ("MX", "SRV") and attrs.get("priority") is None:
        return [("priority", f"priority is required for {attrs['type']} records")]
    return []


@cross_check("server_placement")
def _check_server_placement(attrs: dict[str, Any]) -> list[tuple[str, str]]:
    if attrs.get("location") and attrs.get("datacenter"):
        return [("datacenter", "location and datacenter are mutually exclusive")]
    return []


class AttributeValidator:
    """Validates raw attributes against declared ResourceSchemas.

    Holds schemas by resource type; never reaches out to a registry. Callers
    that already hold the schema can pass it to validate() directly.
    """

    def __init__(self, schemas: Mapping[str, ResourceSchema] | None = None, strict: bool = True):
        self._schemas: dict[str, ResourceSchema] = dict(schemas or {})
        self.strict = strict

    def add_schema(self, schema: ResourceSchema) -> None:
        self._schemas[schema.resource_type] = schema

    def schema(self, resource_type: str) -> ResourceSchema:
        try:
            return self._schemas[resource_type]
        except KeyError:
            raise UnknownResourceType(resource_type) from None

    def validate(
        self,
        resource_type: str,
        raw_attributes: Mapping[Any, Any] | None,
        schema: ResourceSchema | None = None,
    ) -> NormalizedAttributes:
        """Return normalized attributes or raise ValidationError with every violation."""
        report = self.check(resource_type, raw_attributes, schema=schema)
        if not report.valid:
            raise ValidationError(resource_type, report.violations)
        return report.attributes

    def check(
        self,
        resource_type: str,
        raw_attributes: Mapping[Any, Any] | None,
        schema: ResourceSchema | None = None,
    ) -> ValidationReport:
        """Like validate(), but returns the outcome as a value."""
        schema = schema or self.schema(resource_type)
        violations: list[Violation] = []

        if raw_attributes is None:
            raw_attributes = {}
        if not isinstance(raw_attributes, Mapping):
            violations.append(Violation(field="<root>", code=TYPE_MISMATCH, message="attributes must be a mapping"))
            return ValidationReport(resource_type=resource_type, valid=False, violations=violations)

        allow_unknown = schema.allow_unknown or not self.strict
        values = self._check_fields(schema.fields, raw_attributes, "", allow_unknown, violations)

        if not violations:
            plain = thaw(values)
            for check_name in schema.checks:
                check_fn = CHECKS.get(check_name)
                if check_fn is None:
                    raise KeyError(f"Schema {resource_type} names unknown check {check_name!r}")
                for field_path, message in check_fn(plain):
                    violations.append(Violation(field=field_path, code=CONSTRAINT_VIOLATION, message=message))

        if violations:
            logger.debug("Validation failed for %s: %d violation(s)", resource_type, len(violations))
            return ValidationReport(resource_type=resource_type, valid=False, violations=violations)

        return ValidationReport(resource_type=resource_type, valid=True, attributes=NormalizedAttributes(values))

    # --- internals ---

    def _check_fields(
        self,
        fields: Mapping[str, FieldSpec],
        raw: Mapping[Any, Any],
        prefix: str,
        allow_unknown: bool,
        violations: list[Violation],
    ) -> dict[str, Any]:
        normalized: dict[str, Any] = {}
        for key, value in raw.items():
            canon = normalize_key(key)
            if canon in normalized:
                violations.append(
                    Violation(
                        field=prefix + canon,
                        code=CONSTRAINT_VIOLATION,
                        message=f"{key!r} duplicates another key after normalization",
                    )
                )
                continue
            normalized[canon] = value

        out: dict[str, Any] = {}
        for name, spec in fields.items():
            path = prefix + name
            value = normalized.pop(name, None)
            if value is None:
                if spec.required:
                    violations.append(Violation(field=path, code=REQUIRED_MISSING, message="is required"))
                    continue
                if spec.default is None:
                    out[name] = None
                    continue
                value = copy.deepcopy(spec.default)
            checked = self._check_value(spec, value, path, violations)
            if checked is not _INVALID:
                out[name] = checked

        for name, value in normalized.items():
            if allow_unknown:
                out[name] = value
            else:
                violations.append(Violation(field=prefix + name, code=UNKNOWN_FIELD, message="is not a known attribute"))
        return out

    def _check_value(self, spec: FieldSpec, value: Any, path: str, violations: list[Violation]) -> Any:
        if isinstance(value, DeferredToken) or is_interpolation(value):
            return value

        before = len(violations)

        def fail(code: str, message: str) -> Any:
            violations.append(Violation(field=path, code=code, message=message))
            return _INVALID

        kind = spec.type
        if kind == "string" and not isinstance(value, str):
            return fail(TYPE_MISMATCH, f"expected string, got {type(value).__name__}")
        if kind == "integer" and (isinstance(value, bool) or not isinstance(value, int)):
            return fail(TYPE_MISMATCH, f"expected integer, got {type(value).__name__}")
        if kind == "number" and (isinstance(value, bool) or not isinstance(value, (int, float))):
            return fail(TYPE_MISMATCH, f"expected number, got {type(value).__name__}")
        if kind == "boolean" and not isinstance(value, bool):
            return fail(TYPE_MISMATCH, f"expected boolean, got {type(value).__name__}")
        if kind == "list" and not isinstance(value, (list, tuple)):
            return fail(TYPE_MISMATCH, f"expected list, got {type(value).__name__}")
        if kind in ("map", "object") and not isinstance(value, Mapping):
            return fail(TYPE_MISMATCH, f"expected {kind}, got {type(value).__name__}")

        if kind == "list":
            if spec.min_items is not None and len(value) < spec.min_items:
                fail(CONSTRAINT_VIOLATION, f"must have at least {spec.min_items} item(s), got {len(value)}")
            if spec.max_items is not None and len(value) > spec.max_items:
                fail(CONSTRAINT_VIOLATION, f"must have at most {spec.max_items} item(s), got {len(value)}")
            items = []
            for i, item in enumerate(value):
                items.append(self._check_value(spec.items, item, f"{path}[{i}]", violations) if spec.items else item)
            return _INVALID if len(violations) > before else items

        if kind == "map":
            entries = {}
            for key, item in value.items():
                entries[str(key)] = (
                    self._check_value(spec.items, item, f"{path}.{key}", violations) if spec.items else item
                )
            return _INVALID if len(violations) > before else entries

        if kind == "object":
            nested = self._check_fields(
                spec.fields,
                value,
                f"{path}.",
                spec.allow_unknown or not spec.fields or not self.strict,
                violations,
            )
            return _INVALID if len(violations) > before else nested

        if spec.enum is not None and value not in spec.enum:
            allowed = ", ".join(str(e) for e in spec.enum)
            return fail(ENUM_VIOLATION, f"must be one of [{allowed}], got {value!r}")
        if spec.pattern is not None and isinstance(value, str) and not re.fullmatch(spec.pattern, value):
            return fail(FORMAT_VIOLATION, f"{value!r} does not match pattern {spec.pattern}")
        if spec.format is not None:
            try:
                get_format(spec.format)(value)
            except ValueError as exc:
                return fail(FORMAT_VIOLATION, str(exc))
        if isinstance(value, str):
            if spec.min_length is not None and len(value) < spec.min_length:
                return fail(CONSTRAINT_VIOLATION, f"must be at least {spec.min_length} characters")
            if spec.max_length is not None and len(value) > spec.max_length:
                return fail(CONSTRAINT_VIOLATION, f"must be at most {spec.max_length} characters")
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            if spec.min is not None and value < spec.min:
                return fail(CONSTRAINT_VIOLATION, f"must be >= {spec.min:g}, got {value}")
            if spec.max is not None and value > spec.max:
                return fail(CONSTRAINT_VIOLATION, f"must be <= {spec.max:g}, got {value}")
        return value
