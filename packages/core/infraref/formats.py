"""Named format checks shared by resource schemas.

Each check takes a value and raises ValueError with a readable message when
the value is malformed. Schemas refer to them by name (``format: cidr``).
"""

from __future__ import annotations

import base64
import binascii
import json
import re
from typing import Any, Callable

_INTERPOLATION = re.compile(r"^\$\{.+\}$", re.DOTALL)
_CIDR = re.compile(r"^\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}/\d{1,2}$")
_IPV4 = re.compile(r"^\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}$")
_AWS_REGION = re.compile(r"^[a-z]{2}-[a-z]+-\d$")
_AWS_AZ = re.compile(r"^[a-z]{2}-[a-z]+-\d[a-z]$")
_LABEL = r"[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?"
_DOMAIN = re.compile(rf"^(?:{_LABEL}\.)*{_LABEL}$", re.IGNORECASE)
_WILDCARD_DOMAIN = re.compile(rf"^(\*\.)?(?:{_LABEL}\.)*{_LABEL}$", re.IGNORECASE)
_EMAIL = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
_ARN = re.compile(r"^arn:aws[a-z-]*:[a-z0-9-]+:[a-z0-9-]*:(\d{12})?:.+$")
_BASE64 = re.compile(r"^[A-Za-z0-9+/]*={0,2}$")
_HEX = re.compile(r"^[a-fA-F0-9]+$")


def is_interpolation(value: Any) -> bool:
    """True for a string that is entirely one ``${...}`` expression."""
    return isinstance(value, str) and bool(_INTERPOLATION.match(value))


def _octets_ok(ip: str) -> bool:
    return all(0 <= int(o) <= 255 for o in ip.split("."))


def valid_cidr(value: str) -> str:
    if not isinstance(value, str) or not _CIDR.match(value):
        raise ValueError(f"Invalid CIDR format: {value}")
    ip, prefix = value.split("/")
    if not _octets_ok(ip):
        raise ValueError(f"Invalid IP address in CIDR: {value}")
    if not 0 <= int(prefix) <= 32:
        raise ValueError(f"Invalid prefix length (0-32): {value}")
    return value


def valid_ipv4(value: str) -> str:
    if not isinstance(value, str) or not _IPV4.match(value) or not _octets_ok(value):
        raise ValueError(f"Invalid IPv4 address: {value}")
    return value


def valid_port(value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 65535:
        raise ValueError(f"Port must be 0-65535, got: {value}")
    return value


def valid_aws_region(value: str) -> str:
    if not isinstance(value, str) or not _AWS_REGION.match(value):
        raise ValueError(f"Invalid AWS region format: {value}")
    return value


def valid_aws_az(value: str) -> str:
    if not isinstance(value, str) or not _AWS_AZ.match(value):
        raise ValueError(f"Invalid AWS AZ format: {value}")
    return value


def valid_domain(value: str) -> str:
    if not isinstance(value, str) or not _DOMAIN.match(value):
        raise ValueError(f"Invalid domain name: {value}")
    return value


def valid_wildcard_domain(value: str) -> str:
    if not isinstance(value, str) or not _WILDCARD_DOMAIN.match(value):
        raise ValueError(f"Invalid domain name: {value}")
    return value


def valid_email(value: str) -> str:
    if not isinstance(value, str) or not _EMAIL.match(value):
        raise ValueError(f"Invalid email format: {value}")
    return value


def valid_arn(value: str) -> str:
    if not isinstance(value, str) or not _ARN.match(value):
        raise ValueError(f"Invalid ARN format: {value}")
    return value


def valid_json(value: str) -> str:
    try:
        json.loads(value)
    except (TypeError, json.JSONDecodeError):
        raise ValueError(f"Invalid JSON: {str(value)[:50]}...") from None
    return value


def valid_base64(value: str) -> str:
    if not isinstance(value, str) or not _BASE64.match(value):
        raise ValueError("Invalid base64 format")
    try:
        base64.b64decode(value, validate=True)
    except binascii.Error:
        raise ValueError("Invalid base64 encoding") from None
    return value


def valid_hex(value: str) -> str:
    if not isinstance(value, str) or not _HEX.match(value):
        raise ValueError(f"Expected hex string: {value}")
    return value


FORMATS: dict[str, Callable[[Any], Any]] = {
    "cidr": valid_cidr,
    "ipv4": valid_ipv4,
    "port": valid_port,
    "aws_region": valid_aws_region,
    "aws_az": valid_aws_az,
    "domain": valid_domain,
    "wildcard_domain": valid_wildcard_domain,
    "email": valid_email,
    "arn": valid_arn,
    "json": valid_json,
    "base64": valid_base64,
    "hex": valid_hex,
}


def get_format(name: str) -> Callable[[Any], Any]:
    try:
        return FORMATS[name]
    except KeyError:
        raise KeyError(f"Unknown format {name!r}. Known: {', '.join(sorted(FORMATS))}") from None
