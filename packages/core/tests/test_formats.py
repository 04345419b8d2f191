"""Tests for named format checks."""

from __future__ import annotations

import pytest
from infraref.formats import FORMATS, get_format, is_interpolation


class TestFormats:
    @pytest.mark.parametrize(
        "name,value",
        [
            ("cidr", "10.0.0.0/16"),
            ("ipv4", "192.168.1.10"),
            ("port", 443),
            ("aws_region", "eu-west-1"),
            ("aws_az", "us-east-1a"),
            ("domain", "example.com"),
            ("wildcard_domain", "*.example.com"),
            ("email", "ops@example.com"),
            ("arn", "arn:aws:iam::123456789012:role/app"),
            ("json", '{"a": 1}'),
            ("base64", "aGVsbG8="),
            ("hex", "deadBEEF"),
        ],
    )
    def test_accepts(self, name, value):
        assert get_format(name)(value) == value

    @pytest.mark.parametrize(
        "name,value",
        [
            ("cidr", "10.0.0.0"),
            ("cidr", "300.0.0.0/16"),
            ("ipv4", "1.2.3"),
            ("port", 70000),
            ("port", True),
            ("aws_region", "us_east_1"),
            ("aws_az", "us-east-1"),
            ("domain", "-bad-.com"),
            ("email", "nobody"),
            ("arn", "arn:gcp:thing"),
            ("json", "{nope"),
            ("base64", "not base64!"),
            ("hex", "xyz"),
        ],
    )
    def test_rejects(self, name, value):
        with pytest.raises(ValueError):
            get_format(name)(value)

    def test_unknown_format(self):
        with pytest.raises(KeyError, match="Unknown format"):
            get_format("uuid")

    def test_registry_complete(self):
        assert {"cidr", "port", "aws_region", "arn", "json"} <= set(FORMATS)


class TestInterpolation:
    def test_whole_expression(self):
        assert is_interpolation("${aws_vpc.main.id}")

    def test_embedded_is_not(self):
        assert not is_interpolation("prefix-${aws_vpc.main.id}")
        assert not is_interpolation(42)
