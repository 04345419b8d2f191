"""Tests for resource schema descriptors."""

from __future__ import annotations

import pytest
from infraref.schema import FieldSpec, ResourceSchema, bundled_schemas, load_schema_file, parse_schemas


class TestFieldSpec:
    def test_unknown_format_rejected(self):
        with pytest.raises(ValueError, match="Unknown format"):
            FieldSpec(format="uuid")

    def test_bad_pattern_rejected(self):
        with pytest.raises(ValueError):
            FieldSpec(pattern="([")

    def test_fields_only_on_objects(self):
        with pytest.raises(ValueError):
            FieldSpec(type="string", fields={"x": FieldSpec()})

    def test_required_with_default(self):
        with pytest.raises(ValueError):
            FieldSpec(required=True, default="x")


class TestResourceSchema:
    def test_id_output_always_first(self):
        schema = ResourceSchema(resource_type="x_thing", namespace="x", outputs=["arn"])
        assert schema.outputs == ["id", "arn"]

    def test_required_fields(self):
        schema = bundled_schemas("aws")["aws_subnet"]
        assert schema.required_fields() == ["vpc_id", "cidr_block"]

    def test_bundled_namespaces(self):
        assert "aws_vpc" in bundled_schemas("aws")
        assert "cloudflare_record" in bundled_schemas("cloudflare")
        assert "hcloud_server" in bundled_schemas("hcloud")
        assert bundled_schemas("gcp") == {}

    def test_yaml_anchors_share_rule_shape(self):
        sg = bundled_schemas("aws")["aws_security_group"]
        assert sg.fields["ingress"].items.fields.keys() == sg.fields["egress"].items.fields.keys()

    def test_load_schema_file(self, tmp_path):
        path = tmp_path / "acme.yaml"
        path.write_text(
            "namespace: acme\n"
            "resources:\n"
            "  acme_widget:\n"
            "    outputs: [id, url]\n"
            "    fields:\n"
            "      size: {type: integer, min: 1}\n"
        )
        schemas = load_schema_file(path)
        assert schemas["acme_widget"].namespace == "acme"
        assert schemas["acme_widget"].fields["size"].min == 1

    def test_parse_empty_resources(self):
        assert parse_schemas({"namespace": "acme"}) == {}
