"""Tests for the bundled resource providers."""

from __future__ import annotations

import pytest
from infraref.errors import UnknownResourceType
from infraref.providers.aws import AWSProvider
from infraref.providers.cloudflare import CloudflareProvider
from infraref.providers.hcloud import HetznerProvider

ACCOUNT_ID = "0123456789abcdef0123456789abcdef"


class TestProviderCatalog:
    @pytest.mark.parametrize(
        "provider,expected",
        [
            (AWSProvider(), {"aws_vpc", "aws_subnet", "aws_security_group", "aws_instance", "aws_lambda_function"}),
            (CloudflareProvider(), {"cloudflare_zone", "cloudflare_record", "cloudflare_worker_script"}),
            (HetznerProvider(), {"hcloud_network", "hcloud_server", "hcloud_firewall"}),
        ],
    )
    def test_resource_types(self, provider, expected):
        assert expected <= set(provider.resource_types())
        for resource_type in expected:
            assert callable(getattr(provider, resource_type))

    def test_unknown_schema(self):
        with pytest.raises(UnknownResourceType):
            AWSProvider().schema("hcloud_server")

    def test_schemas_are_copies(self):
        provider = AWSProvider()
        provider.schemas().pop("aws_vpc")
        assert provider.supports("aws_vpc")


class TestConstructors:
    def test_hetzner_stack(self, workspace):
        tpl = workspace.template("edge")
        hcloud = tpl.provider("hcloud")
        net = hcloud.hcloud_network("private", {"name": "private", "ip_range": "10.10.0.0/16"})
        fw = hcloud.hcloud_firewall("web", {"name": "web", "rule": [{"direction": "in", "protocol": "tcp", "port": "443"}]})
        server = hcloud.hcloud_server(
            "web",
            {
                "name": "web-1",
                "server_type": "cpx21",
                "image": "ubuntu-24.04",
                "location": "nbg1",
                "firewall_ids": [fw.id],
                "network": [{"network_id": net.id, "ip": "10.10.0.5"}],
            },
        )
        assert server.ref("ipv4_address") == "${hcloud_server.web.ipv4_address}"
        block = tpl.document()["resource"]["hcloud_server"]["web"]
        assert block["firewall_ids"] == ["${hcloud_firewall.web.id}"]
        assert block["network"] == [{"network_id": "${hcloud_network.private.id}", "ip": "10.10.0.5"}]

    def test_cloudflare_record_from_other_template(self, workspace):
        dns = workspace.template("dns")
        zone = dns.provider("cloudflare").cloudflare_zone("main", {"zone": "example.com", "account_id": ACCOUNT_ID})
        dns.export("zone_id", zone.id)
        dns.freeze()

        app = workspace.template("app")
        app.provider("cloudflare").cloudflare_record(
            "www",
            {"zone_id": app.remote_output("dns", "zone_id"), "name": "www.example.com", "type": "A", "content": "192.0.2.1"},
        )
        assert workspace.blast_radius("dns") == {"app"}
        record = app.document()["resource"]["cloudflare_record"]["www"]
        assert record["zone_id"] == "${data.terraform_remote_state.dns.outputs.zone_id}"
