"""End-to-end tests: templates, providers and the dependency core together."""

from __future__ import annotations

import pytest
from infraref.config import Settings
from infraref.dependencies import EdgeState
from infraref.errors import (
    CyclicDependencyError,
    DuplicateOutputError,
    ProviderNotFound,
    SelfDependencyError,
    TemplateAlreadyFrozen,
    UnresolvedOutputError,
    ValidationError,
)
from infraref.reference import OutputToken
from infraref.template import Workspace


class TestResourceConstruction:
    def test_reference_and_document(self, workspace):
        tpl = workspace.template("net")
        vpc = tpl.provider("aws").aws_vpc("main", {"cidr_block": "10.0.0.0/16"})
        assert vpc.template_id == "net"
        assert vpc.id == "${aws_vpc.main.id}"
        assert "arn" in vpc.outputs

        block = tpl.document()["resource"]["aws_vpc"]["main"]
        assert block["cidr_block"] == "10.0.0.0/16"
        assert block["tags"] == {}

    def test_same_template_token_stays_local(self, workspace):
        tpl = workspace.template("net")
        aws = tpl.provider("aws")
        vpc = aws.aws_vpc("main", {"cidr_block": "10.0.0.0/16"})
        aws.aws_subnet("a", {"vpc_id": vpc.id, "cidr_block": "10.0.1.0/24"})
        doc = tpl.document()
        assert doc["resource"]["aws_subnet"]["a"]["vpc_id"] == "${aws_vpc.main.id}"
        assert "availability_zone" not in doc["resource"]["aws_subnet"]["a"]
        assert "data" not in doc
        assert workspace.dependencies.edges() == []

    def test_validation_failure_records_nothing(self, workspace):
        tpl = workspace.template("net")
        with pytest.raises(ValidationError):
            tpl.provider("aws").aws_vpc("main", {"cidr_block": "nope"})
        assert tpl.references() == []
        assert tpl.document() == {}

    def test_bad_name_adds_no_dependency_edge(self, workspace):
        app = workspace.template("app")
        with pytest.raises(ValueError, match="IaC-safe"):
            app.resource(
                "aws_subnet",
                "bad name",
                {"vpc_id": app.remote_output("net", "vpc_id"), "cidr_block": "10.0.1.0/24"},
            )
        assert workspace.dependencies.edges() == []
        assert app.references() == []
        assert app.document() == {}
        workspace.finish()

    def test_duplicate_resource(self, workspace):
        tpl = workspace.template("net")
        aws = tpl.provider("aws")
        aws.aws_vpc("main", {"cidr_block": "10.0.0.0/16"})
        with pytest.raises(DuplicateOutputError):
            aws.aws_vpc("main", {"cidr_block": "10.1.0.0/16"})
        assert tpl.document()["resource"]["aws_vpc"]["main"]["cidr_block"] == "10.0.0.0/16"

    def test_unknown_provider_and_resource(self, workspace):
        tpl = workspace.template("net")
        with pytest.raises(ProviderNotFound):
            tpl.provider("gcp")
        with pytest.raises(AttributeError):
            tpl.provider("aws").aws_nothing("x", {})

    def test_generic_resource_entry_point(self, workspace):
        tpl = workspace.template("dns")
        zone = tpl.resource("cloudflare_zone", "main", {"zone": "example.com", "account_id": "0" * 32})
        assert zone.ref("name_servers") == "${cloudflare_zone.main.name_servers}"

    def test_frozen_template_rejects_resources(self, workspace):
        tpl = workspace.template("net")
        tpl.freeze()
        with pytest.raises(TemplateAlreadyFrozen):
            tpl.provider("aws").aws_vpc("main", {"cidr_block": "10.0.0.0/16"})

    def test_invalid_template_id(self, workspace):
        with pytest.raises(ValueError):
            workspace.template("bad id")

    def test_template_is_reused(self, workspace):
        assert workspace.template("net") is workspace.template("net")


class TestCrossTemplate:
    def test_producer_first_resolves_immediately(self, workspace, builders):
        workspace.evaluate([("net", builders["net"]), ("app", builders["app"])])
        edge = workspace.dependencies.get_edge("app", "net", "vpc_id")
        assert edge.state is EdgeState.RESOLVED
        workspace.finish()

    def test_consumer_first_is_pending_then_resolved(self, workspace, builders):
        workspace.evaluate({"app": builders["app"]})
        edge = workspace.dependencies.get_edge("app", "net", "vpc_id")
        assert edge.state is EdgeState.PENDING
        with pytest.raises(UnresolvedOutputError):
            workspace.finish()

        workspace.evaluate({"net": builders["net"]})
        assert edge.state is EdgeState.RESOLVED
        workspace.finish()
        assert workspace.order() == ["net", "app"]
        assert workspace.blast_radius("net") == {"app"}

    def test_remote_state_rendering(self, workspace, builders):
        workspace.evaluate([("net", builders["net"]), ("app", builders["app"])])
        doc = workspace.get("app").document()
        subnet = doc["resource"]["aws_subnet"]["a"]
        assert subnet["vpc_id"] == "${data.terraform_remote_state.net.outputs.vpc_id}"
        assert doc["data"]["terraform_remote_state"]["net"] == {
            "backend": "local",
            "config": {"path": "default/net.tfstate"},
        }
        assert doc["output"]["subnet_id"] == {"value": "${aws_subnet.a.id}"}

    def test_net_outputs_published_with_safe_keys(self, workspace, builders):
        workspace.evaluate({"net": builders["net"]})
        outputs = workspace.get("net").document()["output"]
        assert outputs["vpc_id"] == {"value": "${aws_vpc.main.id}"}
        assert outputs["aws_vpc__main__arn"] == {"value": "${aws_vpc.main.arn}"}

    def test_direct_resource_token_across_templates(self, workspace):
        net = workspace.template("net")
        vpc = net.provider("aws").aws_vpc("main", {"cidr_block": "10.0.0.0/16"})
        net.freeze()

        app = workspace.template("app")
        app.provider("aws").aws_subnet("a", {"vpc_id": vpc.id, "cidr_block": "10.0.1.0/24"})
        edge = workspace.dependencies.get_edge("app", "net", "aws_vpc.main.id")
        assert edge.resolved
        vpc_id = app.document()["resource"]["aws_subnet"]["a"]["vpc_id"]
        assert vpc_id == "${data.terraform_remote_state.net.outputs.aws_vpc__main__id}"

    def test_missing_export_fails_at_producer_freeze(self, workspace, builders):
        workspace.evaluate({"app": builders["app"]})

        def net_without_export(tpl):
            tpl.provider("aws").aws_vpc("main", {"cidr_block": "10.0.0.0/16"})

        net = workspace.template("net")
        net_without_export(net)
        with pytest.raises(UnresolvedOutputError) as exc_info:
            net.freeze()
        assert exc_info.value.missing == [("app", "net", "vpc_id")]
        assert workspace.dependencies.get_edge("app", "net", "vpc_id").state is EdgeState.FAILED

    def test_frozen_producer_missing_output_rejected_at_use(self, workspace, builders):
        workspace.evaluate({"net": builders["net"]})
        app = workspace.template("app")
        with pytest.raises(UnresolvedOutputError):
            app.provider("aws").aws_subnet(
                "a", {"vpc_id": app.remote_output("net", "subnet_id"), "cidr_block": "10.0.1.0/24"}
            )
        assert app.references() == []
        assert workspace.dependencies.edges(consumer="app") == []

    def test_cycle_between_templates(self, workspace):
        a = workspace.template("a")
        b = workspace.template("b")
        a.provider("aws").aws_vpc("main", {"cidr_block": a.remote_output("b", "cidr")})
        with pytest.raises(CyclicDependencyError) as exc_info:
            b.provider("aws").aws_vpc("main", {"cidr_block": b.remote_output("a", "cidr")})
        assert exc_info.value.path == ["a", "b", "a"]
        assert b.references() == []

    def test_self_reference_through_remote_output(self, workspace):
        tpl = workspace.template("net")
        with pytest.raises(SelfDependencyError):
            tpl.depends_on("net", "vpc_id")

    def test_explicit_depends_on_adds_remote_state(self, workspace):
        app = workspace.template("app")
        edge = app.depends_on("net", "vpc_id")
        assert edge.pending
        assert "net" in app.document()["data"]["terraform_remote_state"]

    def test_producer_namespace_in_remote_state(self, workspace):
        workspace.template("net", namespace="network")
        app = workspace.template("app")
        app.depends_on("net", "vpc_id")
        config = app.document()["data"]["terraform_remote_state"]["net"]
        assert config["config"]["path"] == "network/net.tfstate"


class TestWorkspaceOptions:
    def test_plain_tokens(self, registry, builders):
        ws = Workspace(registry=registry, settings=Settings(token_style="plain"))
        ws.evaluate([("net", builders["net"]), ("app", builders["app"])])
        subnet = ws.get("app").document()["resource"]["aws_subnet"]["a"]
        assert subnet["vpc_id"] == "data.terraform_remote_state.net.outputs.vpc_id"

    def test_custom_remote_state_config(self, registry, builders):
        def s3_backend(template_id, namespace):
            return {"backend": "s3", "config": {"bucket": "tfstate", "key": f"{namespace}/{template_id}"}}

        ws = Workspace(registry=registry, settings=Settings(), remote_state_config=s3_backend)
        ws.evaluate([("net", builders["net"]), ("app", builders["app"])])
        data = ws.get("app").document()["data"]["terraform_remote_state"]["net"]
        assert data["backend"] == "s3"

    def test_lenient_settings(self, registry):
        ws = Workspace(registry=registry, settings=Settings(strict_unknown_fields=False))
        vpc = ws.template("net").provider("aws").aws_vpc("main", {"cidr_block": "10.0.0.0/16", "extra": "x"})
        assert vpc.attributes["extra"] == "x"

    def test_export_requires_local_token(self, workspace):
        net = workspace.template("net")
        with pytest.raises(ValueError):
            net.export("vpc_id", OutputToken.build("other", "aws_vpc", "main", "id"))

    def test_dependencies_listing(self, workspace, builders):
        workspace.evaluate({"app": builders["app"]})
        deps = workspace.get("app").dependencies()
        assert [(e.producer, e.output_name) for e in deps] == [("net", "vpc_id")]
