"""Shared fixtures for core tests."""

from __future__ import annotations

import pytest
from infraref.config import Settings, reset_settings
from infraref.dependencies import DependencyManager
from infraref.outputs import OutputRegistry
from infraref.registry import ResourceRegistry, load_builtin_providers, reset_registry
from infraref.template import Workspace


@pytest.fixture(autouse=True)
def _fresh_globals(monkeypatch):
    for var in ("INFRAREF_LOG_LEVEL", "INFRAREF_TOKEN_STYLE", "INFRAREF_STRICT", "INFRAREF_STATE_FORMAT"):
        monkeypatch.delenv(var, raising=False)
    reset_settings()
    reset_registry()
    yield
    reset_settings()
    reset_registry()


@pytest.fixture
def registry() -> ResourceRegistry:
    """A private registry with the bundled providers loaded."""
    return load_builtin_providers(ResourceRegistry())


@pytest.fixture
def workspace(registry: ResourceRegistry) -> Workspace:
    return Workspace(registry=registry, settings=Settings())


@pytest.fixture
def outputs() -> OutputRegistry:
    return OutputRegistry()


@pytest.fixture
def manager(outputs: OutputRegistry) -> DependencyManager:
    return DependencyManager(outputs)


def build_network(tpl) -> None:
    """The ``net`` template: one VPC exported as ``vpc_id``."""
    vpc = tpl.provider("aws").aws_vpc("main", {"cidr_block": "10.0.0.0/16"})
    tpl.export("vpc_id", vpc.id)


def build_app(tpl) -> None:
    """The ``app`` template: a subnet and security group inside the network's VPC."""
    vpc_id = tpl.remote_output("net", "vpc_id")
    aws = tpl.provider("aws")
    subnet = aws.aws_subnet("a", {"vpc_id": vpc_id, "cidr_block": "10.0.1.0/24"})
    aws.aws_security_group("web", {"vpc_id": vpc_id, "name": "web"})
    tpl.export("subnet_id", subnet.id)


@pytest.fixture
def builders():
    return {"net": build_network, "app": build_app}
