import asyncio

import pytest

from batchgate.config import GatewayConfig, PolicyConfig
from batchgate.invoker import RegistryInvoker


def echo(params, ctx):
    """Return the params unchanged."""
    return params


async def async_echo(params, ctx):
    """Return the params after yielding to the loop."""
    await asyncio.sleep(0)
    return params


def boom(params, ctx):
    """Always fails."""
    raise RuntimeError("boom")


@pytest.fixture
def invoker() -> RegistryInvoker:
    """Registry with a handful of well-behaved and failing methods."""
    registry = RegistryInvoker()
    registry.register("m.x", echo)
    registry.register("m.y", async_echo)
    registry.register("m.fail", boom)
    registry.register("articles.index", echo, description="List articles")
    registry.register("articles.create", async_echo, description="Create an article")
    registry.register("internal.secret", echo, description="Internal only")
    return registry


@pytest.fixture
def policy() -> PolicyConfig:
    return PolicyConfig(max_requests=10)


@pytest.fixture
def config(policy) -> GatewayConfig:
    return GatewayConfig(policy=policy)


@pytest.fixture(autouse=True)
def isolated_home(monkeypatch, tmp_path):
    # Never read the developer's real config
    monkeypatch.setenv("BATCHGATE_HOME", str(tmp_path / "batchgate_home"))
    monkeypatch.delenv("BATCHGATE_CONFIG", raising=False)
    yield
