"""Tests for the Gateway facade.

Covers the full validate -> group -> execute -> assemble path, the
structured error responses, and the on_error override.
"""

import json

import pytest

from batchgate.config import GatewayConfig, PolicyConfig
from batchgate.errors import ForbiddenRequest, GatewayError, InvalidRequestBody
from batchgate.gateway import Gateway
from batchgate.invoker import RegistryInvoker
from batchgate.schemas import CallError, GatewayResponse

pytestmark = pytest.mark.asyncio


async def test_two_stage_batch(invoker, config):
    gateway = Gateway(invoker, config)
    response = await gateway.handle({
        "a": {"method": "m.x", "params": {"v": 1}, "dependencies": []},
        "b": {"method": "m.y", "params": {"v": 2}, "dependencies": ["a"]},
    })
    assert response.status == 200
    assert response.ok
    assert response.body == {"a": {"v": 1}, "b": {"v": 2}}


async def test_output_follows_request_order(invoker, config):
    gateway = Gateway(invoker, config)
    body = {
        "late": {"method": "m.x", "params": 3, "dependencies": ["early"]},
        "early": {"method": "m.y", "params": 1},
        "middle": {"method": "m.x", "params": 2},
    }
    response = await gateway.handle(body)
    assert list(response.body) == ["late", "early", "middle"]


async def test_sequence_body_returns_sequence(invoker, config):
    gateway = Gateway(invoker, config)
    response = await gateway.handle([
        {"method": "m.x", "params": "first"},
        {"method": "m.y", "params": "second", "dependencies": [0]},
        {"method": "m.x", "params": "third"},
    ])
    assert response.status == 200
    assert response.body == ["first", "second", "third"]


async def test_per_call_error_inside_success(invoker, config):
    gateway = Gateway(invoker, config)
    response = await gateway.handle({
        "ok": {"method": "m.x", "params": 1},
        "bad": {"method": "m.fail"},
    })
    assert response.status == 200
    assert response.body["ok"] == 1
    assert isinstance(response.body["bad"], CallError)
    assert json.loads(response.to_json())["bad"]["message"] == "boom"


@pytest.mark.parametrize(
    "body, status",
    [
        ({}, 422),
        ([], 422),
        (None, 422),
        ("not a batch", 422),
        ({"a": {"method": "m.x", "dependencies": ["a"]}}, 422),
        ({"a": {"params": {}}}, 422),
        ({"a": {"method": "m.x", "dependencies": ["ghost"]}}, 422),
    ],
)
async def test_invalid_bodies(invoker, config, body, status):
    response = await Gateway(invoker, config).handle(body)
    assert response.status == status
    assert response.body == {"status": status, "message": response.body["message"]}
    assert response.body["message"].startswith("Invalid Request Body")


async def test_duplicate_names_rejected(invoker, config):
    response = await Gateway(invoker, config).handle({
        0: {"method": "m.x"},
        "0": {"method": "m.y"},
    })
    assert response.status == 422
    assert "duplicate" in response.body["message"]


async def test_max_requests_exceeded(invoker):
    gateway = Gateway(invoker, GatewayConfig(policy=PolicyConfig(max_requests=2)))
    response = await gateway.handle({
        "a": {"method": "m.x"},
        "b": {"method": "m.y"},
        "c": {"method": "m.fail"},
    })
    assert response.status == 406


async def test_max_requests_counts_distinct_methods(invoker):
    gateway = Gateway(invoker, GatewayConfig(policy=PolicyConfig(max_requests=2)))
    response = await gateway.handle({
        "a": {"method": "m.x", "params": 1},
        "b": {"method": "m.x", "params": 2},
        "c": {"method": "m.x", "params": 3},
    })
    assert response.status == 200
    assert response.body == {"a": 1, "b": 2, "c": 3}


async def test_forbidden_request(invoker):
    gateway = Gateway(invoker, GatewayConfig(policy=PolicyConfig(forbidden_apis=("internal.*",))))
    response = await gateway.handle({"a": {"method": "internal.secret"}})
    assert response.status == 403
    assert response.body["message"].startswith("Forbidden Request")


async def test_validation_error_runs_nothing(config):
    calls = []
    invoker = RegistryInvoker()
    invoker.register("m.x", lambda params, ctx: calls.append(params))

    response = await Gateway(invoker, config).handle({
        "a": {"method": "m.x", "params": 1},
        "b": {"method": "m.x", "dependencies": ["b"]},
    })
    assert response.status == 422
    assert calls == []


async def test_on_error_overrides_response(invoker, config):
    seen = []

    def on_error(error, request, next):
        seen.append((type(error), request))
        return GatewayResponse(status=400, body={"error": error.message})

    gateway = Gateway(invoker, config, on_error=on_error)
    response = await gateway.handle({}, request="req-1")
    assert response.status == 400
    assert response.body == {"error": "Invalid Request Body: batch is empty"}
    assert seen == [(InvalidRequestBody, "req-1")]


async def test_on_error_can_delegate_to_default(invoker):
    gateway = Gateway(
        invoker,
        GatewayConfig(policy=PolicyConfig(forbidden_apis=("internal.*",))),
        on_error=lambda error, request, next: next(),
    )
    response = await gateway.handle({"a": {"method": "internal.secret"}})
    assert response.status == 403
    assert response.body["status"] == 403


async def test_async_on_error_and_plain_body(invoker, config):
    async def on_error(error, request, next):
        return {"custom": error.status_code}

    response = await Gateway(invoker, config, on_error=on_error).handle([])
    assert response.status == 422
    assert response.body == {"custom": 422}


async def test_on_error_not_called_for_per_call_errors(invoker, config):
    seen = []
    gateway = Gateway(invoker, config, on_error=lambda e, r, n: seen.append(e))
    response = await gateway.handle({"bad": {"method": "m.fail"}})
    assert response.status == 200
    assert seen == []


async def test_unexpected_fault_becomes_500(invoker, config, monkeypatch):
    def explode(*args, **kwargs):
        raise RuntimeError("planner broke")

    monkeypatch.setattr("batchgate.gateway.group", explode)
    response = await Gateway(invoker, config).handle({"a": {"method": "m.x"}})
    assert response.status == 500
    assert "planner broke" in response.body["message"]


async def test_unexpected_fault_routed_to_on_error(invoker, config, monkeypatch):
    seen = []

    def explode(*args, **kwargs):
        raise RuntimeError("planner broke")

    def on_error(error, request, next):
        seen.append(error)
        return next()

    monkeypatch.setattr("batchgate.gateway.group", explode)
    response = await Gateway(invoker, config, on_error=on_error).handle({"a": {"method": "m.x"}})
    assert response.status == 500
    assert isinstance(seen[0], GatewayError)


async def test_signature_grouping_gives_same_results(invoker):
    body = {
        "a": {"method": "m.x", "params": 1},
        "b": {"method": "m.y", "params": 2, "dependencies": ["a"]},
        "c": {"method": "m.x", "params": 3},
        "d": {"method": "m.y", "params": 4, "dependencies": ["c"]},
    }
    level = await Gateway(invoker, GatewayConfig(grouping="level")).handle(body)
    legacy = await Gateway(invoker, GatewayConfig(grouping="signature")).handle(body)
    assert level.body == legacy.body == {"a": 1, "b": 2, "c": 3, "d": 4}


async def test_signature_grouping_with_dotted_names(invoker):
    gateway = Gateway(invoker, GatewayConfig(grouping="signature"))
    response = await gateway.handle({
        "a": {"method": "m.x", "params": 1},
        "b": {"method": "m.x", "params": 2},
        "a.b": {"method": "m.y", "params": 3, "dependencies": ["a", "b"]},
        "p": {"method": "m.y", "params": 4, "dependencies": ["a.b"]},
    })
    assert response.status == 200
    assert response.body == {"a": 1, "b": 2, "a.b": 3, "p": 4}


class TestMethodSnapshot:
    async def test_gateway_name_excluded(self, invoker, config):
        invoker.register(config.name, lambda params, ctx: "recursion")
        gateway = Gateway(invoker, config)
        assert config.name not in gateway.methods

        response = await gateway.handle({"self": {"method": config.name}})
        assert response.status == 200
        assert response.body["self"].status == 404

    async def test_policy_filters_snapshot(self, invoker):
        gateway = Gateway(invoker, GatewayConfig(policy=PolicyConfig(
            allowed_apis=("articles.*", "internal.*"),
            forbidden_apis=("internal.*",),
        )))
        assert gateway.methods == ("articles.index", "articles.create")

    async def test_snapshot_is_immutable(self, invoker, config):
        gateway = Gateway(invoker, config)
        invoker.register("late.method", lambda params, ctx: "late")
        assert "late.method" not in gateway.methods
        response = await gateway.handle({"a": {"method": "late.method"}})
        assert response.body["a"].status == 404
