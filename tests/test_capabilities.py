# tests/test_capabilities.py

import json

import pytest
from pydantic import ValidationError

from agentexec.capabilities import (
    INTERNAL_ERROR,
    METHOD_NOT_FOUND,
    CapabilityError,
    CapabilityProvider,
    CapabilityRequest,
    CapabilityResponse,
    FunctionCapabilityServer,
)
from agentexec.executors import CapabilityOperationExecutor
from agentexec.tasks import TaskType

from conftest import make_task


def _fail(params):
    raise RuntimeError("backend down")


@pytest.fixture
def provider():
    return CapabilityProvider([
        FunctionCapabilityServer("search", {
            "web_search": lambda params: {"hits": [params.get("query")]},
            "broken": _fail,
        }),
        FunctionCapabilityServer("docs", {"web_search": lambda params: {"hits": []}}, enabled=False),
    ])


def test_request_json_round_trip():
    request = CapabilityRequest.method_call("web_search", {"query": "pydantic"})
    parsed = CapabilityRequest.from_json(request.to_json())
    assert parsed == request
    assert parsed.get_param("query", str) == "pydantic"
    assert parsed.get_param("query", int) is None
    assert parsed.has_param("query")


def test_envelope_version_field():
    request = CapabilityRequest.method_call("web_search")
    assert json.loads(request.to_json())["version"] == "2.0"

    # Servers speaking plain JSON-RPC send "jsonrpc" instead
    response = CapabilityResponse.from_json('{"id": "1", "result": 3, "jsonrpc": "2.0"}')
    assert response.version == "2.0"
    body = json.loads(response.to_json())
    assert body == {"id": "1", "result": 3, "version": "2.0"}


def test_response_is_result_xor_error():
    with pytest.raises(ValidationError):
        CapabilityResponse(id="1", result={"a": 1}, error=CapabilityError(code=-1, message="x"))
    assert CapabilityResponse.ok("1", {"a": 1}).is_success
    assert not CapabilityResponse.fail("1", METHOD_NOT_FOUND, "nope").is_success


def test_routes_to_enabled_server(provider):
    response = provider.execute_capability("web_search", {"query": "q"})
    assert response.is_success
    assert response.get_result(dict) == {"hits": ["q"]}
    assert provider.available_capabilities() == {"web_search", "broken"}


def test_unknown_capability(provider):
    response = provider.execute_capability("teleport")
    assert response.error.code == METHOD_NOT_FOUND


def test_disabled_server_by_id(provider):
    response = provider.execute_capability("web_search", server_id="docs")
    assert response.error.code == METHOD_NOT_FOUND
    assert "disabled" in response.error.message


def test_handler_exception_is_internal_error(provider):
    response = provider.execute_capability("broken")
    assert response.error.code == INTERNAL_ERROR
    assert "backend down" in response.error.message


def test_register_and_unregister(provider):
    provider.register_server(FunctionCapabilityServer("extra", {"lint": lambda p: "ok"}))
    assert provider.has_capability("lint")
    provider.unregister_server("extra")
    assert not provider.has_capability("lint")


# ------------------------------------------------------------
# Executor
# ------------------------------------------------------------
def cap_task(**parameters):
    return make_task(TaskType.CAPABILITY_OPERATION, **parameters)


def test_executor_success(project, provider):
    executor = CapabilityOperationExecutor(project, provider)
    result = executor.execute(cap_task(capability="web_search", params={"query": "typer"}))
    assert result.success
    assert result.message == "Capability web_search executed"
    assert result.data["result"] == {"hits": ["typer"]}


def test_executor_failure_carries_code(project, provider):
    result = CapabilityOperationExecutor(project, provider).execute(cap_task(capability="teleport"))
    assert not result.success
    assert result.error_message.startswith("Capability operation failed:")
    assert result.data["error_code"] == METHOD_NOT_FOUND


def test_executor_params_must_be_mapping(project, provider):
    result = CapabilityOperationExecutor(project, provider).execute(
        cap_task(capability="web_search", params=["query"])
    )
    assert result.error_message == "Parameter 'params' must be a mapping"
