import pytest

from storeops.utils.resilience.circuit_breaker.breaker import CircuitState
from storeops.utils.resilience.circuit_breaker.fallbacks import ServiceUnavailable
from storeops.utils.resilience.circuit_breaker.policies import (
    DEFAULT_BREAKER_CONFIGS,
    BreakerConfig,
    resolve_breaker_config,
)
from storeops.utils.resilience.circuit_breaker.registry import (
    BreakerRegistry,
    _CircuitBreakers,
    get_circuit_breaker_metrics,
    get_circuit_breaker_status,
    reset_all_circuit_breakers,
    reset_circuit_breaker,
    with_circuit_breaker,
)


async def failing():
    raise RuntimeError("boom")


async def ok():
    return "ok"


def test_get_returns_same_instance(registry):
    first = registry.get("database")
    assert registry.get("database", timeout_ms=1) is first
    assert first.config.timeout_ms == 10_000
    assert registry.names() == ["database"]


def test_unknown_name_uses_external_defaults(registry):
    cb = registry.get("loyalty-api")
    assert cb.config == DEFAULT_BREAKER_CONFIGS["external"]


def test_database_defaults_tolerate_more_errors():
    cfg = resolve_breaker_config("database", overrides={})
    assert cfg.error_threshold_percentage == 70
    assert cfg.reset_timeout_ms == 15_000
    assert cfg.volume_threshold == 10


def test_config_precedence():
    cfg = resolve_breaker_config(
        "vision-service",
        overrides={"vision-service": {"timeout_ms": 5000, "volume_threshold": 2}},
        volume_threshold=8,
    )
    assert cfg.timeout_ms == 5000
    assert cfg.volume_threshold == 8
    assert cfg.error_threshold_percentage == 50


def test_unknown_override_key_rejected():
    with pytest.raises(TypeError):
        BreakerConfig().merged(bogus=1)


@pytest.mark.asyncio
async def test_registry_breakers_answer_failures_with_default_fallback(registry):
    result = await registry.fire("identity-provider", failing)
    assert isinstance(result, ServiceUnavailable)
    assert result.error == "failure"
    assert result.message == "Identity provider temporarily unavailable"
    assert result.to_dict()["success"] is False


@pytest.mark.asyncio
async def test_status_reset_and_metrics(registry):
    for _ in range(5):
        await registry.fire("vision-service", failing)
    status = registry.get_status("vision-service")
    assert status.state == CircuitState.OPEN

    assert registry.get_status("missing") is None
    assert registry.reset("missing") is False
    assert registry.reset("vision-service") is True
    assert registry.get_status("vision-service").state == CircuitState.CLOSED

    await registry.fire("database", ok)
    names = [m.name for m in registry.list_metrics()]
    assert names == ["vision-service", "database"]


@pytest.mark.asyncio
async def test_listener_attaches_to_existing_and_future_breakers(registry):
    events = []
    registry.get("database")
    registry.add_listener(lambda event, name, details: events.append((event, name)))
    registry.get("external:weather")

    await registry.fire("database", ok)
    await registry.fire("external:weather", ok)
    assert ("success", "database") in events
    assert ("success", "external:weather") in events


@pytest.mark.asyncio
async def test_facades_route_to_named_breakers(registry):
    breakers = _CircuitBreakers(registry)
    assert await breakers.inference.fire(ok) == "ok"
    assert await breakers.external.fire("payments", ok, timeout_ms=500) == "ok"

    assert breakers.inference.get_status().name == "inference-service"
    external = breakers.external.get_status("payments")
    assert external.name == "external:payments"
    assert external.config.timeout_ms == 500
    assert breakers.external.reset("payments") is True


@pytest.mark.asyncio
async def test_module_level_helpers_use_process_registry():
    assert await with_circuit_breaker("external:geo", ok) == "ok"

    status = get_circuit_breaker_status("external:geo")
    assert status["state"] == "closed"
    assert status["stats"]["successes"] == 1
    assert get_circuit_breaker_status("nope") is None
    assert [m["name"] for m in get_circuit_breaker_metrics()] == ["external:geo"]

    assert reset_circuit_breaker("external:geo") is True
    reset_all_circuit_breakers()
    assert get_circuit_breaker_status("external:geo")["stats"]["successes"] == 0
