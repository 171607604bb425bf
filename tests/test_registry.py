# tests/test_registry.py
import pytest

from modelbridge.core.errors import ValidationError
from modelbridge.providers.factory import build_registry
from modelbridge.providers.ollama import OllamaProvider
from modelbridge.schemas.config import ProviderConfiguration, UnifiedConfiguration
from modelbridge.services.registry import ProviderRegistry


def counting_factory(cls):
    calls = []

    def factory(cfg):
        calls.append(cfg.name)
        return cls(model=cfg.model or "m")

    return factory, calls


def test_get_provider_builds_once(fake_provider_cls):
    factory, calls = counting_factory(fake_provider_cls)
    registry = ProviderRegistry()
    registry.register_factory("fake", factory)
    registry.register_provider("local", ProviderConfiguration(type="fake", name="local"))
    assert calls == []  # registration never constructs

    first = registry.get_provider("local")
    second = registry.get_provider("local")
    assert first is second
    assert calls == ["local"]


def test_clear_cache_forces_rebuild(fake_provider_cls):
    factory, calls = counting_factory(fake_provider_cls)
    registry = ProviderRegistry()
    registry.register_factory("fake", factory)
    registry.register_provider("a", ProviderConfiguration(type="fake", name="a"))
    registry.register_provider("b", ProviderConfiguration(type="fake", name="b"))

    a1, b1 = registry.get_provider("a"), registry.get_provider("b")
    registry.clear_cache("a")
    assert registry.get_provider("a") is not a1
    assert registry.get_provider("b") is b1
    assert calls == ["a", "b", "a"]

    registry.clear_cache()
    registry.get_provider("b")
    assert calls == ["a", "b", "a", "b"]
    assert registry.has_provider("a")  # config survives


def test_same_type_shares_factory_across_names(fake_provider_cls):
    factory, calls = counting_factory(fake_provider_cls)
    registry = ProviderRegistry()
    registry.register_factory("fake", factory)
    registry.register_provider("work", ProviderConfiguration(type="fake", name="work", model="m1"))
    registry.register_provider("home", ProviderConfiguration(type="fake", name="home", model="m2"))
    assert registry.get_provider("work") is not registry.get_provider("home")
    assert registry.get_provider("home").get_model() == "m2"
    assert sorted(calls) == ["home", "work"]


def test_unknown_provider():
    with pytest.raises(ValidationError) as exc_info:
        ProviderRegistry().get_provider("nope")
    assert exc_info.value.field == "provider"
    assert "not found" in str(exc_info.value)


def test_disabled_provider(fake_provider_cls):
    factory, calls = counting_factory(fake_provider_cls)
    registry = ProviderRegistry()
    registry.register_factory("fake", factory)
    registry.register_provider("off", ProviderConfiguration(type="fake", name="off", enabled=False))
    with pytest.raises(ValidationError) as exc_info:
        registry.get_provider("off")
    assert "disabled" in str(exc_info.value)
    assert calls == []


def test_missing_factory_then_late_registration(fake_provider_cls):
    registry = ProviderRegistry()
    registry.register_provider("x", ProviderConfiguration(type="custom", name="x"))
    with pytest.raises(ValidationError) as exc_info:
        registry.get_provider("x")
    assert "No factory" in str(exc_info.value)

    factory, _ = counting_factory(fake_provider_cls)
    registry.register_factory("custom", factory)
    assert registry.get_provider("x").get_model() == "m"


def test_introspection(fake_provider_cls):
    registry = ProviderRegistry()
    cfg = ProviderConfiguration(type="fake", name="a")
    registry.register_instance("a", fake_provider_cls(), cfg)
    assert registry.list_providers() == ["a"]
    assert registry.get_config("a") is cfg
    assert registry.get_config("b") is None
    assert not registry.has_provider("b")


@pytest.mark.asyncio
async def test_aclose_closes_built_clients(fake_provider_cls):
    registry = ProviderRegistry()
    client = fake_provider_cls()
    registry.register_instance("a", client)
    await registry.aclose()
    assert client.closed


def test_build_registry_uses_builtin_factories():
    configuration = UnifiedConfiguration.model_validate(
        {
            "defaultProvider": "ollama",
            "providers": {
                "ollama": {"type": "ollama", "name": "ollama", "model": "llama3"},
                "cloud": {"type": "openai", "name": "cloud", "apiKey": "sk-test"},
            },
        }
    )
    registry = build_registry(configuration)
    client = registry.get_provider("ollama")
    assert isinstance(client, OllamaProvider)
    assert client.get_model() == "llama3"
    assert registry.get_provider("cloud").kind == "openai"
