# tests/test_router.py
import httpx
import pytest
import respx

from modelbridge.core.errors import ValidationError
from modelbridge.providers.factory import build_registry
from modelbridge.schemas.config import UnifiedConfiguration
from modelbridge.services.registry import ProviderRegistry
from modelbridge.services.router import MultiProviderRouter, ParsedModelId, parse_model_id


@pytest.mark.parametrize(
    "model_id, expected",
    [
        ("openai:gpt-4", ParsedModelId("openai", "gpt-4")),
        ("openai:gpt-4:turbo", ParsedModelId("openai", "gpt-4:turbo")),
        ("ollama:qwen2.5-coder:7b", ParsedModelId("ollama", "qwen2.5-coder:7b")),
        ("gpt-4", ParsedModelId("ollama", "gpt-4")),
        (":gpt-4", ParsedModelId("ollama", "gpt-4")),
        (" gemini : gemini-pro ", ParsedModelId("gemini", "gemini-pro")),
        ("qwen:", ParsedModelId("qwen", "")),
    ],
)
def test_parse_model_id(model_id, expected):
    assert parse_model_id(model_id, "ollama") == expected


def make_router(fake_provider_cls, default="ollama"):
    registry = ProviderRegistry()
    clients = {"ollama": fake_provider_cls(model="qwen2.5-coder"), "openai": fake_provider_cls(model="gpt-4")}
    for name, client in clients.items():
        registry.register_instance(name, client)
    return MultiProviderRouter(registry, default), clients


def test_bare_model_resolves_to_default(fake_provider_cls):
    router, clients = make_router(fake_provider_cls, default="openai")
    client = router.get_provider_for_model("gpt-4", "openai")
    assert client is clients["openai"]


def test_model_segment_selects_model(fake_provider_cls):
    router, clients = make_router(fake_provider_cls)
    client = router.get_provider_for_model("openai:gpt-4o-mini", "ollama")
    assert client is clients["openai"]
    assert client.get_model() == "gpt-4o-mini"


def test_empty_model_segment_keeps_current_model(fake_provider_cls):
    router, clients = make_router(fake_provider_cls)
    assert router.get_provider_for_model("ollama:", "ollama").get_model() == "qwen2.5-coder"


def test_fixed_model_client_is_returned_as_is(fixed_provider_cls):
    registry = ProviderRegistry()
    registry.register_instance("fixed", fixed_provider_cls())
    router = MultiProviderRouter(registry, "fixed")
    assert router.get_provider_for_model("fixed:anything", "fixed").get_model() == "fixed"


def test_switch_provider(fake_provider_cls, caplog_info):
    router, _ = make_router(fake_provider_cls)
    assert router.get_current_provider() == "ollama"
    router.switch_provider("openai")
    assert router.get_current_provider() == "openai"
    assert router.get_default_provider() == "ollama"
    assert any("openai" in rec.getMessage() for rec in caplog_info.records)


def test_switch_to_unknown_provider_keeps_pointer(fake_provider_cls):
    router, _ = make_router(fake_provider_cls)
    router.switch_provider("openai")
    with pytest.raises(ValidationError):
        router.switch_provider("nope")
    assert router.get_current_provider() == "openai"


@pytest.mark.asyncio
@respx.mock
async def test_end_to_end_ollama_resolution():
    # "ollama:qwen2.5-coder" with default "ollama" -> the ollama entry, which answers "hello"
    configuration = UnifiedConfiguration.model_validate(
        {
            "defaultProvider": "ollama",
            "providers": {"ollama": {"type": "ollama", "name": "ollama", "baseUrl": "http://localhost:11434"}},
        }
    )
    respx.post("http://localhost:11434/v1/chat/completions").mock(
        return_value=httpx.Response(200, json={"choices": [{"message": {"content": "hello"}}]})
    )
    router = MultiProviderRouter(build_registry(configuration), "ollama")
    client = router.get_provider_for_model("ollama:qwen2.5-coder", "ollama")
    assert client.get_model() == "qwen2.5-coder"
    assert await client.generate_response("hi", []) == "hello"
