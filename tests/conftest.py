# tests/conftest.py
import os
import logging
from typing import List, Optional, Sequence

import pytest

# Ensure test-friendly env before any modelbridge module reads it
os.environ.setdefault("OLLAMA_HOST", "http://localhost:11434")
os.environ.setdefault("STREAM_ENABLE_BUFFERING", "false")

from modelbridge.providers.base import ProviderClient, SupportsModelListing, SupportsModelSelection
from modelbridge.schemas.config import ProviderConfiguration, UnifiedConfiguration
from modelbridge.services.adapter import ModelAdapter
from modelbridge.services.registry import ProviderRegistry
from modelbridge.services.router import MultiProviderRouter


class FakeProvider(ProviderClient, SupportsModelSelection, SupportsModelListing):
    """In-memory client: records every call and replays canned output."""

    kind = "fake"

    def __init__(
        self,
        *,
        model: str = "fake-model",
        reply: str = "hello",
        chunks: Sequence[str] = ("he", "llo"),
        models: Optional[List[str]] = None,
        fail: Optional[BaseException] = None,
    ) -> None:
        self.model = model
        self.reply = reply
        self.chunks = list(chunks)
        self.models = models if models is not None else [model]
        self.fail = fail
        self.calls = []
        self.closed = False

    def get_model(self) -> str:
        return self.model

    def set_model(self, model: str) -> None:
        self.model = model

    async def list_models(self) -> List[str]:
        return list(self.models)

    async def generate_response(self, prompt, context):
        self.calls.append((prompt, list(context)))
        if self.fail:
            raise self.fail
        return self.reply

    async def stream_response(self, prompt, context, *, cancel=None):
        self.calls.append((prompt, list(context)))
        for chunk in self.chunks:
            if cancel is not None and cancel.is_set():
                return
            yield chunk
        if self.fail:
            raise self.fail

    async def aclose(self) -> None:
        self.closed = True


class FixedModelProvider(ProviderClient):
    """Client with no optional capabilities."""

    kind = "fixed"

    def get_model(self) -> str:
        return "fixed"

    async def generate_response(self, prompt, context):
        return "fixed"

    async def stream_response(self, prompt, context, *, cancel=None):
        yield "fixed"


@pytest.fixture
def fake_provider_cls():
    return FakeProvider


@pytest.fixture
def fixed_provider_cls():
    return FixedModelProvider


@pytest.fixture
def make_adapter():
    # builds registry -> router -> adapter around pre-built clients
    def _make(clients, *, default="ollama", types=None, google_search=None):
        types = types or {}
        registry = ProviderRegistry()
        providers = {}
        for name, client in clients.items():
            cfg = ProviderConfiguration(type=types.get(name, name), name=name, model=client.get_model())
            registry.register_instance(name, client, cfg)
            providers[name] = cfg
        configuration = UnifiedConfiguration(
            default_provider=default,
            providers=providers,
            google_search=google_search,
        )
        router = MultiProviderRouter(registry, default)
        return ModelAdapter(router, configuration)

    return _make


@pytest.fixture
def caplog_info(caplog):
    caplog.set_level(logging.INFO)
    return caplog


@pytest.fixture
def caplog_debug(caplog):
    caplog.set_level(logging.DEBUG)
    return caplog
