# tests/test_providers_vertex.py
import json
import logging

import httpx
import pytest
import respx

from modelbridge.core.errors import ValidationError
from modelbridge.providers.vertex import KNOWN_MODELS, VertexAIProvider, vertex_base_url
from modelbridge.schemas.config import ProviderConfiguration
from modelbridge.schemas.content import FileContext

BASE = vertex_base_url("proj-1", "us-central1")


def make_provider(**kw) -> VertexAIProvider:
    return VertexAIProvider(access_token="ya29.token", project_id="proj-1", **kw)


def test_base_url_from_project_and_region():
    assert BASE == (
        "https://us-central1-aiplatform.googleapis.com/v1/projects/proj-1"
        "/locations/us-central1/publishers/google/models"
    )
    cfg = ProviderConfiguration(
        type="googleCloud",
        name="vertex",
        provider_specific={"projectId": "p2", "region": "europe-west4"},
    )
    provider = VertexAIProvider.from_config(cfg)
    assert provider.base_url.startswith("https://europe-west4-aiplatform.googleapis.com/v1/projects/p2/")
    assert provider.timeout == 30


@pytest.mark.asyncio
@respx.mock
async def test_raw_predict_prompt_concatenation():
    route = respx.post(f"{BASE}/gemini-pro:rawPredict").mock(
        return_value=httpx.Response(200, json={"predictions": [{"content": "hi there"}]})
    )
    provider = make_provider()
    out = await provider.generate_response("hi", [FileContext(path="a.py", content="x = 1")])
    assert out == "hi there"
    request = route.calls.last.request
    assert request.headers["Authorization"] == "Bearer ya29.token"
    body = json.loads(request.content)
    assert body["instances"][0]["prompt"] == "File: a.py\nx = 1\n\nUser: hi"
    assert set(body["parameters"]) == {"temperature", "maxOutputTokens"}


@pytest.mark.asyncio
@respx.mock
async def test_generated_text_and_candidate_shapes():
    respx.post(f"{BASE}/text-bison:rawPredict").mock(
        return_value=httpx.Response(200, json={"predictions": [{"generatedText": "from bison"}]})
    )
    respx.post(f"{BASE}/gemini-pro:rawPredict").mock(
        return_value=httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": "from gemini"}]}}]})
    )
    assert await make_provider(model="text-bison").generate_response("hi", []) == "from bison"
    assert await make_provider().generate_response("hi", []) == "from gemini"


@pytest.mark.asyncio
@respx.mock
async def test_stream_is_ndjson():
    # Each line is a full JSON object; broken lines are skipped.
    respx.post(f"{BASE}/gemini-pro:streamRawPredict").mock(
        return_value=httpx.Response(
            200,
            content=b'{"predictions":[{"content":"he"}]}\nnot json\n\n{"predictions":[{"content":"llo"}]}\n',
            headers={"Content-Type": "application/x-ndjson"},
        )
    )
    provider = make_provider()
    acc = [c async for c in provider.stream_response("hi", [])]
    assert acc == ["he", "llo"]


@pytest.mark.asyncio
@respx.mock
async def test_forbidden_is_project_validation_error():
    respx.post(f"{BASE}/gemini-pro:rawPredict").mock(
        return_value=httpx.Response(403, json={"error": {"message": "Vertex AI API has not been used in project"}})
    )
    provider = make_provider()
    with pytest.raises(ValidationError) as exc_info:
        await provider.generate_response("hi", [])
    assert exc_info.value.field == "projectId"


@pytest.mark.asyncio
@respx.mock
async def test_list_models_falls_back_to_known_list(caplog):
    caplog.set_level(logging.WARNING)
    respx.get(f"{BASE}/").mock(return_value=httpx.Response(500, json={"error": {"message": "internal"}}))
    provider = make_provider()
    assert await provider.list_models() == KNOWN_MODELS
    assert any("known model list" in rec.getMessage() for rec in caplog.records)


def test_token_is_optional(monkeypatch):
    monkeypatch.delenv("GOOGLE_CLOUD_ACCESS_TOKEN", raising=False)
    provider = VertexAIProvider(project_id="proj-1")
    assert provider.access_token is None
    assert "Authorization" not in provider._client.headers
