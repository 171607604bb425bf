# the provider contract every backend implements, plus the shared httpx plumbing
# (blocking post, SSE / NDJSON stream reading, error translation) the HTTP backends reuse

from __future__ import annotations

import asyncio
import json
import logging
import os
from abc import ABC, abstractmethod
from contextlib import aclosing, contextmanager
from typing import Any, AsyncIterator, Dict, Iterator, List, Optional, Sequence

import httpx

from modelbridge.core import config
from modelbridge.core.errors import ProviderError, ValidationError, classify_error
from modelbridge.schemas.content import FileContext

logger = logging.getLogger(__name__)

CODING_SYSTEM_PROMPT = """You are a coding assistant. When proposing code changes, use this format:

```typescript:filename:path/to/file.ts
// Your code changes here
```

For multiple files, use separate code blocks. Always include the file path after the language identifier."""


class ProviderClient(ABC):
    """Uniform interface over one configured backend."""

    @abstractmethod
    def get_model(self) -> str:
        ...

    @abstractmethod
    async def generate_response(self, prompt: str, context: Sequence[FileContext]) -> str:
        """Single blocking call; raises a classified ProviderError on failure."""
        ...

    @abstractmethod
    def stream_response(
        self,
        prompt: str,
        context: Sequence[FileContext],
        *,
        cancel: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[str]:
        """Yield text deltas as they arrive. Finite and not restartable."""
        ...

    async def aclose(self) -> None:
        return None


class SupportsModelSelection(ABC):
    """Capability: the current model can be changed locally."""

    @abstractmethod
    def set_model(self, model: str) -> None:
        ...


class SupportsModelListing(ABC):
    """Capability: the backend can enumerate its models."""

    @abstractmethod
    async def list_models(self) -> List[str]:
        ...

    async def has_model(self, model: str) -> bool:
        # best-effort check, never fatal
        try:
            return model in await self.list_models()
        except Exception as e:
            logger.debug("model listing failed while checking %r: %s", model, e)
            return False


def resolve_api_key(value: Optional[str], default_env: Optional[str], *, required: bool = True) -> Optional[str]:
    """Resolve a configured key; supports the "env:VAR_NAME" indirection."""
    key = value if value else (os.getenv(default_env) if default_env else None)
    if key and key.startswith("env:"):
        env_var = key[4:]
        key = os.getenv(env_var)
        if not key:
            raise ValidationError(f"Environment variable {env_var} is not set.", "apiKey")
    if required and not key:
        hint = f" Set {default_env} or provide apiKey in the provider config." if default_env else ""
        raise ValidationError(f"API key is required.{hint}", "apiKey")
    return key or None


def codebase_system_prompt(context: Sequence[FileContext]) -> str:
    if not context:
        return CODING_SYSTEM_PROMPT
    files = "\n\n".join(f"File: {f.path}\n{f.content}" for f in context)
    return f"{CODING_SYSTEM_PROMPT}\n\nHere is the codebase context:\n\n{files}"


def file_blocks(context: Sequence[FileContext]) -> str:
    return "\n\n".join(f"--- File: {f.path} ---\n{f.content}\n--- End of {f.path} ---" for f in context)


def file_context_messages(prompt: str, context: Sequence[FileContext]) -> List[Dict[str, str]]:
    """Chat messages with the files as a leading system message, sent only when there are files."""
    messages: List[Dict[str, str]] = []
    if context:
        messages.append({"role": "system", "content": f"You have access to the following files:\n\n{file_blocks(context)}"})
    messages.append({"role": "user", "content": prompt})
    return messages


def _error_text(err: Any) -> str:
    if isinstance(err, dict):
        return str(err.get("message") or err.get("code") or err)
    return str(err)


class HTTPProvider(ProviderClient, SupportsModelSelection, SupportsModelListing):
    """Shared machinery for backends reached over HTTP.

    Subclasses supply the pure pieces: the endpoint, the request body built from
    (prompt, context, model), and how text is pulled out of a response or a
    stream event. Everything that touches the network lives here so the error
    mapping is identical across backends.
    """

    kind = "provider"
    default_base_url = ""
    default_model = ""
    is_local = False
    stream_format = "sse"  # or "ndjson"
    # whether HTTP 403 means a bad/revoked key (True) or a permission problem (False)
    forbidden_is_auth = True

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        headers: Optional[Dict[str, str]] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        client: Optional[httpx.AsyncClient] = None,
        name: Optional[str] = None,
    ) -> None:
        # label used on errors; the registry instance name when built from config
        self.name = name or self.kind
        self.base_url = (base_url or self.default_base_url).rstrip("/")
        self._model = model or self.default_model
        self.timeout = timeout if timeout is not None else config.provider_timeout(self.is_local)
        self.temperature = config.TEMPERATURE if temperature is None else temperature
        self.max_tokens = config.MAX_TOKENS if max_tokens is None else max_tokens
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(self.timeout, connect=min(self.timeout, config.CONNECT_TIMEOUT_S)),
            headers={"Content-Type": "application/json", **(headers or {})},
        )

    # --- model selection ---

    def get_model(self) -> str:
        return self._model

    def set_model(self, model: str) -> None:
        self._model = model

    # --- pure request/response pieces ---

    @abstractmethod
    def endpoint(self, *, stream: bool) -> str:
        ...

    def endpoint_params(self, *, stream: bool) -> Optional[Dict[str, str]]:
        return None

    def stream_headers(self) -> Dict[str, str]:
        return {}

    @abstractmethod
    def build_request(self, prompt: str, context: Sequence[FileContext], *, stream: bool) -> Dict[str, Any]:
        ...

    @abstractmethod
    def extract_text(self, data: Dict[str, Any]) -> Optional[str]:
        ...

    def extract_delta(self, event: Dict[str, Any]) -> Optional[str]:
        return self.extract_text(event)

    # --- error translation ---

    def _handle_error(self, exc: BaseException) -> ProviderError:
        err = classify_error(
            exc,
            provider=self.name,
            model=self._model,
            base_url=self.base_url,
            forbidden_is_auth=self.forbidden_is_auth,
        )
        if err.provider_type is None:
            err.provider_type = self.kind
        return err

    @contextmanager
    def _translate_errors(self) -> Iterator[None]:
        try:
            yield
        except Exception as e:
            err = self._handle_error(e)
            if err is e:
                raise
            raise err from e

    # --- transport ---

    async def _get_json(self, path: str) -> Any:
        r = await self._client.get(path)
        r.raise_for_status()
        return r.json()

    async def _post_json(self, path: str, payload: Dict[str, Any], params: Optional[Dict[str, str]] = None) -> Any:
        r = await self._client.post(path, json=payload, params=params)
        r.raise_for_status()
        return r.json()

    async def _stream_lines(self, payload: Dict[str, Any]) -> AsyncIterator[str]:
        async with self._client.stream(
            "POST",
            self.endpoint(stream=True),
            json=payload,
            params=self.endpoint_params(stream=True),
            headers=self.stream_headers(),
        ) as r:
            if r.is_error:
                # read the body so the status mapper can see the backend's message
                await r.aread()
                r.raise_for_status()
            async for line in r.aiter_lines():
                yield line

    async def _iter_events(self, lines: AsyncIterator[str]) -> AsyncIterator[Dict[str, Any]]:
        async for raw in lines:
            line = raw.strip()
            if not line:
                continue
            if self.stream_format == "sse":
                if line.startswith(":") or not line.startswith("data:"):
                    continue
                line = line[5:].strip()
                if line == "[DONE]":
                    return
            try:
                event = json.loads(line)
            except json.JSONDecodeError:
                logger.debug("%s: skipping malformed stream fragment %r", self.name, line[:80])
                continue
            if not isinstance(event, dict):
                continue
            if event.get("error"):
                raise RuntimeError(f"{self.name} stream error: {_error_text(event['error'])}")
            yield event

    # --- public operations ---

    async def generate_response(self, prompt: str, context: Sequence[FileContext]) -> str:
        payload = self.build_request(prompt, context, stream=False)
        with self._translate_errors():
            data = await self._post_json(
                self.endpoint(stream=False), payload, params=self.endpoint_params(stream=False)
            )
            if isinstance(data, dict) and data.get("error"):
                raise RuntimeError(f"{self.name} error: {_error_text(data['error'])}")
            text = self.extract_text(data) if isinstance(data, dict) else None
            if not text:
                raise RuntimeError(f"No content in response from {self.name}")
            return text

    async def stream_response(
        self,
        prompt: str,
        context: Sequence[FileContext],
        *,
        cancel: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[str]:
        payload = self.build_request(prompt, context, stream=True)
        with self._translate_errors():
            # aclosing releases the HTTP response as soon as [DONE] or a cancel ends the loop
            async with aclosing(self._stream_lines(payload)) as lines, aclosing(self._iter_events(lines)) as events:
                async for event in events:
                    if cancel is not None and cancel.is_set():
                        logger.debug("%s: stream cancelled by caller", self.name)
                        return
                    delta = self.extract_delta(event)
                    if delta:
                        yield delta

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
