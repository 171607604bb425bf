from typing import Any, Dict, List, Optional

import httpx

from modelbridge.core import config
from modelbridge.providers.openai import OpenAICompatibleProvider
from modelbridge.schemas.config import ProviderConfiguration


def _apply_defaults(options: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    opts: Dict[str, Any] = dict(options or {})
    # map generation caps if the provider config didn't set them
    opts.setdefault("temperature", config.TEMPERATURE)
    opts.setdefault("maxTokens", config.MAX_TOKENS)
    return opts


class OllamaProvider(OpenAICompatibleProvider):
    """Local Ollama server through its OpenAI-compatible /v1 endpoint."""

    kind = "ollama"
    default_base_url = "http://localhost:11434"
    default_model = "qwen2.5-coder"
    chat_path = "/v1/chat/completions"
    is_local = True

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        options: Optional[Dict[str, Any]] = None,
        client: Optional[httpx.AsyncClient] = None,
        name: Optional[str] = None,
    ) -> None:
        opts = _apply_defaults(options)
        super().__init__(
            base_url=base_url or config.OLLAMA_HOST,
            model=model or config.OLLAMA_MODEL,
            timeout=timeout,
            temperature=opts["temperature"],
            max_tokens=opts["maxTokens"],
            client=client,
            name=name,
        )

    @classmethod
    def from_config(cls, cfg: ProviderConfiguration) -> "OllamaProvider":
        return cls(
            base_url=cfg.base_url, model=cfg.model, timeout=cfg.timeout, options=cfg.provider_specific, name=cfg.name
        )

    async def list_models(self) -> List[str]:
        # installed models come from the native /api/tags endpoint
        with self._translate_errors():
            data = await self._get_json("/api/tags")
        return [m["name"] for m in (data.get("models") or []) if m.get("name")]
