from typing import Any, Dict, List, Optional, Sequence

import httpx

from modelbridge.providers.base import HTTPProvider, codebase_system_prompt, resolve_api_key
from modelbridge.schemas.config import ProviderConfiguration
from modelbridge.schemas.content import FileContext


class OpenAICompatibleProvider(HTTPProvider):
    """Any backend speaking the OpenAI chat-completions dialect over SSE."""

    kind = "openai"
    chat_path = "/chat/completions"

    def build_messages(self, prompt: str, context: Sequence[FileContext]) -> List[Dict[str, str]]:
        return [
            {"role": "system", "content": codebase_system_prompt(context)},
            {"role": "user", "content": prompt},
        ]

    def endpoint(self, *, stream: bool) -> str:
        return self.chat_path

    def build_request(self, prompt: str, context: Sequence[FileContext], *, stream: bool) -> Dict[str, Any]:
        return {
            "model": self._model,
            "messages": self.build_messages(prompt, context),
            "stream": stream,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }

    def extract_text(self, data: Dict[str, Any]) -> Optional[str]:
        choices = data.get("choices") or [{}]
        return (choices[0].get("message") or {}).get("content")

    def extract_delta(self, event: Dict[str, Any]) -> Optional[str]:
        choices = event.get("choices") or [{}]
        return (choices[0].get("delta") or {}).get("content")

    def filter_models(self, ids: List[str]) -> List[str]:
        return ids

    async def list_models(self) -> List[str]:
        with self._translate_errors():
            data = await self._get_json("/models")
        ids = [m.get("id") for m in (data.get("data") or []) if isinstance(m, dict)]
        return self.filter_models([i for i in ids if i])


class OpenAIProvider(OpenAICompatibleProvider):
    kind = "openai"
    default_base_url = "https://api.openai.com/v1"
    default_model = "gpt-4"
    api_key_env = "OPENAI_API_KEY"

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        organization: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        client: Optional[httpx.AsyncClient] = None,
        name: Optional[str] = None,
    ) -> None:
        self.api_key = resolve_api_key(api_key, self.api_key_env)
        headers = {"Authorization": f"Bearer {self.api_key}"}
        if organization:
            headers["OpenAI-Organization"] = organization
        super().__init__(
            base_url=base_url,
            model=model,
            timeout=timeout,
            headers=headers,
            temperature=temperature,
            max_tokens=max_tokens,
            client=client,
            name=name,
        )

    @classmethod
    def from_config(cls, cfg: ProviderConfiguration) -> "OpenAIProvider":
        ps = cfg.provider_specific
        return cls(
            api_key=cfg.api_key,
            base_url=cfg.base_url,
            model=cfg.model,
            timeout=cfg.timeout,
            name=cfg.name,
            organization=ps.get("organization"),
            temperature=ps.get("temperature"),
            max_tokens=ps.get("maxTokens"),
        )

    def filter_models(self, ids: List[str]) -> List[str]:
        # chat-capable families only; embeddings, tts etc. are not addressable here
        return sorted(i for i in ids if i.startswith(("gpt-", "o1-")))
