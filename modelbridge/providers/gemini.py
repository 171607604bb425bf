from typing import Any, Dict, List, Optional, Sequence

import httpx

from modelbridge.providers.base import HTTPProvider, codebase_system_prompt, resolve_api_key
from modelbridge.schemas.config import ProviderConfiguration
from modelbridge.schemas.content import FileContext


def extract_candidate_text(data: Dict[str, Any]) -> Optional[str]:
    """Join the text parts of the first candidate of a generateContent payload."""
    candidates = data.get("candidates") or []
    if not candidates or not isinstance(candidates[0], dict):
        return None
    parts = (candidates[0].get("content") or {}).get("parts") or []
    text = "".join(p["text"] for p in parts if isinstance(p, dict) and isinstance(p.get("text"), str))
    return text or None


class GeminiProvider(HTTPProvider):
    """Google Gemini REST API (generativelanguage.googleapis.com)."""

    kind = "gemini"
    default_base_url = "https://generativelanguage.googleapis.com/v1beta"
    default_model = "gemini-pro"
    api_key_env = "GEMINI_API_KEY"
    # the API answers 403 PERMISSION_DENIED for unknown or revoked keys
    forbidden_is_auth = True

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        client: Optional[httpx.AsyncClient] = None,
        name: Optional[str] = None,
    ) -> None:
        self.api_key = resolve_api_key(api_key, self.api_key_env)
        super().__init__(
            base_url=base_url,
            model=model,
            timeout=timeout,
            headers={"x-goog-api-key": self.api_key},
            temperature=temperature,
            max_tokens=max_tokens,
            client=client,
            name=name,
        )

    @classmethod
    def from_config(cls, cfg: ProviderConfiguration) -> "GeminiProvider":
        ps = cfg.provider_specific
        return cls(
            api_key=cfg.api_key,
            base_url=cfg.base_url,
            model=cfg.model,
            timeout=cfg.timeout,
            name=cfg.name,
            temperature=ps.get("temperature"),
            max_tokens=ps.get("maxTokens"),
        )

    def endpoint(self, *, stream: bool) -> str:
        method = "streamGenerateContent" if stream else "generateContent"
        return f"/models/{self._model}:{method}"

    def endpoint_params(self, *, stream: bool) -> Optional[Dict[str, str]]:
        # alt=sse switches the stream from one JSON array to data: lines
        return {"alt": "sse"} if stream else None

    def build_request(self, prompt: str, context: Sequence[FileContext], *, stream: bool) -> Dict[str, Any]:
        return {
            "systemInstruction": {"parts": [{"text": codebase_system_prompt(context)}]},
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self.temperature,
                "maxOutputTokens": self.max_tokens,
            },
        }

    def extract_text(self, data: Dict[str, Any]) -> Optional[str]:
        return extract_candidate_text(data)

    async def list_models(self) -> List[str]:
        with self._translate_errors():
            data = await self._get_json("/models")
        names: List[str] = []
        for m in data.get("models") or []:
            methods = m.get("supportedGenerationMethods") or []
            if methods and "generateContent" not in methods:
                continue
            name = m.get("name") or ""
            if name:
                names.append(name.split("/", 1)[1] if name.startswith("models/") else name)
        return sorted(names)
