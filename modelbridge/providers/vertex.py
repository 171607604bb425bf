import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from modelbridge.providers.base import HTTPProvider, resolve_api_key
from modelbridge.providers.gemini import extract_candidate_text
from modelbridge.schemas.config import ProviderConfiguration
from modelbridge.schemas.content import FileContext

logger = logging.getLogger(__name__)

KNOWN_MODELS = [
    "chat-bison@001",
    "code-bison@001",
    "gemini-pro",
    "gemini-pro-vision",
    "text-bison@001",
]


def vertex_base_url(project_id: Optional[str], region: str) -> str:
    return (
        f"https://{region}-aiplatform.googleapis.com/v1/projects/{project_id}"
        f"/locations/{region}/publishers/google/models"
    )


class VertexAIProvider(HTTPProvider):
    """Google Cloud Vertex AI publisher models via rawPredict / streamRawPredict.

    Authentication is a pre-obtained OAuth or service-account bearer token; the
    streaming endpoint answers with newline-delimited JSON rather than SSE.
    """

    kind = "googleCloud"
    default_model = "gemini-pro"
    stream_format = "ndjson"
    # 403 here is IAM or a disabled API, not a bad token
    forbidden_is_auth = False

    def __init__(
        self,
        *,
        access_token: Optional[str] = None,
        project_id: Optional[str] = None,
        region: str = "us-central1",
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        client: Optional[httpx.AsyncClient] = None,
        name: Optional[str] = None,
    ) -> None:
        self.access_token = resolve_api_key(access_token, "GOOGLE_CLOUD_ACCESS_TOKEN", required=False)
        self.project_id = project_id
        self.region = region
        headers = {"Authorization": f"Bearer {self.access_token}"} if self.access_token else {}
        super().__init__(
            base_url=base_url or vertex_base_url(project_id, region),
            model=model,
            timeout=timeout,
            headers=headers,
            temperature=temperature,
            max_tokens=max_tokens,
            client=client,
            name=name,
        )

    @classmethod
    def from_config(cls, cfg: ProviderConfiguration) -> "VertexAIProvider":
        ps = cfg.provider_specific
        return cls(
            access_token=cfg.api_key,
            project_id=ps.get("projectId"),
            region=ps.get("region") or "us-central1",
            base_url=cfg.base_url or ps.get("endpoint"),
            model=cfg.model,
            timeout=cfg.timeout,
            name=cfg.name,
            temperature=ps.get("temperature"),
            max_tokens=ps.get("maxTokens"),
        )

    def endpoint(self, *, stream: bool) -> str:
        method = "streamRawPredict" if stream else "rawPredict"
        return f"/{self._model}:{method}"

    def build_request(self, prompt: str, context: Sequence[FileContext], *, stream: bool) -> Dict[str, Any]:
        if context:
            files = "\n\n".join(f"File: {f.path}\n{f.content}" for f in context)
            full_prompt = f"{files}\n\nUser: {prompt}"
        else:
            full_prompt = prompt
        return {
            "instances": [{"prompt": full_prompt}],
            "parameters": {"temperature": self.temperature, "maxOutputTokens": self.max_tokens},
        }

    def extract_text(self, data: Dict[str, Any]) -> Optional[str]:
        predictions = data.get("predictions")
        if isinstance(predictions, list) and predictions and isinstance(predictions[0], dict):
            pred = predictions[0]
            for key in ("content", "generatedText"):
                if isinstance(pred.get(key), str):
                    return pred[key]
        # gemini-family publisher models answer in the generateContent shape
        return extract_candidate_text(data)

    async def list_models(self) -> List[str]:
        try:
            data = await self._get_json("/")
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("googleCloud model listing failed (%s); using the known model list", e)
            return list(KNOWN_MODELS)
        models: List[str] = []
        for m in data.get("models") or []:
            # projects/{p}/locations/{r}/publishers/google/models/{model}
            model_id = (m.get("name") or "").rsplit("/", 1)[-1]
            if model_id:
                models.append(model_id)
        return sorted(models) or list(KNOWN_MODELS)
