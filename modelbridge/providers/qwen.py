from typing import Any, Dict, List, Optional, Sequence

from modelbridge.providers.base import file_context_messages
from modelbridge.providers.openai import OpenAIProvider
from modelbridge.schemas.content import FileContext

# DashScope has no public model listing endpoint
KNOWN_MODELS = ["qwen-turbo", "qwen-plus", "qwen-max", "qwen-max-longcontext"]


class QwenProvider(OpenAIProvider):
    """Alibaba DashScope text-generation API (native, not the compatible-mode endpoint)."""

    kind = "qwen"
    default_base_url = "https://dashscope.aliyuncs.com/api/v1"
    default_model = "qwen-turbo"
    api_key_env = "QWEN_API_KEY"
    chat_path = "/services/aigc/text-generation/generation"

    def stream_headers(self) -> Dict[str, str]:
        return {"X-DashScope-SSE": "enable"}

    def build_messages(self, prompt: str, context: Sequence[FileContext]) -> List[Dict[str, str]]:
        return file_context_messages(prompt, context)

    def build_request(self, prompt: str, context: Sequence[FileContext], *, stream: bool) -> Dict[str, Any]:
        parameters: Dict[str, Any] = {
            "result_format": "message",
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        if stream:
            # each SSE event then carries only the new text instead of the running total
            parameters["incremental_output"] = True
        return {
            "model": self._model,
            "input": {"messages": self.build_messages(prompt, context)},
            "parameters": parameters,
        }

    def extract_text(self, data: Dict[str, Any]) -> Optional[str]:
        output = data.get("output") or {}
        choices = output.get("choices") or [{}]
        content = (choices[0].get("message") or {}).get("content")
        return content or output.get("text")

    def extract_delta(self, event: Dict[str, Any]) -> Optional[str]:
        return self.extract_text(event)

    async def list_models(self) -> List[str]:
        return list(KNOWN_MODELS)
