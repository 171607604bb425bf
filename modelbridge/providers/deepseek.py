from typing import Dict, List, Sequence

from modelbridge.providers.base import file_context_messages
from modelbridge.providers.openai import OpenAIProvider
from modelbridge.schemas.content import FileContext


class DeepSeekProvider(OpenAIProvider):
    """DeepSeek OpenAI-compatible chat completions."""

    kind = "deepseek"
    default_base_url = "https://api.deepseek.com/v1"
    default_model = "deepseek-chat"
    api_key_env = "DEEPSEEK_API_KEY"

    def build_messages(self, prompt: str, context: Sequence[FileContext]) -> List[Dict[str, str]]:
        return file_context_messages(prompt, context)

    def filter_models(self, ids: List[str]) -> List[str]:
        return ids
