# centralized configuration loader
# runs load_dotenv() to read .env
# the host may hand over an already-parsed config dict; otherwise one is derived from the environment

import os
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from modelbridge.schemas.config import (
    GoogleSearchSettings,
    ProviderConfiguration,
    ProviderType,
    UnifiedConfiguration,
)

load_dotenv()


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes", "y"}


# Routing
DEFAULT_PROVIDER = os.getenv("DEFAULT_PROVIDER", "ollama")
OLLAMA_HOST = os.getenv("OLLAMA_HOST", "http://localhost:11434")
OLLAMA_MODEL = os.getenv("OLLAMA_MODEL", "qwen2.5-coder")

# Timeouts (seconds); local backends fail fast, remote ones get longer
LOCAL_TIMEOUT_S = float(os.getenv("LOCAL_TIMEOUT_S", "5"))
REMOTE_TIMEOUT_S = float(os.getenv("REMOTE_TIMEOUT_S", "30"))
CONNECT_TIMEOUT_S = float(os.getenv("CONNECT_TIMEOUT_S", "10"))

# Generation caps
TEMPERATURE = float(os.getenv("TEMPERATURE", "0.7"))
MAX_TOKENS = int(os.getenv("MAX_TOKENS", "4096"))

# Terminal streaming
STREAM_MAX_TOKEN_INTERVAL_MS = int(os.getenv("STREAM_MAX_TOKEN_INTERVAL_MS", "100"))
STREAM_MAX_BUFFERING_DELAY_MS = int(os.getenv("STREAM_MAX_BUFFERING_DELAY_MS", "500"))
STREAM_ENABLE_BUFFERING = _flag("STREAM_ENABLE_BUFFERING", "false")

# Google Search tool gating
GOOGLE_SEARCH_ALLOW_ALL_PROVIDERS = _flag("GOOGLE_SEARCH_ALLOW_ALL_PROVIDERS", "false")


def provider_timeout(is_local: bool = False) -> float:
    return LOCAL_TIMEOUT_S if is_local else REMOTE_TIMEOUT_S


def _providers_from_env() -> Dict[str, ProviderConfiguration]:
    providers: Dict[str, ProviderConfiguration] = {
        "ollama": ProviderConfiguration(
            type=ProviderType.OLLAMA.value,
            name="ollama",
            base_url=OLLAMA_HOST,
            model=OLLAMA_MODEL,
        )
    }
    keyed = [
        (ProviderType.OPENAI, "OPENAI_API_KEY", "OPENAI_MODEL"),
        (ProviderType.GEMINI, "GEMINI_API_KEY", "GEMINI_MODEL"),
        (ProviderType.DEEPSEEK, "DEEPSEEK_API_KEY", "DEEPSEEK_MODEL"),
        (ProviderType.QWEN, "QWEN_API_KEY", "QWEN_MODEL"),
    ]
    for ptype, key_var, model_var in keyed:
        if os.getenv(key_var):
            providers[ptype.value] = ProviderConfiguration(
                type=ptype.value,
                name=ptype.value,
                api_key=f"env:{key_var}",
                model=os.getenv(model_var) or None,
            )
    project = os.getenv("GOOGLE_CLOUD_PROJECT_ID")
    if project:
        providers[ProviderType.GOOGLE_CLOUD.value] = ProviderConfiguration(
            type=ProviderType.GOOGLE_CLOUD.value,
            name=ProviderType.GOOGLE_CLOUD.value,
            api_key="env:GOOGLE_CLOUD_ACCESS_TOKEN" if os.getenv("GOOGLE_CLOUD_ACCESS_TOKEN") else None,
            model=os.getenv("GOOGLE_CLOUD_MODEL") or None,
            provider_specific={
                "projectId": project,
                "region": os.getenv("GOOGLE_CLOUD_REGION", "us-central1"),
            },
        )
    return providers


def load_configuration(raw: Optional[Dict[str, Any]] = None) -> UnifiedConfiguration:
    """Validate a host-supplied config dict, or build one from the environment."""
    if raw is not None:
        return UnifiedConfiguration.model_validate(raw)
    return UnifiedConfiguration(
        default_provider=DEFAULT_PROVIDER,
        providers=_providers_from_env(),
        google_search=GoogleSearchSettings(allow_all_providers=GOOGLE_SEARCH_ALLOW_ALL_PROVIDERS),
    )
