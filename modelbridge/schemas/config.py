from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ProviderType(str, Enum):
    """Built-in backend types; the registry accepts any other string too."""

    OLLAMA = "ollama"
    OPENAI = "openai"
    GEMINI = "gemini"
    GOOGLE_CLOUD = "googleCloud"
    DEEPSEEK = "deepseek"
    QWEN = "qwen"


class _CamelModel(BaseModel):
    # persisted config uses camelCase keys (apiKey, baseUrl, providerSpecific)
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ProviderConfiguration(_CamelModel):
    type: str
    name: str
    enabled: bool = True
    model: Optional[str] = None
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    timeout: Optional[float] = Field(default=None, gt=0)  # seconds
    provider_specific: Dict[str, Any] = Field(default_factory=dict)


class GoogleSearchSettings(_CamelModel):
    enabled: bool = True
    allow_all_providers: bool = False


class UnifiedConfiguration(_CamelModel):
    default_provider: str
    default_model: Optional[str] = None
    providers: Dict[str, ProviderConfiguration] = Field(default_factory=dict)
    google_search: Optional[GoogleSearchSettings] = None
