# maps built-in backend types onto their constructors and builds a ready registry from a configuration

from typing import Dict

from modelbridge.providers.deepseek import DeepSeekProvider
from modelbridge.providers.gemini import GeminiProvider
from modelbridge.providers.ollama import OllamaProvider
from modelbridge.providers.openai import OpenAIProvider
from modelbridge.providers.qwen import QwenProvider
from modelbridge.providers.vertex import VertexAIProvider
from modelbridge.schemas.config import ProviderType, UnifiedConfiguration
from modelbridge.services.registry import ProviderFactory, ProviderRegistry

DEFAULT_FACTORIES: Dict[str, ProviderFactory] = {
    ProviderType.OLLAMA.value: OllamaProvider.from_config,
    ProviderType.OPENAI.value: OpenAIProvider.from_config,
    ProviderType.GEMINI.value: GeminiProvider.from_config,
    ProviderType.GOOGLE_CLOUD.value: VertexAIProvider.from_config,
    ProviderType.DEEPSEEK.value: DeepSeekProvider.from_config,
    ProviderType.QWEN.value: QwenProvider.from_config,
}


def register_default_factories(registry: ProviderRegistry) -> ProviderRegistry:
    for ptype, factory in DEFAULT_FACTORIES.items():
        registry.register_factory(ptype, factory)
    return registry


def build_registry(configuration: UnifiedConfiguration) -> ProviderRegistry:
    """Registry with every built-in factory and every configured provider registered (nothing built yet)."""
    registry = register_default_factories(ProviderRegistry())
    for name, cfg in configuration.providers.items():
        registry.register_provider(name, cfg)
    return registry
