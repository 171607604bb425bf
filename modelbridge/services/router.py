import logging
from typing import NamedTuple, Optional

from modelbridge.providers.base import ProviderClient, SupportsModelSelection
from modelbridge.services.registry import ProviderRegistry

logger = logging.getLogger(__name__)


class ParsedModelId(NamedTuple):
    provider: str
    model: str


def parse_model_id(model_id: str, default_provider: str) -> ParsedModelId:
    """Split "provider:model" on the first colon; a bare model belongs to the default provider."""
    provider, sep, model = model_id.partition(":")
    if not sep:
        return ParsedModelId(default_provider, model_id.strip())
    provider = provider.strip()
    return ParsedModelId(provider or default_provider, model.strip())


class MultiProviderRouter:
    def __init__(self, registry: ProviderRegistry, default_provider: Optional[str] = None) -> None:
        self.registry = registry
        self._default_provider = default_provider
        self._current_provider: Optional[str] = None

    def get_provider_for_model(self, model_id: str, default_provider: str) -> ProviderClient:
        parsed = parse_model_id(model_id, default_provider)
        client = self.registry.get_provider(parsed.provider)
        if parsed.model and isinstance(client, SupportsModelSelection):
            client.set_model(parsed.model)
        return client

    def get_provider(self, name: str) -> ProviderClient:
        return self.registry.get_provider(name)

    def switch_provider(self, name: str) -> None:
        # raises for unknown or disabled names before the pointer moves
        self.registry.get_provider(name)
        self._current_provider = name
        logger.info("switched current provider to %r", name)

    def get_current_provider(self) -> Optional[str]:
        return self._current_provider or self._default_provider

    def get_default_provider(self) -> Optional[str]:
        return self._default_provider
