# one map from provider name -> (config, cached client, factory)
# clients are built lazily on first lookup and kept for the life of the registry

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from modelbridge.core.errors import ValidationError
from modelbridge.providers.base import ProviderClient
from modelbridge.schemas.config import ProviderConfiguration

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[ProviderConfiguration], ProviderClient]


@dataclass
class RegistryEntry:
    config: ProviderConfiguration
    instance: Optional[ProviderClient] = None
    factory: Optional[ProviderFactory] = None


class ProviderRegistry:
    """
    self._entries: provider name (str) -> RegistryEntry
    self._factories: backend type (str) -> constructor taking a ProviderConfiguration

    get_provider memoizes with a plain presence check plus write. That is not
    safe under real threads; everything here runs on one event loop.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, RegistryEntry] = {}
        self._factories: Dict[str, ProviderFactory] = {}

    def register_factory(self, provider_type: str, factory: ProviderFactory) -> None:
        self._factories[provider_type] = factory
        # entries registered before their factory pick it up now
        for entry in self._entries.values():
            if entry.config.type == provider_type and entry.factory is None:
                entry.factory = factory

    def register_provider(self, name: str, config: ProviderConfiguration) -> None:
        self._entries[name] = RegistryEntry(config=config, factory=self._factories.get(config.type))

    def register_instance(self, name: str, client: ProviderClient, config: Optional[ProviderConfiguration] = None) -> None:
        cfg = config or ProviderConfiguration(type=getattr(client, "kind", name), name=name)
        self._entries[name] = RegistryEntry(config=cfg, instance=client, factory=self._factories.get(cfg.type))

    def get_provider(self, name: str) -> ProviderClient:
        entry = self._entries.get(name)
        if entry is None:
            raise ValidationError(f'Provider "{name}" not found in registry', "provider")
        if not entry.config.enabled:
            raise ValidationError(f'Provider "{name}" is disabled', "provider")
        if entry.instance is not None:
            return entry.instance
        if entry.factory is None:
            raise ValidationError(
                f'No factory registered for provider type "{entry.config.type}" (provider "{name}")',
                "provider",
            )
        entry.instance = entry.factory(entry.config)
        logger.debug("built %s client for provider %r", entry.config.type, name)
        return entry.instance

    def clear_cache(self, name: Optional[str] = None) -> None:
        # configuration stays; only the built clients are dropped
        if name is not None:
            entry = self._entries.get(name)
            if entry is not None:
                entry.instance = None
            return
        for entry in self._entries.values():
            entry.instance = None

    def has_provider(self, name: str) -> bool:
        return name in self._entries

    def list_providers(self) -> List[str]:
        return list(self._entries)

    def get_config(self, name: str) -> Optional[ProviderConfiguration]:
        entry = self._entries.get(name)
        return entry.config if entry else None

    async def aclose(self) -> None:
        for entry in self._entries.values():
            if entry.instance is not None:
                await entry.instance.aclose()
                entry.instance = None
