# modelbridge/main.py
from typing import Any, Dict, Optional

from modelbridge.core import config
from modelbridge.providers.factory import build_registry
from modelbridge.services.adapter import ModelAdapter
from modelbridge.services.context import ContextProvider
from modelbridge.services.router import MultiProviderRouter


def create_adapter(
    raw_config: Optional[Dict[str, Any]] = None,
    *,
    context_provider: Optional[ContextProvider] = None,
) -> ModelAdapter:
    """
    Wires configuration -> registry -> router -> adapter.
    The registry only records configurations here; clients are built on first use,
    so an unreachable or misconfigured backend fails when it is addressed, not at startup.
    """
    configuration = config.load_configuration(raw_config)
    registry = build_registry(configuration)
    router = MultiProviderRouter(registry, configuration.default_provider)
    return ModelAdapter(router, configuration, context_provider)
