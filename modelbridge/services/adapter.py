# host-facing entry point: host content in, host content out
# every failure leaving this module is one of the classified provider errors

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, List, Optional, Tuple

from modelbridge.core.errors import CLASSIFIED_ERRORS, ProviderError, ValidationError, classify_error
from modelbridge.providers.base import ProviderClient, SupportsModelListing, SupportsModelSelection
from modelbridge.schemas.config import ProviderType, UnifiedConfiguration
from modelbridge.schemas.content import FileContext, GenerateContentRequest, GenerateContentResponse
from modelbridge.services.context import ContextProvider
from modelbridge.services.prompt import build_prompt
from modelbridge.services.router import MultiProviderRouter, parse_model_id

logger = logging.getLogger(__name__)

GOOGLE_SEARCH_TYPES = {ProviderType.GEMINI.value, ProviderType.GOOGLE_CLOUD.value}


class ModelAdapter:
    def __init__(
        self,
        router: MultiProviderRouter,
        config: UnifiedConfiguration,
        context_provider: Optional[ContextProvider] = None,
    ) -> None:
        self.router = router
        self.config = config
        self._context_provider = context_provider

    @property
    def context_provider(self) -> Optional[ContextProvider]:
        return self._context_provider

    def set_context_provider(self, context_provider: Optional[ContextProvider]) -> None:
        self._context_provider = context_provider

    def _prepare(self, request: GenerateContentRequest) -> Tuple[str, List[FileContext]]:
        context = list(self._context_provider.get_context()) if self._context_provider else []
        return build_prompt(request.contents, context, request.system_instruction), context

    def _model_id(self, request: GenerateContentRequest) -> str:
        # an empty request model falls back to the configured default model
        return request.model or self.config.default_model or ""

    def _classify(self, exc: BaseException, request: GenerateContentRequest) -> ProviderError:
        # resolution may be what failed, so the name comes from parsing again, not from the client
        parsed = parse_model_id(self._model_id(request), self.config.default_provider)
        if not isinstance(exc, CLASSIFIED_ERRORS):
            logger.exception("unclassified failure from provider %r", parsed.provider)
        return classify_error(exc, provider=parsed.provider, model=parsed.model or None)

    async def generate_content(self, request: GenerateContentRequest) -> GenerateContentResponse:
        try:
            prompt, context = self._prepare(request)
            client = self.router.get_provider_for_model(self._model_id(request), self.config.default_provider)
            text = await client.generate_response(prompt, context)
        except Exception as e:
            err = self._classify(e, request)
            if err is e:
                raise
            raise err from e
        return GenerateContentResponse.from_text(text)

    async def stream_generate_content(
        self,
        request: GenerateContentRequest,
        *,
        cancel: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[GenerateContentResponse]:
        """Yield responses carrying the cumulative text so far, not deltas.

        The host replaces what it displays with each yielded text. Text
        already yielded stays with the host when the stream fails or is
        cancelled.
        """
        accumulated = ""
        try:
            prompt, context = self._prepare(request)
            client = self.router.get_provider_for_model(self._model_id(request), self.config.default_provider)
            async for delta in client.stream_response(prompt, context, cancel=cancel):
                accumulated += delta
                yield GenerateContentResponse.from_text(accumulated)
        except Exception as e:
            err = self._classify(e, request)
            if err is e:
                raise
            raise err from e

    def get_provider_for_model(self, model_id: str) -> ProviderClient:
        return self.router.get_provider_for_model(model_id, self.config.default_provider)

    def switch_provider(self, name: str) -> None:
        self.router.switch_provider(name)

    def get_current_provider(self) -> str:
        return self.router.get_current_provider() or self.config.default_provider

    async def switch_model(self, provider_name: str, model_name: str) -> None:
        client = self.router.get_provider(provider_name)
        if isinstance(client, SupportsModelListing) and not await client.has_model(model_name):
            try:
                available = await client.list_models()
            except ProviderError as e:
                logger.debug("could not list models for %r: %s", provider_name, e)
                available = []
            hint = f" Available models: {', '.join(available[:5])}" if available else ""
            raise ValidationError(
                f'Model "{model_name}" not found in provider "{provider_name}".{hint}',
                "model",
            )
        if not isinstance(client, SupportsModelSelection):
            raise ValidationError(f'Provider "{provider_name}" does not support model switching', "model")
        client.set_model(model_name)
        cfg = self.config.providers.get(provider_name)
        if cfg is not None:
            cfg.model = model_name
        logger.info("switched provider %r to model %r", provider_name, model_name)

    def supports_google_search(self) -> bool:
        settings = self.config.google_search
        if settings is not None and not settings.enabled:
            return False
        if settings is not None and settings.allow_all_providers:
            return True
        cfg = self.config.providers.get(self.get_current_provider())
        return cfg is not None and cfg.type in GOOGLE_SEARCH_TYPES
