"""Provider wrapper with automatic model fallback.

If the primary model fails, each fallback model is tried in order with an
otherwise identical request.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from relay_llm.errors import AllModelsFailedError
from relay_llm.provider import Provider
from relay_llm.types import ConversationRequest, ConversationResponse

logger = logging.getLogger(__name__)


class FallbackProvider(Provider):
    """Tries the primary request, then each fallback model in turn.

    With no fallbacks configured the primary error propagates unchanged,
    so the retry engine still sees the original error text.
    """

    def __init__(self, inner: Provider, fallback_models: Sequence[str]) -> None:
        self._inner = inner
        self._fallback_models = list(fallback_models)

    @property
    def name(self) -> str:
        return self._inner.name

    @property
    def default_model(self) -> str:
        return self._inner.default_model

    @property
    def fallback_models(self) -> list[str]:
        return list(self._fallback_models)

    async def chat(self, request: ConversationRequest) -> ConversationResponse:
        try:
            return await self._inner.chat(request)
        except Exception as exc:
            if not self._fallback_models:
                raise
            logger.warning(
                "Primary model failed: %s. Trying %d fallback(s)...",
                exc,
                len(self._fallback_models),
            )
            errors: list[str] = [f"{request.model or self.default_model}: {exc}"]

        total = len(self._fallback_models)
        for index, model in enumerate(self._fallback_models, start=1):
            logger.info("Trying fallback model %d/%d: %s", index, total, model)
            try:
                response = await self._inner.chat(request.model_copy(update={"model": model}))
            except Exception as exc:  # noqa: BLE001
                logger.warning("Fallback model %s failed: %s", model, exc)
                errors.append(f"{model}: {exc}")
                continue
            logger.info("Fallback model %s succeeded", model)
            return response

        raise AllModelsFailedError(
            "All models (primary + fallbacks) failed: " + "; ".join(errors),
            provider=self.name,
        )

    async def list_models(self) -> list[str]:
        list_models = getattr(self._inner, "list_models", None)
        models = await list_models() if list_models is not None else [self.default_model]
        return models + [m for m in self._fallback_models if m not in models]
