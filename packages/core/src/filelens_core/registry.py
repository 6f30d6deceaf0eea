"""Model identifier → backend lookup.

Resolution is a synchronous dictionary lookup. An unknown identifier is a
programming/configuration error and fails the same way every time; it is
never retried. Factories run on first resolve so a backend whose credentials
are missing only fails when it is actually selected.
"""

from __future__ import annotations

import logging
from typing import Callable

from filelens_core.errors import UnknownBackendError
from filelens_core.models import AiModel
from filelens_core.providers.base import BaseReviewer
from filelens_core.providers.unimplemented import UnimplementedReviewer

logger = logging.getLogger(__name__)

BackendFactory = Callable[[], BaseReviewer]

MODEL_LABELS = {
    AiModel.GEMINI.value: "Google Gemini",
    AiModel.CLAUDE.value: "Anthropic Claude",
    AiModel.CHATGPT.value: "OpenAI ChatGPT",
}


def _key(model: str | AiModel) -> str:
    return model.value if isinstance(model, AiModel) else str(model)


class BackendRegistry:
    def __init__(self):
        self._factories: dict[str, BackendFactory] = {}
        self._instances: dict[str, BaseReviewer] = {}

    def register(self, model: str | AiModel, factory: BackendFactory) -> None:
        key = _key(model)
        self._factories[key] = factory
        self._instances.pop(key, None)

    def register_unimplemented(self, model: str | AiModel, label: str | None = None) -> None:
        key = _key(model)
        self.register(key, lambda: UnimplementedReviewer(key, label or MODEL_LABELS.get(key, key)))

    def resolve(self, model: str | AiModel) -> BaseReviewer:
        key = _key(model)
        if key not in self._factories:
            raise UnknownBackendError(key)
        if key not in self._instances:
            logger.debug("Instantiating backend for %r", key)
            self._instances[key] = self._factories[key]()
        return self._instances[key]

    def models(self) -> list[str]:
        return list(self._factories)

    def __contains__(self, model: object) -> bool:
        return isinstance(model, (str, AiModel)) and _key(model) in self._factories


def build_registry(config: dict) -> BackendRegistry:
    """Register the built-in backends with credentials taken from config."""
    # Provider modules are imported lazily so an optional SDK that is not
    # installed only matters when its backend is selected.

    def gemini() -> BaseReviewer:
        from filelens_core.providers.gemini import GeminiReviewer

        return GeminiReviewer(api_key=config.get("gemini_api_key"))

    def claude() -> BaseReviewer:
        from filelens_core.providers.anthropic import AnthropicReviewer

        return AnthropicReviewer(api_key=config.get("anthropic_api_key"))

    def chatgpt() -> BaseReviewer:
        from filelens_core.providers.openai import OpenAIReviewer

        return OpenAIReviewer(api_key=config.get("openai_api_key"))

    registry = BackendRegistry()
    registry.register(AiModel.GEMINI, gemini)
    registry.register(AiModel.CLAUDE, claude)
    registry.register(AiModel.CHATGPT, chatgpt)
    for model in config.get("planned_models") or []:
        registry.register_unimplemented(model)
    return registry
