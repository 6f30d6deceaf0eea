"""Tests for the model → backend registry."""

import pytest

from filelens_core.errors import BackendNotImplementedError, ConfigurationError, UnknownBackendError
from filelens_core.models import AiModel
from filelens_core.providers.unimplemented import UnimplementedReviewer
from filelens_core.registry import BackendRegistry, build_registry


class TestBackendRegistry:
    def test_resolve_runs_factory_once(self):
        calls = []

        def factory():
            calls.append(1)
            return UnimplementedReviewer("x")

        registry = BackendRegistry()
        registry.register("x", factory)
        first = registry.resolve("x")
        assert registry.resolve("x") is first
        assert len(calls) == 1

    def test_factory_not_called_until_resolved(self):
        registry = BackendRegistry()
        registry.register("x", lambda: pytest.fail("factory called eagerly"))
        assert "x" in registry

    def test_unknown_model_raises(self):
        with pytest.raises(UnknownBackendError, match="AI service for model 'llama' not found."):
            BackendRegistry().resolve("llama")

    def test_unknown_model_is_configuration_error(self):
        assert issubclass(UnknownBackendError, ConfigurationError)

    def test_enum_and_string_keys_are_equivalent(self):
        registry = BackendRegistry()
        registry.register(AiModel.CLAUDE, lambda: UnimplementedReviewer("claude"))
        assert registry.resolve("claude") is registry.resolve(AiModel.CLAUDE)
        assert AiModel.CLAUDE in registry
        assert 42 not in registry

    def test_reregister_drops_cached_instance(self):
        registry = BackendRegistry()
        registry.register("x", lambda: UnimplementedReviewer("x"))
        first = registry.resolve("x")
        registry.register("x", lambda: UnimplementedReviewer("x"))
        assert registry.resolve("x") is not first

    @pytest.mark.asyncio
    async def test_unimplemented_backend_resolves_but_fails_on_use(self):
        registry = BackendRegistry()
        registry.register_unimplemented("mistral", "Mistral")
        reviewer = registry.resolve("mistral")
        with pytest.raises(BackendNotImplementedError, match="Mistral"):
            await reviewer.get_code_review("x", "python")


class TestBuildRegistry:
    def test_registers_builtin_backends(self):
        registry = build_registry({})
        assert registry.models() == ["gemini", "claude", "chatgpt"]

    def test_missing_credentials_only_fail_on_resolve(self):
        registry = build_registry({"gemini_api_key": None})
        with pytest.raises(ConfigurationError, match="GEMINI_API_KEY"):
            registry.resolve("gemini")

    def test_resolves_gemini_with_key(self):
        reviewer = build_registry({"gemini_api_key": "k"}).resolve(AiModel.GEMINI)
        assert reviewer.NAME == "Gemini"
        assert reviewer.api_key == "k"

    def test_planned_models_registered_as_unimplemented(self):
        registry = build_registry({"planned_models": ["mistral"]})
        assert "mistral" in registry
        assert isinstance(registry.resolve("mistral"), UnimplementedReviewer)
