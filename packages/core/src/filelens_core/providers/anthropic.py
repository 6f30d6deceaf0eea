from __future__ import annotations

from filelens_core.errors import AuthorizationError, BackendError, ConfigurationError, TransientBackendError
from filelens_core.providers.base import RATE_LIMIT_MESSAGE, BaseReviewer

_ROLES = {"user": "user", "model": "assistant"}


class AnthropicReviewer(BaseReviewer):
    NAME = "Claude"
    MODEL = "claude-sonnet-4-20250514"
    # Kept low enough for a stable JSON review format.
    TEMPERATURE = 0.3
    TIMEOUT = 60.0

    def __init__(self, api_key: str | None):
        if not api_key:
            raise ConfigurationError("ANTHROPIC_API_KEY environment variable is not set.")
        try:
            from anthropic import AsyncAnthropic
        except ImportError:
            raise ImportError(
                "The 'anthropic' package is required for this provider. "
                "Install it with: pip install 'filelens[anthropic]'"
            )
        self.client = AsyncAnthropic(api_key=api_key, timeout=self.TIMEOUT)

    async def _call_api(self, system_prompt: str, turns: list[dict], json_output: bool) -> str:
        # Optional dependency; __init__ has already checked it imports.
        import anthropic
        from anthropic.types import TextBlock

        if json_output:
            system_prompt += "\n\nRespond with a single JSON value and nothing else."
        try:
            response = await self.client.messages.create(
                model=self.MODEL,
                system=system_prompt,
                messages=[{"role": _ROLES[t["role"]], "content": t["content"]} for t in turns],
                temperature=self.TEMPERATURE,
                max_tokens=self.MAX_TOKENS,
            )
        except anthropic.RateLimitError as e:
            raise TransientBackendError(RATE_LIMIT_MESSAGE) from e
        except (anthropic.APIConnectionError, anthropic.InternalServerError) as e:
            raise TransientBackendError(f"Could not reach Claude: {e}") from e
        except (anthropic.AuthenticationError, anthropic.PermissionDeniedError) as e:
            raise AuthorizationError("Claude rejected the API key. Check ANTHROPIC_API_KEY.") from e
        except anthropic.APIError as e:
            raise BackendError(f"Claude API error: {e}") from e

        text_blocks = [block.text for block in response.content if isinstance(block, TextBlock)]
        return "".join(text_blocks).strip()
