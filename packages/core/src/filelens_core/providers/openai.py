from __future__ import annotations

try:
    import openai as _openai
except ImportError:
    _openai = None  # type: ignore[assignment]

from filelens_core.errors import AuthorizationError, BackendError, ConfigurationError, TransientBackendError
from filelens_core.providers.base import RATE_LIMIT_MESSAGE, BaseReviewer

_ROLES = {"user": "user", "model": "assistant"}


class OpenAIReviewer(BaseReviewer):
    NAME = "ChatGPT"
    MODEL = "gpt-4o"
    TEMPERATURE = 0.2
    TIMEOUT = 60.0

    def __init__(self, api_key: str | None):
        if not api_key:
            raise ConfigurationError("OPENAI_API_KEY environment variable is not set.")
        if _openai is None:
            raise ImportError(
                "The 'openai' package is required for this provider. " "Install it with: pip install 'filelens[openai]'"
            )
        self.client = _openai.AsyncOpenAI(api_key=api_key, timeout=self.TIMEOUT)

    async def _call_api(self, system_prompt: str, turns: list[dict], json_output: bool) -> str:
        kwargs: dict = {}
        if json_output:
            kwargs["response_format"] = {"type": "json_object"}
        try:
            response = await self.client.chat.completions.create(
                model=self.MODEL,
                messages=[{"role": "system", "content": system_prompt}]
                + [{"role": _ROLES[t["role"]], "content": t["content"]} for t in turns],
                temperature=self.TEMPERATURE,
                max_tokens=self.MAX_TOKENS,
                **kwargs,
            )
        except _openai.RateLimitError as e:
            raise TransientBackendError(RATE_LIMIT_MESSAGE) from e
        except (_openai.APIConnectionError, _openai.InternalServerError) as e:
            raise TransientBackendError(f"Could not reach ChatGPT: {e}") from e
        except (_openai.AuthenticationError, _openai.PermissionDeniedError) as e:
            raise AuthorizationError("ChatGPT rejected the API key. Check OPENAI_API_KEY.") from e
        except _openai.APIError as e:
            raise BackendError(f"ChatGPT API error: {e}") from e

        return response.choices[0].message.content or ""
