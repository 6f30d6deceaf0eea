from __future__ import annotations

import httpx

from filelens_core.errors import AuthorizationError, BackendError, ConfigurationError, TransientBackendError
from filelens_core.providers.base import RATE_LIMIT_MESSAGE, BaseReviewer


class GeminiReviewer(BaseReviewer):
    NAME = "Gemini"
    MODEL = "gemini-2.5-flash"
    API_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
    # Low temperature keeps the structured JSON output stable.
    TEMPERATURE = 0.2
    TIMEOUT = 60.0

    def __init__(self, api_key: str | None, client: httpx.AsyncClient | None = None):
        if not api_key:
            raise ConfigurationError("GEMINI_API_KEY environment variable is not set.")
        self.api_key = api_key
        self._client = client

    async def _call_api(self, system_prompt: str, turns: list[dict], json_output: bool) -> str:
        generation_config: dict = {"temperature": self.TEMPERATURE, "maxOutputTokens": self.MAX_TOKENS}
        if json_output:
            generation_config["responseMimeType"] = "application/json"
        payload = {
            "systemInstruction": {"parts": [{"text": system_prompt}]},
            "contents": [{"role": t["role"], "parts": [{"text": t["content"]}]} for t in turns],
            "generationConfig": generation_config,
        }

        try:
            if self._client is not None:
                response = await self._post(self._client, payload)
            else:
                async with httpx.AsyncClient() as client:
                    response = await self._post(client, payload)
        except (httpx.TimeoutException, httpx.NetworkError) as e:
            raise TransientBackendError(f"Could not reach Gemini: {e}") from e

        if response.status_code == 429:
            raise TransientBackendError(RATE_LIMIT_MESSAGE)
        if response.status_code >= 500:
            raise TransientBackendError(f"Gemini is temporarily unavailable ({response.status_code}).")
        if response.status_code in (401, 403):
            raise AuthorizationError("Gemini rejected the API key. Check GEMINI_API_KEY.")
        if response.is_error:
            raise BackendError(f"Gemini API error {response.status_code}: {response.text[:200]}")

        data = response.json()
        try:
            parts = data["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError):
            raise BackendError(f"Gemini returned no candidates: {str(data)[:200]}")
        return "".join(p.get("text", "") for p in parts).strip()

    async def _post(self, client: httpx.AsyncClient, payload: dict) -> httpx.Response:
        return await client.post(
            self.API_URL.format(model=self.MODEL),
            params={"key": self.api_key},
            json=payload,
            timeout=self.TIMEOUT,
        )
