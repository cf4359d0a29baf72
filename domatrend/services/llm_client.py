"""OpenAI-compatible chat completions client over httpx.

Requests a schema-constrained JSON response and returns the raw message
content. Callers own the timeout race and the parsing.
"""

from typing import Optional

import httpx
import structlog

from domatrend.config import Settings

log = structlog.get_logger(__name__)


class LanguageModelError(Exception):
    """Raised on transport failure or an empty/malformed completion."""
    pass


class LanguageModelClient:
    def __init__(self, settings: Settings, http_client: Optional[httpx.AsyncClient] = None) -> None:
        self.settings = settings
        self.client = http_client or httpx.AsyncClient(
            base_url=settings.openai_base_url,
            timeout=httpx.Timeout(settings.openai_timeout, connect=5.0),
        )

    @property
    def enabled(self) -> bool:
        return self.settings.openai_enabled and bool(self.settings.openai_api_key)

    async def complete(self, prompt: str, schema: dict, schema_name: str = "response") -> str:
        body = {
            "model": self.settings.openai_model,
            "max_tokens": self.settings.openai_max_tokens,
            "temperature": self.settings.openai_temperature,
            "messages": [{"role": "user", "content": prompt}],
            "response_format": {
                "type": "json_schema",
                "json_schema": {"name": schema_name, "schema": schema, "strict": True},
            },
        }
        try:
            resp = await self.client.post(
                "/chat/completions",
                json=body,
                headers={"Authorization": f"Bearer {self.settings.openai_api_key}"},
            )
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise LanguageModelError(str(exc) or type(exc).__name__) from exc

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise LanguageModelError("completion payload missing message content") from exc
        if not isinstance(content, str) or not content.strip():
            raise LanguageModelError("language model returned empty response")
        return content.strip()

    async def close(self) -> None:
        await self.client.aclose()
