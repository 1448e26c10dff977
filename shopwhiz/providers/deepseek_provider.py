# shopwhiz/providers/deepseek_provider.py

"""DeepSeek chat completions provider (OpenAI-compatible API)."""

from typing import Any

from shopwhiz.config.settings import Settings
from shopwhiz.errors import ProviderError
from shopwhiz.providers.base_provider import GenerativeProvider

_SYSTEM_PROMPT = (
    "You are a shopping assistant. When asked for JSON, reply with "
    "JSON only and no commentary."
)


class DeepSeekProvider(GenerativeProvider):
    """DeepSeek via ``/chat/completions``."""

    name = "deepseek"

    def __init__(self, api_key: str, model: str = "") -> None:
        super().__init__(api_key, model or Settings.DEEPSEEK_MODEL)

    def generate(self, prompt: str) -> str:
        data = self._post_json(
            self.settings.DEEPSEEK_URL,
            {
                "model": self.model,
                "messages": [
                    {"role": "system", "content": _SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                "temperature": 0.4,
                "stream": False,
            },
            headers={"Authorization": f"Bearer {self.api_key}"},
        )
        choices: list[dict[str, Any]] = data.get("choices") or []
        if not choices:
            raise ProviderError("deepseek returned no choices", self.name)
        message: dict[str, Any] = choices[0].get("message") or {}
        text = str(message.get("content") or "")
        if not text.strip():
            raise ProviderError(
                "deepseek returned empty text", self.name
            )
        return text
