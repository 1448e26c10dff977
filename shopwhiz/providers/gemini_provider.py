# shopwhiz/providers/gemini_provider.py

"""Google Gemini ``generateContent`` REST provider."""

from typing import Any

from shopwhiz.config.settings import Settings
from shopwhiz.errors import ProviderError
from shopwhiz.providers.base_provider import GenerativeProvider


class GeminiProvider(GenerativeProvider):
    """Gemini via the public REST endpoint."""

    name = "gemini"

    def __init__(self, api_key: str, model: str = "") -> None:
        super().__init__(api_key, model or Settings.GEMINI_MODEL)

    def generate(self, prompt: str) -> str:
        url = self.settings.GEMINI_URL.format(model=self.model)
        data = self._post_json(
            url,
            {
                "contents": [
                    {"role": "user", "parts": [{"text": prompt}]}
                ],
                "generationConfig": {"temperature": 0.4},
            },
            params={"key": self.api_key},
        )
        candidates: list[dict[str, Any]] = (
            data.get("candidates") or []
        )
        if not candidates:
            feedback = data.get("promptFeedback") or {}
            raise ProviderError(
                "gemini returned no candidates "
                f"({feedback.get('blockReason', 'unknown')})",
                self.name,
            )
        parts: list[dict[str, Any]] = (
            (candidates[0].get("content") or {}).get("parts") or []
        )
        text = "".join(str(p.get("text", "")) for p in parts)
        if not text.strip():
            raise ProviderError("gemini returned empty text", self.name)
        return text
