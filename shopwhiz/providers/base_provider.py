# shopwhiz/providers/base_provider.py

"""Abstract base class for generative text providers."""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any

from curl_cffi import requests as curl_requests

from shopwhiz.config.settings import Settings
from shopwhiz.errors import ProviderError, ProviderQuotaExceeded

_QUOTA_MARKERS: tuple[str, ...] = (
    "resource_exhausted",
    "quota",
    "rate limit",
    "insufficient balance",
)


class GenerativeProvider(ABC):
    """One interchangeable text-generation backend.

    ``generate`` is blocking and is driven from the broker through
    ``asyncio.to_thread``.  A quota or rate-limit signal raises
    :class:`ProviderQuotaExceeded`; every other failure raises
    :class:`ProviderError`.
    """

    name: str = ""

    def __init__(self, api_key: str, model: str) -> None:
        self.api_key = api_key
        self.model = model
        self.logger = logging.getLogger(
            f"shopwhiz.providers.{self.name}"
        )
        self.settings = Settings()
        self.session = curl_requests.Session()

    def _post_json(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """POST *payload* and decode the JSON body.

        Raises:
            ProviderQuotaExceeded: HTTP 429 or a quota message.
            ProviderError: transport failure, other HTTP errors or a
                non-JSON body.
        """
        try:
            resp = self.session.post(
                url,
                json=payload,
                headers={
                    "Content-Type": "application/json",
                    **(headers or {}),
                },
                params=params,
                timeout=self.settings.PROVIDER_TIMEOUT,
            )
        except Exception as exc:
            raise ProviderError(
                f"{self.name} request failed: {exc}", self.name
            ) from exc

        body = resp.text or ""
        if resp.status_code == 429 or (
            resp.status_code != 200
            and any(m in body.lower() for m in _QUOTA_MARKERS)
        ):
            self.logger.warning(
                "[%s] Quota exceeded (HTTP %d)",
                self.name,
                resp.status_code,
            )
            raise ProviderQuotaExceeded(
                f"{self.name} quota exceeded", self.name
            )
        if resp.status_code != 200:
            raise ProviderError(
                f"{self.name} returned HTTP {resp.status_code}",
                self.name,
            )
        try:
            data: dict[str, Any] = json.loads(body)
        except json.JSONDecodeError as exc:
            raise ProviderError(
                f"{self.name} returned a non-JSON body", self.name
            ) from exc
        return data

    @abstractmethod
    def generate(self, prompt: str) -> str:
        """Return the generated text for *prompt*."""
        ...
