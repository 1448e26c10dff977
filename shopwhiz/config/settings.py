# shopwhiz/config/settings.py

"""Central configuration for the shopwhiz discovery pipeline."""

import os
from dataclasses import dataclass
from pathlib import Path

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Central configuration for the shopwhiz discovery pipeline."""

    # --- Scraping ---
    REQUEST_DELAY: float = 1.0          # Seconds between retries
    REQUEST_TIMEOUT: int = 15           # Seconds before a request times out
    MAX_RETRIES: int = 2                # Retry count on transient failures
    MAX_RESULTS_PER_SOURCE: int = 20    # Cap per adapter
    MAX_DELAY_MULTIPLIER: int = 8       # Cap for adaptive backoff
    CAPTCHA_KEYWORDS: list[str] = [
        "captcha",
        "verify you are human",
        "unusual traffic",
        "automated requests",
    ]

    # --- Pipeline timeouts (seconds) ---
    SOURCE_TIMEOUT: float = 30.0        # Whole adapter fetch
    DETAIL_TIMEOUT: float = 25.0        # Single-URL detail fetch
    PROVIDER_TIMEOUT: float = 45.0      # One generative call

    # --- Ranking / enrichment ---
    DEFAULT_MAX_RESULTS: int = 8
    DEFAULT_RATING: float = 4.0
    DETAIL_CONCURRENCY: int = 4         # Parallel hydration lookups
    PRICE_BUCKET_RATIO: float = 1.01    # 1% dedup price buckets

    # --- Generative providers ---
    PROVIDER_COOLDOWN_SECONDS: float = 3600.0
    GEMINI_MODEL: str = "gemini-1.5-flash"
    GEMINI_URL: str = (
        "https://generativelanguage.googleapis.com/v1beta/"
        "models/{model}:generateContent"
    )
    DEEPSEEK_MODEL: str = "deepseek-chat"
    DEEPSEEK_URL: str = "https://api.deepseek.com/chat/completions"
    PLACEHOLDER_KEYS: list[str] = [
        "your_gemini_api_key_here",
        "your_deepseek_api_key_here",
        "your_serp_api_key_here",
    ]

    # --- Structured shopping API ---
    SERP_API_URL: str = "https://serpapi.com/search.json"
    SERP_COUNTRY: str = "in"

    # --- Browser Impersonation ---
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome131"
    DEFAULT_HEADERS: dict[str, str] = {
        "Accept": (
            "text/html,application/xhtml+xml,"
            "application/xml;q=0.9,image/avif,"
            "image/webp,image/apng,*/*;q=0.8"
        ),
        "Accept-Language": "en-US,en;q=0.9",
        "sec-ch-ua": (
            '"Google Chrome";v="131", '
            '"Chromium";v="131", '
            '"Not_A Brand";v="24"'
        ),
        "sec-ch-ua-mobile": "?0",
        "sec-ch-ua-platform": '"Windows"',
        "sec-fetch-dest": "document",
        "sec-fetch-mode": "navigate",
        "sec-fetch-site": "none",
        "sec-fetch-user": "?1",
        "Upgrade-Insecure-Requests": "1",
    }

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    SELECTORS_PATH: Path = (
        BASE_DIR / "shopwhiz" / "config" / "selectors.json"
    )
    LOGS_DIR: Path = BASE_DIR / "logs"

    # --- Lightweight retailers (priority order) ---
    LIGHTWEIGHT_RETAILERS: list[dict[str, str]] = [
        {
            "id": "flipkart",
            "label": "Flipkart",
            "homepage": "https://www.flipkart.com/",
            "search_url": "https://www.flipkart.com/search?q={query}",
        },
        {
            "id": "croma",
            "label": "Croma",
            "homepage": "https://www.croma.com/",
            "search_url": (
                "https://www.croma.com/searchB?q={query}"
                "%3Arelevance&text={query}"
            ),
        },
        {
            "id": "reliance_digital",
            "label": "Reliance Digital",
            "homepage": "https://www.reliancedigital.in/",
            "search_url": (
                "https://www.reliancedigital.in/search?q={query}"
                "%3Arelevance"
            ),
        },
        {
            "id": "myntra",
            "label": "Myntra",
            "homepage": "https://www.myntra.com/",
            "search_url": (
                "https://www.myntra.com/{query}?rawQuery={query}"
            ),
        },
    ]


def _clean_key(value: str | None) -> str:
    """Treat unset, blank, and template placeholder keys as missing."""
    if not value:
        return ""
    value = value.strip()
    if value in Settings.PLACEHOLDER_KEYS:
        return ""
    return value


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class PipelineConfig:
    """Explicit runtime configuration handed to the query router.

    Credential presence decides which adapters and providers exist,
    so it is resolved once here instead of being read from the
    environment deep inside the pipeline.
    """

    serp_api_key: str = ""
    gemini_api_key: str = ""
    deepseek_api_key: str = ""
    primary_provider: str = "gemini"
    hydrate_details: bool = True
    source_timeout: float = Settings.SOURCE_TIMEOUT
    detail_timeout: float = Settings.DETAIL_TIMEOUT
    provider_timeout: float = Settings.PROVIDER_TIMEOUT
    provider_cooldown: float = Settings.PROVIDER_COOLDOWN_SECONDS
    detail_concurrency: int = Settings.DETAIL_CONCURRENCY

    @property
    def has_structured_api(self) -> bool:
        """True when the paid structured shopping API can be used."""
        return bool(self.serp_api_key)

    @classmethod
    def from_env(cls) -> "PipelineConfig":
        """Build a config from environment variables (and ``.env``)."""
        primary = (
            os.getenv("SHOPWHIZ_PRIMARY_PROVIDER", "gemini")
            .strip()
            .lower()
        )
        return cls(
            serp_api_key=_clean_key(os.getenv("SERP_API_KEY")),
            gemini_api_key=_clean_key(os.getenv("GEMINI_API_KEY")),
            deepseek_api_key=_clean_key(
                os.getenv("DEEPSEEK_API_KEY")
            ),
            primary_provider=primary or "gemini",
            hydrate_details=_env_flag(
                "SHOPWHIZ_HYDRATE_DETAILS", True
            ),
        )
