"""
Model-list catalog with a time-based cache.

Lists are fetched from the provider APIs with httpx and cached per
``(provider, api_key)``. Entries expire after the configured TTL and are
never invalidated explicitly; a failed fetch leaves no entry behind.
"""

import logging
import time
from typing import Awaitable, Callable

import httpx

from ...config import Settings, get_settings
from ...exceptions import NetworkError, ProviderError, SchemaValidationError
from ...models import ModelInfo, Provider

logger = logging.getLogger(__name__)

Fetcher = Callable[[str, Settings], Awaitable[list[ModelInfo]]]

_PRIORITY_MARKERS = ("claude", "google", "gpt", "openai")


def _is_priority(model: ModelInfo) -> bool:
    haystack = f"{model.id} {model.name}".lower()
    return any(marker in haystack for marker in _PRIORITY_MARKERS)


def sort_openrouter_models(models: list[ModelInfo]) -> list[ModelInfo]:
    """Claude, Google and OpenAI models first, then alphabetically by name."""
    return sorted(models, key=lambda m: (not _is_priority(m), m.name.lower()))


def parse_openrouter_models(payload: dict) -> list[ModelInfo]:
    """Keep image-capable models from an OpenRouter ``/models`` response."""
    models = []
    for raw in payload.get("data") or []:
        modalities = (raw.get("architecture") or {}).get("input_modalities") or []
        if "image" not in modalities:
            continue
        pricing = raw.get("pricing") or {}
        models.append(
            ModelInfo(
                id=raw["id"],
                name=raw.get("name") or raw["id"],
                input_modalities=modalities,
                pricing={
                    "prompt": str(pricing.get("prompt") or "0"),
                    "completion": str(pricing.get("completion") or "0"),
                },
            )
        )
    return sort_openrouter_models(models)


def parse_google_models(payload: dict) -> list[ModelInfo]:
    """Keep ``generateContent`` models from a Gemini ``models.list`` response."""
    if not isinstance(payload.get("models"), list):
        raise ProviderError("Invalid response format from Google API")

    models = []
    for raw in payload["models"]:
        name = raw.get("name", "")
        methods = raw.get("supportedGenerationMethods") or []
        if "generateContent" not in methods or not name.startswith("models/"):
            continue
        model_id = name.removeprefix("models/")
        models.append(ModelInfo(id=model_id, name=raw.get("displayName") or model_id))
    return sorted(models, key=lambda m: m.name)


async def fetch_openrouter_models(api_key: str, settings: Settings) -> list[ModelInfo]:
    async with httpx.AsyncClient(timeout=30.0) as client:
        response = await client.get(
            settings.openrouter_models_url,
            headers={"Authorization": f"Bearer {api_key}"},
        )
        response.raise_for_status()
        return parse_openrouter_models(response.json())


async def fetch_google_models(api_key: str, settings: Settings) -> list[ModelInfo]:
    async with httpx.AsyncClient(timeout=30.0) as client:
        response = await client.get(settings.google_models_url, params={"key": api_key})
        response.raise_for_status()
        return parse_google_models(response.json())


DEFAULT_FETCHERS: dict[Provider, Fetcher] = {
    Provider.OPENROUTER: fetch_openrouter_models,
    Provider.GOOGLE: fetch_google_models,
}


class ModelCatalog:
    """
    Caches provider model lists.

    Args:
        settings: Application settings (TTL and endpoints).
        clock: Monotonic clock in seconds; injectable for tests.
        fetchers: Per-provider fetch functions.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        clock: Callable[[], float] = time.monotonic,
        fetchers: dict[Provider, Fetcher] | None = None,
    ):
        self.settings = settings or get_settings()
        self.clock = clock
        self.fetchers = fetchers if fetchers is not None else dict(DEFAULT_FETCHERS)
        self._entries: dict[tuple[Provider, str], tuple[float, list[ModelInfo]]] = {}

    @property
    def ttl(self) -> float:
        return self.settings.model_cache_ttl_seconds

    @property
    def size(self) -> int:
        """Number of cached model lists."""
        return len(self._entries)

    def _evict_expired(self, now: float) -> None:
        expired = [
            key for key, (fetched_at, _) in self._entries.items() if now - fetched_at >= self.ttl
        ]
        for key in expired:
            del self._entries[key]

    async def list_models(self, provider: Provider, api_key: str) -> list[ModelInfo]:
        """
        Return the model list for ``provider``, fetching it when not cached.

        Raises:
            SchemaValidationError: If the provider has no model list or the key is missing.
            NetworkError: If the provider cannot be reached.
            ProviderError: If the provider rejects the request.
        """
        fetcher = self.fetchers.get(provider)
        if fetcher is None:
            raise SchemaValidationError(f"Model listing is not available for {provider.value}")
        if not api_key:
            raise SchemaValidationError("API key is required to list models")

        key = (provider, api_key)
        now = self.clock()
        self._evict_expired(now)
        cached = self._entries.get(key)
        if cached is not None:
            logger.debug("Model list cache hit for %s", provider.value)
            return cached[1]

        logger.info("Fetching model list for %s", provider.value)
        try:
            models = await fetcher(api_key, self.settings)
        except httpx.HTTPStatusError as e:
            logger.warning("Model list request failed: %s", e.response.status_code)
            raise ProviderError(
                f"Failed to fetch models from {provider.value}: "
                f"{e.response.status_code} {e.response.reason_phrase}"
            ) from e
        except httpx.RequestError as e:
            logger.warning("Model list request could not be sent: %s", e)
            raise NetworkError(f"Failed to fetch models from {provider.value}: {e}") from e

        self._entries[key] = (now, models)
        return models
