"""
Model invocation layer.

Creates an OpenAI-compatible async client for the selected provider
(Google's OpenAI endpoint or OpenRouter), issues exactly one
structured-output chat request per pipeline run and translates every
failure into the shared error taxonomy. There is no retry loop here;
callers re-run the whole pipeline.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable

import openai
from openai import AsyncOpenAI
from pydantic import ValidationError

from ...config import Settings, get_settings
from ...exceptions import NetworkError, ProviderError, SchemaMismatchError
from ...models import ModelConfig, Provider
from .compiler import Validator
from .payload import FilePart, ImagePart, TextPart, to_messages

logger = logging.getLogger(__name__)

SCHEMA_MISMATCH_MESSAGE = (
    "Schema validation failed: The AI response did not match the expected schema. "
    "This might happen if:\n"
    "- The document doesn't contain data matching your schema\n"
    "- Date formats don't match the expected ISO-8601 date-time format\n"
    "- Required fields are missing\n"
    "\n"
    "Original error: {original}"
)

ClientFactory = Callable[[Provider, str, Settings], Any]


@dataclass
class ModelHandle:
    """A ready-to-call model: provider, resolved model id and client."""

    provider: Provider
    model_id: str
    client: Any


def default_client_factory(provider: Provider, api_key: str, settings: Settings) -> AsyncOpenAI:
    """Build an AsyncOpenAI client pointed at the provider's endpoint."""
    if provider == Provider.GOOGLE:
        return AsyncOpenAI(api_key=api_key, base_url=settings.google_base_url)

    return AsyncOpenAI(
        api_key=api_key,
        base_url=settings.openrouter_base_url,
        default_headers={
            "HTTP-Referer": settings.app_url,
            "X-Title": settings.app_title,
        },
    )


def create_model(
    config: ModelConfig,
    settings: Settings | None = None,
    client_factory: ClientFactory | None = None,
) -> ModelHandle:
    """
    Resolve credentials and model id, then build the client.

    Raises:
        ProviderError: If the API key or a required model id is missing.
    """
    settings = settings or get_settings()
    factory = client_factory or default_client_factory

    if config.provider == Provider.DEMO:
        api_key = settings.openrouter_api_key
        model_id = settings.demo_model
        if not api_key:
            raise ProviderError(
                "Demo provider is not configured: OPENROUTER_API_KEY is not set on the server"
            )
    else:
        api_key = config.api_key
        model_id = config.model_id
        provider_name = "Google" if config.provider == Provider.GOOGLE else "OpenRouter"
        if not api_key:
            raise ProviderError(f"API key is required for {provider_name} provider")
        if not model_id:
            raise ProviderError(f"Model ID is required for {provider_name} provider")

    return ModelHandle(
        provider=config.provider,
        model_id=model_id,
        client=factory(config.provider, api_key, settings),
    )


def enrich_schema_error(message: str) -> str:
    """Wrap a schema-mismatch message with likely causes, keeping the original."""
    return SCHEMA_MISMATCH_MESSAGE.format(original=message)


def _is_schema_failure(message: str) -> bool:
    lowered = message.lower()
    return "schema" in lowered or "validation" in lowered


def translate_provider_error(error: Exception) -> ProviderError:
    """Map a provider SDK exception onto the error taxonomy."""
    message = str(error) or error.__class__.__name__
    if _is_schema_failure(message):
        return SchemaMismatchError(enrich_schema_error(message))
    if isinstance(error, openai.APIConnectionError):
        return NetworkError(message)
    return ProviderError(message)


async def generate_structured(
    handle: ModelHandle,
    messages: list[dict[str, Any]],
    validator: Validator,
) -> Any:
    """
    Send one structured-output request and validate the answer.

    Returns:
        The validated result as plain JSON-compatible data.

    Raises:
        SchemaMismatchError: If the answer does not satisfy the validator.
        NetworkError: If the provider could not be reached.
        ProviderError: For any other provider failure.
    """
    logger.info(
        "Calling %s model %s (structured output: %s)",
        handle.provider.value,
        handle.model_id,
        validator.name,
    )

    try:
        response = await handle.client.chat.completions.create(
            model=handle.model_id,
            messages=messages,
            response_format=validator.response_format(),
        )
    except Exception as e:
        logger.warning("Provider call failed: %s", e)
        raise translate_provider_error(e) from e

    if not response.choices:
        raise ProviderError("Empty response from model provider")

    content = response.choices[0].message.content
    if not content:
        refusal = getattr(response.choices[0].message, "refusal", None)
        raise ProviderError(refusal or "Empty response from model provider")

    try:
        return validator.validate_json(content)
    except json.JSONDecodeError as e:
        logger.error("Model returned invalid JSON: %s", content[:500])
        raise SchemaMismatchError(
            enrich_schema_error(f"Response is not valid JSON: {e}")
        ) from e
    except ValidationError as e:
        logger.warning("Model response failed schema validation: %s", e)
        raise SchemaMismatchError(
            enrich_schema_error(f"Response failed schema validation: {e}")
        ) from e


async def invoke(
    config: ModelConfig,
    content: list[TextPart | ImagePart | FilePart],
    validator: Validator,
    settings: Settings | None = None,
    client_factory: ClientFactory | None = None,
) -> Any:
    """
    Run one structured-generation call: payload + contract -> validated result.

    Args:
        config: Provider, model id and API key.
        content: Assembled content parts of the user message.
        validator: Compiled output contract.
        settings: Application settings (defaults to the cached settings).
        client_factory: Override for building the provider client.
    """
    handle = create_model(config, settings=settings, client_factory=client_factory)
    return await generate_structured(handle, to_messages(content), validator)
