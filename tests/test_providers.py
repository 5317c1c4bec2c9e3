"""Tests for the model invocation layer."""

import httpx
import openai
import pytest

from app.docparse.exceptions import NetworkError, ProviderError, SchemaMismatchError
from app.docparse.models import FieldType, JsonSchemaDefinition, ModelConfig, Provider, SchemaField
from app.docparse.services.ai.compiler import compile_schema
from app.docparse.services.ai.payload import TextPart
from app.docparse.services.ai.providers import (
    create_model,
    default_client_factory,
    enrich_schema_error,
    generate_structured,
    invoke,
    translate_provider_error,
)

OPENROUTER = ModelConfig(provider=Provider.OPENROUTER, model_id="openai/gpt-4o", api_key="user-key")


@pytest.fixture
def validator():
    return compile_schema(JsonSchemaDefinition(fields=[SchemaField(name="a", type=FieldType.STRING)]))


class TestCreateModel:
    """Tests for create_model."""

    def test_requires_api_key(self, settings, fake_provider):
        """Test a missing key is reported per provider."""
        config = ModelConfig(provider=Provider.GOOGLE, model_id="gemini-2.5-flash")
        with pytest.raises(ProviderError) as exc_info:
            create_model(config, settings=settings, client_factory=fake_provider)
        assert exc_info.value.message == "API key is required for Google provider"

    def test_requires_model_id(self, settings, fake_provider):
        """Test a missing model id is reported per provider."""
        config = ModelConfig(provider=Provider.OPENROUTER, api_key="k")
        with pytest.raises(ProviderError) as exc_info:
            create_model(config, settings=settings, client_factory=fake_provider)
        assert exc_info.value.message == "Model ID is required for OpenRouter provider"

    def test_user_credentials(self, settings, fake_provider):
        """Test Google and OpenRouter use the caller's key and model."""
        handle = create_model(OPENROUTER, settings=settings, client_factory=fake_provider)
        assert handle.model_id == "openai/gpt-4o"
        assert fake_provider.calls == [(Provider.OPENROUTER, "user-key")]

    def test_demo_uses_server_key_and_fixed_model(self, settings, fake_provider):
        """Test the demo provider ignores caller credentials."""
        config = ModelConfig(provider=Provider.DEMO, model_id="ignored", api_key="ignored")
        handle = create_model(config, settings=settings, client_factory=fake_provider)
        assert handle.model_id == "google/gemini-2.5-flash-lite"
        assert fake_provider.calls == [(Provider.DEMO, "server-key")]

    def test_demo_without_server_key(self, settings, fake_provider):
        """Test the demo provider fails when the server key is missing."""
        settings.openrouter_api_key = None
        with pytest.raises(ProviderError):
            create_model(ModelConfig(provider=Provider.DEMO), settings=settings, client_factory=fake_provider)

    def test_default_factory_points_at_openrouter(self, settings):
        """Test the OpenRouter client carries endpoint and attribution headers."""
        client = default_client_factory(Provider.OPENROUTER, "k", settings)
        assert str(client.base_url).startswith("https://openrouter.ai/api/v1")
        assert client.default_headers["X-Title"] == settings.app_title
        assert client.default_headers["HTTP-Referer"] == settings.app_url

    def test_default_factory_points_at_google(self, settings):
        """Test the Google client uses the OpenAI-compatible Gemini endpoint."""
        client = default_client_factory(Provider.GOOGLE, "k", settings)
        assert str(client.base_url).startswith(
            "https://generativelanguage.googleapis.com/v1beta/openai"
        )


class TestErrorTranslation:
    """Tests for provider error mapping."""

    def test_schema_failures_are_enriched(self):
        """Test schema-related failures keep the original text and add causes."""
        error = translate_provider_error(Exception("Type validation failed: expected number"))
        assert isinstance(error, SchemaMismatchError)
        assert error.error_type == "validation_error"
        assert "did not match the expected schema" in error.message
        assert "Original error: Type validation failed: expected number" in error.message

    def test_provider_schema_message(self):
        """Test a provider schema failure keeps its text inside the enriched message."""
        error = translate_provider_error(Exception("schema validation failed: field X"))
        assert "did not match the expected schema" in error.message
        assert "schema validation failed: field X" in error.message

    def test_connection_errors(self):
        """Test connection failures become network errors."""
        request = httpx.Request("POST", "https://openrouter.ai/api/v1/chat/completions")
        error = translate_provider_error(openai.APIConnectionError(request=request))
        assert isinstance(error, NetworkError)
        assert error.error_type == "network_error"

    def test_other_errors_keep_message(self):
        """Test other failures keep their message verbatim."""
        error = translate_provider_error(RuntimeError("Insufficient credits"))
        assert type(error) is ProviderError
        assert error.message == "Insufficient credits"
        assert error.error_type == "api_error"

    def test_enrich_schema_error(self):
        """Test the enrichment names likely causes."""
        message = enrich_schema_error("boom")
        assert "Required fields are missing" in message
        assert message.endswith("Original error: boom")


class TestGenerateStructured:
    """Tests for the single structured-output call."""

    @pytest.mark.asyncio
    async def test_returns_validated_result(self, settings, fake_provider, validator):
        """Test the answer is decoded and validated."""
        fake_provider.reply({"a": "x", "ignored": 1})
        handle = create_model(OPENROUTER, settings=settings, client_factory=fake_provider)

        result = await generate_structured(handle, [{"role": "user", "content": []}], validator)

        assert result == {"a": "x"}
        request = fake_provider.requests[0]
        assert request["model"] == "openai/gpt-4o"
        assert request["response_format"]["type"] == "json_schema"
        assert request["response_format"]["json_schema"]["schema"]["required"] == ["a"]

    @pytest.mark.asyncio
    async def test_invalid_json(self, settings, fake_provider, validator):
        """Test non-JSON answers are schema mismatches."""
        fake_provider.reply("Sorry, I cannot help with that.")
        handle = create_model(OPENROUTER, settings=settings, client_factory=fake_provider)

        with pytest.raises(SchemaMismatchError) as exc_info:
            await generate_structured(handle, [], validator)
        assert "did not match the expected schema" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_validation_failure(self, settings, fake_provider, validator):
        """Test answers violating the contract are enriched schema mismatches."""
        fake_provider.reply({"a": 5})
        handle = create_model(OPENROUTER, settings=settings, client_factory=fake_provider)

        with pytest.raises(SchemaMismatchError) as exc_info:
            await generate_structured(handle, [], validator)
        assert "Original error:" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_empty_answer(self, settings, fake_provider, validator):
        """Test an empty answer is a provider error."""
        fake_provider.reply("")
        handle = create_model(OPENROUTER, settings=settings, client_factory=fake_provider)

        with pytest.raises(ProviderError):
            await generate_structured(handle, [], validator)

    @pytest.mark.asyncio
    async def test_sdk_error_wrapped(self, settings, fake_provider, validator):
        """Test SDK exceptions are wrapped with the original as cause."""
        original = RuntimeError("Rate limited upstream")
        fake_provider.reply(original)
        handle = create_model(OPENROUTER, settings=settings, client_factory=fake_provider)

        with pytest.raises(ProviderError) as exc_info:
            await generate_structured(handle, [], validator)
        assert exc_info.value.message == "Rate limited upstream"
        assert exc_info.value.__cause__ is original


class TestInvoke:
    """Tests for invoke."""

    @pytest.mark.asyncio
    async def test_sends_single_user_message(self, settings, fake_provider, validator):
        """Test content parts are sent as one user message."""
        fake_provider.reply({"a": "x"})

        result = await invoke(
            OPENROUTER,
            [TextPart(text="Extract")],
            validator,
            settings=settings,
            client_factory=fake_provider,
        )

        assert result == {"a": "x"}
        assert fake_provider.requests[0]["messages"] == [
            {"role": "user", "content": [{"type": "text", "text": "Extract"}]}
        ]
