"""
Schema-driven extraction pipeline.

One pipeline run is strictly sequential:
``idle -> assembling_payload -> invoking_model -> normalizing -> done``,
with ``error`` reachable from any step. Nothing is retried automatically.

The same pipeline serves two tasks:

- schema generation: the contract is a fixed "schema of a schema"
- extraction: the contract is the compiled user schema
"""

import logging
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from ...config import Settings, get_settings
from ...exceptions import SchemaMismatchError, SchemaValidationError
from ...models import (
    ArrayItemType,
    ColumnType,
    CsvColumn,
    CsvOutput,
    CsvSchemaDefinition,
    FieldType,
    JsonOutput,
    JsonSchemaDefinition,
    JsonType,
    ModelConfig,
    OutputFormat,
    SchemaField,
)
from .compiler import Validator, compile_schema
from .normalizer import normalize_result
from .payload import assemble_payload
from .prompts import build_parse_prompt, build_schema_generation_prompt
from .providers import ClientFactory, enrich_schema_error, invoke

logger = logging.getLogger(__name__)


class PipelineStage(str, Enum):
    IDLE = "idle"
    ASSEMBLING_PAYLOAD = "assembling_payload"
    INVOKING_MODEL = "invoking_model"
    NORMALIZING = "normalizing"
    DONE = "done"
    ERROR = "error"


_NEXT_STAGE = {
    PipelineStage.IDLE: PipelineStage.ASSEMBLING_PAYLOAD,
    PipelineStage.ASSEMBLING_PAYLOAD: PipelineStage.INVOKING_MODEL,
    PipelineStage.INVOKING_MODEL: PipelineStage.NORMALIZING,
    PipelineStage.NORMALIZING: PipelineStage.DONE,
}


class PipelineRun:
    """Tracks the stage of a single, non-reentrant pipeline run."""

    def __init__(self, task: str):
        self.task = task
        self.stage = PipelineStage.IDLE
        self.history: list[PipelineStage] = [PipelineStage.IDLE]

    def advance(self, stage: PipelineStage) -> None:
        expected = _NEXT_STAGE.get(self.stage)
        if stage != expected:
            raise RuntimeError(
                f"Invalid pipeline transition {self.stage.value} -> {stage.value}"
            )
        self._enter(stage)

    def fail(self) -> None:
        if self.stage not in (PipelineStage.DONE, PipelineStage.ERROR):
            self._enter(PipelineStage.ERROR)

    def _enter(self, stage: PipelineStage) -> None:
        logger.debug("[%s] %s -> %s", self.task, self.stage.value, stage.value)
        self.stage = stage
        self.history.append(stage)


# =============================================================================
# Schema Generation Contract
# =============================================================================


class GeneratedField(BaseModel):
    """A field proposed by the model; children are validated afterwards."""

    name: str = Field(..., description="Field name in camelCase")
    type: FieldType = Field(..., description="string, number, boolean, date, array or object")
    required: bool = Field(..., description="Whether most documents of this kind contain it")
    description: str | None = Field(default=None, description="What the field holds")
    arrayItemType: ArrayItemType | None = Field(
        default=None, description="Element type for array fields"
    )
    children: list[dict[str, Any]] | None = Field(
        default=None, description="Nested fields for object fields, same shape as this field"
    )


class GeneratedJsonSchema(BaseModel):
    fields: list[GeneratedField]


class GeneratedColumn(BaseModel):
    name: str = Field(..., description="Human-readable column header")
    type: ColumnType = Field(..., description="string, number, boolean or date")
    required: bool = Field(..., description="Whether most records contain it")
    description: str | None = Field(default=None, description="What the column holds")


class GeneratedCsvSchema(BaseModel):
    columns: list[GeneratedColumn]


def _to_schema_fields(raw_fields: list[dict[str, Any]]) -> list[SchemaField]:
    try:
        return [SchemaField.model_validate(raw) for raw in raw_fields]
    except ValidationError as e:
        raise SchemaMismatchError(
            enrich_schema_error(f"Generated nested fields are invalid: {e}")
        ) from e


# =============================================================================
# Pipeline
# =============================================================================


class ExtractionPipeline:
    """
    Runs schema generation and data extraction against an AI provider.

    Holds no per-run state: each call builds its own payload, contract
    and client, so concurrent runs never share mutable data.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        client_factory: ClientFactory | None = None,
    ):
        self.settings = settings or get_settings()
        self.client_factory = client_factory

    async def _run(
        self,
        run: PipelineRun,
        prompt: str,
        document_data: str | list[str],
        mime_type: str,
        model: ModelConfig,
        validator: Validator,
        filename: str | None,
    ) -> Any:
        run.advance(PipelineStage.ASSEMBLING_PAYLOAD)
        content = assemble_payload(
            prompt, document_data, mime_type, model.provider, filename=filename
        )

        run.advance(PipelineStage.INVOKING_MODEL)
        return await invoke(
            model,
            content,
            validator,
            settings=self.settings,
            client_factory=self.client_factory,
        )

    async def generate_schema(
        self,
        document_data: str | list[str],
        format: OutputFormat,
        model: ModelConfig,
        filename: str | None = None,
        mime_type: str | None = None,
        json_type: JsonType | None = None,
    ) -> JsonSchemaDefinition | CsvSchemaDefinition:
        """
        Ask the model to propose a schema for the document.

        Args:
            document_data: Page images or a single whole-file data URL.
            format: Target output format.
            model: Provider, model id and credentials.
            filename: Original filename (context hint, enables native PDFs).
            mime_type: Declared mime type of the upload.
            json_type: Object or array, for JSON only.

        Returns:
            A fresh schema definition replacing any previous one for ``format``.
        """
        run = PipelineRun("generate-schema")
        logger.info(
            "Generating %s schema for %s via %s",
            format.value,
            filename or "document",
            model.provider.value,
        )

        prompt = build_schema_generation_prompt(
            format, filename=filename, mime_type=mime_type, json_type=json_type
        )
        response_model = GeneratedCsvSchema if format == OutputFormat.CSV else GeneratedJsonSchema
        validator = Validator(response_model, lenient=True, name="schema_definition")

        try:
            result = await self._run(
                run,
                prompt,
                document_data,
                mime_type or "",
                model,
                validator,
                filename,
            )

            run.advance(PipelineStage.NORMALIZING)
            if format == OutputFormat.CSV:
                schema: JsonSchemaDefinition | CsvSchemaDefinition = CsvSchemaDefinition(
                    columns=[CsvColumn.model_validate(c) for c in result["columns"]]
                )
            else:
                schema = JsonSchemaDefinition(
                    json_type=json_type or JsonType.OBJECT,
                    fields=_to_schema_fields(result["fields"]),
                )
        except Exception:
            run.fail()
            raise

        run.advance(PipelineStage.DONE)
        logger.info("Generated %s schema with %d entries", format.value, _entry_count(schema))
        return schema

    async def parse_document(
        self,
        document_data: str | list[str],
        mime_type: str,
        schema: JsonSchemaDefinition | CsvSchemaDefinition,
        model: ModelConfig,
        custom_prompt: str | None = None,
        filename: str | None = None,
    ) -> JsonOutput | CsvOutput:
        """
        Extract data matching ``schema`` from the document.

        Raises:
            SchemaValidationError: If the schema has duplicate names; raised
                before any provider call.
            SchemaMismatchError: If the model's answer does not fit the schema.
            ProviderError: If the provider call fails.
        """
        duplicates = schema.duplicate_names()
        if duplicates:
            raise SchemaValidationError(
                f"Duplicate names in schema: {', '.join(duplicates)}",
                fields=duplicates,
            )

        run = PipelineRun("parse-document")
        json_type = schema.json_type if isinstance(schema, JsonSchemaDefinition) else None
        fmt = OutputFormat(schema.format)
        logger.info(
            "Extracting %s%s from %s via %s",
            fmt.value,
            f"/{json_type.value}" if json_type else "",
            filename or "document",
            model.provider.value,
        )

        prompt = build_parse_prompt(fmt, custom_prompt, json_type)
        validator = compile_schema(schema)

        try:
            result = await self._run(
                run, prompt, document_data, mime_type, model, validator, filename
            )
            run.advance(PipelineStage.NORMALIZING)
            output = normalize_result(result, schema)
        except Exception:
            run.fail()
            raise

        run.advance(PipelineStage.DONE)
        return output


def _entry_count(schema: JsonSchemaDefinition | CsvSchemaDefinition) -> int:
    if isinstance(schema, CsvSchemaDefinition):
        return len(schema.columns)
    return len(schema.fields)
