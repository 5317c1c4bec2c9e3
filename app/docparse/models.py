"""
Pydantic models for the document parsing pipeline.

Defines the user/AI-authored schema definitions (nested JSON fields or
flat CSV columns), generation outputs and API request/response shapes.
Wire names are camelCase to match the frontend; Python attributes are
snake_case and both are accepted on input.
"""

import json
from enum import Enum
from functools import cached_property
from typing import Annotated, Any, Literal, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    computed_field,
    model_validator,
)


class FieldType(str, Enum):
    """Supported value types for JSON schema fields."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"  # ISO-8601 date-time string
    ARRAY = "array"
    OBJECT = "object"


class ColumnType(str, Enum):
    """Supported value types for CSV columns (no nesting)."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"


class ArrayItemType(str, Enum):
    """Element types allowed inside an ``array`` field."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"


class JsonType(str, Enum):
    """Top-level shape of JSON output."""

    OBJECT = "object"
    ARRAY = "array"


class OutputFormat(str, Enum):
    JSON = "json"
    CSV = "csv"


class ApiOutputFormat(str, Enum):
    """Output format names accepted by the HTTP API."""

    JSON_OBJECT = "json-object"
    JSON_ARRAY = "json-array"
    CSV = "csv"

    def to_format(self) -> tuple[OutputFormat, JsonType | None]:
        """Split into the internal ``(format, jsonType)`` pair."""
        if self is ApiOutputFormat.JSON_OBJECT:
            return OutputFormat.JSON, JsonType.OBJECT
        if self is ApiOutputFormat.JSON_ARRAY:
            return OutputFormat.JSON, JsonType.ARRAY
        return OutputFormat.CSV, None


class Provider(str, Enum):
    """AI providers the pipeline can talk to."""

    GOOGLE = "google"
    OPENROUTER = "openrouter"
    DEMO = "demo"


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# =============================================================================
# Schema Definition Models
# =============================================================================


class SchemaField(_WireModel):
    """
    A single field of a JSON schema definition.

    Attributes:
        name: Key in the extracted object. May be empty while the schema
            is being edited; empty names are skipped at compile time.
        type: Expected value type.
        required: Whether the key must be present in the output.
        description: Hint passed to the model.
        array_item_type: Element type when ``type`` is ``array``.
        children: Nested fields when ``type`` is ``object``.
    """

    name: str = Field(default="", description="Field key in the extracted object")
    type: FieldType = Field(default=FieldType.STRING)
    required: bool = Field(default=True)
    description: str | None = Field(default=None)
    array_item_type: ArrayItemType | None = Field(default=None, alias="arrayItemType")
    children: list["SchemaField"] | None = Field(default=None)


class CsvColumn(_WireModel):
    """A single column of a CSV schema definition."""

    name: str = Field(default="", description="Column header")
    type: ColumnType = Field(default=ColumnType.STRING)
    required: bool = Field(default=True)
    description: str | None = Field(default=None)


def find_duplicate_names(items: list[SchemaField] | list[CsvColumn]) -> list[str]:
    """
    Return every non-empty name that occurs more than once.

    Each duplicate is reported once, in the order it was first seen.
    """
    seen: set[str] = set()
    duplicates: list[str] = []
    for item in items:
        if not item.name:
            continue
        if item.name in seen and item.name not in duplicates:
            duplicates.append(item.name)
        seen.add(item.name)
    return duplicates


def _nested_duplicates(fields: list[SchemaField], prefix: str = "") -> list[str]:
    duplicates = [f"{prefix}{name}" for name in find_duplicate_names(fields)]
    for field in fields:
        if field.type == FieldType.OBJECT and field.children and field.name:
            duplicates.extend(
                _nested_duplicates(field.children, prefix=f"{prefix}{field.name}.")
            )
    return duplicates


class JsonSchemaDefinition(_WireModel):
    """Nested JSON output contract (object or array of objects)."""

    format: Literal["json"] = "json"
    json_type: JsonType = Field(default=JsonType.OBJECT, alias="jsonType")
    fields: list[SchemaField] = Field(default_factory=list)

    def duplicate_names(self) -> list[str]:
        """Duplicate names in every sibling list, nested ones as dotted paths."""
        return _nested_duplicates(self.fields)


class CsvSchemaDefinition(_WireModel):
    """Flat CSV output contract; always extracted as a list of records."""

    format: Literal["csv"] = "csv"
    columns: list[CsvColumn] = Field(default_factory=list)

    def duplicate_names(self) -> list[str]:
        return find_duplicate_names(self.columns)


SchemaDefinition = Annotated[
    Union[JsonSchemaDefinition, CsvSchemaDefinition],
    Field(discriminator="format"),
]

schema_definition_adapter: TypeAdapter[SchemaDefinition] = TypeAdapter(SchemaDefinition)


# =============================================================================
# Generation Output Models
# =============================================================================


def _cell(value: Any) -> str:
    """String-coerce a record value for tabular display."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, list):
        return ",".join(_cell(item) for item in value)
    if isinstance(value, dict):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def records_to_rows(records: list[dict[str, Any]]) -> list[list[str]]:
    """
    Project a list of flat records onto header + value rows.

    Headers come from the first record's own key order. Missing and null
    values become empty strings. An empty list yields no rows at all.
    """
    if not records:
        return []

    keys = list(records[0].keys())
    rows: list[list[str]] = [keys]
    for record in records:
        rows.append([_cell(record.get(key)) for key in keys])
    return rows


class JsonOutput(BaseModel):
    """JSON extraction result: an object or an array of objects."""

    format: Literal["json"] = "json"
    data: dict[str, Any] | list[Any]


class CsvOutput(BaseModel):
    """
    CSV extraction result.

    ``rows`` is derived from ``data`` once and is read-only, so the two
    can never diverge.
    """

    model_config = ConfigDict(frozen=True)

    format: Literal["csv"] = "csv"
    data: list[dict[str, Any]]

    @model_validator(mode="before")
    @classmethod
    def drop_supplied_rows(cls, values: Any) -> Any:
        if isinstance(values, dict) and "rows" in values:
            values = {k: v for k, v in values.items() if k != "rows"}
        return values

    @computed_field  # type: ignore[prop-decorator]
    @cached_property
    def rows(self) -> list[list[str]]:
        return records_to_rows(self.data)


GenerationOutput = Annotated[
    Union[JsonOutput, CsvOutput],
    Field(discriminator="format"),
]


# =============================================================================
# Request Models
# =============================================================================


class PageRange(BaseModel):
    """1-indexed inclusive page range; ``end=None`` means the last page."""

    start: int = Field(default=1, ge=1)
    end: int | None = Field(default=None, ge=1)

    @property
    def is_full_document(self) -> bool:
        return self.start == 1 and self.end is None


class ModelConfig(BaseModel):
    """Provider, model and credentials for one pipeline run."""

    model_config = ConfigDict(protected_namespaces=())

    provider: Provider
    model_id: str | None = None
    api_key: str | None = Field(default=None, repr=False)


class ParseRequest(BaseModel):
    """Validated form of a ``POST /api/parse`` request (file excluded)."""

    model: ModelConfig
    output_format: ApiOutputFormat
    schema_definition: SchemaDefinition | None = None
    custom_prompt: str = ""
    pdf_password: str | None = Field(default=None, repr=False)
    page_range: PageRange = Field(default_factory=PageRange)


# =============================================================================
# Response Models
# =============================================================================


class ErrorDetail(BaseModel):
    message: str
    type: str
    fields: list[str] | None = None


class ErrorResponse(BaseModel):
    """Error envelope returned by every API route."""

    success: Literal[False] = False
    error: ErrorDetail


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(default="healthy")
    message: str = Field(default="")
    version: str = Field(default="1.0.0")


class ModelInfo(BaseModel):
    """A model offered by a provider."""

    id: str
    name: str
    input_modalities: list[str] = Field(default_factory=list, alias="inputModalities")
    pricing: dict[str, str] | None = None

    model_config = ConfigDict(populate_by_name=True)


class ModelListResponse(BaseModel):
    provider: Provider
    models: list[ModelInfo]


class TemplateListResponse(BaseModel):
    """Built-in schema templates keyed by template name."""

    json_templates: dict[str, list[SchemaField]] = Field(alias="json")
    csv_templates: dict[str, list[CsvColumn]] = Field(alias="csv")

    model_config = ConfigDict(populate_by_name=True)
