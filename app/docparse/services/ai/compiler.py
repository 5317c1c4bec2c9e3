"""
Schema compiler: turns a SchemaDefinition into a runtime Validator.

The Validator is backed by dynamically created Pydantic models
(:func:`pydantic.create_model`) and serves two purposes:

- it renders the JSON Schema sent to the provider as the structured
  output contract (``response_format``), and
- it validates and coerces the model's answer before normalization.
"""

import json
import logging
import re
from datetime import datetime
from typing import Annotated, Any, Optional, Union

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    TypeAdapter,
    WithJsonSchema,
    create_model,
)

from ...models import (
    ArrayItemType,
    ColumnType,
    CsvColumn,
    CsvSchemaDefinition,
    FieldType,
    JsonSchemaDefinition,
    JsonType,
    SchemaField,
)

logger = logging.getLogger(__name__)

# Array contracts travel inside a single-key object on the wire.
ENVELOPE_KEY = "records"

_ISO_DATETIME_RE = re.compile(
    r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}(:\d{2}(\.\d+)?)?(Z|[+-]\d{2}:\d{2})$"
)
_CODE_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


def _check_iso_datetime(value: str) -> str:
    if not _ISO_DATETIME_RE.match(value):
        raise ValueError("Invalid datetime: expected ISO-8601 date-time")
    try:
        datetime.fromisoformat(value)
    except ValueError as e:
        raise ValueError(f"Invalid datetime: {e}") from e
    return value


Number = Union[StrictInt, StrictFloat]

IsoDateTime = Annotated[
    StrictStr,
    AfterValidator(_check_iso_datetime),
    WithJsonSchema({"type": "string", "format": "date-time"}),
]

_SCALAR_TYPES: dict[str, Any] = {
    "string": StrictStr,
    "number": Number,
    "boolean": StrictBool,
    "date": IsoDateTime,
}

_ARRAY_ITEM_TYPES: dict[ArrayItemType, Any] = {
    ArrayItemType.STRING: StrictStr,
    ArrayItemType.NUMBER: Number,
    ArrayItemType.BOOLEAN: StrictBool,
}


class _Record(BaseModel):
    """Base for compiled record models; unknown keys are dropped."""

    model_config = ConfigDict(extra="ignore", populate_by_name=False)


# =============================================================================
# Validator
# =============================================================================


class Validator:
    """
    Compiled structural contract for one pipeline run.

    Attributes:
        name: Name reported to the provider for the output schema.
        many: Whether the contract is an array of records.
        lenient: Accept a bare record for an array contract (returned as-is,
            for the normalizer to wrap), or the first element of a list for
            an object contract.
        fill_missing: Emit every declared key, with None for absent
            optional values, so flat records share one key order.
    """

    def __init__(
        self,
        item_model: type[BaseModel],
        *,
        many: bool = False,
        lenient: bool = False,
        fill_missing: bool = False,
        name: str = "extraction",
    ):
        self.item_model = item_model
        self.many = many
        self.lenient = lenient
        self.fill_missing = fill_missing
        self.name = name
        self._item_adapter: TypeAdapter[Any] = TypeAdapter(item_model)
        self._adapter: TypeAdapter[Any] = (
            TypeAdapter(list[item_model]) if many else self._item_adapter  # type: ignore[valid-type]
        )

    def json_schema(self) -> dict[str, Any]:
        """JSON Schema of the contract with all ``$ref`` definitions inlined."""
        return _inline_refs(self._adapter.json_schema(by_alias=True))

    def response_format(self) -> dict[str, Any]:
        """OpenAI-style ``response_format`` payload for structured output."""
        schema = self.json_schema()
        if self.many:
            schema = {
                "type": "object",
                "properties": {ENVELOPE_KEY: schema},
                "required": [ENVELOPE_KEY],
            }
        return {
            "type": "json_schema",
            "json_schema": {"name": self.name, "schema": schema, "strict": False},
        }

    def validate(self, data: Any) -> Any:
        """
        Validate decoded model output and return plain JSON-compatible data.

        Raises:
            pydantic.ValidationError: If the data does not fit the contract.
        """
        if self.many:
            if _is_envelope(data):
                data = data[ENVELOPE_KEY]
            if isinstance(data, dict) and self.lenient:
                return self._dump(self._item_adapter, self._item_adapter.validate_python(data))
        elif isinstance(data, list) and data and self.lenient:
            data = data[0]

        return self._dump(self._adapter, self._adapter.validate_python(data))

    def _dump(self, adapter: TypeAdapter[Any], value: Any) -> Any:
        return adapter.dump_python(
            value, by_alias=True, exclude_unset=not self.fill_missing, mode="json"
        )

    def validate_json(self, text: str) -> Any:
        """
        Decode a JSON answer (tolerating a Markdown code fence) and validate it.

        Raises:
            json.JSONDecodeError: If the text is not JSON.
            pydantic.ValidationError: If the data does not fit the contract.
        """
        text = text.strip()
        match = _CODE_FENCE_RE.match(text)
        if match:
            text = match.group(1)
        return self.validate(json.loads(text))


def _is_envelope(data: Any) -> bool:
    """
    True for ``{"records": [...]}`` holding records.

    Array fields only carry scalars, so a bare record with a single
    ``records`` array field never matches unless that array is empty.
    """
    if not isinstance(data, dict) or len(data) != 1:
        return False
    records = data.get(ENVELOPE_KEY)
    return isinstance(records, list) and all(isinstance(item, dict) for item in records)


def _inline_refs(schema: dict[str, Any]) -> dict[str, Any]:
    """Replace ``$ref`` pointers with their ``$defs`` bodies (trees only)."""
    definitions = schema.pop("$defs", {})

    def resolve(node: Any) -> Any:
        if isinstance(node, dict):
            ref = node.get("$ref")
            if isinstance(ref, str) and ref.startswith("#/$defs/"):
                target = definitions[ref.split("/")[-1]]
                extra = {k: v for k, v in node.items() if k != "$ref"}
                return {**resolve(target), **resolve(extra)}
            return {key: resolve(value) for key, value in node.items()}
        if isinstance(node, list):
            return [resolve(item) for item in node]
        return node

    return resolve(schema)


# =============================================================================
# Compilation
# =============================================================================


def _field_type(field: SchemaField, model_name: str) -> Any:
    """Map a JSON schema field to a Python / Pydantic type."""
    if field.type == FieldType.ARRAY:
        item_type = _ARRAY_ITEM_TYPES[field.array_item_type or ArrayItemType.STRING]
        return list[item_type]  # type: ignore[valid-type]

    if field.type == FieldType.OBJECT:
        nested_name = f"{model_name}_{_model_suffix(field.name)}"
        return build_record_model(nested_name, field.children or [])

    return _SCALAR_TYPES.get(field.type.value, Any)


def _model_suffix(name: str) -> str:
    return re.sub(r"\W+", "_", name).strip("_").title().replace("_", "") or "Item"


def _definition(py_type: Any, name: str, required: bool, description: str | None) -> tuple:
    if required:
        return (py_type, Field(..., alias=name, description=description or None))
    return (Optional[py_type], Field(None, alias=name, description=description or None))


def build_record_model(
    model_name: str,
    fields: list[SchemaField] | list[CsvColumn],
) -> type[BaseModel]:
    """
    Build a record model whose keys are exactly the named fields.

    Fields with an empty name are skipped. Python attribute names are
    positional (``f0``, ``f1``...) with the user's name as alias, so any
    header text works as a key. When names repeat, the last one wins.
    """
    by_name: dict[str, tuple] = {}
    for field in fields:
        if not field.name:
            continue
        if isinstance(field, SchemaField):
            py_type = _field_type(field, model_name)
        else:
            py_type = _SCALAR_TYPES[ColumnType(field.type).value]
        by_name[field.name] = _definition(
            py_type, field.name, field.required, field.description
        )

    definitions = {
        f"f{index}": definition for index, definition in enumerate(by_name.values())
    }
    return create_model(model_name, __base__=_Record, **definitions)  # type: ignore[call-overload]


def compile_json_schema(schema: JsonSchemaDefinition) -> Validator:
    """Compile a JSON schema definition (object or array of objects)."""
    item_model = build_record_model("Record", schema.fields)
    if schema.json_type == JsonType.ARRAY:
        return Validator(item_model, many=True, lenient=True)
    return Validator(item_model)


def compile_csv_schema(schema: CsvSchemaDefinition) -> Validator:
    """Compile a CSV schema definition; CSV output is always a list of records."""
    return Validator(build_record_model("Row", schema.columns), many=True, fill_missing=True)


def compile_schema(schema: JsonSchemaDefinition | CsvSchemaDefinition) -> Validator:
    """
    Translate a schema definition into a Validator.

    Args:
        schema: The active JSON or CSV schema definition.

    Returns:
        Validator enforcing the schema's shape.
    """
    if isinstance(schema, CsvSchemaDefinition):
        validator = compile_csv_schema(schema)
    else:
        validator = compile_json_schema(schema)

    logger.debug(
        "Compiled %s schema (many=%s): %s",
        schema.format,
        validator.many,
        list(validator.item_model.model_fields),
    )
    return validator
