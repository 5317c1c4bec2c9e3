"""
Result normalizer: maps a validated model result onto a GenerationOutput.
"""

import logging
from typing import Any

from ...exceptions import SchemaMismatchError
from ...models import (
    CsvOutput,
    CsvSchemaDefinition,
    JsonOutput,
    JsonSchemaDefinition,
    JsonType,
    records_to_rows,
)

logger = logging.getLogger(__name__)

__all__ = ["normalize_result", "normalize_json", "normalize_csv", "records_to_rows"]


def normalize_json(result: Any, json_type: JsonType) -> JsonOutput:
    """
    Shape a JSON result.

    For array output a bare object is wrapped into a one-element list;
    models sometimes answer with the object itself when only one item
    matches. Lists pass through untouched.
    """
    if json_type == JsonType.ARRAY:
        if not isinstance(result, list):
            logger.info("Wrapping single object result into an array")
            result = [result]
        return JsonOutput(data=result)

    if not isinstance(result, dict):
        raise SchemaMismatchError(
            f"Expected a JSON object from the model, got {type(result).__name__}"
        )
    return JsonOutput(data=result)


def normalize_csv(result: Any) -> CsvOutput:
    """Shape a CSV result: a list of flat records plus derived rows."""
    if not isinstance(result, list) or not all(isinstance(r, dict) for r in result):
        raise SchemaMismatchError("Expected a list of flat records for CSV output")
    return CsvOutput(data=result)


def normalize_result(
    result: Any,
    schema: JsonSchemaDefinition | CsvSchemaDefinition,
) -> JsonOutput | CsvOutput:
    """
    Map a validated result into the canonical output for ``schema``.

    Args:
        result: Validated model output.
        schema: The schema the result was extracted with.

    Returns:
        JsonOutput or CsvOutput.
    """
    if isinstance(schema, CsvSchemaDefinition):
        output = normalize_csv(result)
        logger.info("Normalized CSV output: %d record(s)", len(output.data))
        return output

    return normalize_json(result, schema.json_type)
