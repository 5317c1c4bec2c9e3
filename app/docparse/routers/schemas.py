"""
Router for schema template endpoints.

Handles:
- Listing the built-in JSON and CSV schema templates
- Loading one template as a ready-to-use schema definition
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse

from ..models import JsonType, OutputFormat, TemplateListResponse
from ..templates import CSV_TEMPLATES, JSON_TEMPLATES, csv_template, json_template

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/schemas", tags=["schemas"])


@router.get("/templates", response_model=TemplateListResponse, response_model_exclude_none=True)
async def list_templates() -> TemplateListResponse:
    """
    List built-in schema templates.

    Returns:
        JSON templates (``invoice``, ``bankStatement``) and CSV templates
        (``transactionList``, ``productCatalog``, ``contactList``), each
        with an empty ``custom`` entry.
    """
    logger.debug("Listing %d JSON and %d CSV templates", len(JSON_TEMPLATES), len(CSV_TEMPLATES))
    return TemplateListResponse(json_templates=JSON_TEMPLATES, csv_templates=CSV_TEMPLATES)


@router.get("/templates/{format}/{name}")
async def get_template(
    format: OutputFormat,
    name: str,
    json_type: Annotated[JsonType, Query(alias="jsonType")] = JsonType.OBJECT,
) -> JSONResponse:
    """
    Load a template as a schema definition, in the shape the parse
    endpoints accept in their ``schema`` form field.
    """
    if format == OutputFormat.CSV:
        schema = csv_template(name)
    else:
        schema = json_template(name, json_type)
    return JSONResponse(
        content=schema.model_dump(mode="json", by_alias=True, exclude_none=True)
    )
