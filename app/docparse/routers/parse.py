"""
Router for document parsing endpoints.

Handles:
- POST /api/parse: extraction with the caller's own provider credentials
- POST /api/demo-parse: extraction with the server-managed demo model
- POST /api/generate-schema: schema generation only
"""

import json
import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from ..dependencies import get_pipeline
from ..exceptions import DocParseError, SchemaValidationError
from ..models import ModelConfig, ParseRequest, Provider
from ..services.ai import ExtractionPipeline
from ..services.documents import prepare_document, validate_file_size, validate_file_type

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["parse"])

DEMO_NOT_AVAILABLE_MESSAGE = (
    "Demo provider is not available for API usage. "
    "Please use 'google' or 'openrouter' with your own API key."
)


def _model_config(
    provider: str,
    google_api_key: str | None,
    google_model: str | None,
    openrouter_api_key: str | None,
    openrouter_model: str | None,
    allow_demo: bool,
) -> ModelConfig:
    """Pick the credentials matching ``provider`` from the form fields."""
    if provider == Provider.GOOGLE.value:
        if not google_api_key:
            raise SchemaValidationError("googleApiKey is required for Google provider")
        if not google_model:
            raise SchemaValidationError("googleModel is required for Google provider")
        return ModelConfig(provider=Provider.GOOGLE, model_id=google_model, api_key=google_api_key)

    if provider == Provider.OPENROUTER.value:
        if not openrouter_api_key:
            raise SchemaValidationError("openrouterApiKey is required for OpenRouter provider")
        if not openrouter_model:
            raise SchemaValidationError("openrouterModel is required for OpenRouter provider")
        return ModelConfig(
            provider=Provider.OPENROUTER, model_id=openrouter_model, api_key=openrouter_api_key
        )

    if provider == Provider.DEMO.value:
        if not allow_demo:
            raise SchemaValidationError(DEMO_NOT_AVAILABLE_MESSAGE)
        return ModelConfig(provider=Provider.DEMO)

    raise SchemaValidationError("Invalid provider. Must be 'google' or 'openrouter'")


def _decode_schema(schema: str | None) -> Any:
    if not schema:
        return None
    try:
        return json.loads(schema)
    except json.JSONDecodeError as e:
        raise SchemaValidationError("Invalid JSON in schema field") from e


def _page_range(start: str | None, end: str | None) -> dict[str, Any]:
    return {"start": start or 1, "end": end or None}


async def _read_upload(file: UploadFile) -> tuple[bytes, str, str]:
    """Read and validate an upload; returns bytes, mime type and filename."""
    try:
        file_bytes = await file.read()
    finally:
        await file.close()

    mime_type = file.content_type or "application/octet-stream"
    filename = file.filename or "document"
    validate_file_size(len(file_bytes))
    validate_file_type(mime_type)
    logger.info("Received %s (%s, %d bytes)", filename, mime_type, len(file_bytes))
    return file_bytes, mime_type, filename


async def _run_parse(
    pipeline: ExtractionPipeline,
    request: ParseRequest,
    file: UploadFile,
):
    """Prepare the document, generate a schema if needed, then extract."""
    file_bytes, mime_type, filename = await _read_upload(file)

    document_data = await run_in_threadpool(
        prepare_document,
        file_bytes,
        mime_type,
        request.model.provider,
        filename=filename,
        password=request.pdf_password,
        page_range=request.page_range,
    )

    schema = request.schema_definition
    if schema is None:
        format, json_type = request.output_format.to_format()
        schema = await pipeline.generate_schema(
            document_data,
            format,
            request.model,
            filename=filename,
            mime_type=mime_type,
            json_type=json_type,
        )

    return await pipeline.parse_document(
        document_data,
        mime_type,
        schema,
        request.model,
        custom_prompt=request.custom_prompt,
        filename=filename,
    )


async def _guarded(coro):
    """Await ``coro``; unexpected failures become ``api_error`` responses."""
    try:
        return await coro
    except (DocParseError, ValidationError):
        raise
    except Exception as e:
        logger.exception("Unexpected error while handling parse request")
        raise DocParseError(str(e) or "An unexpected error occurred") from e


@router.post("/parse")
async def parse(
    file: Annotated[UploadFile, File(description="PDF or image to parse")],
    provider: Annotated[str, Form()],
    output_format: Annotated[str, Form(alias="outputFormat")],
    pipeline: Annotated[ExtractionPipeline, Depends(get_pipeline)],
    schema_json: Annotated[str | None, Form(alias="schema")] = None,
    custom_prompt: Annotated[str, Form(alias="customPrompt")] = "",
    pdf_password: Annotated[str | None, Form(alias="pdfPassword")] = None,
    page_range_start: Annotated[str | None, Form(alias="pageRangeStart")] = None,
    page_range_end: Annotated[str | None, Form(alias="pageRangeEnd")] = None,
    google_api_key: Annotated[str | None, Form(alias="googleApiKey")] = None,
    google_model: Annotated[str | None, Form(alias="googleModel")] = None,
    openrouter_api_key: Annotated[str | None, Form(alias="openrouterApiKey")] = None,
    openrouter_model: Annotated[str | None, Form(alias="openrouterModel")] = None,
) -> JSONResponse:
    """
    Parse a document with the caller's own provider credentials.

    When no schema is supplied one is generated from the document first.
    Returns the extracted data directly.
    """
    model = _model_config(
        provider,
        google_api_key,
        google_model,
        openrouter_api_key,
        openrouter_model,
        allow_demo=False,
    )
    request = ParseRequest.model_validate(
        {
            "model": model,
            "output_format": output_format,
            "schema_definition": _decode_schema(schema_json),
            "custom_prompt": custom_prompt,
            "pdf_password": pdf_password or None,
            "page_range": _page_range(page_range_start, page_range_end),
        }
    )

    output = await _guarded(_run_parse(pipeline, request, file))
    return JSONResponse(content=output.data)


@router.post("/demo-parse")
async def demo_parse(
    file: Annotated[UploadFile, File(description="PDF or image to parse")],
    output_format: Annotated[str, Form(alias="outputFormat")],
    schema_json: Annotated[str, Form(alias="schema")],
    pipeline: Annotated[ExtractionPipeline, Depends(get_pipeline)],
    custom_prompt: Annotated[str, Form(alias="customPrompt")] = "",
    pdf_password: Annotated[str | None, Form(alias="pdfPassword")] = None,
    page_range_start: Annotated[str | None, Form(alias="pageRangeStart")] = None,
    page_range_end: Annotated[str | None, Form(alias="pageRangeEnd")] = None,
) -> JSONResponse:
    """
    Parse a document with the server-managed demo model.

    A schema is required. Returns the full output, including CSV rows.
    """
    request = ParseRequest.model_validate(
        {
            "model": ModelConfig(provider=Provider.DEMO),
            "output_format": output_format,
            "schema_definition": _decode_schema(schema_json),
            "custom_prompt": custom_prompt,
            "pdf_password": pdf_password or None,
            "page_range": _page_range(page_range_start, page_range_end),
        }
    )
    if request.schema_definition is None:
        raise SchemaValidationError(
            "Missing required fields: file, outputFormat, and schema are required"
        )

    output = await _guarded(_run_parse(pipeline, request, file))
    return JSONResponse(content=output.model_dump(mode="json"))


@router.post("/generate-schema")
async def generate_schema(
    file: Annotated[UploadFile, File(description="PDF or image to analyze")],
    provider: Annotated[str, Form()],
    output_format: Annotated[str, Form(alias="outputFormat")],
    pipeline: Annotated[ExtractionPipeline, Depends(get_pipeline)],
    pdf_password: Annotated[str | None, Form(alias="pdfPassword")] = None,
    page_range_start: Annotated[str | None, Form(alias="pageRangeStart")] = None,
    page_range_end: Annotated[str | None, Form(alias="pageRangeEnd")] = None,
    google_api_key: Annotated[str | None, Form(alias="googleApiKey")] = None,
    google_model: Annotated[str | None, Form(alias="googleModel")] = None,
    openrouter_api_key: Annotated[str | None, Form(alias="openrouterApiKey")] = None,
    openrouter_model: Annotated[str | None, Form(alias="openrouterModel")] = None,
) -> JSONResponse:
    """Propose a schema for the uploaded document."""
    model = _model_config(
        provider,
        google_api_key,
        google_model,
        openrouter_api_key,
        openrouter_model,
        allow_demo=True,
    )
    request = ParseRequest.model_validate(
        {
            "model": model,
            "output_format": output_format,
            "pdf_password": pdf_password or None,
            "page_range": _page_range(page_range_start, page_range_end),
        }
    )

    async def run():
        file_bytes, mime_type, filename = await _read_upload(file)
        document_data = await run_in_threadpool(
            prepare_document,
            file_bytes,
            mime_type,
            request.model.provider,
            filename=filename,
            password=request.pdf_password,
            page_range=request.page_range,
        )
        format, json_type = request.output_format.to_format()
        return await pipeline.generate_schema(
            document_data,
            format,
            request.model,
            filename=filename,
            mime_type=mime_type,
            json_type=json_type,
        )

    schema = await _guarded(run())
    return JSONResponse(
        content=schema.model_dump(mode="json", by_alias=True, exclude_none=True)
    )
