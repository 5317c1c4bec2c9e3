"""
Router for provider model listings.

Handles:
- GET /api/models/{provider}: models usable for document parsing
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Header

from ..dependencies import get_model_catalog
from ..models import ModelListResponse, Provider
from ..services.ai import ModelCatalog

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/models", tags=["models"])


@router.get("/{provider}", response_model=ModelListResponse)
async def list_models(
    provider: Provider,
    catalog: Annotated[ModelCatalog, Depends(get_model_catalog)],
    x_api_key: Annotated[str | None, Header()] = None,
) -> ModelListResponse:
    """
    List models for a provider, using the key from the ``X-API-Key`` header.

    Lists are cached per provider and key for a few minutes.
    """
    models = await catalog.list_models(provider, x_api_key or "")
    return ModelListResponse(provider=provider, models=models)
