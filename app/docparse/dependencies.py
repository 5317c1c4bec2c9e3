"""FastAPI dependencies resolving services owned by the application state."""

from fastapi import Request

from .services.ai import ExtractionPipeline, ModelCatalog


def get_pipeline(request: Request) -> ExtractionPipeline:
    return request.app.state.pipeline


def get_model_catalog(request: Request) -> ModelCatalog:
    return request.app.state.model_catalog
