"""
AI pipeline package for schema generation and document extraction.

This package is split into:
- compiler: SchemaDefinition -> runtime Validator (structured output contract)
- prompts: instructions for schema generation and extraction
- payload: multimodal content parts for the provider call
- providers: provider clients and the single structured-generation call
- normalizer: validated result -> JsonOutput / CsvOutput
- pipeline: the run orchestrator tying the steps together
- catalog: cached provider model lists
"""

from .catalog import ModelCatalog
from .compiler import Validator, compile_schema
from .normalizer import normalize_result
from .payload import assemble_payload
from .pipeline import ExtractionPipeline, PipelineRun, PipelineStage
from .prompts import build_parse_prompt, build_schema_generation_prompt
from .providers import create_model, invoke

__all__ = [
    "ExtractionPipeline",
    "ModelCatalog",
    "PipelineRun",
    "PipelineStage",
    "Validator",
    "assemble_payload",
    "build_parse_prompt",
    "build_schema_generation_prompt",
    "compile_schema",
    "create_model",
    "invoke",
    "normalize_result",
]
