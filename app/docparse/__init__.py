"""
Document Parser Backend Application.

A FastAPI service that turns PDFs and images into structured data
(nested JSON or CSV rows) using multimodal AI models from Google or
OpenRouter.
"""

__version__ = "1.0.0"
