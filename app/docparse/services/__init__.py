"""
Services package for the document parsing application.

Contains:
- ai: schema generation and extraction pipeline, model catalog
- pdf_service: PDF decryption, slicing and page rendering
- documents: upload validation and document preparation
"""

from .pdf_service import PDFService

__all__ = ["PDFService"]
