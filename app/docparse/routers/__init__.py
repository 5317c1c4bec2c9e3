"""
Routers package for FastAPI endpoints.

Organized by domain:
- parse: Document parsing and schema generation
- schemas: Built-in schema templates
- catalog: Provider model listings
"""

from . import catalog, parse, schemas

__all__ = ["catalog", "parse", "schemas"]
