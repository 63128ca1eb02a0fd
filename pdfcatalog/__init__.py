"""PDF Catalog - A local PDF library with quota-aware, degradable storage."""

__version__ = "0.1.0"

from pdfcatalog.catalog import CatalogService
from pdfcatalog.database import Database, KeyValueStore

__all__ = ["CatalogService", "Database", "KeyValueStore"]
