"""
tabletracker: extract referenced table names from SQL queries.
"""
from .catalog import CatalogError, KnownTables
from .models import ExtractionOptions, ExtractionResult, KeywordRole, TableMetadata
from .parser import SqlTableExtractor, extract_table_names, get_table_names_simple

__version__ = "0.3.0"

__all__ = [
    "CatalogError",
    "ExtractionOptions",
    "ExtractionResult",
    "KeywordRole",
    "KnownTables",
    "SqlTableExtractor",
    "TableMetadata",
    "extract_table_names",
    "get_table_names_simple",
]
