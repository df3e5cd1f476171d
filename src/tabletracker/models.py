"""
Core data models for tabletracker.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .catalog import KnownTables


class KeywordRole(Enum):
    """Role of the keyword that triggered a capture."""
    SOURCE = "SOURCE"  # FROM, JOIN ..., USING
    TARGET = "TARGET"  # INTO, UPDATE, MERGE INTO, DELETE FROM ...

    @classmethod
    def of(cls, keyword: str) -> "KeywordRole":
        kw = " ".join((keyword or "").upper().split())
        if kw == "FROM" or "JOIN" in kw or kw == "USING":
            return cls.SOURCE
        return cls.TARGET


@dataclass(frozen=True)
class TableMetadata:
    """Metadata for a table known to the catalog."""
    table_name: str
    fully_qualified_name: str
    schema: Optional[str] = None
    database: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TableMetadata":
        """Build from camelCase (tableName) or snake_case (table_name) keys."""
        table_name = data.get("tableName", data.get("table_name"))
        fqn = data.get("fullyQualifiedName", data.get("fully_qualified_name"))
        if not isinstance(table_name, str) or not isinstance(fqn, str):
            raise ValueError("table metadata requires string 'tableName' and 'fullyQualifiedName'")
        return cls(
            table_name=table_name,
            fully_qualified_name=fqn,
            schema=data.get("schema"),
            database=data.get("database"),
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "tableName": self.table_name,
            "fullyQualifiedName": self.fully_qualified_name,
        }
        if self.schema is not None:
            out["schema"] = self.schema
        if self.database is not None:
            out["database"] = self.database
        return out


@dataclass
class ExtractionResult:
    """Tables found in a query, split into real tables and CTE aliases."""
    all_tables: List[str] = field(default_factory=list)
    real_tables: List[str] = field(default_factory=list)
    filtered_ctes: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, List[str]]:
        return {
            "allTables": list(self.all_tables),
            "realTables": list(self.real_tables),
            "filteredCTEs": list(self.filtered_ctes),
        }


@dataclass
class ExtractionOptions:
    """Options for a single extraction.

    ``keywords`` replaces the default keyword list when given (an empty list
    means no keywords at all); ``custom_keywords`` are always appended.
    ``dialect`` picks a keyword preset when ``keywords`` is not given.
    """
    known_tables: Optional["KnownTables"] = None
    filter_ctes: bool = False
    keywords: Optional[List[str]] = None
    custom_keywords: List[str] = field(default_factory=list)
    dialect: Optional[str] = None
