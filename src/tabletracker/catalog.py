from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Union

import yaml

from .models import TableMetadata
from .parser_modules.identifiers import bare_name

logger = logging.getLogger(__name__)


class CatalogError(ValueError):
    """Raised when a known-tables file cannot be turned into a catalog."""


class KnownTables:
    """Catalog of real tables used to resolve and classify extracted names.

    Two variants share one lookup rule:

    - metadata variant (``from_mapping``): key -> TableMetadata; names resolve
      to the entry's fully qualified name.
    - flat variant (``from_names``): a plain set of names; resolution is the
      identity.

    Lookup: exact key first, then the first entry (insertion order) whose key,
    bare table name or fully qualified name matches the candidate.
    """

    def __init__(self, entries: Optional[Mapping[str, TableMetadata]] = None, qualify: bool = True):
        self._entries: Dict[str, TableMetadata] = dict(entries or {})
        self.qualify = qualify

    # ---- constructors ----
    @classmethod
    def from_names(cls, names: Iterable[str]) -> "KnownTables":
        entries: Dict[str, TableMetadata] = {}
        for name in names:
            name = (name or "").strip()
            if name and name not in entries:
                entries[name] = TableMetadata(table_name=name, fully_qualified_name=name)
        return cls(entries, qualify=False)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any], strict: bool = False) -> "KnownTables":
        """Build the metadata variant.

        Values may be TableMetadata, dicts (camelCase or snake_case keys) or a
        plain string holding the fully qualified name. Invalid entries are
        skipped with a warning, or raise CatalogError when ``strict``.
        """
        entries: Dict[str, TableMetadata] = {}
        for key, value in mapping.items():
            try:
                entries[str(key)] = _to_metadata(value)
            except ValueError as exc:
                if strict:
                    raise CatalogError(f"invalid table metadata for key '{key}': {exc}") from exc
                logger.warning("invalid table metadata for key %r - skipping (%s)", key, exc)
        return cls(entries, qualify=True)

    @classmethod
    def from_csv(cls, text: str) -> "KnownTables":
        return cls.from_names(part.strip() for part in (text or "").split(","))

    @classmethod
    def coerce(cls, obj: Any) -> Optional["KnownTables"]:
        """Accept a KnownTables, a mapping, or any iterable of names."""
        if obj is None or isinstance(obj, KnownTables):
            return obj
        if isinstance(obj, Mapping):
            return cls.from_mapping(obj)
        if isinstance(obj, str):
            return cls.from_csv(obj)
        return cls.from_names(obj)

    @classmethod
    def load(cls, path: Union[str, Path]) -> "KnownTables":
        """Load a catalog from a JSON or YAML file.

        Accepted shapes: ``{key: {tableName, fullyQualifiedName, ...}}``,
        ``{key: "schema.table"}``, ``["users", "orders"]`` and
        ``{tables: [{name, schema?, database?}, ...]}``.
        """
        p = Path(path)
        try:
            text = p.read_text(encoding="utf-8")
        except OSError as exc:
            raise CatalogError(f"cannot read known tables file {p}: {exc}") from exc
        try:
            data = json.loads(text) if p.suffix.lower() == ".json" else yaml.safe_load(text)
        except (json.JSONDecodeError, yaml.YAMLError) as exc:
            raise CatalogError(f"cannot parse known tables file {p}: {exc}") from exc

        if data is None:
            return cls()
        if isinstance(data, list):
            return cls.from_names(str(x) for x in data if x is not None)
        if not isinstance(data, dict):
            raise CatalogError(f"known tables file {p} must contain an object or a list")
        if isinstance(data.get("tables"), list):
            return cls.from_mapping(_tables_section(data["tables"]))
        return cls.from_mapping(data)

    # ---- lookup API ----
    def lookup(self, name: str) -> Optional[TableMetadata]:
        meta = self._entries.get(name)
        if meta is not None:
            return meta
        bare = bare_name(name)
        for key, meta in self._entries.items():
            if key == name or meta.table_name == bare or meta.fully_qualified_name == name:
                return meta
        return None

    def resolve(self, name: str) -> str:
        if not self.qualify:
            return name
        meta = self.lookup(name)
        return meta.fully_qualified_name if meta is not None else name

    def is_known(self, name: str) -> bool:
        return self.lookup(name) is not None

    # ---- container protocol ----
    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.is_known(name)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def items(self) -> List[Tuple[str, TableMetadata]]:
        return list(self._entries.items())

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        return {k: v.to_dict() for k, v in self._entries.items()}

    def __repr__(self) -> str:
        kind = "mapping" if self.qualify else "names"
        return f"KnownTables({kind}, {len(self)} entries)"


def _to_metadata(value: Any) -> TableMetadata:
    if isinstance(value, TableMetadata):
        return value
    if isinstance(value, str):
        if not value:
            raise ValueError("empty table name")
        return TableMetadata(table_name=bare_name(value), fully_qualified_name=value)
    if isinstance(value, Mapping):
        return TableMetadata.from_dict(value)
    raise ValueError(f"expected an object or a string, got {type(value).__name__}")


def _tables_section(tables: List[Any]) -> Dict[str, Any]:
    """``tables: [{name: dbo.orders, database: DW}]`` -> mapping keyed by name."""
    out: Dict[str, Any] = {}
    for t in tables:
        if not isinstance(t, dict) or not isinstance(t.get("name"), str):
            logger.warning("invalid entry in 'tables' section - skipping: %r", t)
            continue
        name = t["name"]
        schema = t.get("schema")
        database = t.get("database")
        parts = [p for p in (database, schema) if p] + [name]
        out[name] = {
            "tableName": bare_name(name),
            "fullyQualifiedName": t.get("fullyQualifiedName") or ".".join(parts),
            "schema": schema,
            "database": database,
        }
    return out
