"""
Keyword presets: the phrases that may precede a table name.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from sqlglot.dialects.dialect import Dialects

logger = logging.getLogger(__name__)


DEFAULT_KEYWORDS: Tuple[str, ...] = (
    # table references
    "FROM",
    "JOIN",
    "INNER JOIN",
    "LEFT JOIN",
    "RIGHT JOIN",
    "FULL JOIN",
    "CROSS JOIN",
    "OUTER JOIN",
    # DML
    "INTO",
    "UPDATE",
    "DELETE FROM",
    "INSERT INTO",
    "REPLACE INTO",
    "UPSERT INTO",
    "MERGE INTO",
    "USING",
)

# Extensions per sqlglot dialect name, appended to DEFAULT_KEYWORDS.
DIALECT_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "postgres": ("LATERAL JOIN", "RETURNING", "CREATE TABLE", "CREATE TEMPORARY TABLE"),
    "mysql": ("STRAIGHT_JOIN", "INSERT IGNORE INTO", "CREATE TABLE", "CREATE TEMPORARY TABLE"),
    "tsql": ("CROSS APPLY", "OUTER APPLY", "OUTPUT", "CREATE TABLE"),
    "oracle": ("CONNECT BY", "MODEL", "INSERT ALL INTO", "CREATE TABLE"),
    "bigquery": ("CREATE TABLE", "CREATE OR REPLACE TABLE", "CREATE TEMPORARY TABLE"),
    "snowflake": (
        "LATERAL FLATTEN",
        "COPY INTO",
        "CREATE TABLE",
        "CREATE OR REPLACE TABLE",
        "CREATE TRANSIENT TABLE",
        "CREATE TEMPORARY TABLE",
    ),
    "sqlite": ("INSERT OR REPLACE INTO", "CREATE TABLE", "CREATE TEMPORARY TABLE"),
}

# Common spellings that are not sqlglot dialect names.
DIALECT_ALIASES: Dict[str, str] = {
    "mssql": "tsql",
    "sqlserver": "tsql",
    "sql_server": "tsql",
    "postgresql": "postgres",
    "pg": "postgres",
    "mariadb": "mysql",
    "bq": "bigquery",
    "sqlite3": "sqlite",
}


def dedupe(keywords: Iterable[str]) -> List[str]:
    """Strip blanks and drop repeats, keeping first-seen order."""
    seen = set()
    out: List[str] = []
    for kw in keywords:
        kw = " ".join((kw or "").split())
        if kw and kw not in seen:
            seen.add(kw)
            out.append(kw)
    return out


def _collect_all() -> Tuple[str, ...]:
    extended = [kw for preset in DIALECT_KEYWORDS.values() for kw in preset]
    return tuple(dedupe([*DEFAULT_KEYWORDS, *extended, "INSERT ALL INTO", "SELECT * FROM"]))


@dataclass(frozen=True)
class SqlKeywordsConfig:
    default: Tuple[str, ...]
    all: Tuple[str, ...]


DEFAULT_KEYWORDS_CONFIG = SqlKeywordsConfig(default=DEFAULT_KEYWORDS, all=_collect_all())


def get_all_keywords(config: SqlKeywordsConfig = DEFAULT_KEYWORDS_CONFIG) -> List[str]:
    return list(config.all)


def create_custom_keywords_config(
    custom_keywords: Sequence[str], base: SqlKeywordsConfig = DEFAULT_KEYWORDS_CONFIG
) -> SqlKeywordsConfig:
    return SqlKeywordsConfig(
        default=tuple(dedupe([*base.default, *custom_keywords])),
        all=tuple(dedupe([*base.all, *custom_keywords])),
    )


def canonical_dialect(name: str) -> str:
    """Map a dialect name or alias onto its sqlglot name.

    Raises KeyError for names sqlglot does not know.
    """
    key = (name or "").strip().lower()
    key = DIALECT_ALIASES.get(key, key)
    try:
        if not key:
            raise ValueError(key)
        return Dialects(key).value
    except ValueError:
        raise KeyError(f"Unknown dialect '{name}'. Presets: {', '.join(DIALECT_KEYWORDS)}") from None


def keywords_for_dialect(
    dialect: Optional[str], presets: Optional[Mapping[str, Sequence[str]]] = None
) -> List[str]:
    """Default keywords plus the dialect's extension (and any user preset for it)."""
    if not dialect:
        return list(DEFAULT_KEYWORDS)
    name = canonical_dialect(dialect)
    extra: List[str] = list(DIALECT_KEYWORDS.get(name, ()))
    for key, values in (presets or {}).items():
        if DIALECT_ALIASES.get(key.lower(), key.lower()) == name:
            extra.extend(values or [])
    if not extra:
        logger.debug("no keyword preset for dialect %s, using defaults", name)
    return dedupe([*DEFAULT_KEYWORDS, *extra])
