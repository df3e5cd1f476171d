from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from fnmatch import fnmatch
from pathlib import Path
from typing import Any, Dict, List, Optional

from .catalog import KnownTables
from .config import RuntimeConfig
from .io_utils import read_text_safely
from .keywords import (
    DEFAULT_KEYWORDS,
    DIALECT_KEYWORDS,
    canonical_dialect,
    get_all_keywords,
    keywords_for_dialect,
)
from .models import ExtractionOptions, ExtractionResult, TableMetadata
from .parser import SqlTableExtractor

logger = logging.getLogger(__name__)


@dataclass
class ParseRequest:
    sql: str
    known_tables: Optional[Path] = None
    table_names: Optional[List[str]] = None
    filter_ctes: bool = False
    keywords: Optional[List[str]] = None
    custom_keywords: List[str] = field(default_factory=list)
    dialect: Optional[str] = None


@dataclass
class ScanRequest:
    sql_dir: Path
    out_dir: Optional[Path] = None
    known_tables: Optional[Path] = None
    filter_ctes: bool = False
    include: Optional[List[str]] = None
    exclude: Optional[List[str]] = None
    encoding: str = "auto"
    fail_on_warn: bool = False


DEMO_QUERIES = [
    ("Simple SELECT", "SELECT * FROM users"),
    ("JOIN with aliases", "SELECT u.name, p.title FROM users u INNER JOIN posts p ON u.id = p.user_id"),
    ("Schema notation", "SELECT * FROM public.users JOIN blog.posts ON users.id = posts.user_id"),
    (
        "CTE example",
        "WITH active_users AS (SELECT * FROM users WHERE active = true) "
        "SELECT * FROM active_users JOIN orders ON active_users.id = orders.user_id",
    ),
    (
        "Quoted identifiers",
        'SELECT * FROM "user table" JOIN [order table] ON "user table".id = [order table].user_id',
    ),
]

DEMO_TABLES: Dict[str, TableMetadata] = {
    "users": TableMetadata("users", "public.users", "public", "myapp"),
    "posts": TableMetadata("posts", "blog.posts", "blog", "myapp"),
    "orders": TableMetadata("orders", "sales.orders", "sales", "myapp"),
    "public.users": TableMetadata("users", "public.users", "public", "myapp"),
    "blog.posts": TableMetadata("posts", "blog.posts", "blog", "myapp"),
    "user table": TableMetadata("user table", "public.user_table", "public"),
    "order table": TableMetadata("order table", "sales.order_table", "sales"),
}


class Engine:
    def __init__(self, config: Optional[RuntimeConfig] = None):
        self.config = config or RuntimeConfig()

    # ------------------ PARSE ------------------

    def run_parse(self, req: ParseRequest) -> Dict[str, Any]:
        known = self._load_known_tables(req.known_tables, req.table_names)
        extractor = self._build_extractor(
            known=known,
            filter_ctes=req.filter_ctes,
            keywords=req.keywords,
            custom_keywords=req.custom_keywords,
            dialect=req.dialect,
        )
        result = self._apply_ignore(extractor.extract_table_names(req.sql))

        payload: Dict[str, Any] = result.to_dict()
        payload.update({
            "keywords": list(extractor.keywords),
            "knownTables": len(known) if known is not None else 0,
            "filterCTEs": bool(extractor.options.filter_ctes),
        })
        return payload

    # ------------------ SCAN ------------------

    def run_scan(self, req: ScanRequest) -> Dict[str, Any]:
        """
        1) load the catalog (optional)
        2) collect *.sql files by include/exclude
        3) per file: read -> extract -> (optional) write JSON
        4) count failed files and files without tables as warnings
        """
        known = self._load_known_tables(req.known_tables, None)
        extractor = self._build_extractor(known=known, filter_ctes=req.filter_ctes)

        includes = list(req.include or self.config.include or [])
        excludes = list(req.exclude or self.config.exclude or [])

        def match_any(p: Path, patterns: List[str]) -> bool:
            return any(p.match(g) for g in patterns)

        sql_root = Path(req.sql_dir)
        sql_files = [
            p for p in sorted(sql_root.rglob("*.sql"))
            if (not includes or match_any(p, includes)) and not match_any(p, excludes)
        ]

        out_dir = Path(req.out_dir) if req.out_dir else None
        if out_dir:
            out_dir.mkdir(parents=True, exist_ok=True)

        rows: List[Dict[str, Any]] = []
        warnings = 0
        for sql_path in sql_files:
            try:
                sql_text = read_text_safely(sql_path, encoding=req.encoding)
                result = self._apply_ignore(extractor.extract_table_names(sql_text))
            except (OSError, ValueError) as e:
                warnings += 1
                logger.warning("failed to process %s: %s", sql_path, e)
                continue

            if not result.all_tables:
                warnings += 1
                logger.warning("no tables found in %s", sql_path)

            row: Dict[str, Any] = {
                "file": str(sql_path.relative_to(sql_root)),
                "tables": ", ".join(result.real_tables),
                "ctes": ", ".join(result.filtered_ctes),
            }
            if out_dir:
                target = out_dir / sql_path.relative_to(sql_root).with_suffix(".json")
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(json.dumps(result.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8")
                row["output"] = str(target)
            rows.append(row)

        columns = ["file", "tables", "ctes"] + (["output"] if out_dir else [])
        return {
            "columns": columns,
            "rows": rows,
            "warnings": warnings,
            "exit_code": 1 if (req.fail_on_warn and warnings) else 0,
        }

    # ------------------ KEYWORDS / DEMO ------------------

    def run_keywords(self) -> Dict[str, Any]:
        dialects = {name: keywords_for_dialect(name, self.config.keyword_presets) for name in DIALECT_KEYWORDS}
        for name in self.config.keyword_presets or {}:
            canon = canonical_dialect(name)
            dialects.setdefault(canon, keywords_for_dialect(canon, self.config.keyword_presets))
        return {
            "default": list(DEFAULT_KEYWORDS),
            "dialects": dialects,
            "all": get_all_keywords(),
        }

    def run_demo(self) -> Dict[str, Any]:
        known = KnownTables.from_mapping(DEMO_TABLES)
        extractor = SqlTableExtractor(ExtractionOptions(known_tables=known, filter_ctes=True))
        rows = []
        for name, sql in DEMO_QUERIES:
            result = extractor.extract_table_names(sql)
            rows.append({
                "name": name,
                "sql": sql,
                "all": ", ".join(result.all_tables),
                "real": ", ".join(result.real_tables),
                "ctes": ", ".join(result.filtered_ctes),
            })
        return {"columns": ["name", "all", "real", "ctes"], "rows": rows}

    # ------------------ helpers ------------------

    def _load_known_tables(self, path: Optional[Path], names: Optional[List[str]]) -> Optional[KnownTables]:
        if names:
            return KnownTables.from_names(names)
        source = path or self.config.known_tables
        if not source:
            return None
        known = KnownTables.load(source)
        logger.info("loaded %d known tables from %s", len(known), source)
        return known

    def _build_extractor(
        self,
        known: Optional[KnownTables],
        filter_ctes: bool = False,
        keywords: Optional[List[str]] = None,
        custom_keywords: Optional[List[str]] = None,
        dialect: Optional[str] = None,
    ) -> SqlTableExtractor:
        cfg = self.config
        keywords = keywords if keywords else cfg.keywords
        dialect = dialect or cfg.dialect
        if keywords is None and dialect:
            # raises KeyError for unknown dialects before any work is done
            keywords = keywords_for_dialect(dialect, cfg.keyword_presets)
        options = ExtractionOptions(
            known_tables=known,
            filter_ctes=(filter_ctes or cfg.filter_ctes) and known is not None,
            keywords=keywords,
            custom_keywords=[*(cfg.custom_keywords or []), *(custom_keywords or [])],
        )
        return SqlTableExtractor(options)

    def _apply_ignore(self, result: ExtractionResult) -> ExtractionResult:
        patterns = list(self.config.ignore or [])
        if not patterns:
            return result

        def keep(name: str) -> bool:
            return not any(fnmatch(name, pat) for pat in patterns)

        return ExtractionResult(
            all_tables=[t for t in result.all_tables if keep(t)],
            real_tables=[t for t in result.real_tables if keep(t)],
            filtered_ctes=[t for t in result.filtered_ctes if keep(t)],
        )
