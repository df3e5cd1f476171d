"""
Keyword-driven table name extraction.
"""
from __future__ import annotations

import logging
import re
from functools import lru_cache
from typing import Any, Dict, List, Optional, Pattern, Sequence, Tuple

from .catalog import KnownTables
from .keywords import DEFAULT_KEYWORDS, dedupe, keywords_for_dialect
from .models import ExtractionOptions, ExtractionResult, KeywordRole
from .parser_modules.identifiers import IDENTIFIER, clean_identifier
from .parser_modules.preprocess import remove_comments_and_strings

logger = logging.getLogger(__name__)

RE_OPEN_PAREN = re.compile(r"\s*\(")


def _keyword_alternative(keyword: str) -> str:
    # internal whitespace matches any whitespace run, everything else literally
    return r"\s+".join(re.escape(word) for word in keyword.split())


@lru_cache(maxsize=256)
def _compile_pattern(keywords: Tuple[str, ...]) -> Optional[Pattern[str]]:
    """Keyword alternation + whitespace + identifier expression.

    Longer phrases come first so "JOIN" cannot pre-empt "JOIN LATERAL" at the
    same position. The lookbehind keeps "FROM" from firing inside "DATEFROM".
    """
    if not keywords:
        return None
    alternatives = sorted(keywords, key=lambda k: (-len(k.split()), -len(k)))
    pattern = (
        r"(?<![\w@#])(?P<keyword>"
        + "|".join(_keyword_alternative(k) for k in alternatives)
        + r")\s+(?P<identifier>" + IDENTIFIER + r")"
    )
    return re.compile(pattern, re.IGNORECASE)


class SqlTableExtractor:
    """Extract table names referenced by a SQL query.

    The extractor is configured once (keywords, catalog, CTE filtering) and is
    stateless across calls to :meth:`extract_table_names`.
    """

    def __init__(self, options: Optional[ExtractionOptions] = None):
        self.options = options or ExtractionOptions()
        self.known_tables: Optional[KnownTables] = KnownTables.coerce(self.options.known_tables)
        self.keywords: List[str] = self._effective_keywords(self.options)
        self._pattern = _compile_pattern(tuple(self.keywords))
        logger.debug("effective keywords: %s", ", ".join(self.keywords) or "<none>")

    @staticmethod
    def _effective_keywords(options: ExtractionOptions) -> List[str]:
        if options.keywords is not None:
            base: Sequence[str] = options.keywords
        elif options.dialect:
            try:
                base = keywords_for_dialect(options.dialect)
            except KeyError as exc:
                logger.warning("%s; using default keywords", exc.args[0])
                base = DEFAULT_KEYWORDS
        else:
            base = DEFAULT_KEYWORDS
        return dedupe([*base, *(options.custom_keywords or [])])

    def extract_table_names(self, sql: str) -> ExtractionResult:
        clean_sql = remove_comments_and_strings(sql or "")
        known = self.known_tables

        found: Dict[str, None] = {}
        for name in self._scan(clean_sql):
            resolved = known.resolve(name) if known is not None else name
            found.setdefault(resolved, None)
        all_tables = list(found)

        if self.options.filter_ctes and known is not None:
            real_tables: List[str] = []
            filtered_ctes: List[str] = []
            for table in all_tables:
                (real_tables if known.is_known(table) else filtered_ctes).append(table)
            return ExtractionResult(all_tables, real_tables, filtered_ctes)

        return ExtractionResult(all_tables, list(all_tables), [])

    def get_table_names_simple(self, sql: str) -> List[str]:
        result = self.extract_table_names(sql)
        return result.real_tables if self.known_tables is not None else result.all_tables

    def _scan(self, clean_sql: str):
        if self._pattern is None or not clean_sql:
            return
        for m in self._pattern.finditer(clean_sql):
            identifier = m.group("identifier")
            if RE_OPEN_PAREN.match(clean_sql, m.end()):
                if KeywordRole.of(m.group("keyword")) is KeywordRole.SOURCE:
                    logger.debug("skipping function call after %s: %s", m.group("keyword"), identifier)
                    continue
            yield clean_identifier(identifier)


def extract_table_names(
    sql: str,
    known_tables: Any = None,
    filter_ctes: bool = False,
    keywords: Optional[List[str]] = None,
    custom_keywords: Optional[List[str]] = None,
    dialect: Optional[str] = None,
) -> ExtractionResult:
    """Extract table names from ``sql``.

    ``known_tables`` may be a KnownTables, a mapping of key -> metadata, or any
    iterable of names. With ``filter_ctes`` and a catalog, names missing from
    the catalog are reported as CTEs.
    """
    options = ExtractionOptions(
        known_tables=KnownTables.coerce(known_tables),
        filter_ctes=filter_ctes,
        keywords=keywords,
        custom_keywords=list(custom_keywords or []),
        dialect=dialect,
    )
    return SqlTableExtractor(options).extract_table_names(sql)


def get_table_names_simple(sql: str, known_tables: Any = None) -> List[str]:
    """Real tables when a catalog is given, otherwise every captured table."""
    catalog = KnownTables.coerce(known_tables)
    options = ExtractionOptions(known_tables=catalog, filter_ctes=catalog is not None)
    return SqlTableExtractor(options).get_table_names_simple(sql)
