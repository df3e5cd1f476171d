from __future__ import annotations

import re
from typing import List

_RE_WHITESPACE = re.compile(r"\s+")

# A double quote right after one of these is read as a string literal
# ("... WHERE name = "John""); anywhere else it opens a quoted identifier.
_COMPARISON_CHARS = frozenset("=!<>")


def _last_non_space(out: List[str]) -> str:
    for chunk in reversed(out):
        stripped = chunk.rstrip()
        if stripped:
            return stripped[-1]
    return ""


def _skip_line_comment(sql: str, i: int) -> int:
    end = sql.find("\n", i)
    return len(sql) if end == -1 else end


def _skip_block_comment(sql: str, i: int) -> int:
    end = sql.find("*/", i + 2)
    return len(sql) if end == -1 else end + 2


def _skip_single_quoted(sql: str, i: int) -> int:
    n = len(sql)
    i += 1
    while i < n:
        if sql[i] == "'":
            if i + 1 < n and sql[i + 1] == "'":
                i += 2
                continue
            return i + 1
        i += 1
    return n


def _skip_double_quoted(sql: str, i: int) -> int:
    end = sql.find('"', i + 1)
    return len(sql) if end == -1 else end + 1


def remove_comments_and_strings(sql: str) -> str:
    """Scrub SQL text for keyword scanning.

    Comments are dropped, string literals become a single space and quoted
    identifiers are kept verbatim. Unterminated comments, literals and quotes
    run to the end of the input. Whitespace is collapsed and the result
    stripped. Never raises.

    Whether a double-quoted span is a literal or an identifier is a guess
    based on the preceding comparison operator, not a tokenizer decision.
    """
    if not sql:
        return ""

    out: List[str] = []
    i = 0
    n = len(sql)
    while i < n:
        ch = sql[i]
        nxt = sql[i + 1] if i + 1 < n else ""

        if ch == "-" and nxt == "-":
            i = _skip_line_comment(sql, i)
            continue

        if ch == "/" and nxt == "*":
            i = _skip_block_comment(sql, i)
            continue

        if ch == "'":
            i = _skip_single_quoted(sql, i)
            out.append(" ")
            continue

        if ch == '"':
            end = _skip_double_quoted(sql, i)
            if _last_non_space(out) in _COMPARISON_CHARS:
                out.append(" ")
            else:
                out.append(sql[i:end])
            i = end
            continue

        out.append(ch)
        i += 1

    return _RE_WHITESPACE.sub(" ", "".join(out)).strip()
