from __future__ import annotations

import re

# One identifier segment: [bracketed], "double quoted", `backticked` or a bare
# run of word characters plus the @ (variable) and # (temp table) sigils.
SEGMENT = r"(?:\[[^\]]+\]|\"[^\"]+\"|`[^`]+`|[\w@#]+)"
IDENTIFIER = SEGMENT + r"(?:\." + SEGMENT + r")*"

_RE_SEGMENT = re.compile(SEGMENT)


def _unquote(segment: str) -> str:
    if len(segment) >= 2 and (segment[0], segment[-1]) in (("[", "]"), ('"', '"'), ("`", "`")):
        return segment[1:-1]
    return segment


def clean_identifier(identifier: str) -> str:
    """Strip one layer of [] / "" / `` quoting from each dot-separated segment.

    Dots inside a quoted segment stay part of that segment:
    ``[db].[my.schema]."t 1"`` -> ``db.my.schema.t 1``.
    """
    if not identifier:
        return identifier
    parts = [_unquote(m.group(0)) for m in _RE_SEGMENT.finditer(identifier)]
    return ".".join(parts) if parts else identifier


def bare_name(name: str) -> str:
    """Last dot-separated part of a (cleaned) name: ``public.users`` -> ``users``."""
    return name.rsplit(".", 1)[-1] if "." in name else name
