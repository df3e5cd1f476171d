"""
Reading SQL files with unknown encodings (SSMS exports are often UTF-16).
"""
from __future__ import annotations

import codecs
import logging
import re
from pathlib import Path
from typing import List, Optional, Union

logger = logging.getLogger(__name__)

_BOMS = (
    (b"\xef\xbb\xbf", "utf-8-sig"),
    (b"\xff\xfe", "utf-16le"),
    (b"\xfe\xff", "utf-16be"),
)

_AUTO_FALLBACKS = ("utf-8", "cp1250", "latin-1")

_MIN_QUALITY = 0.5

_RE_SQL_HINT = re.compile(
    r"(?i)\b(SELECT|INSERT|UPDATE|DELETE|CREATE|ALTER|DROP|MERGE|TRUNCATE|EXEC(?:UTE)?)\b"
)


def get_supported_encodings() -> List[str]:
    return ["auto", "utf-8", "utf-8-sig", "utf-16", "utf-16le", "utf-16be", "cp1250", "cp1252", "latin-1"]


def _detect_bom(raw: bytes) -> Optional[str]:
    for bom, name in _BOMS:
        if raw.startswith(bom):
            return name
    return None


def _guess_utf16(raw: bytes) -> Optional[str]:
    """UTF-16 without BOM: mostly-ASCII text leaves every other byte zero."""
    if len(raw) < 4 or len(raw) % 2:
        return None
    even_zero = raw[0::2].count(0) / (len(raw) / 2)
    odd_zero = raw[1::2].count(0) / (len(raw) / 2)
    if odd_zero > 0.3 and even_zero < 0.05:
        return "utf-16le"
    if even_zero > 0.3 and odd_zero < 0.05:
        return "utf-16be"
    return None


def _normalize_content(text: str) -> str:
    if text.startswith("\ufeff"):
        text = text[1:]
    return text.replace("\r\n", "\n").replace("\r", "\n")


def _looks_like_utf8(raw: bytes) -> bool:
    """True only for non-ASCII bytes that decode as UTF-8."""
    if all(b < 0x80 for b in raw):
        return False
    try:
        raw.decode("utf-8")
    except UnicodeDecodeError:
        return False
    return True


def _text_quality_score(text: str) -> float:
    """Share of printable characters (whitespace counts as printable)."""
    if not text:
        return 1.0
    good = sum(1 for ch in text if ch.isprintable() or ch in "\n\r\t")
    return good / len(text)


def _looks_like_sql(text: str) -> bool:
    """Diagnostic only: feeds a debug log line, never changes what is returned."""
    return bool(_RE_SQL_HINT.search(text or ""))


def _decode_auto(raw: bytes) -> str:
    enc = _detect_bom(raw) or _guess_utf16(raw)
    if enc:
        logger.debug("detected encoding %s", enc)
        return raw.decode(enc, errors="replace")
    for enc in _AUTO_FALLBACKS:
        try:
            text = raw.decode(enc)
        except UnicodeDecodeError:
            continue
        logger.debug("decoded with %s", enc)
        return text
    return raw.decode("latin-1", errors="replace")


def read_text_safely(path: Union[str, Path], encoding: str = "auto") -> str:
    """Read a text file, detecting the encoding when ``encoding`` is "auto".

    The BOM is dropped and line endings are normalized to ``\\n``. An explicit
    single-byte encoding applied to UTF-8 bytes, or an encoding that produces
    mostly control characters, raises UnicodeDecodeError. An encoding name
    Python does not know raises ValueError.

    With "auto", text that does not look like SQL is only logged at debug
    level; it is still returned.
    """
    p = Path(path)
    enc = (encoding or "auto").lower()
    if enc != "auto":
        try:
            codecs.lookup(encoding)
        except LookupError:
            raise ValueError(
                f"Unknown encoding '{encoding}'. Supported: {', '.join(get_supported_encodings())}"
            ) from None

    try:
        raw = p.read_bytes()
    except OSError as exc:
        raise IOError(f"Cannot read file {p}: {exc}") from exc

    if not raw:
        return ""

    if enc == "auto":
        text = _normalize_content(_decode_auto(raw))
        if not _looks_like_sql(text):
            logger.debug("%s does not look like SQL", p)
        return text

    if not enc.replace("_", "-").startswith(("utf", "u8")) and _looks_like_utf8(raw):
        raise UnicodeDecodeError(
            encoding,
            raw,
            0,
            len(raw),
            f"file appears to be UTF-8 but was read as {encoding}. Try --encoding auto",
        )

    text = raw.decode(encoding)
    score = _text_quality_score(text)
    if score < _MIN_QUALITY:
        raise UnicodeDecodeError(
            encoding,
            raw,
            0,
            len(raw),
            f"decoded text looks malformed (quality={score:.2f}). Try --encoding auto",
        )
    return _normalize_content(text)
