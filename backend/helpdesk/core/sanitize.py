"""Input sanitization helpers for request payloads."""

from __future__ import annotations

import re
import unicodedata

_WHITESPACE_RE = re.compile(r"\s+")
_BLANK_RUN_RE = re.compile(r"\n{3,}")


def _drop_control_chars(value: str, *, keep_newlines: bool) -> str:
    return "".join(
        ch for ch in value if (keep_newlines and ch == "\n") or unicodedata.category(ch) != "Cc"
    )


def clean_text(value: str | None, *, allow_newlines: bool = False) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        value = str(value)
    value = value.replace("\r\n", "\n").replace("\r", "\n")
    value = _drop_control_chars(value, keep_newlines=allow_newlines).strip()
    if not allow_newlines:
        return _WHITESPACE_RE.sub(" ", value)
    value = "\n".join(line.strip() for line in value.split("\n"))
    return _BLANK_RUN_RE.sub("\n\n", value)


def clean_single_line(value: str | None) -> str:
    return clean_text(value, allow_newlines=False)


def clean_multiline(value: str | None) -> str:
    return clean_text(value, allow_newlines=True)


def clean_optional_note(value: str | None) -> str | None:
    """Multiline clean that maps blank input to ``None``."""
    cleaned = clean_multiline(value)
    return cleaned or None
