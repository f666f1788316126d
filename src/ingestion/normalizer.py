"""Text normalization applied to transcripts before chunking and embedding."""

from __future__ import annotations

import re
import unicodedata

_LINE_BREAKS_RE = re.compile(r"[\n\t]+")
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_WHITESPACE_RE = re.compile(r"\s+")


def normalize_text(text: str | None) -> str:
    """Clean raw transcript text.

    Drops control characters, NFKC-normalizes, turns newlines and tabs into
    spaces, collapses whitespace runs, and trims. Never raises;
    ``normalize_text(normalize_text(t)) == normalize_text(t)``.

    >>> normalize_text("  Hello   world!  \\n\\n  Test  ")
    'Hello world! Test'
    """
    if not text:
        return ""
    # Control characters go first so their removal cannot leave a sequence
    # that NFKC would compose on a second pass.
    cleaned = _CONTROL_CHARS_RE.sub("", text)
    cleaned = unicodedata.normalize("NFKC", cleaned)
    cleaned = _LINE_BREAKS_RE.sub(" ", cleaned)
    cleaned = _WHITESPACE_RE.sub(" ", cleaned)
    return cleaned.strip()
