"""
Tycoon Q&A - Text Utilities
============================
Helper functions for text cleaning, keyword matching and document-id
slugs.

These utilities are consumed by the ``RAGEngine``, the catalog and the
``IngestionPipeline`` and should remain stateless and side-effect-free.
"""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Iterable


# ── Non-printable character pattern ────────────────────────────────────
# Matches control characters (C0/C1), except \n, \r, \t which we handle
# separately. Also catches BOM, zero-width chars, soft hyphens, etc.
_INVISIBLE_CHARS = "".join(map(chr, (0xFEFF, 0x200B, 0x200C, 0x200D, 0x200E, 0x200F, 0x00AD, 0x2060, 0xFFFE)))
_NON_PRINTABLE_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f" + _INVISIBLE_CHARS + "]")

_SLUG_INVALID_RE = re.compile(r"[^a-z0-9_]")
_SLUG_RUNS_RE = re.compile(r"_{2,}")


# ── Public API ─────────────────────────────────────────────────────────

def clean_text(text: str) -> str:
    """
    Sanitise raw knowledge-base text before embedding.

    Steps:
        1. Unicode NFC normalisation.
        2. Strip non-printable / zero-width characters.
        3. Collapse runs of horizontal whitespace into a single space,
           *preserving* newlines.
        4. Strip leading / trailing whitespace from every line.
        5. Collapse 3+ consecutive blank lines to 2.
    """
    text = unicodedata.normalize("NFC", text)
    text = _NON_PRINTABLE_RE.sub("", text)
    text = re.sub(r"[^\S\n]+", " ", text)
    lines = [line.strip() for line in text.splitlines()]
    text = "\n".join(lines)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def slugify_item_name(name: str) -> str:
    """
    Convert an item name into the slug used as a document-id prefix.

    Lower-cases the name, replaces every character outside ``[a-z0-9_]``
    with ``_`` and collapses runs of underscores::

        "P-51 Mustang"    → "p_51_mustang"
        "MiG-29 Fulcrum"  → "mig_29_fulcrum"
    """
    slug = _SLUG_INVALID_RE.sub("_", name.lower())
    return _SLUG_RUNS_RE.sub("_", slug)


def contains_any(text_lower: str, keywords: Iterable[str]) -> bool:
    """Return True if any keyword occurs as a substring of *text_lower*."""
    return any(keyword.lower() in text_lower for keyword in keywords)
