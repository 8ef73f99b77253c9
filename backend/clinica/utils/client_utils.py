"""Utilities for client name and document normalization.

Keep a single, testable place that defines how client names and CPFs are
normalized so search and display agree across the app.
"""

import re
import unicodedata
from typing import Optional


def normalize_display_name(name: Optional[str]) -> str:
    """Normalize a client display name for consistent rendering.

    - Trims whitespace
    - Collapses multiple spaces
    - Preserves accents while normalizing unicode composition

    Unlike a plain ``title()``, the casing typed by the user is kept
    ("Maria de Souza" stays as typed).
    """
    if not name:
        return ""

    n = unicodedata.normalize("NFC", str(name))
    return " ".join(p for p in n.split() if p)


def normalize_cpf(cpf: Optional[str]) -> str:
    """Strip punctuation from a CPF, keeping only digits."""
    if not cpf:
        return ""
    return re.sub(r"\D", "", cpf)


def search_key(text: Optional[str]) -> str:
    """Lowercase, accent-insensitive key used for name search."""
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c)).lower()
