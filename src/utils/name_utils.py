"""Search name normalization for foods and categories.

Foods and categories carry a "simple name" next to their display name: the
same text folded to lowercase ASCII-insensitive form so that lookups can
ignore accents, punctuation and spacing differences.

Examples:
    >>> to_simple_name("Crème Brûlée")
    'creme brulee'

    >>> to_simple_name("Fish & chips (takeaway)")
    'fish chips takeaway'
"""

import re
import unicodedata
from typing import Optional

_PUNCTUATION = re.compile(r"[^\w\s]", re.UNICODE)
_WHITESPACE = re.compile(r"\s+")


def to_simple_name(name: Optional[str]) -> Optional[str]:
    """Fold a display name into its normalized search form.

    Algorithm:
        1. Decompose to NFKD and drop combining marks (accents)
        2. Lowercase
        3. Replace punctuation with spaces
        4. Collapse whitespace and strip

    Non-Latin scripts are kept as-is apart from case folding, so names in
    scripts without an ASCII transliteration still produce a usable key.

    Args:
        name: Display name (None passes through)

    Returns:
        Normalized name or None
    """
    if name is None:
        return None

    decomposed = unicodedata.normalize("NFKD", name)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    lowered = stripped.casefold()
    no_punctuation = _PUNCTUATION.sub(" ", lowered).replace("_", " ")
    return _WHITESPACE.sub(" ", no_punctuation).strip()
