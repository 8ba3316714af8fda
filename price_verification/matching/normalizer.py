"""
Text normalization for product name comparison.

Product names are compared after lower-casing, Unicode composition,
punctuation stripping and whitespace collapsing. Letters, digits and
combining marks of every script are kept, so accented Latin letters
(e.g. Turkish ğ, ü, ş, ı, ö, ç) and non-Latin scripts survive.
"""

import re
import unicodedata
from typing import List, Optional

_WHITESPACE = re.compile(r'\s+')

# "İ".lower() yields "i" followed by a combining dot above
_DOTTED_I = re.compile('i\u0307+')


def _is_kept(char: str) -> bool:
    if char.isspace() or char == '_':
        return True
    return unicodedata.category(char)[0] in ('L', 'N', 'M')


def normalize_text(text: Optional[str]) -> str:
    """
    Canonicalize a product name for comparison.

    Args:
        text: Raw product name, SKU or search query

    Returns:
        Normalized text; ``normalize_text(normalize_text(x)) == normalize_text(x)``
    """
    if not text:
        return ""

    normalized = ''.join(char for char in str(text).lower() if _is_kept(char))
    # compose first so combining marks are in canonical order, then fold the
    # dotted i and compose again
    normalized = unicodedata.normalize('NFC', normalized)
    normalized = unicodedata.normalize('NFC', _DOTTED_I.sub('i', normalized))
    normalized = _WHITESPACE.sub(' ', normalized)
    return normalized.strip()


def tokenize(text: Optional[str], min_length: int = 3) -> List[str]:
    """Split normalized text into words of at least ``min_length`` characters."""
    return [word for word in normalize_text(text).split(' ') if len(word) >= min_length]
