"""
text.py — Whitespace and comment normalization for raw header text.
"""

import re

# Leftmost match wins, so `//` inside a block comment and `/*` inside a line
# comment are both handled.
_COMMENT = re.compile(r"//[^\n]*|/\*.*?\*/", re.DOTALL)


def strip_comments(text: str) -> str:
    """Remove `//` and `/* */` comments."""
    return _COMMENT.sub(lambda m: " " if m.group().startswith("/*") else "", text)


def standardize_spaces(text: str) -> str:
    """Collapse every whitespace run to a single space."""
    return " ".join(text.split())


def space_fields_join(text: str) -> str:
    """Delete all whitespace."""
    return "".join(text.split())


def glue_pointer_stars(type_text: str) -> str:
    """
    Normalize pointer spelling in a type.

    e.g. "CONST VOID * " -> "CONST VOID*", "char * *" -> "char**"
    """
    return re.sub(r"\s+(?=\*)", "", standardize_spaces(type_text))
