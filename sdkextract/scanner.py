"""
scanner.py — Balanced-delimiter scanning over raw C text.

Everything that has to find "where does this declaration end" goes through
`find_matching_close`.  It never indexes past the end of the buffer: running
out of text raises `UnbalancedDelimiter` so one truncated declaration cannot
take the whole header down with it.
"""

from enum import Enum

from .errors import UnbalancedDelimiter


class Delimiter(Enum):
    """The delimiter kinds the scanner knows how to close."""

    BRACE = ("{", "}")
    PAREN = ("(", ")")
    SEMICOLON = (None, ";")


_PAIRS = {"(": ")", "[": "]", "{": "}"}
_CLOSERS = set(_PAIRS.values())


def find_matching_close(buffer: str, open_pos: int, kind: Delimiter = Delimiter.BRACE) -> int:
    """
    Return the index of the delimiter that closes the one at `open_pos`.

    For BRACE and PAREN, `buffer[open_pos]` is the opening delimiter; nested
    pairs of the same kind are skipped.  For SEMICOLON, the first `;` at or
    after `open_pos` is returned and nesting is ignored.

    Raises UnbalancedDelimiter when the buffer ends first.
    """
    end = len(buffer)

    if kind is Delimiter.SEMICOLON:
        pos = buffer.find(";", max(open_pos, 0))
        if pos < 0:
            raise UnbalancedDelimiter(kind.name.lower(), open_pos)
        return pos

    opener, closer = kind.value
    depth = 1
    pos = open_pos + 1
    while pos < end:
        c = buffer[pos]
        if c == opener:
            depth += 1
        elif c == closer:
            depth -= 1
            if depth == 0:
                return pos
        pos += 1

    raise UnbalancedDelimiter(kind.name.lower(), open_pos)


def is_balanced(text: str) -> bool:
    """
    Check that every (, [ and { in `text` is closed in the right order.

    Characters other than brackets are ignored.
    """
    stack = []
    for c in text:
        if c in _PAIRS:
            stack.append(_PAIRS[c])
        elif c in _CLOSERS:
            if not stack or stack.pop() != c:
                return False
    return not stack
