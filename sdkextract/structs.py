"""
structs.py — Parse `typedef struct/union { ... } Name, *PName;` regions.

A struct body is consumed one `;`-terminated member at a time.  A member that
opens a nested `struct{` or `union{` is handed to the scanner to find its
closing brace, the instance name that follows it, and the `;` that ends it;
the nested body is then parsed recursively.  Everything else goes through a
single flat-member pattern:

    <type tokens> <name>[<array>]...[:<bit width>]

The body text is normalized first (comments stripped, whitespace collapsed,
spacing around `;`, `{`, `}` and `:` removed) so the patterns stay simple.
"""

import logging
import re
from typing import List, Optional, Tuple

from .errors import ExtractionError, NestingTooDeep, UnrecognizedMember
from .ir import STRUCT_SENTINEL, UNION_SENTINEL, StructDecl, StructMember
from .scanner import Delimiter, find_matching_close
from .text import glue_pointer_stars, space_fields_join, standardize_spaces, strip_comments

logger = logging.getLogger(__name__)

MAX_NESTING_DEPTH = 32

# Anchor for a struct region: everything up to and including the opening brace.
STRUCT_ANCHOR = re.compile(r"typedef[\w() ]*?\b(?P<kind>struct|union)\b[\w\s]*\{")

# First nested aggregate inside a member; the lowest offset wins the tag.
_NESTED = re.compile(r"\b(?P<kind>union|struct)(?: \w+)?\{")

_FLAT_MEMBER = re.compile(
    r"^(?P<type>.+?[\s*])"
    r"(?P<name>\w+)"
    r"(?P<array>(?:\[[^\]]*\])*)"
    r"(?::(?P<bits>\d+))?$"
)

# Leading field annotation on a member, e.g. `_Field_size_(cbBuffer) `.
_FIELD_ANNOTATION = re.compile(r"^_[A-Z]\w*_(?:\([^()]*\))?\s+")

_TAG = re.compile(r"\b(?:struct|union)\s+(\w+)")


def normalize_body(body: str) -> str:
    """Strip comments and squeeze whitespace so members split cleanly."""
    body = standardize_spaces(strip_comments(body))
    body = body.replace("; ", ";")
    body = body.replace(" { ", "{").replace(" {", "{").replace("{ ", "{")
    body = body.replace(" } ", "}").replace("} ", "}").replace(" }", "}")
    body = body.replace(" : ", ":").replace(": ", ":").replace(" :", ":")
    return body


def normalize_alias_list(tail: str) -> str:
    """Rewrite `FAR *` / `NEAR *` pointer spellings to a bare `*`."""
    for far in ("FAR* ", "NEAR* ", "FAR *", "NEAR *", "FAR*", "NEAR*"):
        tail = tail.replace(far, "*")
    return tail


def _unrecognized(text: str, errors: Optional[List[ExtractionError]]) -> StructMember:
    err = UnrecognizedMember(text)
    logger.warning("%s", err)
    if errors is not None:
        errors.append(err)
    return StructMember(name="", declared_type="")


def parse_member(text: str, errors: Optional[List[ExtractionError]] = None) -> StructMember:
    """
    Parse one flat member declaration (without its `;`).

    A declaration matching no pattern is returned with empty type and name so
    it stays visible in the output; an UnrecognizedMember is appended to
    `errors`.
    """
    stripped = text.strip()
    while True:
        m = _FIELD_ANNOTATION.match(stripped)
        if m is None:
            break
        stripped = stripped[m.end():]

    m = _FLAT_MEMBER.match(stripped)
    if m is None:
        return _unrecognized(text, errors)

    bits = m.group("bits")
    return StructMember(
        name=m.group("name"),
        declared_type=glue_pointer_stars(m.group("type")),
        array_size=space_fields_join(m.group("array")) or None,
        bit_width=int(bits) if bits else None,
    )


def parse_body(
    text: str,
    errors: Optional[List[ExtractionError]] = None,
    depth: int = 0,
) -> Tuple[StructMember, ...]:
    """
    Parse normalized struct body text into an ordered member tree.

    `text` is what sits between the opening and closing brace, already
    passed through `normalize_body`.

    Raises UnbalancedDelimiter when a nested aggregate is not closed and
    NestingTooDeep past MAX_NESTING_DEPTH levels.
    """
    if depth > MAX_NESTING_DEPTH:
        raise NestingTooDeep(MAX_NESTING_DEPTH)

    members: List[StructMember] = []
    pos = 0
    end = len(text)
    while pos < end:
        semi = text.find(";", pos)
        if semi < 0:
            # Trailing text without its `;` is not a member declaration.
            if text[pos:].strip():
                members.append(_unrecognized(text[pos:], errors))
            break
        member_text = text[pos:semi]

        nested = _NESTED.search(member_text)
        if nested is None:
            if member_text.strip():
                members.append(parse_member(member_text, errors))
            pos = semi + 1
            continue

        sentinel = UNION_SENTINEL if nested.group("kind") == "union" else STRUCT_SENTINEL
        open_pos = pos + nested.end() - 1
        close_pos = find_matching_close(text, open_pos, Delimiter.BRACE)
        semi = find_matching_close(text, close_pos + 1, Delimiter.SEMICOLON)

        members.append(
            StructMember(
                name=space_fields_join(text[close_pos + 1:semi]),
                declared_type=sentinel,
                body=parse_body(text[open_pos + 1:close_pos], errors, depth + 1),
            )
        )
        pos = semi + 1

    return tuple(members)


def parse_struct(
    head: str,
    body: str,
    tail: str,
    errors: Optional[List[ExtractionError]] = None,
) -> StructDecl:
    """
    Build a StructDecl from the three pieces of a struct region.

    head : `typedef struct _FOO {`
    body : text between the braces
    tail : alias list between `}` and `;`, e.g. ` FOO, *PFOO, *LPFOO`
    """
    members = parse_body(normalize_body(body), errors)

    kind_match = STRUCT_ANCHOR.match(head)
    kind = kind_match.group("kind") if kind_match else "struct"

    tag = _TAG.search(head)
    source_tag = tag.group(1) if tag else ""

    names = space_fields_join(normalize_alias_list(tail)).split(",")
    canonical = names[0]
    pointer_alias = names[1].lstrip("*") if len(names) > 1 else None
    long_pointer_alias = names[2].lstrip("*") if len(names) > 2 else None

    return StructDecl(
        source_tag=source_tag,
        canonical_name=canonical,
        pointer_alias_name=pointer_alias or None,
        long_pointer_alias_name=long_pointer_alias or None,
        members=members,
        kind=kind,
    )


def extract_structs(
    data: str,
    errors: Optional[List[ExtractionError]] = None,
) -> Tuple[List[str], List[StructDecl]]:
    """
    Find every struct/union typedef region in a header buffer.

    Returns the raw region texts and the parsed declarations, in order.  A
    region whose braces never close is logged, recorded in `errors` and
    skipped; scanning continues after its anchor.
    """
    raw_structs: List[str] = []
    structs: List[StructDecl] = []

    for m in STRUCT_ANCHOR.finditer(data):
        open_pos = m.end() - 1
        try:
            close_pos = find_matching_close(data, open_pos, Delimiter.BRACE)
            end_pos = find_matching_close(data, close_pos + 1, Delimiter.SEMICOLON)
            decl = parse_struct(
                data[m.start():m.end()],
                data[m.end():close_pos],
                data[close_pos + 1:end_pos],
                errors,
            )
        except ExtractionError as err:
            logger.warning("skipping struct at offset %d: %s", m.start(), err)
            if errors is not None:
                errors.append(err)
            continue

        raw_structs.append(data[m.start():end_pos + 1])
        structs.append(decl)

    return raw_structs, structs
