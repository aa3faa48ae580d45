"""
clang_backend.py — Extract API prototypes with libclang.

This is the AST-based alternative to the text scanner.  libclang resolves
which declarations really are functions and gives canonical type spellings,
so macro-heavy prototypes the scanner cannot normalize still come out.  SAL
annotations expand to nothing during preprocessing, so they are recovered
from the declaration's source tokens, which libclang reports before macro
expansion.

The backend produces the same `API` values as the scanner pipeline.
"""

import logging
import re
from pathlib import Path
from typing import AbstractSet, List, Optional, Sequence

from clang.cindex import (
    Cursor,
    CursorKind,
    Index,
    LibclangError,
    TranslationUnit,
    TranslationUnitLoadError,
)

from .ir import API, APIParam
from .params import ANNOTATION_KEYWORD
from .prototypes import ATTRIBUTES, CALLING_CONVENTIONS
from .text import glue_pointer_stars

logger = logging.getLogger(__name__)

# Raised when libclang cannot be loaded or cannot parse a header.
CLANG_ERRORS = (LibclangError, TranslationUnitLoadError)


# ---------------------------------------------------------------------------
# Token helpers
# ---------------------------------------------------------------------------


def _spell(tokens: Sequence[str]) -> str:
    """Re-join tokens the way the SDK writes annotation arguments."""
    text = " ".join(tokens)
    text = re.sub(r"\(\s+", "(", text)
    text = re.sub(r"\s+([),])", r"\1", text)
    return re.sub(r"\s+\(", "(", text)


def _annotation_from_tokens(tokens: Sequence[str]) -> str:
    """Leading SAL keywords (with their arguments) of one parameter's tokens."""
    parts = []
    i = 0
    while i < len(tokens) and ANNOTATION_KEYWORD.fullmatch(tokens[i]):
        start = i
        i += 1
        if i < len(tokens) and tokens[i] == "(":
            depth = 0
            while i < len(tokens):
                if tokens[i] == "(":
                    depth += 1
                elif tokens[i] == ")":
                    depth -= 1
                    if depth == 0:
                        i += 1
                        break
                i += 1
        parts.append(_spell(tokens[start:i]))
    return " ".join(parts)


def _split_param_tokens(tokens: Sequence[str], open_idx: int) -> List[List[str]]:
    """Split the tokens inside the parentheses at `open_idx` on top-level commas."""
    segments: List[List[str]] = [[]]
    depth = 0
    for tok in tokens[open_idx + 1:]:
        if tok in ("(", "[", "{"):
            depth += 1
        elif tok in (")", "]", "}"):
            if depth == 0:
                break
            depth -= 1
        elif tok == "," and depth == 0:
            segments.append([])
            continue
        segments[-1].append(tok)
    return [s for s in segments if s]


# ---------------------------------------------------------------------------
# Parsing logic
# ---------------------------------------------------------------------------


def _convert_function(cursor: Cursor) -> API:
    """Build an API from a FUNCTION_DECL cursor."""
    tokens = [t.spelling for t in cursor.get_tokens()]

    name_idx = -1
    for i in range(len(tokens) - 1):
        if tokens[i] == cursor.spelling and tokens[i + 1] == "(":
            name_idx = i
            break

    prefix = tokens[:name_idx] if name_idx >= 0 else []
    attribute = next((t for t in prefix if t in ATTRIBUTES), None)
    calling_convention = next(
        (t for t in reversed(prefix) if t in CALLING_CONVENTIONS), ""
    )

    arguments = list(cursor.get_arguments())
    segments = _split_param_tokens(tokens, name_idx + 1) if name_idx >= 0 else []
    if len(segments) != len(arguments):
        # Macro-generated parameter lists do not line up with the source.
        segments = [[] for _ in arguments]

    params = []
    for i, (arg, segment) in enumerate(zip(arguments, segments)):
        params.append(
            APIParam(
                annotation=_annotation_from_tokens(segment),
                type=glue_pointer_stars(arg.type.spelling),
                name=arg.spelling or f"arg{i}",
            )
        )

    return API(
        name=cursor.spelling,
        calling_convention=calling_convention,
        return_type=glue_pointer_stars(cursor.result_type.spelling),
        attribute=attribute,
        params=tuple(params),
    )


def parse_header(
    header_path: str | Path,
    extra_args: Optional[List[str]] = None,
    wanted: Optional[AbstractSet[str]] = None,
    main_file_only: bool = True,
) -> List[API]:
    """
    Parse a header with libclang and return its function prototypes.

    Parameters
    ----------
    header_path    : path to the .h file
    extra_args     : optional extra clang arguments, e.g. ["-I", "um/"]
    wanted         : optional set of API names to keep
    main_file_only : skip declarations that come from included headers

    Returns
    -------
    One API per function declaration, in source order.
    """
    header_path = Path(header_path).resolve()
    if not header_path.exists():
        raise FileNotFoundError(f"Header not found: {header_path}")

    index = Index.create()
    tu = index.parse(
        str(header_path),
        args=extra_args or [],
        options=TranslationUnit.PARSE_DETAILED_PROCESSING_RECORD
        | TranslationUnit.PARSE_SKIP_FUNCTION_BODIES,
    )
    for diag in tu.diagnostics:
        logger.debug("%s: %s", header_path.name, diag)

    apis: List[API] = []
    for cursor in tu.cursor.get_children():
        if cursor.kind != CursorKind.FUNCTION_DECL:
            continue
        # Only look at declarations that actually come from our header,
        # not from system includes.
        if main_file_only and (
            cursor.location.file is None
            or cursor.location.file.name != str(header_path)
        ):
            continue
        if cursor.spelling.startswith("__builtin_"):
            continue
        if wanted is not None and cursor.spelling not in wanted:
            continue
        apis.append(_convert_function(cursor))

    return apis
