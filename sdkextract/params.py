"""
params.py — Split SAL-annotated parameter text into (annotation, type, name).

The normalized prototype text separates parameters with ", ".  Splitting on
that separator is almost right: annotation arguments may contain it too, e.g.

    _Out_writes_to_(nSize, return + 1) LPSTR lpBuffer, _In_ DWORD nSize

so the split is followed by a repair pass.  This is a heuristic, not a
grammar: SAL-annotated C declarations have no formal grammar to follow.  The
repair pass is a small state machine over the candidate tokens:

  MERGE_UNBALANCED  the token has an unclosed "(" -> glue the next candidate
                    back on with ", " until parentheses balance
  MERGE_CONTINUED   the token still does not parse and the next candidate does
                    not start with an annotation keyword -> glue it on
  EMIT              parse the assembled token; a token without annotation made
                    of exactly two words (type, name) defaults to `_In_`

A token that still fails to parse is reported as an UnparseableParameter and
the remaining parameters are kept.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .errors import UnbalancedDelimiter, UnparseableParameter
from .ir import APIParam
from .scanner import Delimiter, find_matching_close, is_balanced
from .text import glue_pointer_stars, standardize_spaces

logger = logging.getLogger(__name__)

SEPARATOR = ", "
DEFAULT_ANNOTATION = "_In_"
VOID_MARKERS = frozenset({"", "VOID", "void"})
VARIADIC = "..."

# The closed set of annotation keywords.  Modern SAL keywords are matched by
# family prefix (`_In_opt_`, `_Out_writes_bytes_to_` ...), legacy ones exactly.
ANNOTATION_KEYWORD = re.compile(
    r"(?:"
    r"_(?:In|Out|Inout|Outptr|Outref|Deref|Reserved|Frees|When|Pre|Post|"
    r"Field|Null|Notnull|Maybenull|Printf|Scanf|Format|Interlocked|Ret|"
    r"Const|Writable|Readable|Use|Must|Check|Success|Acquires|Releases|"
    r"Requires|Struct|Points)[A-Za-z0-9_]*"
    r"|__(?:in|out|inout|deref|reserved|drv|callback)(?:_[A-Za-z0-9_]*)?"
    r"|IN|OUT|OPTIONAL"
    r")(?=[\s(]|$)"
)

_TYPE_AND_NAME = re.compile(
    r"^(?P<type>.+?[\s*])(?P<name>\**\w+)\s*(?P<array>(?:\[[^\]]*\])*)$"
)


@dataclass
class ParamList:
    """Result of parsing one parameter list."""

    params: List[APIParam] = field(default_factory=list)
    failures: List[UnparseableParameter] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.params)


def split_annotation(token: str) -> Tuple[str, str]:
    """
    Split leading annotation keywords (with their arguments) off a token.

    e.g. "_Out_writes_(n) LPSTR buf" -> ("_Out_writes_(n)", "LPSTR buf")
         "IN OUT PVOID p"            -> ("IN OUT", "PVOID p")
    """
    parts = []
    pos = 0
    while True:
        m = ANNOTATION_KEYWORD.match(token, pos)
        if m is None:
            break
        end = m.end()
        if end < len(token) and token[end] == "(":
            try:
                end = find_matching_close(token, end, Delimiter.PAREN) + 1
            except UnbalancedDelimiter:
                break
        parts.append(token[pos:end])
        pos = end
        while pos < len(token) and token[pos] == " ":
            pos += 1
    return " ".join(parts), token[pos:]


def starts_with_annotation(token: str) -> bool:
    return ANNOTATION_KEYWORD.match(token.strip()) is not None


def parse_param(token: str) -> Optional[APIParam]:
    """
    Extract (annotation, type, name) from one assembled parameter token.

    Returns None when the token matches none of the accepted shapes.
    """
    token = standardize_spaces(token)
    if token == VARIADIC:
        return APIParam(annotation="", type=VARIADIC, name=VARIADIC)

    annotation, rest = split_annotation(token)
    if not annotation:
        # Some legacy APIs carry no SAL annotation at all.  Treat the plain
        # `TYPE name` shape as an input parameter; anything else is unknown.
        if len(rest.split(" ")) != 2:
            return None
        annotation = DEFAULT_ANNOTATION

    m = _TYPE_AND_NAME.match(rest)
    if m is None:
        return None

    type_text = m.group("type")
    name = m.group("name")
    stars = len(name) - len(name.lstrip("*"))
    if stars:
        type_text += "*" * stars
        name = name[stars:]
    type_text = glue_pointer_stars(type_text) + m.group("array").replace(" ", "")

    if not type_text or not name:
        return None
    return APIParam(annotation=annotation, type=type_text, name=name)


def assemble_tokens(params_text: str) -> List[str]:
    """
    Split on ", " and re-merge the pieces a naive split breaks apart.

    See the module docstring for the states.
    """
    candidates = params_text.split(SEPARATOR)
    tokens = []
    i = 0
    while i < len(candidates):
        token = candidates[i]
        i += 1

        # MERGE_UNBALANCED
        while not is_balanced(token) and i < len(candidates):
            token = f"{token}{SEPARATOR}{candidates[i]}"
            i += 1

        # MERGE_CONTINUED; a variadic marker always stands alone
        while (
            i < len(candidates)
            and parse_param(token) is None
            and not starts_with_annotation(candidates[i])
            and candidates[i].strip() != VARIADIC
        ):
            token = f"{token}{SEPARATOR}{candidates[i]}"
            i += 1

        tokens.append(token.strip())
    return tokens


def parse_params(params_text: str, api: str = "") -> ParamList:
    """
    Parse the text between a prototype's parentheses.

    The void marker yields an empty list.  `api` only labels failures.
    """
    params_text = standardize_spaces(params_text)
    result = ParamList()
    if params_text in VOID_MARKERS:
        return result

    for token in assemble_tokens(params_text):
        param = parse_param(token)
        if param is None:
            failure = UnparseableParameter(token, api)
            logger.warning("%s", failure)
            result.failures.append(failure)
            continue
        result.params.append(param)

    return result
