"""
prototypes.py — Find and normalize API prototype statements.

A prototype statement starts at one of a fixed set of linkage/return-type
keywords and ends at the next `;`.  Before its structure is parsed, the text
is normalized to the single shape

    [Attribute] ReturnType CallingConvention Name(Params);

by removing function-level SAL decorations that carry no parameter
information and rewriting the SDK's macro shorthands (`BOOLAPI`, `STDAPI`,
`INTERNETAPI_(T)` ...).  The parameter text is handed to `params.py`.
"""

import logging
import re
from typing import List, Optional

from .errors import UnbalancedDelimiter, UnrecognizedPrototype
from .ir import API, FunctionPointer
from .params import ParamList, parse_params
from .scanner import Delimiter, find_matching_close
from .text import standardize_spaces

logger = logging.getLogger(__name__)

START_KEYWORDS = (
    "_Success_", "HANDLE", "RPCRTAPI", "INTERNETAPI", "WINHTTPAPI", "BOOLAPI",
    "BOOL", "STDAPI", "SHSTDAPI", "LWSTDAPI", "WINUSERAPI", "WINBASEAPI",
    "WINADVAPI", "NTSTATUS", "NTAPI", "WINSOCK_API_LINKAGE",
    "_Must_inspect_result_", "BOOLEAN", "int", "errno_t", r"wchar_t\*",
    "NTSYSAPI", "NTSYSCALLAPI", "DECLSPEC_IMPORT", "WINGDIAPI", "WINSHELLAPI",
    "WINCRYPT32API", "WINSVCAPI",
)

PROTOTYPE_STATEMENT = re.compile(
    r"\b(?:" + "|".join(START_KEYWORDS) + r")[\w\s)(,\[\]!*+=&<>/|:.-]+;"
)

# Every attribute is also a START_KEYWORDS entry, so a statement begins at it.
ATTRIBUTES = (
    "WINBASEAPI", "WINADVAPI", "WINUSERAPI", "WINGDIAPI", "WINHTTPAPI",
    "WINSOCK_API_LINKAGE", "RPCRTAPI", "NTSYSAPI", "NTSYSCALLAPI",
    "DECLSPEC_IMPORT", "WINSHELLAPI", "WINCRYPT32API", "WINSVCAPI",
)

CALLING_CONVENTIONS = (
    "WINAPI", "APIENTRY", "WSAAPI", "SHSTDAPI", "LWSTDAPI", "NTAPI",
    "RPC_ENTRY", "CALLBACK", "WINAPIV", "__stdcall", "__cdecl", "__CRTDECL",
    "STDAPICALLTYPE", "STDMETHODCALLTYPE",
)

PROTOTYPE = re.compile(
    r"^(?:(?P<attr>" + "|".join(ATTRIBUTES) + r") )?"
    r"(?P<ret>[A-Za-z_]\w*(?: ?\*)*) "
    r"(?P<callconv>" + "|".join(CALLING_CONVENTIONS) + r") "
    r"(?P<name>[A-Za-z_]\w*) ?"
    r"\((?P<params>.*)\);$"
)

# `... Name(...);` with Name not the first word; function pointer typedefs
# (`BOOL (CALLBACK *PFN)(...);`) do not have this shape.
CALL_SHAPED = re.compile(r"^[^(]*\s[A-Za-z_]\w* ?\(.*\);$")

FUNCTION_POINTER = re.compile(
    r"typedef[\w\s*]+\(\s*(?P<callconv>" + "|".join(CALLING_CONVENTIONS) + r")"
    r"\s*\*\s*(?P<name>\w+)\s*\)\s*\("
)

# No-op decorations removed verbatim, as whole words.
NOOP_DECORATIONS = (
    "_Must_inspect_result_",
    "_Ret_maybenull_z_",
    "_Ret_notnull_z_",
    "_Ret_z_",
    "__drv_aliasesMem",
    "__drv_freesMem(Mem)",
    "_Success_(return != 0 && return < nBufferLength)",
    "_Success_(return != 0 && return < cchBuffer)",
    "_Success_(return != FALSE)",
    "_Ret_maybenull_",
    "_Ret_notnull_",
    "_Check_return_",
    "_Post_writable_byte_size_(dwSize)",
    "_Post_ptr_invalid_",
    "_Post_equals_last_error_",
    "__out_data_source(FILE)",
    "DECLSPEC_ALLOCATOR",
    "DECLSPEC_NORETURN",
    " OPTIONAL",
    " __RPC_FAR",
)


def _whole_word(text: str) -> str:
    pattern = re.escape(text)
    if re.match(r"\w", text):
        pattern = r"(?<!\w)" + pattern
    if re.search(r"\w$", text):
        pattern += r"(?!\w)"
    return pattern


_NOOP = re.compile("|".join(_whole_word(d) for d in NOOP_DECORATIONS))

# Function-level decorations whose argument text varies; removed together
# with their balanced argument list.
VARIABLE_DECORATIONS = (
    "_Success_",
    "_Post_writable_byte_size_",
    "_Ret_writes_bytes_maybenull_",
    "_Ret_writes_maybenull_",
    "_Ret_writes_bytes_",
    "_Ret_writes_",
    "_Ret_range_",
    "__drv_freesMem",
    "__drv_allocatesMem",
    "__out_data_source",
)

# Shorthand rewrites, tried in order; the first match wins.
SHORTHANDS = (
    (re.compile(r"^BOOLAPI\b"), "BOOL WINAPI"),
    (re.compile(r"^INTERNETAPI_\((\w+)\)"), r"\1 WINAPI"),
    (re.compile(r"^STDAPI_\((\w+)\)"), r"\1 WINAPI"),
    (re.compile(r"^STDAPI\b"), "HRESULT WINAPI"),
    (re.compile(r"^SHSTDAPI_\((\w+)\)"), r"\1 SHSTDAPI"),
    (re.compile(r"^SHSTDAPI\b"), "HRESULT SHSTDAPI"),
    (re.compile(r"^LWSTDAPI_\((\w+)\)"), r"\1 LWSTDAPI"),
    (re.compile(r"^LWSTDAPI\b"), "HRESULT LWSTDAPI"),
)


def _strip_decoration(text: str, name: str) -> str:
    """Remove every `name(...)` occurrence, argument list included."""
    pattern = re.compile(re.escape(name) + r"\s*\(")
    while True:
        m = pattern.search(text)
        if m is None:
            return text
        try:
            close = find_matching_close(text, m.end() - 1, Delimiter.PAREN)
        except UnbalancedDelimiter:
            return text
        text = text[:m.start()] + text[close + 1:]


def remove_annotations(prototype: str) -> str:
    """Drop function-level decorations that carry no parameter information."""
    prototype = _NOOP.sub("", prototype)
    for decoration in VARIABLE_DECORATIONS:
        prototype = _strip_decoration(prototype, decoration)
    return prototype


def standardize(prototype: str) -> str:
    """Rewrite macro-style return type / calling convention shorthands."""
    for pattern, replacement in SHORTHANDS:
        rewritten, n = pattern.subn(replacement, prototype, count=1)
        if n:
            return rewritten
    return prototype


def normalize_prototype(raw: str) -> str:
    """Full normalization of one raw prototype statement."""
    text = standardize_spaces(remove_annotations(raw))
    text = re.sub(r"\(\s+", "(", text)
    text = re.sub(r"\s+\)", ")", text)
    return standardize(text)


def find_prototypes(data: str) -> List[str]:
    """Raw prototype statements in a (comment-free) header buffer."""
    return [m.group() for m in PROTOTYPE_STATEMENT.finditer(data)]


def prototype_name(prototype: str) -> Optional[str]:
    """API name of a normalized prototype, or None if it has no canonical shape."""
    m = PROTOTYPE.match(prototype)
    return m.group("name") if m else None


def looks_like_prototype(prototype: str) -> bool:
    """True for a `... Name(...);` statement, canonical or not."""
    return CALL_SHAPED.match(prototype) is not None


def parse_api(prototype: str) -> API:
    """
    Parse a normalized prototype into an API.

    Parameters that fail every heuristic are logged and left out; the
    failures are available through `parse_api_with_failures`.

    Raises UnrecognizedPrototype when the text lacks a name or a calling
    convention.
    """
    api, _ = parse_api_with_failures(prototype)
    return api


def parse_api_with_failures(prototype: str):
    """Like `parse_api`, also returning the ParamList with its failures."""
    m = PROTOTYPE.match(prototype)
    if m is None:
        raise UnrecognizedPrototype(prototype)

    name = m.group("name")
    params: ParamList = parse_params(m.group("params"), api=name)
    api = API(
        name=name,
        calling_convention=m.group("callconv"),
        return_type=m.group("ret").replace(" ", ""),
        attribute=m.group("attr"),
        params=tuple(params.params),
    )
    return api, params


def find_function_pointers(data: str) -> List[FunctionPointer]:
    """Names of `typedef RET (CALLCONV *NAME)(...)` declarations."""
    return [
        FunctionPointer(name=m.group("name"), calling_convention=m.group("callconv"))
        for m in FUNCTION_POINTER.finditer(data)
    ]
