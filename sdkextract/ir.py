"""
ir.py — Data model for sdkextract

This module defines the values the extractor produces and the process-scoped
context that collects them across headers.

The model consists of:
  - Struct declarations with an ordered member tree (nested anonymous
    structs/unions are members whose type is the "_struct"/"_union" sentinel)
  - API prototypes with normalized (annotation, type, name) parameters
  - ExtractionContext, the append-only collection that merges same-named
    APIs across headers (last write wins)

Every value is created once during a scan and is immutable afterwards.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .errors import ExtractionError


STRUCT_SENTINEL = "_struct"
UNION_SENTINEL = "_union"


# ---------------------------------------------------------------------------
# Structs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StructMember:
    """
    A member of a struct or union.

    For a nested aggregate, `declared_type` is "_struct" or "_union", `name`
    is the instance name that follows the closing brace, and `body` holds the
    nested members.  `body` is None for every flat member.
    """

    name: str
    declared_type: str
    array_size: Optional[str] = None  # e.g. "[4]"
    bit_width: Optional[int] = None  # e.g. 1 for `DWORD fFlag : 1`
    body: Optional[Tuple["StructMember", ...]] = None

    @property
    def is_aggregate(self) -> bool:
        return self.body is not None


@dataclass(frozen=True)
class StructDecl:
    """A `typedef struct <Tag> { ... } Name, *PName, *LPName;` declaration."""

    source_tag: str  # e.g. "_FOO", empty for `typedef struct {`
    canonical_name: str  # e.g. "FOO"
    pointer_alias_name: Optional[str] = None  # e.g. "PFOO"
    long_pointer_alias_name: Optional[str] = None  # e.g. "LPFOO"
    members: Tuple[StructMember, ...] = ()
    kind: str = "struct"  # "struct" or "union"

    def aliases(self) -> List[str]:
        """Every non-empty name this declaration is reachable under."""
        names = [
            self.canonical_name,
            self.pointer_alias_name,
            self.long_pointer_alias_name,
        ]
        return [n for n in names if n]


# ---------------------------------------------------------------------------
# APIs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class APIParam:
    """A single prototype parameter."""

    annotation: str  # e.g. "_In_opt_", may be empty
    type: str  # e.g. "LPCSTR"
    name: str  # e.g. "lpPathName"


@dataclass(frozen=True)
class API:
    """A function prototype."""

    name: str  # e.g. "CreateDirectoryA"
    calling_convention: str  # e.g. "WINAPI"
    return_type: str  # e.g. "BOOL"
    attribute: Optional[str] = None  # e.g. "WINBASEAPI"
    params: Tuple[APIParam, ...] = ()

    @property
    def count(self) -> int:
        return len(self.params)


@dataclass(frozen=True)
class FunctionPointer:
    """A `typedef RET (CALLCONV *NAME)(...)` declaration."""

    name: str
    calling_convention: str


# ---------------------------------------------------------------------------
# Per-header result
# ---------------------------------------------------------------------------


@dataclass
class HeaderExtraction:
    """Everything one scanning pass found in one header buffer."""

    source: str
    raw_structs: List[str] = field(default_factory=list)
    structs: List[StructDecl] = field(default_factory=list)
    prototypes: List[str] = field(default_factory=list)  # normalized text
    apis: List[API] = field(default_factory=list)
    function_pointers: List[FunctionPointer] = field(default_factory=list)
    errors: List[ExtractionError] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

DEFAULT_HEADERS = (
    "fileapi.h", "processthreadsapi.h", "winreg.h", "bcrypt.h", "rpcdce.h",
    "winbase.h", "urlmon.h", "memoryapi.h", "tlhelp32.h", "debugapi.h",
    "handleapi.h", "heapapi.h", "winsvc.h", "wincrypt.h", "wow64apiset.h",
    "libloaderapi.h", "sysinfoapi.h", "synchapi.h", "winuser.h", "ioapiset.h",
    "winhttp.h", "minwinbase.h", "minwindef.h", "winnt.h", "shellapi.h",
    "shlwapi.h", "ntdef.h", "basetsd.h", "wininet.h", "winsock.h",
    "securitybaseapi.h", "winsock2.h", "ws2tcpip.h", "corecrt_wstring.h",
    "corecrt_malloc.h", "processenv.h", "stringapiset.h", "errhandlingapi.h",
)


@dataclass
class ExtractConfig:
    """Configuration for one extraction run."""

    sdk_path: Path
    output_dir: Path = Path("out")
    headers: Tuple[str, ...] = DEFAULT_HEADERS
    wanted: Optional[frozenset] = None  # None means "parse every API"
    custom_hooks: frozenset = frozenset()  # parsed even when not wanted
    sdk_api_path: Optional[Path] = None
    default_dll: str = ""
    pointer_width: int = 8
    backend: str = "scanner"  # "scanner" or "clang"
    clang_args: List[str] = field(default_factory=list)
    minify: bool = False

    @property
    def api_filter(self) -> Optional[frozenset]:
        """The names the extractor parses: wanted plus custom-hook APIs."""
        if self.wanted is None:
            return None
        return self.wanted | self.custom_hooks


# ---------------------------------------------------------------------------
# Extraction context - the cross-header collection
# ---------------------------------------------------------------------------


class ExtractionContext:
    """
    Process-scoped collection of everything extracted in a run.

    Manages:
      - APIs keyed by (dll, name); a later header overwrites an earlier one
      - All structs and their raw text, in discovery order
      - Function pointer names
      - Non-fatal errors, for the end-of-run summary
    """

    def __init__(self, config: ExtractConfig):
        self.config = config

        # Storage
        self._apis: Dict[str, Dict[str, API]] = {}
        self._structs: List[StructDecl] = []
        self._raw_structs: List[str] = []
        self._function_pointers: List[FunctionPointer] = []
        self._errors: List[ExtractionError] = []

    def add_api(self, dll: str, api: API) -> None:
        """Record an API under its exporting DLL, replacing any previous one."""
        self._apis.setdefault(dll, {})[api.name] = api

    def add_header(self, result: HeaderExtraction) -> None:
        """Append the structural results of one header (APIs go via add_api)."""
        self._structs.extend(result.structs)
        self._raw_structs.extend(result.raw_structs)
        self._function_pointers.extend(result.function_pointers)
        self._errors.extend(result.errors)

    def get_api(self, name: str, dll: Optional[str] = None) -> Optional[API]:
        """Look up an API by name, optionally restricted to one DLL."""
        if dll is not None:
            return self._apis.get(dll, {}).get(name)
        for apis in self._apis.values():
            if name in apis:
                return apis[name]
        return None

    def apis_by_dll(self) -> Dict[str, Dict[str, API]]:
        """Get the {dll: {name: API}} mapping, DLLs and names sorted."""
        return {
            dll: dict(sorted(self._apis[dll].items()))
            for dll in sorted(self._apis)
        }

    def all_apis(self) -> List[API]:
        return [api for apis in self.apis_by_dll().values() for api in apis.values()]

    def all_structs(self) -> List[StructDecl]:
        return list(self._structs)

    def all_raw_structs(self) -> List[str]:
        return list(self._raw_structs)

    def all_function_pointers(self) -> List[FunctionPointer]:
        return list(self._function_pointers)

    def all_errors(self) -> List[ExtractionError]:
        return list(self._errors)

    def parsed_api_names(self) -> List[str]:
        return sorted({api.name for api in self.all_apis()})

    def missing_wanted(self) -> List[str]:
        """Wanted APIs that no header produced."""
        if self.config.wanted is None:
            return []
        return sorted(set(self.config.wanted) - set(self.parsed_api_names()))

    def summary(self) -> str:
        """One line telling the user whether manual inspection is needed."""
        names = self.parsed_api_names()
        if self.config.wanted is None:
            return f"Parsed {len(names)} API(s)"
        parsed = len(self.config.wanted.intersection(names))
        return f"Parsed {parsed} of {len(self.config.wanted)} wanted API(s)"
