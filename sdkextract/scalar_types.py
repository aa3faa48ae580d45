"""
scalar_types.py — Built-in Windows SDK types and their sizes.

The registry is the seed for every size computation.  Keeping it in one place
means we can extend it (new SDK typedefs, parsed structs) without touching the
body parser or the layout engine.

Each entry maps an exact type spelling to:
  - byte_size: the size for SCALAR entries
  - kind:      SCALAR (fixed size on every platform), VOID_POINTER (pointer
               sized: handles, pointer typedefs, *_PTR integers) or AGGREGATE
               (a parsed struct name)

VOID_POINTER and AGGREGATE entries are sized by the target pointer width, so
the same registry serves 32-bit and 64-bit layouts.
"""

from dataclasses import dataclass
from enum import Enum, auto
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from .ir import StructDecl


class ScalarKind(Enum):
    """How a registry entry is sized."""

    SCALAR = auto()
    VOID_POINTER = auto()
    AGGREGATE = auto()


@dataclass(frozen=True)
class ScalarType:
    """One registry entry."""

    name: str  # e.g. "DWORD"
    byte_size: int  # e.g. 4; the 32-bit size for pointer-sized kinds
    kind: ScalarKind

    def size(self, pointer_width: int) -> int:
        """Size in bytes for a target with `pointer_width`-byte pointers."""
        if self.kind is ScalarKind.SCALAR:
            return self.byte_size
        return pointer_width


# ---------------------------------------------------------------------------
# The built-in table
# ---------------------------------------------------------------------------
# Keys are exact spellings as they appear in member declarations after
# whitespace normalization.

_SCALARS: dict[str, int] = {
    # --- 1 byte ---
    "BYTE": 1, "UCHAR": 1, "CHAR": 1, "CCHAR": 1, "BOOLEAN": 1, "INT8": 1,
    "UINT8": 1, "char": 1, "unsigned char": 1, "signed char": 1, "__int8": 1,
    # --- 2 bytes ---
    "WORD": 2, "SHORT": 2, "USHORT": 2, "WCHAR": 2, "wchar_t": 2, "ATOM": 2,
    "LANGID": 2, "INT16": 2, "UINT16": 2, "short": 2, "unsigned short": 2,
    "TCHAR": 2, "__int16": 2,
    # --- 4 bytes ---
    "DWORD": 4, "BOOL": 4, "INT": 4, "UINT": 4, "LONG": 4, "ULONG": 4,
    "INT32": 4, "UINT32": 4, "LONG32": 4, "ULONG32": 4, "DWORD32": 4,
    "FLOAT": 4, "HRESULT": 4, "NTSTATUS": 4, "LCID": 4, "LCTYPE": 4,
    "COLORREF": 4, "ACCESS_MASK": 4, "HFILE": 4, "int": 4, "unsigned int": 4,
    "long": 4, "unsigned long": 4, "unsigned": 4, "float": 4, "errno_t": 4,
    "__int32": 4,
    # --- 8 bytes ---
    "DWORD64": 8, "DWORDLONG": 8, "ULONGLONG": 8, "LONGLONG": 8, "ULONG64": 8,
    "LONG64": 8, "INT64": 8, "UINT64": 8, "QWORD": 8, "USN": 8,
    "LARGE_INTEGER": 8, "ULARGE_INTEGER": 8, "DOUBLE": 8, "double": 8,
    "long long": 8, "unsigned long long": 8, "__int64": 8,
    "unsigned __int64": 8,
}

_POINTER_SIZED: tuple[str, ...] = (
    # --- generic pointers ---
    "PVOID", "LPVOID", "LPCVOID", "PCVOID", "FARPROC", "NEARPROC", "PROC",
    # --- pointer-sized integers ---
    "SIZE_T", "SSIZE_T", "ULONG_PTR", "LONG_PTR", "DWORD_PTR", "UINT_PTR",
    "INT_PTR", "WPARAM", "LPARAM", "LRESULT", "size_t", "KAFFINITY",
    # --- handles ---
    "HANDLE", "HMODULE", "HINSTANCE", "HKEY", "HWND", "HDC", "HMENU",
    "HICON", "HCURSOR", "HBRUSH", "HFONT", "HBITMAP", "HGDIOBJ", "HGLOBAL",
    "HLOCAL", "HRSRC", "HHOOK", "HDESK", "HWINSTA", "HKL", "HMONITOR",
    "HPEN", "HRGN", "HPALETTE", "HACCEL", "HINTERNET", "SC_HANDLE",
    "SERVICE_STATUS_HANDLE", "SOCKET", "PSID", "PHANDLE", "LPHANDLE",
    "BCRYPT_HANDLE", "BCRYPT_ALG_HANDLE", "BCRYPT_KEY_HANDLE",
    "HCRYPTPROV", "HCRYPTKEY", "HCRYPTHASH", "HCERTSTORE",
    # --- string pointers ---
    "LPSTR", "LPCSTR", "LPWSTR", "LPCWSTR", "PSTR", "PCSTR", "PWSTR",
    "PCWSTR", "LPTSTR", "LPCTSTR", "PCHAR", "PWCHAR", "PZZWSTR", "PCZZWSTR",
    "PNZWCH", "PCNZWCH", "BSTR", "LPOLESTR", "LPCOLESTR",
    # --- scalar pointers ---
    "PBYTE", "LPBYTE", "PBOOL", "LPBOOL", "PBOOLEAN", "PWORD", "LPWORD",
    "PDWORD", "LPDWORD", "PLONG", "LPLONG", "PULONG", "PUSHORT", "PUCHAR",
    "PSIZE_T", "PULONG_PTR", "PDWORD_PTR", "PLARGE_INTEGER",
    "PULARGE_INTEGER", "PULONGLONG", "PDWORD64", "PHKEY", "LPHKEY",
)


@dataclass(frozen=True)
class ScalarTypeRegistry:
    """
    Immutable name -> ScalarType lookup.

    Build the default table with `ScalarTypeRegistry.default()` and add the
    structs parsed in a run with `with_aggregates()`, which returns a new
    registry and leaves this one untouched.
    """

    entries: Mapping[str, ScalarType]

    @classmethod
    def default(cls) -> "ScalarTypeRegistry":
        entries = {
            name: ScalarType(name, size, ScalarKind.SCALAR)
            for name, size in _SCALARS.items()
        }
        for name in _POINTER_SIZED:
            entries[name] = ScalarType(name, 4, ScalarKind.VOID_POINTER)
        return cls(MappingProxyType(entries))

    def lookup(self, name: str) -> Optional[ScalarType]:
        """Exact-name lookup; None for types the registry does not know."""
        return self.entries.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self.entries

    def __len__(self) -> int:
        return len(self.entries)

    def with_aggregates(self, decls: Iterable[StructDecl]) -> "ScalarTypeRegistry":
        """
        Register parsed structs.

        The canonical name becomes an AGGREGATE entry and the pointer aliases
        become VOID_POINTER entries.  Built-in names are never overridden.
        """
        entries = dict(self.entries)
        for decl in decls:
            if decl.canonical_name and decl.canonical_name not in entries:
                entries[decl.canonical_name] = ScalarType(
                    decl.canonical_name, 4, ScalarKind.AGGREGATE
                )
            for alias in (decl.pointer_alias_name, decl.long_pointer_alias_name):
                if alias and alias not in entries:
                    entries[alias] = ScalarType(alias, 4, ScalarKind.VOID_POINTER)
        return ScalarTypeRegistry(MappingProxyType(entries))
