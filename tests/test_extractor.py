"""
Tests for the whole-buffer extractor and the cross-header context.
"""

from pathlib import Path

from sdkextract.errors import (
    UnbalancedDelimiter,
    UnparseableParameter,
    UnrecognizedPrototype,
)
from sdkextract.extractor import HeaderExtractor
from sdkextract.ir import API, APIParam, ExtractConfig, ExtractionContext

HEADER = """
// Minimal excerpt
#pragma once

typedef struct _SECURITY_ATTRIBUTES {
    DWORD nLength;
    LPVOID lpSecurityDescriptor;   /* may be NULL */
    BOOL bInheritHandle;
} SECURITY_ATTRIBUTES, *PSECURITY_ATTRIBUTES, *LPSECURITY_ATTRIBUTES;

WINBASEAPI
BOOL
WINAPI
CreateDirectoryA(
    _In_ LPCSTR lpPathName,
    _In_opt_ LPSECURITY_ATTRIBUTES lpSecurityAttributes
    );

/*
WINBASEAPI BOOL WINAPI CommentedOut(_In_ DWORD a);
*/

WINBASEAPI
BOOL
WINAPI
FlushFileBuffers(
    _In_ HANDLE hFile
    );

typedef DWORD (WINAPI *LPPROGRESS_ROUTINE)(
    _In_ LARGE_INTEGER TotalFileSize
    );
"""


def test_extracts_structs_apis_and_function_pointers():
    result = HeaderExtractor().extract(HEADER, source="fileapi.h")

    assert result.source == "fileapi.h"
    assert [s.canonical_name for s in result.structs] == ["SECURITY_ATTRIBUTES"]
    assert [a.name for a in result.apis] == ["CreateDirectoryA", "FlushFileBuffers"]
    assert result.apis[1].params == (APIParam("_In_", "HANDLE", "hFile"),)
    assert [fp.name for fp in result.function_pointers] == ["LPPROGRESS_ROUTINE"]
    assert result.errors == []


def test_comments_never_reach_the_output():
    result = HeaderExtractor().extract(HEADER)
    assert "CommentedOut" not in [a.name for a in result.apis]
    assert all("NULL" not in raw for raw in result.raw_structs)


def test_struct_members_are_not_prototypes():
    result = HeaderExtractor().extract(HEADER)
    assert result.prototypes == [
        "WINBASEAPI BOOL WINAPI CreateDirectoryA("
        "_In_ LPCSTR lpPathName, _In_opt_ LPSECURITY_ATTRIBUTES lpSecurityAttributes);",
        "WINBASEAPI BOOL WINAPI FlushFileBuffers(_In_ HANDLE hFile);",
    ]


def test_extraction_is_idempotent():
    extractor = HeaderExtractor()
    assert extractor.extract(HEADER) == extractor.extract(HEADER)


def test_wanted_filter_parses_only_wanted_apis():
    result = HeaderExtractor(wanted=frozenset({"FlushFileBuffers"})).extract(HEADER)
    assert [a.name for a in result.apis] == ["FlushFileBuffers"]
    # every prototype is still kept as text
    assert len(result.prototypes) == 2


def test_errors_are_collected_and_scanning_continues():
    text = (
        "typedef struct _BROKEN {\n    DWORD a;\n\n"
        "WINBASEAPI BOOL WINAPI Broken(_In_ DWORD, _In_ HANDLE h);\n"
        "WINBASEAPI BOOL WINAPI Fine(_In_ HANDLE h);\n"
    )
    result = HeaderExtractor().extract(text)

    assert result.structs == []
    assert [a.name for a in result.apis] == ["Broken", "Fine"]
    assert result.apis[0].params == (APIParam("_In_", "HANDLE", "h"),)
    assert [type(e) for e in result.errors] == [UnbalancedDelimiter, UnparseableParameter]


def test_unrecognized_prototypes_are_reported():
    text = (
        "WINBASEAPI _Frob_ LPSTR WINAPI Frob(_In_ DWORD a);\n"
        "typedef BOOL (CALLBACK *PFROB)(_In_ DWORD a);\n"
        "WINBASEAPI _Ret_maybenull_z_ LPSTR WINAPI Zret(_In_ DWORD a);\n"
        "WINBASEAPI HANDLE WINAPI CreateThing(_In_range_(-1, 5) DWORD x);\n"
    )
    result = HeaderExtractor().extract(text)

    assert [a.name for a in result.apis] == ["Zret", "CreateThing"]
    assert [type(e) for e in result.errors] == [UnrecognizedPrototype]
    assert result.errors[0].text == "WINBASEAPI _Frob_ LPSTR WINAPI Frob(_In_ DWORD a);"


def _api(name: str, ret: str = "BOOL") -> API:
    return API(name=name, calling_convention="WINAPI", return_type=ret)


def test_context_last_write_wins():
    ctx = ExtractionContext(ExtractConfig(sdk_path=Path(".")))
    ctx.add_api("kernel32.dll", _api("GetThing", "BOOL"))
    ctx.add_api("kernel32.dll", _api("GetThing", "DWORD"))
    ctx.add_api("advapi32.dll", _api("RegCloseKey", "LSTATUS"))

    assert ctx.get_api("GetThing").return_type == "DWORD"
    assert ctx.get_api("GetThing", dll="advapi32.dll") is None
    assert list(ctx.apis_by_dll()) == ["advapi32.dll", "kernel32.dll"]
    assert ctx.parsed_api_names() == ["GetThing", "RegCloseKey"]
    assert ctx.summary() == "Parsed 2 API(s)"


def test_context_summary_with_wanted_set():
    config = ExtractConfig(sdk_path=Path("."), wanted=frozenset({"A", "B", "C"}))
    ctx = ExtractionContext(config)
    ctx.add_api("", _api("A"))
    ctx.add_api("", _api("Other"))

    assert ctx.summary() == "Parsed 1 of 3 wanted API(s)"
    assert ctx.missing_wanted() == ["B", "C"]


def test_context_collects_header_results():
    ctx = ExtractionContext(ExtractConfig(sdk_path=Path(".")))
    result = HeaderExtractor().extract(HEADER)
    ctx.add_header(result)
    ctx.add_header(result)

    assert len(ctx.all_structs()) == 2
    assert len(ctx.all_raw_structs()) == 2
    assert len(ctx.all_function_pointers()) == 2
    # APIs are only added through add_api
    assert ctx.all_apis() == []
