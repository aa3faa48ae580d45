"""
End-to-end tests of the command line entry point.
"""

import json
from pathlib import Path

import pytest

from sdkextract.__main__ import collect_headers, main, read_name_list
from sdkextract.ir import API, ExtractConfig

TESTS_DIR = Path(__file__).resolve().parent
FILEAPI = TESTS_DIR / "headers" / "fileapi.h"


def test_writes_all_outputs(tmp_path, capsys):
    out = tmp_path / "out"
    assert main([str(FILEAPI), "-o", str(out), "--default-dll", "kernel32.dll"]) == 0

    apis = json.loads((out / "apis.json").read_text())
    assert sorted(apis["kernel32.dll"]) == [
        "CreateDirectoryA",
        "FlushFileBuffers",
        "GetLogicalDrives",
        "GetTempPathA",
    ]

    structs = json.loads((out / "structs.json").read_text())
    assert [s["name"] for s in structs] == ["SECURITY_ATTRIBUTES", "OVERLAPPED"]

    raw = (out / "winstructs.h").read_text()
    assert raw.startswith("typedef struct _SECURITY_ATTRIBUTES {")

    prototypes = (out / "prototypes-fileapi.inc").read_text().splitlines()
    assert len(prototypes) == 4
    assert (out / "funcptrs.txt").read_text() == "LPPROGRESS_ROUTINE\n"

    stdout = capsys.readouterr().out
    assert "[1/4]" in stdout
    assert "Done! Parsed 4 API(s)." in stdout


def test_wanted_list_and_docs_resolver(tmp_path, capsys):
    wanted = tmp_path / "hooks.txt"
    wanted.write_text("# file APIs\nCreateDirectoryA\n\nDeleteFileA\n")

    docs = tmp_path / "sdk-api" / "sdk-api-src" / "content" / "fileapi"
    docs.mkdir(parents=True)
    (docs / "nf-fileapi-createdirectorya.md").write_text("req.dll: Kernel32.dll\n")

    out = tmp_path / "out"
    rc = main(
        [
            str(FILEAPI),
            "-o", str(out),
            "--wanted", str(wanted),
            "--sdk-api", str(tmp_path / "sdk-api"),
            "--print-retval",
        ]
    )
    assert rc == 0

    apis = json.loads((out / "apis.json").read_text())
    assert list(apis) == ["kernel32.dll"]
    assert list(apis["kernel32.dll"]) == ["CreateDirectoryA"]

    stdout = capsys.readouterr().out
    assert "API: WINAPI:CreateDirectoryA() => BOOL" in stdout
    assert "Not found: DeleteFileA" in stdout
    assert "Done! Parsed 1 of 2 wanted API(s)." in stdout


def test_minify_writes_mini_files(tmp_path):
    out = tmp_path / "out"
    assert main([str(FILEAPI), "-o", str(out), "--minify"]) == 0

    text = (out / "mini-structs.json").read_text()
    assert "\n" not in text
    overlapped = json.loads(text)[1]
    assert "_pointer_alias" not in overlapped

    apis = json.loads((out / "mini-apis.json").read_text())
    assert apis[""]["GetLogicalDrives"]["params"] == []
    assert "attr" in apis[""]["GetLogicalDrives"]

    # the full files keep every field
    full = json.loads((out / "structs.json").read_text())
    assert full[1]["_pointer_alias"] == ""


def test_custom_hooks_are_parsed_even_when_not_wanted(tmp_path, capsys):
    wanted = tmp_path / "hooks.txt"
    wanted.write_text("CreateDirectoryA\n")
    custom = tmp_path / "custom_hook_apis.txt"
    custom.write_text("FlushFileBuffers\n")

    out = tmp_path / "out"
    rc = main(
        [
            str(FILEAPI),
            "-o", str(out),
            "--wanted", str(wanted),
            "--custom-hooks", str(custom),
        ]
    )
    assert rc == 0

    apis = json.loads((out / "apis.json").read_text())
    assert sorted(apis[""]) == ["CreateDirectoryA", "FlushFileBuffers"]
    assert "Done! Parsed 1 of 1 wanted API(s)." in capsys.readouterr().out


BROKEN_HEADER = "WINBASEAPI BOOL WINAPI Broken(_In_ DWORD);\n"


def test_scanner_failures_are_counted(tmp_path, capsys):
    header = tmp_path / "broken.h"
    header.write_text(BROKEN_HEADER)
    assert main([str(header), "-o", str(tmp_path / "out")]) == 0
    assert "1 declaration(s) could not be parsed" in capsys.readouterr().out


def test_clang_backend_replaces_scanner_diagnostics(tmp_path, capsys, monkeypatch):
    pytest.importorskip("clang.cindex")
    from sdkextract import clang_backend

    monkeypatch.setattr(clang_backend, "parse_header", lambda *a, **kw: [])
    header = tmp_path / "broken.h"
    header.write_text(BROKEN_HEADER)

    assert main([str(header), "-o", str(tmp_path / "out"), "--backend", "clang"]) == 0
    assert "could not be parsed" not in capsys.readouterr().out


def test_clang_failure_skips_only_that_header(tmp_path, monkeypatch):
    cindex = pytest.importorskip("clang.cindex")
    from sdkextract import clang_backend

    def fake_parse_header(path, **kwargs):
        if path.name == "broken.h":
            raise cindex.TranslationUnitLoadError("Error parsing translation unit.")
        return [API("FlushFileBuffers", calling_convention="WINAPI", return_type="BOOL")]

    monkeypatch.setattr(clang_backend, "parse_header", fake_parse_header)
    sdk = tmp_path / "sdk"
    sdk.mkdir()
    (sdk / "broken.h").write_text(BROKEN_HEADER)
    (sdk / "fileapi.h").write_text(FILEAPI.read_text())

    out = tmp_path / "out"
    rc = main([str(sdk), "-o", str(out), "--headers", "all", "--backend", "clang"])
    assert rc == 0

    apis = json.loads((out / "apis.json").read_text())
    assert list(apis[""]) == ["FlushFileBuffers"]
    assert (out / "prototypes-fileapi.inc").exists()
    assert not (out / "prototypes-broken.inc").exists()


def test_emit_ir_reports_sizes(tmp_path, capsys):
    assert main([str(FILEAPI), "-o", str(tmp_path), "--emit-ir", "--arch", "x86"]) == 0
    stdout = capsys.readouterr().out
    assert "struct OVERLAPPED (tag=_OVERLAPPED, widest=4)" in stdout
    assert "HANDLE hEvent  // 4" in stdout
    assert "[?] WINBASEAPI DWORD WINAPI GetLogicalDrives(VOID)" in stdout


def test_missing_sdk_path(tmp_path, capsys):
    assert main([str(tmp_path / "nowhere"), "-o", str(tmp_path)]) == 1


def test_collect_headers_filters_by_name(tmp_path):
    (tmp_path / "um").mkdir()
    (tmp_path / "um" / "FileAPI.h").write_text("")
    (tmp_path / "um" / "other.h").write_text("")
    (tmp_path / "shared").mkdir()
    (tmp_path / "shared" / "minwindef.h").write_text("")

    config = ExtractConfig(sdk_path=tmp_path, headers=("fileapi.h", "minwindef.h"))
    assert [p.name for p in collect_headers(config)] == ["minwindef.h", "FileAPI.h"]

    everything = ExtractConfig(sdk_path=tmp_path, headers=())
    assert len(collect_headers(everything)) == 3


def test_read_name_list(tmp_path):
    path = tmp_path / "names.txt"
    path.write_text("  CreateFileA \n# comment\n\nCloseHandle\n")
    assert read_name_list(path) == frozenset({"CreateFileA", "CloseHandle"})


@pytest.mark.parametrize("arch", ["x86", "x64"])
def test_arch_choices(tmp_path, arch):
    assert main([str(FILEAPI), "-o", str(tmp_path), "--arch", arch]) == 0
