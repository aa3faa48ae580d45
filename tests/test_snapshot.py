"""
Snapshot tests for winsdk-extract.

For every .h file in tests/headers/, we run the scanner pipeline and compare
the generated apis.json and structs.json against golden files in
tests/expected/<stem>/.

To add a new test:  drop a header in tests/headers/ and the expected output in
tests/expected/<header_stem>/apis.json + structs.json.

To update golden files after an intentional change:
    UPDATE_EXPECTED=1 pytest tests/test_snapshot.py
"""

import difflib
import json
import os
from pathlib import Path

import pytest

from sdkextract.extractor import HeaderExtractor
from sdkextract.ir import ExtractConfig, ExtractionContext
from sdkextract.output import apis_to_json, structs_to_json
from sdkextract.scalar_types import ScalarTypeRegistry

TESTS_DIR = Path(__file__).resolve().parent
HEADERS_DIR = TESTS_DIR / "headers"
EXPECTED_DIR = TESTS_DIR / "expected"


def _run_extract(header: Path) -> dict[str, str]:
    """Run the extract -> register -> serialize pipeline, return {filename: content}."""
    result = HeaderExtractor().extract(header.read_text(), source=header.name)

    ctx = ExtractionContext(ExtractConfig(sdk_path=header))
    for api in result.apis:
        ctx.add_api("", api)
    ctx.add_header(result)

    registry = ScalarTypeRegistry.default().with_aggregates(ctx.all_structs())
    return {
        "apis.json": apis_to_json(ctx),
        "structs.json": structs_to_json(ctx.all_structs(), registry),
    }


def _canonical(content: str) -> str:
    """Re-dump JSON so formatting differences never count as a mismatch."""
    return json.dumps(json.loads(content), indent=2) + "\n"


def _unified_diff(expected: str, actual: str, filename: str) -> str:
    """Return a unified diff string, or empty if identical."""
    if expected == actual:
        return ""
    diff_lines = difflib.unified_diff(
        expected.splitlines(keepends=True),
        actual.splitlines(keepends=True),
        fromfile=f"expected/{filename}",
        tofile=f"actual/{filename}",
    )
    return "".join(diff_lines)


# Discover all test headers
_headers = sorted(HEADERS_DIR.glob("*.h")) if HEADERS_DIR.exists() else []


@pytest.mark.parametrize(
    "header",
    _headers,
    ids=[h.stem for h in _headers],
)
def test_snapshot(header: Path):
    """Run the extractor on a header and compare output to golden files."""
    stem = header.stem
    expected_dir = EXPECTED_DIR / stem
    update = os.environ.get("UPDATE_EXPECTED", "") == "1"

    generated = _run_extract(header)

    mismatches: list[str] = []

    for filename, actual_content in generated.items():
        expected_file = expected_dir / filename
        actual_content = _canonical(actual_content)

        if update:
            expected_dir.mkdir(parents=True, exist_ok=True)
            expected_file.write_text(actual_content)
            continue

        assert expected_file.exists(), (
            f"Missing expected file: {expected_file}\n"
            f"Run with UPDATE_EXPECTED=1 to create it."
        )

        expected_content = _canonical(expected_file.read_text())
        diff = _unified_diff(expected_content, actual_content, filename)
        if diff:
            mismatches.append(diff)

    if mismatches:
        full_diff = "\n".join(mismatches)
        pytest.fail(
            f"Snapshot mismatch for {header.name}:\n\n{full_diff}\n\n"
            f"Run with UPDATE_EXPECTED=1 to update golden files."
        )
