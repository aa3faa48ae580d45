"""
__main__.py — CLI entry point for winsdk-extract.

Usage:
    python -m sdkextract path/to/Include/10.0.xxxxx.0 [-o out] [--wanted hooks.txt]

This is the single command that does everything:
  1. Collects the interesting headers under the SDK path
  2. Extracts structs, prototypes and function pointers from each one and
     resolves the exporting DLL of every API
  3. Registers the parsed structs and computes their layout
  4. Writes apis.json, structs.json and the raw text dumps
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .dll_resolver import DocsDllResolver, StaticDllResolver
from .errors import UnknownDLL, UnparseableParameter, UnrecognizedPrototype
from .extractor import HeaderExtractor
from .ir import DEFAULT_HEADERS, ExtractConfig, ExtractionContext
from .ir_printer import IRPrinter, print_ir
from .layout import POINTER_WIDTHS, LayoutEngine
from .output import apis_to_json, structs_to_json, write_lines, write_output
from .scalar_types import ScalarTypeRegistry

logger = logging.getLogger(__name__)


def read_name_list(path: Path) -> frozenset:
    """One API name per line; blank lines and `#` comments are ignored."""
    names = set()
    for line in path.read_text().splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            names.add(line)
    return frozenset(names)


def collect_headers(config: ExtractConfig) -> List[Path]:
    """
    The headers to scan, in a stable order.

    A file path is taken as-is; a directory is searched recursively for the
    configured header names (case-insensitive, as on Windows).  An empty
    header list selects every `.h` file.
    """
    root = config.sdk_path
    if root.is_file():
        return [root]

    interesting = {h.lower() for h in config.headers}
    return sorted(
        p for p in root.rglob("*.h")
        if not interesting or p.name.lower() in interesting
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="winsdk-extract",
        description="Extract API prototypes and struct layouts from Windows SDK headers.",
    )
    parser.add_argument(
        "sdk",
        type=Path,
        help="SDK include directory, or a single header file",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=Path("out"),
        help="Output directory (default: out/)",
    )
    parser.add_argument(
        "--headers",
        type=str,
        default=None,
        help="Comma-separated header names to scan, or 'all' "
        "(default: the built-in list of interesting headers)",
    )
    parser.add_argument(
        "--wanted",
        type=Path,
        default=None,
        help="File with the API names to parse, one per line (default: all)",
    )
    parser.add_argument(
        "--custom-hooks",
        type=Path,
        default=None,
        dest="custom_hooks",
        help="File with the APIs that use custom hook handlers; parsed even "
        "when they are not wanted",
    )
    parser.add_argument(
        "--sdk-api",
        type=Path,
        default=None,
        dest="sdk_api",
        help="Local checkout of MicrosoftDocs/sdk-api, used to find each API's DLL",
    )
    parser.add_argument(
        "--default-dll",
        type=str,
        default="",
        help="DLL to file APIs under when the docs have no answer",
    )
    parser.add_argument(
        "--arch",
        choices=sorted(POINTER_WIDTHS),
        default="x64",
        help="Target architecture for the size report (default: x64)",
    )
    parser.add_argument(
        "--backend",
        choices=("scanner", "clang"),
        default="scanner",
        help="How to extract API prototypes (default: scanner)",
    )
    parser.add_argument(
        "-I",
        action="append",
        default=[],
        dest="includes",
        help="Additional include directories for the clang backend",
    )
    parser.add_argument(
        "-D",
        action="append",
        default=[],
        dest="defines",
        help="Preprocessor definitions for the clang backend",
    )
    parser.add_argument(
        "--minify",
        action="store_true",
        help="Also write compact mini-apis.json and mini-structs.json "
        "without empty fields",
    )
    parser.add_argument(
        "--print-retval",
        action="store_true",
        help="Print the return type of every API",
    )
    parser.add_argument(
        "--print-anno",
        action="store_true",
        help="Print every distinct annotation and parameter type",
    )
    parser.add_argument(
        "--emit-ir",
        action="store_true",
        help="Print everything extracted, with member sizes",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="More logging (-v for info, -vv for debug)",
    )
    return parser


def _config_from_args(args: argparse.Namespace) -> ExtractConfig:
    if args.headers is None:
        headers = DEFAULT_HEADERS
    elif args.headers == "all":
        headers = ()
    else:
        headers = tuple(h.strip() for h in args.headers.split(",") if h.strip())

    clang_args: List[str] = []
    for inc in args.includes:
        clang_args.extend(["-I", inc])
    for define in args.defines:
        clang_args.append(f"-D{define}")

    return ExtractConfig(
        sdk_path=args.sdk.resolve(),
        output_dir=args.output,
        headers=headers,
        wanted=read_name_list(args.wanted) if args.wanted else None,
        custom_hooks=(
            read_name_list(args.custom_hooks) if args.custom_hooks else frozenset()
        ),
        sdk_api_path=args.sdk_api,
        default_dll=args.default_dll,
        pointer_width=POINTER_WIDTHS[args.arch],
        backend=args.backend,
        clang_args=clang_args,
        minify=args.minify,
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    level = (logging.WARNING, logging.INFO, logging.DEBUG)[min(args.verbose, 2)]
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    config = _config_from_args(args)
    out_dir = config.output_dir

    # Step 1: COLLECT
    print(f"[1/4] Collecting headers under {config.sdk_path} ...")
    if not config.sdk_path.exists():
        print(f"\tError: {config.sdk_path} does not exist")
        return 1
    headers = collect_headers(config)
    print(f"\tFound {len(headers)} header(s)")
    if not headers:
        print("Nothing to extract. Exiting.")
        return 1

    # Step 2: EXTRACT
    print(f"[2/4] Extracting declarations ({config.backend}) ...")
    ctx = ExtractionContext(config)
    extractor = HeaderExtractor(config.api_filter)
    if config.sdk_api_path is not None:
        resolver = DocsDllResolver(config.sdk_api_path)
    else:
        resolver = StaticDllResolver()

    if config.backend == "clang":
        # Loaded on demand so the scanner works without the libclang library.
        from . import clang_backend

    prototypes_by_header = {}
    for header in headers:
        try:
            text = header.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            logger.error("cannot read %s: %s", header, exc)
            continue

        result = extractor.extract(text, source=str(header))
        if config.backend == "clang":
            try:
                result.apis = clang_backend.parse_header(
                    header, extra_args=config.clang_args, wanted=config.api_filter
                )
            except clang_backend.CLANG_ERRORS as exc:
                logger.error("libclang failed on %s: %s", header, exc)
                continue
            # The scanner's prototype diagnostics no longer describe the APIs.
            result.errors = [
                e for e in result.errors
                if not isinstance(e, (UnparseableParameter, UnrecognizedPrototype))
            ]

        for api in result.apis:
            try:
                dll = resolver.resolve(header.name, api.name)
            except UnknownDLL as err:
                logger.debug("%s", err)
                dll = config.default_dll
            ctx.add_api(dll, api)

        ctx.add_header(result)
        prototypes_by_header[header.stem] = result.prototypes
        print(f"\t{header.name}: {len(result.apis)} API(s), {len(result.structs)} struct(s)")

    # Step 3: LAYOUT
    print(f"[3/4] Computing struct layout ...")
    registry = ScalarTypeRegistry.default().with_aggregates(ctx.all_structs())
    layout = LayoutEngine(registry, config.pointer_width)
    print(f"\tRegistered {len(registry)} type(s)")

    # Step 4: WRITE
    print(f"[4/4] Writing output ...")
    apis_path = write_output(apis_to_json(ctx), out_dir / "apis.json")
    print(f"\tAPIs → {apis_path}")

    structs_path = write_output(
        structs_to_json(ctx.all_structs(), registry), out_dir / "structs.json"
    )
    print(f"\tStructs → {structs_path}")

    if config.minify:
        write_output(apis_to_json(ctx, minify=True), out_dir / "mini-apis.json")
        mini_path = write_output(
            structs_to_json(ctx.all_structs(), registry, minify=True),
            out_dir / "mini-structs.json",
        )
        print(f"\tMinified → {mini_path.parent}")

    raw_path = write_lines(ctx.all_raw_structs(), out_dir / "winstructs.h")
    print(f"\tRaw structs → {raw_path}")

    for stem, prototypes in prototypes_by_header.items():
        if prototypes:
            write_lines(prototypes, out_dir / f"prototypes-{stem}.inc")

    fp_path = write_lines(
        [fp.name for fp in ctx.all_function_pointers()], out_dir / "funcptrs.txt"
    )
    print(f"\tFunction pointers → {fp_path}")

    printer = IRPrinter(ctx, layout)
    if args.print_retval:
        print(printer.print_return_types())
    if args.print_anno:
        print(printer.print_annotations())
    if args.emit_ir:
        print(print_ir(ctx, layout))

    print()
    errors = ctx.all_errors()
    if errors:
        print(f"{len(errors)} declaration(s) could not be parsed, run with -v for details.")
    missing = ctx.missing_wanted()
    if missing:
        print(f"Not found: {', '.join(missing)}")
    print(f"Done! {ctx.summary()}.")

    return 0


if __name__ == "__main__":
    sys.exit(main())
