"""
output.py — JSON serialization and raw text dumps.

The JSON field names follow the format the hooking tools downstream already
read (`retVal`, `callconv`, `anno`, `typedef_name`, `_pointer_alias` ...).
"""

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .ir import API, ExtractionContext, StructDecl, StructMember
from .layout import POINTER_WIDTHS, LayoutEngine
from .scalar_types import ScalarTypeRegistry


def member_to_dict(member: StructMember) -> Dict[str, Any]:
    d: Dict[str, Any] = {"name": member.name, "type": member.declared_type}
    if member.array_size is not None:
        d["array"] = member.array_size
    if member.bit_width is not None:
        d["bits"] = member.bit_width
    if member.body is not None:
        d["body"] = [member_to_dict(m) for m in member.body]
    return d


def struct_to_dict(
    decl: StructDecl, registry: Optional[ScalarTypeRegistry] = None
) -> Dict[str, Any]:
    """Serialize a struct; with a registry, its widest-member sizes are added."""
    d: Dict[str, Any] = {
        "name": decl.canonical_name,
        "typedef_name": decl.source_tag,
        "pointer_alias": decl.pointer_alias_name or "",
        "_pointer_alias": decl.long_pointer_alias_name or "",
        "kind": decl.kind,
        "members": [member_to_dict(m) for m in decl.members],
    }
    if registry is not None:
        d["layout"] = {
            arch: LayoutEngine(registry, width).aggregate_size(decl)
            for arch, width in POINTER_WIDTHS.items()
        }
    return d


def api_to_dict(api: API) -> Dict[str, Any]:
    return {
        "attr": api.attribute or "",
        "callconv": api.calling_convention,
        "name": api.name,
        "retVal": api.return_type,
        "params": [
            {"anno": p.annotation, "type": p.type, "name": p.name}
            for p in api.params
        ],
    }


def _drop_empty(value: Any) -> Any:
    """Recursively drop empty strings, None and empty dicts; `params` is always kept."""
    if isinstance(value, dict):
        return {
            k: _drop_empty(v)
            for k, v in value.items()
            if k == "params" or v not in ("", None, {})
        }
    if isinstance(value, list):
        return [_drop_empty(v) for v in value]
    return value


def apis_to_json(ctx: ExtractionContext, minify: bool = False) -> str:
    """Serialize the {dll: {name: api}} mapping."""
    data = {
        dll: {name: api_to_dict(api) for name, api in apis.items()}
        for dll, apis in ctx.apis_by_dll().items()
    }
    return to_json(data, minify)


def structs_to_json(
    structs: Iterable[StructDecl],
    registry: Optional[ScalarTypeRegistry] = None,
    minify: bool = False,
) -> str:
    return to_json([struct_to_dict(s, registry) for s in structs], minify)


def to_json(data: Any, minify: bool = False) -> str:
    if minify:
        return json.dumps(_drop_empty(data), separators=(",", ":"))
    return json.dumps(data, indent=2)


def write_output(content: str, out_path: str | Path) -> Path:
    """Write text to a file, creating parent directories, and return the path."""
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(content)
    return out_path


def write_lines(lines: List[str], out_path: str | Path) -> Path:
    return write_output("".join(f"{line}\n" for line in lines), out_path)
