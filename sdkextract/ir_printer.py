"""
ir_printer.py — Human-readable reports over an extraction run

Useful for:
  - Eyeballing what was extracted (--emit-ir)
  - Listing return types per DLL (--print-retval)
  - Listing the distinct annotations and parameter types seen (--print-anno)
  - Checking member sizes of a struct for one pointer width
"""

from typing import List

from .ir import API, ExtractionContext, StructDecl, StructMember
from .layout import LayoutEngine


class IRPrinter:
    """
    Pretty-prints an ExtractionContext to text.

    Output format:
      APIs:
        [kernel32.dll] BOOL WINAPI CreateDirectoryA(_In_ LPCSTR lpPathName, ...)

      Structs:
        struct FOO (tag=_FOO, widest=4)
          DWORD a  // 4
          _union flags  // 4
            BOOL a  // 4
    """

    def __init__(self, ctx: ExtractionContext, layout: LayoutEngine):
        self.ctx = ctx
        self.layout = layout

    def print_all(self) -> str:
        """Print the whole run to a string."""
        lines: List[str] = []

        lines.append("=" * 70)
        lines.append(f"Extraction of {self.ctx.config.sdk_path}")
        lines.append("=" * 70)
        lines.append("")

        lines.append("APIs:")
        lines.append("-" * 70)
        for dll, apis in self.ctx.apis_by_dll().items():
            for api in apis.values():
                lines.append(f"  [{dll or '?'}] {self._format_api(api)}")
        lines.append("")

        lines.append("Structs:")
        lines.append("-" * 70)
        for decl in self.ctx.all_structs():
            lines.extend(self.format_struct(decl))
        lines.append("")

        lines.append("Errors:")
        lines.append("-" * 70)
        errors = self.ctx.all_errors()
        if errors:
            for err in errors:
                lines.append(f"  - {type(err).__name__}: {err}")
        else:
            lines.append("  (none)")
        lines.append("")

        return "\n".join(lines)

    def print_return_types(self) -> str:
        """One line per API: calling convention, name and return type."""
        lines: List[str] = []
        wanted = self.ctx.config.wanted
        for dll, apis in self.ctx.apis_by_dll().items():
            lines.append(f"DLL: {dll or '?'}")
            lines.append("=" * 20)
            for name, api in apis.items():
                lines.append(f"API: {api.calling_convention}:{name}() => {api.return_type}")
                if wanted is not None and name not in wanted:
                    lines.append("Not found")
        return "\n".join(lines)

    def print_annotations(self) -> str:
        """Distinct annotations and parameter types, in first-seen order."""
        annotations: List[str] = []
        types: List[str] = []
        for api in self.ctx.all_apis():
            for param in api.params:
                if param.annotation not in annotations:
                    annotations.append(param.annotation)
                if param.type not in types:
                    types.append(param.type)

        lines = ["Annotations:"]
        lines.extend(f"  {a}" for a in annotations)
        lines.append("Types:")
        lines.extend(f"  {t}" for t in types)
        return "\n".join(lines)

    def format_struct(self, decl: StructDecl) -> List[str]:
        """Format a struct and its member tree with sizes."""
        tag = f"tag={decl.source_tag}, " if decl.source_tag else ""
        lines = [
            f"  {decl.kind} {decl.canonical_name or '<anonymous>'} "
            f"({tag}widest={self.layout.aggregate_size(decl)})"
        ]
        for member in decl.members:
            self._format_member(member, 2, lines)
        return lines

    def _format_member(self, member: StructMember, indent: int, lines: List[str]) -> None:
        pad = "  " * indent
        suffix = member.array_size or ""
        if member.bit_width is not None:
            suffix += f" : {member.bit_width}"
        size = self.layout.member_size(member)
        lines.append(f"{pad}{member.declared_type} {member.name}{suffix}  // {size}")
        for child in member.body or ():
            self._format_member(child, indent + 1, lines)

    def _format_api(self, api: API) -> str:
        """Format a single API for display."""
        attr = f"{api.attribute} " if api.attribute else ""
        params = ", ".join(
            " ".join(part for part in (p.annotation, p.type, p.name) if part)
            for p in api.params
        ) or "VOID"
        return f"{attr}{api.return_type} {api.calling_convention} {api.name}({params})"


def print_ir(ctx: ExtractionContext, layout: LayoutEngine) -> str:
    """Convenience function to print an extraction context."""
    return IRPrinter(ctx, layout).print_all()
