"""
layout.py — Member and aggregate sizes for a target pointer width.

The figure computed for an aggregate is the size of its widest member, not a
padded C layout: members are not summed and no alignment is applied.  Unions
overlay their members, so for them the widest member is the real size; for
structs it is a "widest scalar member" figure that downstream consumers rely
on as-is.
"""

import logging
from typing import Dict, Iterable

from .ir import STRUCT_SENTINEL, UNION_SENTINEL, StructDecl, StructMember
from .scalar_types import ScalarTypeRegistry

logger = logging.getLogger(__name__)

POINTER_WIDTHS = {"x86": 4, "x64": 8}


def member_size(member: StructMember, registry: ScalarTypeRegistry, pointer_width: int) -> int:
    """
    Size in bytes of one member.

    Registry entries give their configured size, pointer spellings (`T*`)
    give `pointer_width`, nested aggregates give their widest child and
    anything else (an unregistered custom type) gives 0.
    """
    entry = registry.lookup(member.declared_type)
    if entry is not None:
        return entry.size(pointer_width)

    if member.declared_type in (UNION_SENTINEL, STRUCT_SENTINEL):
        return union_size(member.body or (), registry, pointer_width)

    if member.declared_type.endswith("*"):
        return pointer_width

    logger.debug("no size for member type %r", member.declared_type)
    return 0


def union_size(
    members: Iterable[StructMember], registry: ScalarTypeRegistry, pointer_width: int
) -> int:
    """Size of a union: its widest member."""
    return max((member_size(m, registry, pointer_width) for m in members), default=0)


def aggregate_size(decl: StructDecl, registry: ScalarTypeRegistry, pointer_width: int) -> int:
    """Widest-member figure of a declaration (see module docstring)."""
    return union_size(decl.members, registry, pointer_width)


class LayoutEngine:
    """
    Sizes declarations against one registry and one pointer width.

    Caches per-declaration results since reports ask for the same struct
    many times.
    """

    def __init__(self, registry: ScalarTypeRegistry, pointer_width: int):
        if pointer_width not in POINTER_WIDTHS.values():
            raise ValueError(f"unsupported pointer width: {pointer_width}")
        self.registry = registry
        self.pointer_width = pointer_width
        self._cache: Dict[StructDecl, int] = {}

    def member_size(self, member: StructMember) -> int:
        return member_size(member, self.registry, self.pointer_width)

    def aggregate_size(self, decl: StructDecl) -> int:
        if decl not in self._cache:
            self._cache[decl] = aggregate_size(decl, self.registry, self.pointer_width)
        return self._cache[decl]
