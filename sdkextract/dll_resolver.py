"""
dll_resolver.py — Find which DLL exports an API.

The SDK headers do not say which module exports a function.  The sdk-api
documentation (https://github.com/MicrosoftDocs/sdk-api) does: every function
page carries a `req.dll: kernel32.dll` front-matter line.  The page for API
`Foo` declared in `bar.h` lives at

    <sdk-api>/sdk-api-src/content/bar/nf-bar-foo.md
"""

import re
from pathlib import Path
from typing import Dict, Optional

from .errors import UnknownDLL

DLL_NAME = re.compile(r"req\.dll: (?P<dll>[\w.-]+\.dll)", re.IGNORECASE)


def _header_category(header: str) -> str:
    """e.g. "C:/sdk/um/FileAPI.h" -> "fileapi" """
    name = Path(header.replace("\\", "/")).name.lower()
    return name[:-2] if name.endswith(".h") else name


class DocsDllResolver:
    """Resolves DLL names from a local sdk-api checkout."""

    def __init__(self, sdk_api_path: Path):
        self.sdk_api_path = Path(sdk_api_path)

    def doc_path(self, header: str, api_name: str) -> Path:
        category = _header_category(header)
        return (
            self.sdk_api_path
            / "sdk-api-src"
            / "content"
            / category
            / f"nf-{category}-{api_name.lower()}.md"
        )

    def resolve(self, header: str, api_name: str) -> str:
        """
        Return the lower-cased exporting DLL, e.g. "kernel32.dll".

        Raises UnknownDLL when the page is missing or has no `req.dll` line.
        """
        path = self.doc_path(header, api_name)
        try:
            content = path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            raise UnknownDLL(header, api_name) from exc

        m = DLL_NAME.search(content)
        if m is None:
            raise UnknownDLL(header, api_name)
        return m.group("dll").lower()


class StaticDllResolver:
    """Resolves DLL names from a fixed {api: dll} table."""

    def __init__(self, table: Optional[Dict[str, str]] = None):
        self.table = dict(table or {})

    def resolve(self, header: str, api_name: str) -> str:
        try:
            return self.table[api_name].lower()
        except KeyError:
            raise UnknownDLL(header, api_name) from None
