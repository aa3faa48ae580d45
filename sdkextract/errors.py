"""
errors.py — Error taxonomy for the declaration extractor.

Structural errors are local to one declaration or one parameter: the
extractor catches them, logs them, keeps them in the per-header result and
moves on.  Only failing to read a header aborts work on that header.
"""


class ExtractionError(Exception):
    """Base class for every error raised by the extractor."""


class UnbalancedDelimiter(ExtractionError):
    """The scanner ran off the end of the buffer looking for a close."""

    def __init__(self, kind: str, position: int):
        self.kind = kind
        self.position = position
        super().__init__(f"no matching {kind} for position {position}")


class NestingTooDeep(ExtractionError):
    """Nested struct/union bodies exceed the recursion cap."""

    def __init__(self, depth: int):
        self.depth = depth
        super().__init__(f"aggregate nesting deeper than {depth}")


class UnrecognizedMember(ExtractionError):
    """A struct member line matched no known pattern."""

    def __init__(self, text: str):
        self.text = text
        super().__init__(f"unrecognized struct member: {text!r}")


class UnparseableParameter(ExtractionError):
    """A parameter token survived every merge heuristic and still failed."""

    def __init__(self, token: str, api: str = ""):
        self.token = token
        self.api = api
        where = f" in {api}" if api else ""
        super().__init__(f"unparseable parameter{where}: {token!r}")


class UnrecognizedPrototype(ExtractionError):
    """A prototype statement did not have the canonical shape."""

    def __init__(self, text: str):
        self.text = text
        super().__init__(f"failed to parse prototype: {text!r}")


class UnknownDLL(ExtractionError):
    """The docs resolver has no exporting module for an API."""

    def __init__(self, header: str, api: str):
        self.header = header
        self.api = api
        super().__init__(f"failed to get the DLL name for {api} ({header})")
