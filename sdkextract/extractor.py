"""
extractor.py — Scan one header buffer for structs and API prototypes.

This module drives the scanner-based pipeline for a single buffer. It:
  - Strips comments once for the whole buffer
  - Extracts struct/union typedef regions (structs.py)
  - Extracts, normalizes and parses API prototypes (prototypes.py)
  - Collects function pointer typedef names
  - Keeps every non-fatal error next to the results

The extractor holds no state between buffers, so running it twice over the
same text gives identical results.
"""

import logging
from typing import AbstractSet, Optional

from .errors import UnrecognizedPrototype
from .ir import HeaderExtraction
from .prototypes import (
    find_function_pointers,
    find_prototypes,
    looks_like_prototype,
    normalize_prototype,
    parse_api_with_failures,
    prototype_name,
)
from .structs import extract_structs
from .text import strip_comments

logger = logging.getLogger(__name__)


class HeaderExtractor:
    """
    Extracts declarations from header text.

    Strategy:
      1. Strip comments from the buffer
      2. Extract struct regions and parse their bodies
      3. Find prototype statements and normalize each one
      4. Parse the prototypes whose name passes the wanted filter
      5. Collect function pointer typedefs
    """

    def __init__(self, wanted: Optional[AbstractSet[str]] = None):
        # None means every prototype is parsed.
        self.wanted = wanted

    def is_wanted(self, name: Optional[str]) -> bool:
        if name is None:
            return False
        return self.wanted is None or name in self.wanted

    def extract(self, text: str, source: str = "<buffer>") -> HeaderExtraction:
        """
        Run the full scan over one header buffer.

        Parameters
        ----------
        text   : the header contents
        source : label used in logs and in the result, usually the file path

        Returns
        -------
        HeaderExtraction with structs, prototypes, APIs and errors
        """
        result = HeaderExtraction(source=source)
        data = strip_comments(text)

        result.raw_structs, result.structs = extract_structs(data, result.errors)
        logger.info("%s: %d struct(s)", source, len(result.structs))

        for raw in find_prototypes(data):
            prototype = normalize_prototype(raw)
            name = prototype_name(prototype)
            if name is None:
                # Member declarations and macros also start with a return
                # type keyword; only call-shaped statements are reported.
                if looks_like_prototype(prototype):
                    err = UnrecognizedPrototype(prototype)
                    logger.warning("%s: %s", source, err)
                    result.errors.append(err)
                continue
            result.prototypes.append(prototype)

            if not self.is_wanted(name):
                continue

            api, params = parse_api_with_failures(prototype)
            result.errors.extend(params.failures)
            result.apis.append(api)

        logger.info("%s: %d API(s)", source, len(result.apis))

        result.function_pointers = find_function_pointers(data)
        return result
