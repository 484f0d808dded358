"""Protocol layer components for SML telegram decoding.

This package contains the SML element grammar and the OBIS entry locator.

Reference: BSI TR-03109-1 Anlage IIIa (SML), IEC 62056-6-1 (OBIS)
"""

from .element import Element, ElementType
from .obis import ObisEntry, decode_telegram, format_obis, locate, parse_identifier, read_entry
from .value import ExtractedValue, OctetString

__all__ = [
    # Element grammar
    "Element",
    "ElementType",
    # OBIS locator
    "ObisEntry",
    "decode_telegram",
    "format_obis",
    "locate",
    "parse_identifier",
    "read_entry",
    # Values
    "ExtractedValue",
    "OctetString",
]
