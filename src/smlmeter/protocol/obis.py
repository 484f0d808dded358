"""OBIS entry location and value extraction.

An SML GetList response carries one list entry per measurement channel:

    objName  status  valTime  unit  scaler  value  valueSignature

objName is a 6-byte octet string holding the OBIS code (A-B:C.D.E*F). The
locator searches the telegram for a configured identifier tag, anchors the
entry at the OBIS code the tag points into and reads the fields after it.

The search is byte-aligned: the telegram is decoded to bytes before searching,
so a tag can never match across a byte boundary of the hex text. The first
(leftmost) occurrence wins. A shorter tag may therefore match a different
entry than a longer one; tags are used exactly as configured.

Numeric values are returned as ``Decimal(value) * 10**scaler``; octet strings
as :class:`OctetString`.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from decimal import Decimal
from functools import lru_cache

from ..exceptions import SmlConfigurationError, SmlDecodingError
from .element import Element, ElementType
from .value import ExtractedValue, OctetString

logger = logging.getLogger(__name__)

# =============================================================================
# OBIS Constants
# =============================================================================

OBIS_CODE_LENGTH = 6  # A, B, C, D, E, F

OBJ_NAME_TL = 0x07  # TL byte of a 6-byte octet string (the objName field)

HEX_PATTERN = re.compile(r"(?:[0-9A-Fa-f]{2})*")  # Byte pairs only, no separators


@dataclass(frozen=True)
class ObisEntry:
    """Fields of one SML list entry following its OBIS code.

    Attributes:
        status: Raw status element (may be empty)
        unit: DLMS unit code, None if not set
        scaler: Decimal exponent applied to numeric values, None if not set
        value: Extracted value, None if the entry carries no value
    """

    status: Element
    unit: int | None
    scaler: int | None
    value: ExtractedValue | None


def format_obis(code: bytes) -> str:
    """Format a 6-byte OBIS code as A-B:C.D.E*F."""
    if len(code) != OBIS_CODE_LENGTH:
        return code.hex()

    return "%d-%d:%d.%d.%d*%d" % tuple(code)


def _from_hex(text: str) -> bytes:
    """Decode strict hex text. Unlike bytes.fromhex, whitespace is rejected."""
    if not isinstance(text, str) or HEX_PATTERN.fullmatch(text) is None:
        raise ValueError(f"expected pairs of hex digits, got {text!r:.40}")

    return bytes.fromhex(text)


def decode_telegram(telegram: str) -> bytes:
    """Convert a hex-encoded telegram to bytes.

    Raises:
        SmlDecodingError: If the telegram contains non-hex characters (whitespace
                         included) or has odd length
    """
    try:
        return _from_hex(telegram)
    except ValueError as e:
        raise SmlDecodingError(f"Telegram is not a valid hex string: {e}") from e


@lru_cache(maxsize=256)
def parse_identifier(identifier: str) -> bytes:
    """Convert a hex identifier tag to bytes.

    Raises:
        SmlConfigurationError: If the identifier is empty or not valid hex
    """
    try:
        tag = _from_hex(identifier)
    except ValueError as e:
        raise SmlConfigurationError(f"OBIS identifier {identifier!r} is not a valid hex string") from e

    if not tag:
        raise SmlConfigurationError("OBIS identifier cannot be empty")

    return tag


def _entry_offset(data: bytes, start: int, tag: bytes) -> int:
    """Return the offset of the status field for a tag matched at start."""
    if start > 0 and data[start - 1] == OBJ_NAME_TL:
        # Tag is the OBIS code itself (or its prefix)
        return start + OBIS_CODE_LENGTH

    if tag[0] == OBJ_NAME_TL:
        # Tag includes the objName TL byte
        return start + 1 + OBIS_CODE_LENGTH

    return start + max(len(tag), OBIS_CODE_LENGTH)


def _optional_integer(element: Element, field_name: str) -> int | None:
    if element.is_empty:
        return None

    if not element.element_type.is_numeric:
        raise ValueError(f"Expected integer {field_name}, got {element.element_type.name}")

    return int(element.value)


def _to_extracted_value(element: Element, scaler: int | None) -> ExtractedValue | None:
    if element.element_type is ElementType.LIST:
        raise ValueError("Expected scalar value, got LIST")

    if element.value is None:
        return None

    if isinstance(element.value, OctetString):
        return element.value

    if element.element_type is ElementType.BOOLEAN:
        return Decimal(int(element.value))

    raw = int(element.value)

    if not scaler:
        return Decimal(raw)

    if scaler < 0:
        return Decimal(raw).scaleb(scaler)

    return Decimal(raw * 10**scaler)


def read_entry(data: bytes, offset: int) -> ObisEntry:
    """Read the fields of a list entry starting at its status field.

    Args:
        data: Complete telegram bytes
        offset: Position of the status field (first byte after the OBIS code)

    Returns:
        ObisEntry with unit, scaler and the scaled value

    Raises:
        ValueError: If the entry is truncated or a field has an unexpected type
    """
    fields: list[Element] = []

    # status, valTime, unit, scaler, value
    for _ in range(5):
        element = Element.from_bytes(data, offset)
        fields.append(element)
        offset += element.size

    status, _value_time, unit_element, scaler_element, value_element = fields

    unit = _optional_integer(unit_element, "unit")
    scaler = _optional_integer(scaler_element, "scaler")

    return ObisEntry(
        status=status,
        unit=unit,
        scaler=scaler,
        value=_to_extracted_value(value_element, scaler),
    )


def locate(telegram: str | bytes, identifier: str) -> ExtractedValue | None:
    """Find the entry tagged by identifier and return its value.

    Args:
        telegram: Hex-encoded telegram (or already decoded bytes)
        identifier: Hex tag, commonly the 6-byte OBIS code (e.g. "0100010800ff")

    Returns:
        Decimal for numeric entries, OctetString for octet strings, or None if
        the tag does not occur or its entry cannot be read

    Raises:
        SmlDecodingError: If telegram is not valid hex
        SmlConfigurationError: If identifier is not valid hex
    """
    data = telegram if isinstance(telegram, bytes) else decode_telegram(telegram)
    tag = parse_identifier(identifier)

    start = data.find(tag)

    if start == -1:
        return None

    offset = _entry_offset(data, start, tag)

    try:
        entry = read_entry(data, offset)
    except ValueError as e:
        logger.debug("Unreadable entry for %s at offset %d: %s", identifier, offset, e)
        return None

    return entry.value
