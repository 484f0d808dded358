"""SML element type system and type-length (TL) parsing.

This module implements the SML element encoding used inside meter telegrams.
Every element starts with one or more TL bytes followed by its payload.

Classes:
    - ElementType: Enum of SML element types with their payload decoders
    - Element: One parsed element (scalar value or list of elements)

The TL byte:
    Bit 7:    More-TL flag (another TL byte follows)
    Bits 4-6: Element type (000 octet string, 100 boolean, 101 signed integer,
              110 unsigned integer, 111 list)
    Bits 0-3: Length nibble

    When the more-TL flag is set, the low nibble of each following TL byte is
    appended to the length. Continuation bytes carry type bits 000.

    For scalar types the length counts the TL bytes as well as the payload.
    For lists the length is the number of contained elements.

    A single 0x01 byte is an octet string without payload, used by SML for
    optional fields that are not set.

Reference: BSI TR-03109-1 Anlage IIIa (SML), section 6.3 "Type-Length-Field"
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Self

from .value import OctetString

# =============================================================================
# TL Constants
# =============================================================================

TL_MORE_FLAG = 0b10000000  # Another TL byte follows

TL_TYPE_MASK = 0b01110000  # Element type bits

TL_LENGTH_MASK = 0b00001111  # Length nibble

OPTIONAL_NOT_SET = 0x01  # Octet string of length 1 (TL byte only)

MAX_LIST_DEPTH = 16  # Deepest accepted list nesting

# =============================================================================
# Payload Decoders
# =============================================================================


def _decode_octet_string(data: bytes) -> OctetString:
    return OctetString(data)


def _decode_boolean(data: bytes) -> bool:
    """Decode SML boolean: any non-zero byte is True."""
    if len(data) != 1:
        raise ValueError(f"Invalid data length for boolean: {len(data)} bytes (expected 1)")

    return data[0] != 0x00


def _decode_integer(data: bytes) -> int:
    """Decode SML signed integer (two's complement, big-endian)."""
    return int.from_bytes(data, byteorder="big", signed=True)


def _decode_unsigned(data: bytes) -> int:
    """Decode SML unsigned integer (big-endian)."""
    return int.from_bytes(data, byteorder="big")


class ElementType(Enum):
    """SML element types keyed by the TL type bits (4-6).

    Each scalar member carries the decoder for its payload bytes. LIST has no
    decoder, its payload is a sequence of nested elements.
    """

    def __new__(cls, value: int, *args: Any) -> Self:
        obj = object.__new__(cls)
        obj._value_ = value
        return obj

    def __init__(self, value: int, decoder: Callable[[bytes], Any] | None = None) -> None:
        self._decoder = decoder

    @property
    def decoder(self) -> Callable[[bytes], Any] | None:
        """Payload decoder (None for LIST)."""
        return self._decoder

    @property
    def is_numeric(self) -> bool:
        return self in (ElementType.INTEGER, ElementType.UNSIGNED)

    OCTET_STRING = 0b000, _decode_octet_string
    BOOLEAN = 0b100, _decode_boolean
    INTEGER = 0b101, _decode_integer
    UNSIGNED = 0b110, _decode_unsigned
    LIST = 0b111

    @classmethod
    def from_tl(cls, tl_byte: int) -> ElementType:
        """Return the element type encoded in a TL byte.

        Raises:
            ValueError: If the type bits do not name a known element type
        """
        type_code = (tl_byte & TL_TYPE_MASK) >> 4

        for member in cls:
            if member.value == type_code:
                return member

        raise ValueError(f"Unsupported SML element type in TL byte 0x{tl_byte:02X}")


# =============================================================================
# Element
# =============================================================================


@dataclass(frozen=True)
class Element:
    """One parsed SML element.

    Attributes:
        element_type: Type from the TL byte
        value: Decoded payload for scalar types, None for lists and empty payloads
        items: Nested elements (lists only)
        size: Total number of bytes consumed, TL bytes included
    """

    element_type: ElementType
    value: Any
    items: tuple[Element, ...]
    size: int

    @property
    def is_empty(self) -> bool:
        """True for scalar elements without payload (e.g. optional not set)."""
        return self.element_type is not ElementType.LIST and self.value is None

    @staticmethod
    def from_bytes(data: bytes, offset: int, depth: int = 0) -> Element:
        """Parse one element starting at offset.

        Lists are parsed recursively, so the returned size always covers the
        whole element and the next element starts at ``offset + size``.

        Args:
            data: Complete telegram bytes
            offset: Position of the first TL byte
            depth: Nesting level of the element, 0 for a top-level element

        Returns:
            Parsed Element

        Raises:
            ValueError: If the element is truncated, has an unknown type or an
                       inconsistent length, or lists nest deeper than MAX_LIST_DEPTH
        """
        position = offset

        if position >= len(data):
            raise ValueError(f"Unexpected end of telegram at offset {offset}")

        tl_byte = data[position]
        element_type = ElementType.from_tl(tl_byte)
        length = tl_byte & TL_LENGTH_MASK
        tl_count = 1
        position += 1

        while tl_byte & TL_MORE_FLAG:
            if position >= len(data):
                raise ValueError(f"Unexpected end of telegram in TL field at offset {offset}")

            tl_byte = data[position]

            if tl_byte & TL_TYPE_MASK:
                raise ValueError(f"Invalid TL continuation byte 0x{tl_byte:02X} at offset {position}")

            length = (length << 4) | (tl_byte & TL_LENGTH_MASK)
            tl_count += 1
            position += 1

        if element_type is ElementType.LIST:
            if depth >= MAX_LIST_DEPTH:
                raise ValueError(f"List nesting at offset {offset} exceeds {MAX_LIST_DEPTH} levels")

            items: list[Element] = []

            for _ in range(length):
                item = Element.from_bytes(data, position, depth + 1)
                items.append(item)
                position += item.size

            return Element(element_type, None, tuple(items), position - offset)

        payload_length = length - tl_count

        if payload_length < 0:
            raise ValueError(f"Invalid element length {length} at offset {offset}")

        end = position + payload_length

        if end > len(data):
            raise ValueError(f"Element at offset {offset} exceeds telegram ({end} > {len(data)} bytes)")

        payload = data[position:end]

        decoder = element_type.decoder

        if decoder is None:
            raise ValueError(f"No payload decoder for {element_type.name} at offset {offset}")

        value = decoder(payload) if payload else None

        return Element(element_type, value, (), end - offset)
