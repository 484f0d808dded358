"""Field resolution pipeline for eHZ telegrams.

Turns one hex telegram plus an ordered field configuration into the output
mapping. Every cycle ends with a default-fill pass so the 18 OBIS channels
and the two identity keys are always present: a meter without a feed-in
register simply never reports the matching OBIS code.

The pipeline only writes to the mapping it is given (or a fresh one), so
independent telegrams can be decoded concurrently as long as each call gets
its own mapping.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, MutableMapping
from decimal import Decimal
from typing import Any

from .calculator import calculate
from .exceptions import SmlConfigurationError
from .fields import FormulaField, ObisField, default_fields
from .protocol import ExtractedValue, OctetString, decode_telegram, format_obis, locate, parse_identifier

logger = logging.getLogger(__name__)

# =============================================================================
# Required Output Keys
# =============================================================================

DEVICE_NUMBER_ID = "0100000009ff"  # 1-0:0.0.9*255, packed into 8 bytes by the meter

DEVICE_NUMBER_LENGTH = 8

OBIS_KEYS = (
    "OBIS070",
    "OBIS1270",
    "OBIS1570",
    "OBIS180",
    "OBIS181",
    "OBIS182",
    "OBIS183",
    "OBIS280",
    "OBIS281",
    "OBIS282",
    "OBIS283",
    "OBIS3270",
    "OBIS470",
    "OBIS5170",
    "OBIS5270",
    "OBIS7170",
    "OBIS7270",
    "OBIS7670",
)

IDENTITY_KEYS = ("Kennung", "Zaehlernummer")


def decode_device_number(value: ExtractedValue) -> ExtractedValue | str:
    """Reassemble the 8-byte device number.

    Byte 0 is skipped, bytes 1-3 and 5-7 are big-endian 24-bit integers and
    byte 4 is a separator character, e.g. ``08 0C 2A ED 2D 4C 63 3C`` becomes
    ``"797421-5006140"``. Any other value is returned unchanged.
    """
    if not isinstance(value, OctetString) or len(value.raw) != DEVICE_NUMBER_LENGTH:
        return value

    raw = value.raw
    left = int.from_bytes(raw[1:4], byteorder="big")
    mid = chr(raw[4])
    right = int.from_bytes(raw[5:8], byteorder="big")

    return f"{left}{mid}{right}"


def fill_defaults(variables: MutableMapping[str, Any]) -> None:
    """Set missing or None required keys to 0 (OBIS channels) or "" (identity)."""
    for key in OBIS_KEYS:
        if variables.get(key) is None:
            variables[key] = Decimal(0)

    for key in IDENTITY_KEYS:
        if variables.get(key) is None:
            variables[key] = ""


def _resolve_obis(field: ObisField, data: bytes, variables: MutableMapping[str, Any]) -> None:
    value = locate(data, field.obis)

    if value is None:
        variables[field.name] = None
        logger.debug("name: %s, no entry for %s", field.name, format_obis(parse_identifier(field.obis)))
        return

    if field.obis == DEVICE_NUMBER_ID:
        value = decode_device_number(value)

    calculated = field.post_process(value)
    variables[field.name] = calculated
    logger.debug("name: %s, value: %s", field.name, calculated)


def resolve(
    telegram: str,
    descriptors: Iterable[ObisField | FormulaField],
    variables: MutableMapping[str, Any] | None = None,
) -> MutableMapping[str, Any]:
    """Decode one telegram into the output mapping.

    Args:
        telegram: Hex-encoded telegram as delivered by the transport
        descriptors: Field configuration, evaluated in the given order; a
            descriptor whose precondition does not hold is skipped
        variables: Mapping to write into; a new dict is used when omitted

    Returns:
        The mapping, containing every configured name plus all required keys

    Raises:
        SmlDecodingError: If the telegram is not valid hex
        SmlConfigurationError: If a descriptor has an unsupported kind, or a value
            cannot be rounded to its configured digits
    """
    descriptors = list(descriptors)

    # Reject the whole configuration before touching the mapping
    for descriptor in descriptors:
        if not isinstance(descriptor, ObisField | FormulaField):
            raise SmlConfigurationError(f"Unsupported field descriptor: {type(descriptor).__name__}")

    data = decode_telegram(telegram)

    if variables is None:
        variables = {}

    for descriptor in descriptors:
        if not descriptor.is_enabled(variables):
            logger.debug("name: %s, skipped by precondition %r", descriptor.name, descriptor.precondition)
            continue

        match descriptor:
            case ObisField():
                _resolve_obis(descriptor, data, variables)
            case FormulaField():
                calculate([descriptor], variables)

    fill_defaults(variables)

    return variables


def decode(telegram: str, descriptors: Iterable[ObisField | FormulaField] | None = None) -> dict[str, Any]:
    """Decode a telegram into a new mapping, using the bundled eHZ fields by default."""
    result: dict[str, Any] = {}
    resolve(telegram, default_fields() if descriptors is None else descriptors, result)
    return result
