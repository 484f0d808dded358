"""SML value representation.

Values extracted from a telegram are either numbers or octet strings.
Numbers are plain ``Decimal`` instances (already scaled); octet strings keep
their raw payload bytes next to the ISO-8859-1 text so byte-level decoders
never have to re-encode text.
"""

from __future__ import annotations

from decimal import Decimal


class OctetString(str):
    """Octet string payload as text, with the payload bytes in ``raw``."""

    raw: bytes

    def __new__(cls, raw: bytes) -> OctetString:
        # Create str object from the latin-1 text, every byte maps to one character
        instance = super().__new__(cls, bytes(raw).decode("iso-8859-1"))
        instance.raw = bytes(raw)
        return instance

    def __repr__(self) -> str:
        return f"OctetString({self.raw!r})"


ExtractedValue = Decimal | OctetString
