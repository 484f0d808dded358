"""SML exception classes."""

from __future__ import annotations


class SmlError(Exception):
    """Base exception for all SML decoding errors."""


class SmlDecodingError(SmlError):
    """Telegram cannot be interpreted as bytes (non-hex characters, odd length)."""


class SmlConfigurationError(SmlError):
    """Field configuration errors (unsupported descriptor kind, bad identifier, etc)."""
