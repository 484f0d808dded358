"""
smlmeter: SML/OBIS telegram decoding for electronic household meters (eHZ).

Decodes the hex telegram an eHZ sends over its infrared interface into a
mapping of named values, driven by a declarative field configuration.
"""

from __future__ import annotations

from .exceptions import SmlConfigurationError, SmlDecodingError, SmlError
from .fields import FormulaField, ObisField, default_fields, load_fields
from .resolver import decode, resolve

__version__ = "0.1.0"

__all__ = [
    "FormulaField",
    "ObisField",
    "SmlConfigurationError",
    "SmlDecodingError",
    "SmlError",
    "__version__",
    "decode",
    "default_fields",
    "load_fields",
    "resolve",
]
