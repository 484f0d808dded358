"""Declarative field descriptors.

A field configuration is an ordered list of descriptors, each producing one
output key. Two kinds exist, selected by the ``kind`` tag:

    obis     Read the entry tagged by ``obis`` from the telegram, optionally
             scaled by ``factor``, shifted by ``offset`` and rounded to ``digits``
    formula  Compute ``formula`` from output keys resolved earlier in the list

Either kind may carry a ``precondition``: a formula over the values resolved so
far. The descriptor is skipped for the cycle unless it evaluates to non-zero.

Descriptors are validated with pydantic when the configuration is loaded, so
a bad identifier, an unknown kind or an invalid formula fails at startup
rather than during a decode cycle.
"""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from importlib import resources
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from .exceptions import SmlConfigurationError
from .formula import Formula, compile_formula
from .protocol import ExtractedValue, parse_identifier

DEFAULT_FIELDS_RESOURCE = "ehz_fields.json"

MAX_DIGITS = 12  # Rounding precision limit, keeps meter readings within the 28-digit context


def _compile_checked(source: str) -> Formula:
    try:
        return compile_formula(source)
    except SmlConfigurationError as e:
        raise ValueError(str(e)) from e


class _Descriptor(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    precondition: str | None = None

    @field_validator("name")
    @classmethod
    def name_must_not_be_empty(cls, value: str) -> str:
        value = value.strip()

        if not value:
            raise ValueError("Field name cannot be empty")

        return value

    @field_validator("precondition")
    @classmethod
    def precondition_must_be_arithmetic(cls, value: str | None) -> str | None:
        if value is not None:
            _compile_checked(value)

        return value

    def is_enabled(self, variables: Mapping[str, Any]) -> bool:
        """Return whether the descriptor applies to this cycle.

        Without a precondition it always applies. Otherwise the precondition is
        evaluated over the current values and must give a non-zero result; a
        missing operand disables the descriptor.
        """
        if self.precondition is None:
            return True

        result = compile_formula(self.precondition).evaluate(variables)
        return result is not None and result != 0


class ObisField(_Descriptor):
    """Output key read from an OBIS entry."""

    kind: Literal["obis"] = "obis"
    obis: str
    factor: Decimal | None = None
    offset: Decimal | None = None
    digits: int | None = Field(default=None, ge=0, le=MAX_DIGITS)

    @field_validator("obis")
    @classmethod
    def obis_must_be_hex(cls, value: str) -> str:
        value = value.strip().lower()

        try:
            parse_identifier(value)
        except SmlConfigurationError as e:
            raise ValueError(str(e)) from e

        return value

    def post_process(self, value: ExtractedValue) -> Decimal | str:
        """Apply factor, offset and rounding to numeric values.

        Octet strings are returned as plain text, unchanged.
        """
        if not isinstance(value, Decimal):
            return str(value)

        if self.factor is not None:
            value *= self.factor

        if self.offset is not None:
            value += self.offset

        if self.digits is not None:
            try:
                value = value.quantize(Decimal(1).scaleb(-self.digits), rounding=ROUND_HALF_UP)
            except InvalidOperation as e:
                raise SmlConfigurationError(f"Cannot round {self.name} = {value} to {self.digits} digits") from e

        return value


class FormulaField(_Descriptor):
    """Output key computed from other output keys."""

    kind: Literal["formula"]
    formula: str

    @field_validator("formula")
    @classmethod
    def formula_must_be_arithmetic(cls, value: str) -> str:
        _compile_checked(value)
        return value

    @property
    def compiled(self) -> Formula:
        return compile_formula(self.formula)


FieldDescriptor = Annotated[ObisField | FormulaField, Field(discriminator="kind")]

_FIELD_LIST_ADAPTER: TypeAdapter[list[FieldDescriptor]] = TypeAdapter(list[FieldDescriptor])


def load_fields(source: str | os.PathLike[str] | list[dict[str, Any]]) -> list[ObisField | FormulaField]:
    """Load and validate a field configuration.

    Args:
        source: Path to a JSON file holding a list of descriptors, or the list itself

    Returns:
        Descriptors in configuration order

    Raises:
        SmlConfigurationError: If the file cannot be read, a descriptor is invalid
                              or two descriptors share an output name
    """
    if isinstance(source, list):
        raw: Any = source
    else:
        try:
            with open(source, encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise SmlConfigurationError(f"Cannot read field configuration {source}: {e}") from e

    return _validate(raw)


def default_fields() -> list[ObisField | FormulaField]:
    """Return the bundled eHZ field configuration."""
    text = resources.files(__package__).joinpath(DEFAULT_FIELDS_RESOURCE).read_text(encoding="utf-8")
    return _validate(json.loads(text))


def _validate(raw: Any) -> list[ObisField | FormulaField]:
    try:
        fields = _FIELD_LIST_ADAPTER.validate_python(raw)
    except ValidationError as e:
        raise SmlConfigurationError(f"Invalid field configuration: {e}") from e

    seen: set[str] = set()

    for field in fields:
        if field.name in seen:
            raise SmlConfigurationError(f"Duplicate output name in field configuration: {field.name}")
        seen.add(field.name)

    return fields
