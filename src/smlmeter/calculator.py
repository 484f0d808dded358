"""Formula descriptor evaluation over already resolved output values."""

from __future__ import annotations

import logging
from collections.abc import Iterable, MutableMapping
from typing import Any

from .exceptions import SmlConfigurationError
from .fields import FormulaField

logger = logging.getLogger(__name__)


def calculate(descriptors: Iterable[FormulaField], variables: MutableMapping[str, Any]) -> None:
    """Evaluate formula descriptors in order, writing each result into variables.

    A descriptor may read keys written by descriptors before it in the same
    call. Results are None when an operand is not available.

    Raises:
        SmlConfigurationError: If a descriptor is not a FormulaField
    """
    for descriptor in descriptors:
        if not isinstance(descriptor, FormulaField):
            raise SmlConfigurationError(f"Cannot calculate descriptor of type {type(descriptor).__name__}")

        value = descriptor.compiled.evaluate(variables)
        variables[descriptor.name] = value
        logger.debug("name: %s, value: %s", descriptor.name, value)
