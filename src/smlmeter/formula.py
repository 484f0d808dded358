"""Arithmetic formulas over resolved output values.

Formulas are Python expressions restricted to Decimal arithmetic:
numbers, variable names, ``+ - * /``, unary ``+``/``-``, parentheses, a single
comparison (``< <= > >= == !=``, giving 1 or 0) and the functions ``abs``,
``min``, ``max`` and ``round``. They are parsed once with
:mod:`ast`, checked against that whitelist and evaluated by walking the tree.
"""

from __future__ import annotations

import ast
import logging
import operator
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from functools import lru_cache
from typing import Any

from .exceptions import SmlConfigurationError

logger = logging.getLogger(__name__)


def _round(value: Decimal, digits: Decimal = Decimal(0)) -> Decimal:
    return value.quantize(Decimal(1).scaleb(-int(digits)), rounding=ROUND_HALF_UP)


_BINARY_OPERATORS: dict[type[ast.operator], Callable[[Decimal, Decimal], Decimal]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
}

_UNARY_OPERATORS: dict[type[ast.unaryop], Callable[[Decimal], Decimal]] = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}

_COMPARISONS: dict[type[ast.cmpop], Callable[[Decimal, Decimal], bool]] = {
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
}

# name -> (function, allowed argument counts)
_FUNCTIONS: dict[str, tuple[Callable[..., Decimal], range]] = {
    "abs": (abs, range(1, 2)),
    "min": (min, range(2, 16)),
    "max": (max, range(2, 16)),
    "round": (_round, range(1, 3)),
}


def _check(node: ast.AST, names: set[str]) -> None:
    """Reject every node outside the arithmetic whitelist, collecting variable names."""
    match node:
        case ast.Expression(body=body):
            _check(body, names)
        case ast.Constant(value=value) if isinstance(value, int | float) and not isinstance(value, bool):
            pass
        case ast.Name(id=name):
            names.add(name)
        case ast.BinOp(left=left, op=op, right=right) if type(op) in _BINARY_OPERATORS:
            _check(left, names)
            _check(right, names)
        case ast.UnaryOp(op=op, operand=operand) if type(op) in _UNARY_OPERATORS:
            _check(operand, names)
        case ast.Compare(left=left, ops=[op], comparators=[right]) if type(op) in _COMPARISONS:
            _check(left, names)
            _check(right, names)
        case ast.Call(func=ast.Name(id=function), args=args, keywords=[]) if (
            function in _FUNCTIONS and len(args) in _FUNCTIONS[function][1]
        ):
            for arg in args:
                _check(arg, names)
        case _:
            raise SmlConfigurationError(f"Unsupported formula element: {ast.dump(node)}")


def _to_operand(value: Any) -> Decimal | None:
    """Convert a stored value to a Decimal operand, None if it is not a number."""
    if value is None or isinstance(value, str | bool):
        return None

    if isinstance(value, Decimal):
        return value

    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


@dataclass(frozen=True)
class Formula:
    """Compiled formula.

    Attributes:
        source: Formula text as configured
        names: Variable names the formula reads
    """

    source: str
    names: frozenset[str]
    _tree: ast.Expression

    def evaluate(self, variables: Mapping[str, Any]) -> Decimal | None:
        """Evaluate against variables.

        Returns:
            Result, or None if an operand is missing, not numeric, or the
            expression divides by zero
        """
        operands: dict[str, Decimal] = {}

        for name in self.names:
            value = variables.get(name)
            operand = _to_operand(value)

            if operand is None:
                logger.debug("Formula %r: operand %s is not available (%r)", self.source, name, value)
                return None

            operands[name] = operand

        try:
            return self._evaluate(self._tree.body, operands)
        except (ZeroDivisionError, InvalidOperation) as e:
            logger.debug("Formula %r cannot be evaluated: %r", self.source, e)
            return None

    def _evaluate(self, node: ast.AST, operands: Mapping[str, Decimal]) -> Decimal:
        match node:
            case ast.Constant(value=value):
                return Decimal(str(value))
            case ast.Name(id=name):
                return operands[name]
            case ast.BinOp(left=left, op=op, right=right):
                return _BINARY_OPERATORS[type(op)](self._evaluate(left, operands), self._evaluate(right, operands))
            case ast.UnaryOp(op=op, operand=operand):
                return _UNARY_OPERATORS[type(op)](self._evaluate(operand, operands))
            case ast.Compare(left=left, ops=[op], comparators=[right]):
                result = _COMPARISONS[type(op)](self._evaluate(left, operands), self._evaluate(right, operands))
                return Decimal(int(result))
            case ast.Call(func=ast.Name(id=function), args=args):
                return _FUNCTIONS[function][0](*(self._evaluate(arg, operands) for arg in args))

        raise AssertionError(f"Formula node not validated: {ast.dump(node)}")


@lru_cache(maxsize=256)
def compile_formula(source: str) -> Formula:
    """Parse and validate a formula.

    Raises:
        SmlConfigurationError: If the formula is not valid Python syntax or uses
                              anything beyond plain arithmetic
    """
    try:
        tree = ast.parse(source.strip(), mode="eval")
    except SyntaxError as e:
        raise SmlConfigurationError(f"Invalid formula {source!r}: {e.msg}") from e

    names: set[str] = set()
    _check(tree, names)

    return Formula(source=source, names=frozenset(names), _tree=tree)
