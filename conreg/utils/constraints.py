"""Parsing of linear equality constraints written as text.

Turns strings such as ``"x1 + 2*x2 = 3"`` or ``"_b[Ford] = _b[GM]"`` into a
``(terms, value)`` pair for ``sum(terms[k] * beta[k]) = value``. Several
equalities may be given at once, separated by ``;`` or ``,``.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from conreg.core.errors import InvalidArgumentError, UnknownKeyError

if TYPE_CHECKING:
    from collections.abc import Hashable, Sequence

LOGGER = logging.getLogger(__name__)

__all__ = ["parse_linear_equality", "split_constraint_items"]

_NUM = r"(?:[+-]?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?|[+-]?\.\d+(?:[eE][+-]?\d+)?)"

_TERM_PAT = re.compile(
    rf"(?P<sign>[+-])\s*(?:(?P<c>{_NUM})\s*\*?\s*)?"
    rf"(?:_b\[(?P<bv>.+?)\]|(?P<id>[A-Za-z_][A-Za-z0-9_.]*)|(?P<num>{_NUM}))",
)


def split_constraint_items(body: str) -> list[str]:
    """Split a constraints body by ';' or ',' but not inside brackets.

    Empty items (e.g. a trailing separator) are rejected.
    """
    items, buf, depth = [], [], 0
    for ch in body:
        if ch == "[":
            depth += 1
        elif ch == "]":
            depth = max(0, depth - 1)
        elif ch in ",;" and depth == 0:
            s = "".join(buf).strip()
            if not s:
                msg = "Empty/trailing constraint separator detected; check for extra ',' or ';'."
                raise InvalidArgumentError(msg)
            items.append(s)
            buf = []
            continue
        buf.append(ch)
    s = "".join(buf).strip()
    if s:
        items.append(s)
    return items


def _parse_side(
    side: str, names: dict[str, Hashable],
) -> tuple[dict[Hashable, float], float]:
    """Parse one side of an equality into (coefficients, constant).

    Supported tokens:
      - _b[name]  (exact regressor name, may contain spaces or symbols)
      - bare identifiers matching a regressor name
      - numeric constants
      - an optional numeric multiplier such as '2 * x' or '2x'
    """
    s = side.strip().replace("−", "-")
    if not s:
        msg = "Empty side in constraint expression."
        raise InvalidArgumentError(msg)
    if s[0] not in "+-":
        s = "+" + s
    coeffs: dict[Hashable, float] = {}
    const_val = 0.0
    pos = 0
    for m in _TERM_PAT.finditer(s):
        if s[pos : m.start()].strip():
            msg = f"Unrecognized token in constraint: '{s[pos : m.start()].strip()}'"
            raise InvalidArgumentError(msg)
        pos = m.end()
        sign = -1.0 if m.group("sign") == "-" else 1.0
        c = float(m.group("c")) if m.group("c") is not None else 1.0
        name = m.group("bv") if m.group("bv") is not None else m.group("id")
        if name is not None:
            if name not in names:
                msg = f"'{name}' is not a regressor of this model."
                raise UnknownKeyError(msg)
            key = names[name]
            coeffs[key] = coeffs.get(key, 0.0) + sign * c
        else:
            if m.group("c") is not None:
                msg = f"Dangling multiplier in constraint: '{m.group(0).strip()}'"
                raise InvalidArgumentError(msg)
            const_val += sign * float(m.group("num"))
    if s[pos:].strip():
        msg = f"Unparsed tail in constraint: '{s[pos:].strip()}'"
        raise InvalidArgumentError(msg)
    return coeffs, const_val


def parse_linear_equality(
    expression: str, regressor_keys: Sequence[Hashable],
) -> tuple[dict[Hashable, float], float]:
    """Convert ``"lhs = rhs"`` into ``(terms, value)``.

    Terms are moved to the left and constants to the right, so
    ``"2*x1 = x3 - 1"`` gives ``({x1: 2.0, x3: -1.0}, -1.0)``. Regressor
    keys are matched by ``str(key)``; terms that cancel are dropped.

    Raises
    ------
    InvalidArgumentError
        If the expression is not a single linear equality or has no terms.
    UnknownKeyError
        If an identifier is not among ``regressor_keys``.

    """
    names = {str(k): k for k in regressor_keys}
    eq = expression.strip().replace("==", "=")
    parts = eq.split("=")
    if len(parts) != 2:  # noqa: PLR2004
        msg = f"Constraint must contain one '=': '{expression}'"
        raise InvalidArgumentError(msg)
    cl, al = _parse_side(parts[0], names)
    cr, ar = _parse_side(parts[1], names)
    terms: dict[Hashable, float] = {}
    for key in regressor_keys:
        coef = cl.get(key, 0.0) - cr.get(key, 0.0)
        if coef != 0.0:
            terms[key] = coef
    if not terms:
        msg = f"Constraint has no regressor terms: '{expression}'"
        raise InvalidArgumentError(msg)
    value = float(ar - al)
    LOGGER.debug("parsed constraint '%s' -> %s = %s", expression, terms, value)
    return terms, value
