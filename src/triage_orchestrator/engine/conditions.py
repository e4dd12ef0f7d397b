"""Activation conditions for task declarations.

Conditions are small boolean expressions over the merged run context, e.g.::

    selected_flowchart == 'dor_toracica' AND final_priority_color IN ['vermelho', 'laranja']

Expressions are parsed once into a tiny AST when a declaration is built and
evaluated against a context snapshot when the task is about to run.

Supported forms (keywords are case-sensitive):

- ``key == 'literal'`` / ``key != 'literal'``
- ``key IN ['a', 'b']``
- ``key CONTAINS 'literal'``
- ``expr AND expr`` / ``expr OR expr``
- ``key`` (truthiness)

There is no grouping. The expression is split on top-level ``AND`` first and
each conjunct on ``OR``, so ``a AND b OR c`` reads as ``a AND (b OR c)``.
Parentheses are not supported.

Evaluation never raises. An expression that cannot be parsed evaluates to
``False`` (the task is skipped) and a warning is logged.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol

from triage_orchestrator.engine.errors import ConditionEvaluationError

logger = logging.getLogger(__name__)

_KEY = r"[A-Za-z_]\w*"
_CONTAINS_RE = re.compile(rf"^({_KEY})\s+CONTAINS\s+(.+)$", re.DOTALL)
_IN_RE = re.compile(rf"^({_KEY})\s+IN\s+\[(.*)\]$", re.DOTALL)
_COMPARE_RE = re.compile(rf"^({_KEY})\s*(==|!=)\s*(.+)$", re.DOTALL)
_IDENTIFIER_RE = re.compile(rf"^{_KEY}$")
_BARE_LITERAL_RE = re.compile(r"^[\w.+-]+$")


class Condition(Protocol):
    """A parsed condition node."""

    def evaluate(self, data: Mapping[str, Any]) -> bool: ...


def _loosely_equal(value: Any, literal: str) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return literal == ("true" if value else "false")
    if isinstance(value, (int, float)):
        try:
            return float(literal) == value
        except ValueError:
            return False
    return str(value) == literal


@dataclass(frozen=True, slots=True)
class Equality:
    key: str
    literal: str
    negated: bool = False

    def evaluate(self, data: Mapping[str, Any]) -> bool:
        equal = _loosely_equal(data.get(self.key), self.literal)
        return not equal if self.negated else equal


@dataclass(frozen=True, slots=True)
class Membership:
    key: str
    literals: tuple[str, ...]

    def evaluate(self, data: Mapping[str, Any]) -> bool:
        value = data.get(self.key)
        return any(_loosely_equal(value, literal) for literal in self.literals)


@dataclass(frozen=True, slots=True)
class Substring:
    key: str
    literal: str

    def evaluate(self, data: Mapping[str, Any]) -> bool:
        value = data.get(self.key)
        return isinstance(value, str) and self.literal in value


@dataclass(frozen=True, slots=True)
class Identifier:
    key: str

    def evaluate(self, data: Mapping[str, Any]) -> bool:
        return bool(data.get(self.key))


@dataclass(frozen=True, slots=True)
class And:
    parts: tuple[Condition, ...]

    def evaluate(self, data: Mapping[str, Any]) -> bool:
        return all(part.evaluate(data) for part in self.parts)


@dataclass(frozen=True, slots=True)
class Or:
    parts: tuple[Condition, ...]

    def evaluate(self, data: Mapping[str, Any]) -> bool:
        return any(part.evaluate(data) for part in self.parts)


@dataclass(frozen=True, slots=True)
class Invalid:
    """Placeholder for an expression that failed to parse."""

    source: str
    reason: str

    def evaluate(self, data: Mapping[str, Any]) -> bool:
        logger.warning(
            "Condition is malformed; treating as unmet",
            extra={"condition": self.source, "reason": self.reason},
        )
        return False


def _split_top_level(text: str, separator: str) -> list[str]:
    """Split on `separator` outside quotes and brackets."""

    parts: list[str] = []
    quote: str | None = None
    depth = 0
    start = 0
    i = 0
    while i < len(text):
        ch = text[i]
        if quote is not None:
            if ch == quote:
                quote = None
        elif ch in ("'", '"'):
            quote = ch
        elif ch == "[":
            depth += 1
        elif ch == "]":
            depth -= 1
        elif depth == 0 and text.startswith(separator, i):
            parts.append(text[start:i])
            i += len(separator)
            start = i
            continue
        i += 1
    parts.append(text[start:])
    return parts


def _parse_literal(raw: str) -> str:
    token = raw.strip()
    if len(token) >= 2 and token[0] == token[-1] and token[0] in ("'", '"'):
        return token[1:-1]
    if _BARE_LITERAL_RE.match(token):
        return token
    raise ConditionEvaluationError(f"Invalid literal: {raw!r}")


def _parse_atom(text: str) -> Condition:
    text = text.strip()
    if not text:
        raise ConditionEvaluationError("Empty operand")

    match = _CONTAINS_RE.match(text)
    if match:
        return Substring(key=match.group(1), literal=_parse_literal(match.group(2)))

    match = _IN_RE.match(text)
    if match:
        body = match.group(2).strip()
        items = _split_top_level(body, ",") if body else []
        return Membership(key=match.group(1), literals=tuple(_parse_literal(i) for i in items))

    match = _COMPARE_RE.match(text)
    if match:
        key, op, literal = match.groups()
        return Equality(key=key, literal=_parse_literal(literal), negated=op == "!=")

    if _IDENTIFIER_RE.match(text):
        return Identifier(key=text)

    raise ConditionEvaluationError(f"Unrecognised expression: {text!r}")


def _parse_disjunction(text: str) -> Condition:
    parts = _split_top_level(text, " OR ")
    if len(parts) == 1:
        return _parse_atom(parts[0])
    return Or(parts=tuple(_parse_atom(p) for p in parts))


def parse_condition(expression: str) -> Condition:
    """Parse an expression into a condition tree.

    Raises:
        ConditionEvaluationError: If the expression is malformed.
    """

    text = expression.strip()
    if not text:
        raise ConditionEvaluationError("Empty condition")
    parts = _split_top_level(text, " AND ")
    if len(parts) == 1:
        return _parse_disjunction(parts[0])
    return And(parts=tuple(_parse_disjunction(p) for p in parts))


def compile_condition(expression: str | None) -> Condition | None:
    """Parse an optional expression, turning parse failures into `Invalid`.

    Returns None when there is no condition (the task always runs).
    """

    if expression is None or not expression.strip():
        return None
    try:
        return parse_condition(expression)
    except ConditionEvaluationError as e:
        logger.warning(
            "Failed to parse condition",
            extra={"condition": expression, "reason": str(e)},
        )
        return Invalid(source=expression, reason=str(e))


def evaluate_condition(condition: Condition | None, data: Mapping[str, Any]) -> bool:
    """Evaluate a parsed condition; a missing condition is always met."""

    if condition is None:
        return True
    try:
        return condition.evaluate(data)
    except Exception as e:
        logger.warning(
            "Failed to evaluate condition",
            extra={"condition": repr(condition), "reason": str(e)},
        )
        return False


def evaluate(expression: str | None, context: Mapping[str, Any]) -> bool:
    """Parse and evaluate `expression` against `context` in one step."""

    return evaluate_condition(compile_condition(expression), context)


def referenced_keys(condition: Condition | None) -> set[str]:
    """Context keys a condition reads."""

    if condition is None:
        return set()
    if isinstance(condition, (And, Or)):
        keys: set[str] = set()
        for part in condition.parts:
            keys |= referenced_keys(part)
        return keys
    key = getattr(condition, "key", None)
    return {key} if isinstance(key, str) else set()
