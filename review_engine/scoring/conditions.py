"""
Rubric condition language.

Rubric authors write conditions such as

    terminationRights == 'equal' and sameNoticePeriod
    noticePeriodDays <= 60 and windDownDefined == true
    clawback in ['basic', 'weak'] or fdv is null

They are parsed once (pyparsing) into a small AST of comparison / boolean
nodes and evaluated against the wire-named facts mapping. Nothing is ever
handed to a general-purpose evaluator.

Grammar, loosest binding first:
    expr       := expr "or" expr | expr "and" expr | "not" expr
                | comparison | "(" expr ")"
    comparison := value [ CMP value
                        | "is" ["not"] "null"
                        | ["not"] "in" "[" value ("," value)* "]" ]
    value      := NUMBER | STRING | true | false | null | field
    field      := IDENT ["." IDENT]        (only a leading "facts." is allowed)

``&&``, ``||``, ``!``, ``===`` and ``!==`` are accepted as synonyms so
older rubric text keeps working.

Null semantics: ordering comparisons against null are false, equality
works as expected, and a bare field used as a condition must be a boolean
(null counts as false).
"""
from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional, Union

import pyparsing as pp
import structlog

from review_engine.core.errors import (
    ConditionError,
    ConditionEvaluationError,
    ConditionSyntaxError,
)
from review_engine.core.metrics import CONDITION_ERRORS

logger = structlog.get_logger()

# infix_notation backtracks heavily without memoisation
pp.ParserElement.enable_packrat()

# ═══════════════════════════════════════════════════════════════
# AST
# ═══════════════════════════════════════════════════════════════

def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _equals(left: Any, right: Any) -> bool:
    # bool is an int subclass; keep True from matching 1
    if isinstance(left, bool) != isinstance(right, bool):
        return False
    return left == right


@dataclass(frozen=True)
class Literal:
    value: Any

    def value_of(self, facts: Mapping[str, Any], source: str) -> Any:
        return self.value


@dataclass(frozen=True)
class FieldRef:
    name: str

    def value_of(self, facts: Mapping[str, Any], source: str) -> Any:
        if self.name not in facts:
            raise ConditionEvaluationError(f"unknown field '{self.name}'", source)
        return facts[self.name]


@dataclass(frozen=True)
class Compare:
    op: str
    left: "Node"
    right: "Node"

    def value_of(self, facts: Mapping[str, Any], source: str) -> bool:
        lhs = self.left.value_of(facts, source)
        rhs = self.right.value_of(facts, source)
        if self.op == "==":
            return _equals(lhs, rhs)
        if self.op == "!=":
            return not _equals(lhs, rhs)
        if lhs is None or rhs is None:
            return False
        if not (is_number(lhs) and is_number(rhs)):
            raise ConditionEvaluationError(
                f"'{self.op}' needs numbers, got {type(lhs).__name__} and {type(rhs).__name__}",
                source,
            )
        if self.op == "<":
            return lhs < rhs
        if self.op == "<=":
            return lhs <= rhs
        if self.op == ">":
            return lhs > rhs
        return lhs >= rhs


@dataclass(frozen=True)
class IsNull:
    operand: "Node"
    negated: bool = False

    def value_of(self, facts: Mapping[str, Any], source: str) -> bool:
        is_null = self.operand.value_of(facts, source) is None
        return not is_null if self.negated else is_null


@dataclass(frozen=True)
class InList:
    operand: "Node"
    options: tuple["Node", ...]
    negated: bool = False

    def value_of(self, facts: Mapping[str, Any], source: str) -> bool:
        value = self.operand.value_of(facts, source)
        found = any(_equals(value, opt.value_of(facts, source)) for opt in self.options)
        return not found if self.negated else found


@dataclass(frozen=True)
class Not:
    operand: "Node"

    def value_of(self, facts: Mapping[str, Any], source: str) -> bool:
        return not _truth(self.operand, facts, source)


@dataclass(frozen=True)
class BoolOp:
    op: str  # and | or
    operands: tuple["Node", ...]

    def value_of(self, facts: Mapping[str, Any], source: str) -> bool:
        if self.op == "and":
            return all(_truth(o, facts, source) for o in self.operands)
        return any(_truth(o, facts, source) for o in self.operands)


Node = Union[Literal, FieldRef, Compare, IsNull, InList, Not, BoolOp]


def _truth(node: Node, facts: Mapping[str, Any], source: str) -> bool:
    value = node.value_of(facts, source)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ConditionEvaluationError(
            f"expected a boolean, got {type(value).__name__} {value!r}", source
        )
    return value


# ═══════════════════════════════════════════════════════════════
# Grammar
# ═══════════════════════════════════════════════════════════════

_SYNONYMS = {"===": "==", "!==": "!="}


def _number(tokens: pp.ParseResults) -> Literal:
    text = tokens[0]
    number = float(text)
    return Literal(int(number) if number.is_integer() and "." not in text else number)


def _field(s: str, loc: int, tokens: pp.ParseResults) -> FieldRef:
    parts = tokens[0].split(".")
    if parts[0] == "facts" and len(parts) > 1:
        parts = parts[1:]
    if len(parts) != 1:
        raise pp.ParseFatalException(s, loc, f"nested field '{'.'.join(parts)}' is not supported")
    return FieldRef(parts[0])


def _comparison(tokens: pp.ParseResults) -> Node:
    left = tokens[0]
    if len(tokens) == 1:
        return left
    tail = tokens[1]
    if tail[0] == "is":
        return IsNull(left, negated=tail[1] == "not")
    if tail[0] in ("not", "in"):
        return InList(left, tuple(tail[-1]), negated=tail[0] == "not")
    return Compare(tail[0], left, tail[1])


def _not(tokens: pp.ParseResults) -> Not:
    return Not(tokens[0][-1])


def _bool_op(tokens: pp.ParseResults) -> BoolOp:
    group = tokens[0]
    return BoolOp(group[1], tuple(group[0::2]))


def _build_grammar() -> pp.ParserElement:
    and_kw, or_kw, not_kw, in_kw, is_kw = map(pp.Keyword, ("and", "or", "not", "in", "is"))
    reserved = pp.MatchFirst(
        pp.Keyword(k) for k in ("and", "or", "not", "in", "is", "true", "false", "null")
    )

    number = pp.Regex(r"-?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?").set_parse_action(_number)
    string = (
        pp.QuotedString("'", esc_char="\\") | pp.QuotedString('"', esc_char="\\")
    ).set_parse_action(lambda t: Literal(t[0]))
    constant = (
        pp.Keyword("true").set_parse_action(pp.replace_with(Literal(True)))
        | pp.Keyword("false").set_parse_action(pp.replace_with(Literal(False)))
        | pp.Keyword("null").set_parse_action(pp.replace_with(Literal(None)))
    )
    field = (
        ~reserved + pp.Regex(r"[A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)*")
    ).set_parse_action(_field)
    value = (number | string | constant | field).set_name("value")

    comparator = pp.one_of("=== !== == != <= >= < >").set_parse_action(
        lambda t: _SYNONYMS.get(t[0], t[0])
    )
    compare_tail = comparator - value
    null_tail = is_kw - pp.Opt(not_kw) + pp.Keyword("null")
    options = pp.Suppress("[") + pp.Group(pp.DelimitedList(value)) + pp.Suppress("]")
    in_tail = pp.Opt(not_kw) + in_kw - options
    comparison = value + pp.Opt(pp.Group(compare_tail | null_tail | in_tail))
    comparison.set_parse_action(_comparison)

    not_op = (not_kw | pp.Regex(r"!(?!=)")).set_parse_action(pp.replace_with("not"))
    and_op = (and_kw | pp.Literal("&&")).set_parse_action(pp.replace_with("and"))
    or_op = (or_kw | pp.Literal("||")).set_parse_action(pp.replace_with("or"))

    return pp.infix_notation(comparison, [
        (not_op, 1, pp.OpAssoc.RIGHT, _not),
        (and_op, 2, pp.OpAssoc.LEFT, _bool_op),
        (or_op, 2, pp.OpAssoc.LEFT, _bool_op),
    ])


_GRAMMAR = _build_grammar()


def compile_condition(text: str) -> Node:
    """Parse a condition into its AST. Raises ConditionSyntaxError."""
    try:
        return _GRAMMAR.parse_string(text, parse_all=True)[0]
    except pp.ParseBaseException as e:
        raise ConditionSyntaxError(e.msg, text, e.loc) from None
    except RecursionError:
        raise ConditionSyntaxError("expression nested too deeply", text, 0) from None


def referenced_fields(node: Node) -> set[str]:
    if isinstance(node, FieldRef):
        return {node.name}
    if isinstance(node, Compare):
        return referenced_fields(node.left) | referenced_fields(node.right)
    if isinstance(node, (IsNull, Not)):
        return referenced_fields(node.operand)
    if isinstance(node, InList):
        names = referenced_fields(node.operand)
        for item in node.options:
            names |= referenced_fields(item)
        return names
    if isinstance(node, BoolOp):
        names: set[str] = set()
        for operand in node.operands:
            names |= referenced_fields(operand)
        return names
    return set()


# ═══════════════════════════════════════════════════════════════
# Evaluator: the fail-closed boundary used by the aggregator
# ═══════════════════════════════════════════════════════════════

class ConditionEvaluator:
    """
    Holds the compiled form of a fixed set of conditions (the rubric's)
    and evaluates them against facts.

    Any parse or evaluation error makes the condition false; the error is
    logged for the rubric author and counted, never raised.
    """

    def __init__(self, conditions: Iterable[str] = ()):
        compiled: dict[str, Node | ConditionSyntaxError] = {}
        for text in conditions:
            if text in compiled:
                continue
            try:
                compiled[text] = compile_condition(text)
            except ConditionSyntaxError as e:
                logger.warning(
                    "condition_compile_failed",
                    condition=text,
                    error=str(e),
                    position=e.position,
                )
                compiled[text] = e
        self._compiled = MappingProxyType(compiled)

    @property
    def syntax_errors(self) -> dict[str, ConditionSyntaxError]:
        return {t: c for t, c in self._compiled.items() if isinstance(c, ConditionSyntaxError)}

    def evaluate(self, condition: str, facts: Mapping[str, Any]) -> bool:
        node: Optional[Node | ConditionSyntaxError] = self._compiled.get(condition)
        if isinstance(node, ConditionSyntaxError):
            return _fail_closed(node)
        try:
            if node is None:
                # Ad-hoc condition outside the rubric: compiled per call, not cached
                node = compile_condition(condition)
            return _truth(node, facts, condition)
        except ConditionError as e:
            return _fail_closed(e)
        except RecursionError:
            return _fail_closed(ConditionEvaluationError("expression nested too deeply", condition))


def _fail_closed(error: ConditionError) -> bool:
    reason = "syntax" if isinstance(error, ConditionSyntaxError) else "evaluation"
    CONDITION_ERRORS.labels(reason=reason).inc()
    logger.warning(
        "condition_evaluation_failed",
        condition=error.condition,
        reason=reason,
        error=str(error),
    )
    return False
