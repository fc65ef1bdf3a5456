"""
Unit tests for the rubric condition language.
Each test pins one piece of syntax or null / type semantics.
"""
import pytest
from prometheus_client import REGISTRY

from review_engine.core.errors import ConditionSyntaxError
from review_engine.schemas.facts import ExtractedFacts
from review_engine.scoring.conditions import (
    BoolOp,
    ConditionEvaluator,
    FieldRef,
    Not,
    compile_condition,
    referenced_fields,
)


def _make_facts(**overrides) -> dict:
    return ExtractedFacts(**overrides).as_condition_facts()


def _errors(reason: str) -> float:
    value = REGISTRY.get_sample_value(
        "review_engine_condition_errors_total", {"reason": reason}
    )
    return value or 0.0


EVAL = ConditionEvaluator()


class TestComparisons:
    def test_string_equality(self):
        facts = _make_facts(termination_rights="equal")
        assert EVAL.evaluate("terminationRights == 'equal'", facts) is True
        assert EVAL.evaluate("terminationRights == 'oneSided'", facts) is False

    def test_inequality(self):
        facts = _make_facts(termination_rights="equal")
        assert EVAL.evaluate("terminationRights != 'oneSided'", facts) is True

    def test_numeric_range(self):
        facts = _make_facts(notice_period_days=45)
        assert EVAL.evaluate("noticePeriodDays >= 30 and noticePeriodDays <= 60", facts) is True
        assert EVAL.evaluate("noticePeriodDays > 60", facts) is False

    def test_double_quoted_string(self):
        facts = _make_facts(clawback="weak")
        assert EVAL.evaluate('clawback == "weak"', facts) is True

    def test_boolean_literal(self):
        facts = _make_facts(wind_down_defined=True)
        assert EVAL.evaluate("windDownDefined == true", facts) is True
        assert EVAL.evaluate("windDownDefined == false", facts) is False

    def test_boolean_never_equals_number(self):
        facts = _make_facts(wind_down_defined=True)
        assert EVAL.evaluate("windDownDefined == 1", facts) is False

    def test_decimal_and_negative_literals(self):
        facts = _make_facts(premium_percent=-2.5)
        assert EVAL.evaluate("premiumPercent < -1.5", facts) is True


class TestNullSemantics:
    def test_ordering_against_null_is_false(self):
        facts = _make_facts()
        assert EVAL.evaluate("noticePeriodDays > 0", facts) is False
        assert EVAL.evaluate("noticePeriodDays <= 1000", facts) is False

    def test_equality_against_null(self):
        facts = _make_facts()
        assert EVAL.evaluate("clawback == 'weak'", facts) is False
        assert EVAL.evaluate("clawback == null", facts) is True

    def test_is_null(self):
        assert EVAL.evaluate("fdv is null", _make_facts()) is True
        assert EVAL.evaluate("fdv is not null", _make_facts(fdv=1e9)) is True

    def test_bare_null_boolean_is_false(self):
        assert EVAL.evaluate("windDownDefined", _make_facts()) is False


class TestBooleanOperators:
    def test_or(self):
        facts = _make_facts(clawback="basic")
        assert EVAL.evaluate("clawback == 'weak' or clawback == 'basic'", facts) is True

    def test_not(self):
        facts = _make_facts(same_notice_period=False)
        assert EVAL.evaluate("not sameNoticePeriod", facts) is True

    def test_and_binds_tighter_than_or(self):
        facts = _make_facts(clawback="strong", fdv=10)
        assert EVAL.evaluate("clawback == 'strong' or fdv > 100 and fdv < 5", facts) is True
        assert EVAL.evaluate("(clawback == 'strong' or fdv > 100) and fdv < 5", facts) is False

    def test_symbol_synonyms(self):
        facts = _make_facts(termination_rights="equal", clawback="strong")
        assert EVAL.evaluate(
            "terminationRights === 'equal' && clawback !== 'weak'", facts
        ) is True
        assert EVAL.evaluate("!(clawback === 'strong') || fdv > 1", facts) is False

    def test_catch_all_true(self):
        assert EVAL.evaluate("true", _make_facts()) is True


class TestMembership:
    def test_in_list(self):
        facts = _make_facts(termination_rights="oneSided")
        assert EVAL.evaluate("terminationRights in ['oneSided', 'noProjectRights']", facts) is True

    def test_not_in_list(self):
        facts = _make_facts(termination_rights="equal")
        assert EVAL.evaluate("terminationRights not in ['oneSided', 'noProjectRights']", facts) is True

    def test_null_not_in_list(self):
        assert EVAL.evaluate("clawback in ['basic', 'weak']", _make_facts()) is False


class TestFieldReferences:
    def test_facts_prefix_is_dropped(self):
        facts = _make_facts(clawback="strong")
        assert EVAL.evaluate("facts.clawback == 'strong'", facts) is True

    def test_referenced_fields(self):
        node = compile_condition("clawback in ['weak'] and not (fdv > 1 or exchange is null)")
        assert referenced_fields(node) == {"clawback", "fdv", "exchange"}


class TestFailClosed:
    def test_syntax_error_is_false(self):
        before = _errors("syntax")
        assert EVAL.evaluate("clawback ==", _make_facts(clawback="weak")) is False
        assert _errors("syntax") == before + 1

    def test_unknown_field_is_false(self):
        before = _errors("evaluation")
        assert EVAL.evaluate("tokenPrice > 1", _make_facts()) is False
        assert _errors("evaluation") == before + 1

    def test_ordering_on_strings_is_false(self):
        assert EVAL.evaluate("clawback > 3", _make_facts(clawback="weak")) is False

    def test_bare_non_boolean_is_false(self):
        assert EVAL.evaluate("noticePeriodDays", _make_facts(notice_period_days=30)) is False

    def test_deeply_nested_condition_is_false(self):
        before = _errors("syntax")
        condition = "(" * 1500 + "true" + ")" * 1500
        assert EVAL.evaluate(condition, _make_facts()) is False
        assert _errors("syntax") == before + 1

    def test_precompiled_syntax_errors_are_reported(self):
        evaluator = ConditionEvaluator(["clawback == 'weak'", "clawback = 'weak'"])
        assert list(evaluator.syntax_errors) == ["clawback = 'weak'"]
        assert evaluator.evaluate("clawback = 'weak'", _make_facts(clawback="weak")) is False
        assert evaluator.evaluate("clawback == 'weak'", _make_facts(clawback="weak")) is True


class TestParser:
    def test_error_position(self):
        with pytest.raises(ConditionSyntaxError) as excinfo:
            compile_condition("fdv >")
        assert excinfo.value.position == 5
        assert excinfo.value.condition == "fdv >"

    def test_trailing_input(self):
        with pytest.raises(ConditionSyntaxError):
            compile_condition("fdv > 1 fdv")

    def test_not_without_in(self):
        with pytest.raises(ConditionSyntaxError):
            compile_condition("clawback not 'weak'")

    def test_nested_field_rejected(self):
        with pytest.raises(ConditionSyntaxError):
            compile_condition("terms.clawback == 'weak'")

    def test_unexpected_character(self):
        with pytest.raises(ConditionSyntaxError):
            compile_condition("fdv > 1 ; drop")

    def test_symbol_synonyms_build_the_same_tree(self):
        expected = BoolOp("and", (FieldRef("a"), Not(FieldRef("b"))))
        assert compile_condition("a && !b") == expected
        assert compile_condition("a and not b") == expected

    def test_moderate_nesting(self):
        assert EVAL.evaluate("(" * 5 + "true" + ")" * 5, _make_facts()) is True
        assert EVAL.evaluate("not not not true", _make_facts()) is False

    def test_deep_parentheses_rejected(self):
        with pytest.raises(ConditionSyntaxError, match="nested too deeply"):
            compile_condition("(" * 1500 + "true" + ")" * 1500)

    def test_deep_negation_rejected(self):
        with pytest.raises(ConditionSyntaxError, match="nested too deeply"):
            compile_condition("not " * 1500 + "true")
