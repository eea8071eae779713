import pytest

from sales_agent.chatbot.rule_engine import (
    PremiumResult,
    PricingError,
    PricingRuleSet,
    evaluate,
    evaluate_for_product,
    parse_rule_set,
)

MOTOR_RULES = {
    "base_rate": 60000,
    "factors": [
        {"key": "driverAge", "condition": "lt", "value": 25, "effect": "multiply", "modifier": 1.4},
        {"key": "carYear", "condition": "lt", "value": 2010, "effect": "add", "modifier": 10000},
    ],
}


class _Product:
    def __init__(self, is_active=True, pricing_rules=None):
        self.is_active = is_active
        self.pricing_rules = pricing_rules if pricing_rules is not None else MOTOR_RULES


def test_young_driver_with_old_car_gets_both_factors():
    result = evaluate(MOTOR_RULES, {"driverAge": 22, "carYear": 2008})
    assert isinstance(result, PremiumResult)
    assert result.premium == 94000
    assert result.applied_factors == ["driverAge", "carYear"]


def test_no_factor_fires_returns_base_rate():
    result = evaluate(MOTOR_RULES, {"driverAge": 30, "carYear": 2020})
    assert result.premium == 60000
    assert result.applied_factors == []


def test_absent_fact_keys_are_skipped():
    assert evaluate(MOTOR_RULES, {}).premium == 60000
    assert evaluate(MOTOR_RULES, {"carYear": 2005}).premium == 70000
    assert evaluate(MOTOR_RULES, {"driverAge": None, "carYear": 2005}).premium == 70000


def test_factor_order_changes_result():
    multiply_then_add = {
        "base_rate": 1000,
        "factors": [
            {"key": "a", "condition": "eq", "value": True, "effect": "multiply", "modifier": 2},
            {"key": "b", "condition": "eq", "value": True, "effect": "add", "modifier": 100},
        ],
    }
    add_then_multiply = {
        "base_rate": 1000,
        "factors": list(reversed(multiply_then_add["factors"])),
    }
    facts = {"a": True, "b": True}
    assert evaluate(multiply_then_add, facts).premium == 2100
    assert evaluate(add_then_multiply, facts).premium == 2200


def test_evaluate_is_deterministic():
    facts = {"driverAge": 19, "carYear": 1999}
    results = {evaluate(MOTOR_RULES, facts).premium for _ in range(20)}
    assert results == {94000}


@pytest.mark.parametrize(
    "base,modifier,expected",
    [
        (1000, 1.0005, 1001),  # 1000.5 rounds up
        (1000, 1.0004, 1000),
        (333, 1.5, 500),  # 499.5 rounds up
    ],
)
def test_result_rounds_half_up(base, modifier, expected):
    rules = {
        "base_rate": base,
        "factors": [{"key": "x", "condition": "gt", "value": 0, "effect": "multiply", "modifier": modifier}],
    }
    assert evaluate(rules, {"x": 1}).premium == expected


def test_lt_gt_never_match_non_numbers():
    rules = {
        "base_rate": 100,
        "factors": [
            {"key": "age", "condition": "lt", "value": 25, "effect": "add", "modifier": 50},
            {"key": "flag", "condition": "gt", "value": 0, "effect": "add", "modifier": 50},
        ],
    }
    assert evaluate(rules, {"age": "22", "flag": True}).premium == 100


def test_eq_compares_strings_and_numbers_by_kind():
    rules = {
        "base_rate": 100,
        "factors": [
            {"key": "region", "condition": "eq", "value": "worldwide", "effect": "add", "modifier": 10},
            {"key": "dependants", "condition": "eq", "value": 2, "effect": "add", "modifier": 5},
            {"key": "smoker", "condition": "eq", "value": True, "effect": "add", "modifier": 1},
        ],
    }
    assert evaluate(rules, {"region": "worldwide", "dependants": 2.0, "smoker": True}).premium == 116
    # a boolean never equals a number
    assert evaluate(rules, {"smoker": 1}).premium == 100


def test_legacy_camel_case_rules_are_accepted():
    legacy = {
        "baseRate": 60000,
        "factors": [{"key": "driverAge", "condition": "lt", "value": 25, "type": "multiply", "modifier": 1.4}],
    }
    assert evaluate(legacy, {"driverAge": 20}).premium == 84000


@pytest.mark.parametrize(
    "raw",
    [
        None,
        "not a dict",
        {"factors": []},
        {"base_rate": "lots", "factors": []},
        {"base_rate": 100, "factors": {"key": "x"}},
        {"base_rate": 100, "factors": [{"key": "x", "condition": "between", "value": 1, "effect": "add", "modifier": 1}]},
        {"base_rate": 100, "factors": [{"key": "x", "condition": "lt", "value": 1, "effect": "divide", "modifier": 1}]},
        {"base_rate": float("nan"), "factors": []},
        {"base_rate": float("inf"), "factors": []},
        {"base_rate": 100, "factors": [{"key": "x", "condition": "lt", "value": 1, "effect": "multiply", "modifier": float("nan")}]},
        {"base_rate": 100, "factors": [{"key": "x", "condition": "lt", "value": float("inf"), "effect": "add", "modifier": 1}]},
    ],
)
def test_invalid_rule_sets_return_error(raw):
    result = evaluate(raw, {"x": 0})
    assert isinstance(result, PricingError)
    assert result.code == "invalid_rules"


def test_non_finite_facts_never_match():
    for value in (float("nan"), float("inf"), float("-inf")):
        result = evaluate(MOTOR_RULES, {"driverAge": value, "carYear": value})
        assert result.premium == 60000


def test_unrepresentable_premium_is_an_error():
    result = evaluate({"base_rate": 1e30, "factors": []}, {})
    assert isinstance(result, PricingError)
    assert result.code == "premium_out_of_range"


def test_parse_rule_set_returns_model():
    parsed = parse_rule_set(MOTOR_RULES)
    assert isinstance(parsed, PricingRuleSet)
    assert [f.key for f in parsed.factors] == ["driverAge", "carYear"]


def test_inactive_or_unknown_product_is_an_error():
    assert evaluate_for_product(None, {}).code == "product_unavailable"
    assert evaluate_for_product(_Product(is_active=False), {}).code == "product_unavailable"
    assert evaluate_for_product(_Product(), {"driverAge": 22, "carYear": 2008}).premium == 94000
