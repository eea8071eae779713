"""
Premium rule engine.

Prices a product from its pricing rule set and the facts collected during the
conversation:

    total = base_rate
    for factor in factors (declaration order):
        if the fact is present and the condition holds:
            total += modifier   (effect "add")
            total *= modifier   (effect "multiply")

Each factor applies to the running total produced by the factors before it.
The result is rounded half-up to a whole currency unit.

Configuration problems and unavailable products are returned as a
`PricingError` value rather than raised.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, List, Literal, Mapping, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StrictBool, StrictFloat, StrictInt, StrictStr, ValidationError

logger = logging.getLogger(__name__)

Number = Union[StrictInt, StrictFloat]


class PricingFactor(BaseModel):
    model_config = ConfigDict(populate_by_name=True, allow_inf_nan=False)

    key: str
    condition: Literal["lt", "gt", "eq"]
    value: Union[StrictBool, StrictInt, StrictFloat, StrictStr]
    effect: Literal["add", "multiply"] = Field(validation_alias=AliasChoices("effect", "type"))
    modifier: Number


class PricingRuleSet(BaseModel):
    model_config = ConfigDict(populate_by_name=True, allow_inf_nan=False)

    base_rate: Number = Field(validation_alias=AliasChoices("base_rate", "baseRate"))
    factors: List[PricingFactor] = Field(default_factory=list)


@dataclass(frozen=True)
class PremiumResult:
    premium: int
    applied_factors: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class PricingError:
    code: str
    message: str


def parse_rule_set(raw: Any) -> Union[PricingRuleSet, PricingError]:
    """Validate raw (JSON) pricing rules."""
    if isinstance(raw, PricingRuleSet):
        return raw
    if not isinstance(raw, Mapping):
        return PricingError("invalid_rules", "Pricing rules are not configured correctly for this product.")
    if not isinstance(raw.get("factors", []), list):
        return PricingError("invalid_rules", "Pricing rules are not configured correctly for this product.")
    try:
        return PricingRuleSet.model_validate(dict(raw))
    except ValidationError as e:
        logger.error("[RuleEngine] Malformed pricing rules: %s", e)
        return PricingError("invalid_rules", "Pricing rules are not configured correctly for this product.")


def _is_number(value: Any) -> bool:
    """Finite int/float/Decimal; NaN and infinities never satisfy a condition."""
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        return False
    return Decimal(str(value)).is_finite()


def _condition_met(condition: str, fact: Any, target: Any) -> bool:
    if condition in ("lt", "gt"):
        if not (_is_number(fact) and _is_number(target)):
            return False
        left, right = Decimal(str(fact)), Decimal(str(target))
        return left < right if condition == "lt" else left > right

    if _is_number(fact) and _is_number(target):
        return Decimal(str(fact)) == Decimal(str(target))
    if isinstance(fact, bool) != isinstance(target, bool):
        return False
    return fact == target


def evaluate(rule_set: Any, facts: Mapping[str, Any]) -> Union[PremiumResult, PricingError]:
    """Compute the premium for `facts`. Pure and deterministic."""
    rules = parse_rule_set(rule_set)
    if isinstance(rules, PricingError):
        return rules

    total = Decimal(str(rules.base_rate))
    applied: List[str] = []

    for factor in rules.factors:
        if factor.key not in facts or facts[factor.key] is None:
            continue
        if not _condition_met(factor.condition, facts[factor.key], factor.value):
            continue

        modifier = Decimal(str(factor.modifier))
        if factor.effect == "multiply":
            total *= modifier
        else:
            total += modifier
        applied.append(factor.key)
        logger.debug("[RuleEngine] factor %s (%s %s) applied -> %s", factor.key, factor.effect, modifier, total)

    try:
        premium = int(total.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    except InvalidOperation:
        logger.error("[RuleEngine] Premium %s cannot be represented", total)
        return PricingError("premium_out_of_range", "The premium could not be calculated for these details.")
    return PremiumResult(premium=premium, applied_factors=applied)


def evaluate_for_product(product: Optional[Any], facts: Mapping[str, Any]) -> Union[PremiumResult, PricingError]:
    """Price an active catalogue product; unknown or inactive products are an error."""
    if product is None or not getattr(product, "is_active", False):
        return PricingError("product_unavailable", "Invalid insurance type specified.")
    return evaluate(product.pricing_rules, facts)
