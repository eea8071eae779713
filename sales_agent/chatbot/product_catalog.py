"""
Product catalogue: read-only lookups over the insurance products in storage.

Products are seeded from config/products.yml (see scripts/init_database.py);
nothing in the conversation path writes them.
"""

from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)

_TRUE_WORDS = {"yes", "y", "true", "1"}
_FALSE_WORDS = {"no", "n", "false", "0"}


@dataclass(frozen=True)
class RequiredInput:
    key: str
    question: str
    kind: str = "string"
    required: bool = True


@dataclass(frozen=True)
class Product:
    id: str
    type: str
    name: str
    is_active: bool
    required_inputs: List[RequiredInput] = field(default_factory=list)
    pricing_rules: Dict[str, Any] = field(default_factory=dict)
    keywords: List[str] = field(default_factory=list)

    @classmethod
    def from_record(cls, record: Any) -> "Product":
        inputs = [
            RequiredInput(
                key=item["key"],
                question=item.get("question", ""),
                kind=item.get("type") or item.get("kind") or "string",
                required=bool(item.get("required", True)),
            )
            for item in (record.required_inputs or [])
        ]
        return cls(
            id=record.id,
            type=record.type,
            name=record.name,
            is_active=bool(record.is_active),
            required_inputs=inputs,
            pricing_rules=dict(record.pricing_rules or {}),
            keywords=[k.lower() for k in (record.keywords or [])],
        )


def _coerce_number(value: Any) -> Any:
    if isinstance(value, bool) or not isinstance(value, str):
        return value
    text = value.strip().replace(",", "")
    try:
        number = float(text)
    except ValueError:
        return value
    if not math.isfinite(number):
        return value
    return int(number) if number.is_integer() and "." not in text else number


def _mentions(text: str, keyword: str) -> bool:
    return re.search(rf"\b{re.escape(keyword)}s?\b", text) is not None


def _coerce_bool(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_WORDS:
        return True
    if text in _FALSE_WORDS:
        return False
    return value


class ProductCatalog:
    """Lookups keyed by product type, backed by the injected database."""

    def __init__(self, db: Any):
        self.db = db

    def find_active_product(self, type_tag: Optional[str]) -> Optional[Product]:
        if not type_tag:
            return None
        record = self.db.get_product_by_type(str(type_tag).strip().lower())
        if record is None or not record.is_active:
            return None
        return Product.from_record(record)

    def list_active_products(self) -> List[Product]:
        return [Product.from_record(r) for r in self.db.list_active_products()]

    def match_product(self, text: str) -> Optional[Product]:
        """
        Active product whose keywords appear as whole words in `text`.

        The product with the most distinct keyword hits wins; ties go to the
        first product in type order. A trailing plural "s" still matches.
        """
        lowered = (text or "").lower()
        if not lowered:
            return None
        best: Optional[Product] = None
        best_hits = 0
        for product in self.list_active_products():
            hits = sum(1 for keyword in set(product.keywords) if keyword and _mentions(lowered, keyword))
            if hits > best_hits:
                best, best_hits = product, hits
        if best is not None:
            logger.info("[Catalog] message matched product %s (%d keyword(s))", best.type, best_hits)
        return best

    @staticmethod
    def coerce_facts(product: Product, facts: Dict[str, Any]) -> Dict[str, Any]:
        """Normalize user answers using the product's input schema; unknown keys pass through."""
        kinds = {i.key: i.kind for i in product.required_inputs}
        coerced: Dict[str, Any] = {}
        for key, value in (facts or {}).items():
            kind = kinds.get(key)
            if kind == "number":
                coerced[key] = _coerce_number(value)
            elif kind == "boolean":
                coerced[key] = _coerce_bool(value)
            else:
                coerced[key] = value
        return coerced

    @staticmethod
    def describe_required_inputs(product: Product) -> str:
        return json.dumps(
            [{"key": i.key, "question": i.question, "type": i.kind} for i in product.required_inputs],
            ensure_ascii=False,
        )


def seed_catalog(db: Any, seeds: Iterable[Any]) -> int:
    """Upsert product seeds (by type). Returns the number written."""
    count = 0
    for seed in seeds:
        db.upsert_product(
            type=seed.type,
            name=seed.name,
            is_active=seed.is_active,
            keywords=seed.keywords,
            required_inputs=[i.model_dump() for i in seed.required_inputs],
            pricing_rules=seed.pricing_rules,
        )
        count += 1
    logger.info("[Catalog] seeded %d product(s)", count)
    return count
