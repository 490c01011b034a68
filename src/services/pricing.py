"""
Per-model token pricing.

Prices are USD per million tokens. Unknown models fall back to the
mid-tier Sonnet rates instead of failing.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from types import MappingProxyType
from typing import Mapping

ONE_MILLION = Decimal(1_000_000)


@dataclass(frozen=True)
class ModelPricing:
    """Input/output price pair for one model."""

    input_per_million: Decimal
    output_per_million: Decimal


DEFAULT_PRICING = ModelPricing(Decimal("3.00"), Decimal("15.00"))


@dataclass(frozen=True)
class PricingTable:
    """Read-only lookup from model identifier to :class:`ModelPricing`."""

    prices: Mapping[str, ModelPricing]
    default: ModelPricing = DEFAULT_PRICING

    def get_pricing(self, model: str) -> ModelPricing:
        return self.prices.get(model, self.default)

    def calculate_cost(self, model: str, input_tokens: int, output_tokens: int) -> Decimal:
        pricing = self.get_pricing(model)
        input_cost = Decimal(input_tokens) / ONE_MILLION * pricing.input_per_million
        output_cost = Decimal(output_tokens) / ONE_MILLION * pricing.output_per_million
        return input_cost + output_cost


def _price(input_price: str, output_price: str) -> ModelPricing:
    return ModelPricing(Decimal(input_price), Decimal(output_price))


PRICING_TABLE = PricingTable(
    MappingProxyType(
        {
            "claude-opus-4-20250514": _price("15.00", "75.00"),
            "claude-sonnet-4-20250514": _price("3.00", "15.00"),
            "claude-3-5-sonnet-20241022": _price("3.00", "15.00"),
            "claude-3-5-sonnet-20240620": _price("3.00", "15.00"),
            "claude-3-5-haiku-20241022": _price("0.80", "4.00"),
            "claude-3-opus-20240229": _price("15.00", "75.00"),
            "claude-3-sonnet-20240229": _price("3.00", "15.00"),
            "claude-3-haiku-20240307": _price("0.25", "1.25"),
            "claude-2.1": _price("8.00", "24.00"),
            "claude-2.0": _price("8.00", "24.00"),
            "claude-instant-1.2": _price("0.80", "2.40"),
        }
    )
)


def calculate_cost(model: str, input_tokens: int, output_tokens: int) -> Decimal:
    """Cost in USD for the given token counts using :data:`PRICING_TABLE`."""

    return PRICING_TABLE.calculate_cost(model, input_tokens, output_tokens)
