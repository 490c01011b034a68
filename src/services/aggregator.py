"""Roll raw usage records up into per-model and per-month totals."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, Optional

from src.schemas.usage import DataSource, ModelUsage, MonthlyUsage, UsageData
from src.services.pricing import PRICING_TABLE, PricingTable


logger = logging.getLogger(__name__)

MONTH_LABELS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

DATA_SOURCE_LABELS: Dict[str, str] = {
    "admin-api": "Claude API (Admin Key)",
    "local-files": "Claude Code (Local Files)",
}


@dataclass(frozen=True)
class RawUsageRecord:
    """One observed unit of consumption from either data source."""

    model: str
    input_tokens: int
    output_tokens: int
    timestamp: datetime
    cache_creation_tokens: int = 0
    cache_read_tokens: int = 0
    cost: Optional[Decimal] = None

    @property
    def effective_input_tokens(self) -> int:
        return self.input_tokens + self.cache_creation_tokens + self.cache_read_tokens


def token_count(value: object) -> int:
    """Coerce a reported token count; negative counts are malformed."""

    try:
        count = int(value or 0)
    except OverflowError as exc:
        raise ValueError(f"token count out of range: {value!r}") from exc
    if count < 0:
        raise ValueError(f"negative token count: {value!r}")
    return count


def month_label(month: int) -> str:
    return MONTH_LABELS[month - 1]


def month_number(label: str) -> Optional[int]:
    """Map ``'Mar'`` or ``'2025-03'`` to 3; unknown labels map to ``None``."""

    label = (label or "").strip()
    if label in MONTH_LABELS:
        return MONTH_LABELS.index(label) + 1
    year_part, sep, month_part = label.partition("-")
    if sep and year_part.isdigit() and month_part.isdigit():
        month = int(month_part)
        if 1 <= month <= 12:
            return month
    return None


@dataclass
class _Bucket:
    input_tokens: int = 0
    output_tokens: int = 0
    cost: Decimal = field(default_factory=Decimal)

    def add(self, input_tokens: int, output_tokens: int, cost: Decimal) -> None:
        self.input_tokens += input_tokens
        self.output_tokens += output_tokens
        self.cost += cost

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


def record_cost(record: RawUsageRecord, pricing: PricingTable = PRICING_TABLE) -> Decimal:
    """Use the upstream cost when present, otherwise price the effective tokens."""

    if record.cost is not None:
        return Decimal(record.cost)
    return pricing.calculate_cost(
        record.model, record.effective_input_tokens, record.output_tokens
    )


def aggregate_usage(
    records: Iterable[RawUsageRecord],
    year: int,
    data_source: DataSource,
    *,
    pricing: PricingTable = PRICING_TABLE,
    data_source_label: Optional[str] = None,
) -> UsageData:
    """Build :class:`UsageData` for ``year`` from ``records``.

    Records outside ``year`` are ignored. An empty result is returned as a
    zero-valued :class:`UsageData`; callers decide whether that is an error.
    """

    by_model: Dict[str, _Bucket] = {}
    by_month: Dict[int, _Bucket] = {}
    totals = _Bucket()
    skipped = 0

    for record in records:
        if record.timestamp.year != year:
            skipped += 1
            continue

        input_tokens = record.effective_input_tokens
        output_tokens = record.output_tokens
        cost = record_cost(record, pricing)

        totals.add(input_tokens, output_tokens, cost)
        by_model.setdefault(record.model, _Bucket()).add(input_tokens, output_tokens, cost)
        by_month.setdefault(record.timestamp.month, _Bucket()).add(
            input_tokens, output_tokens, cost
        )

    if skipped:
        logger.debug("Ignored %d usage records outside %d", skipped, year)

    model_breakdown = sorted(
        (
            ModelUsage(
                model=model,
                input_tokens=bucket.input_tokens,
                output_tokens=bucket.output_tokens,
                total_tokens=bucket.total_tokens,
                cost=bucket.cost,
            )
            for model, bucket in by_model.items()
        ),
        key=lambda usage: usage.total_tokens,
        reverse=True,
    )
    monthly_breakdown = [
        MonthlyUsage(
            month=month_label(month),
            input_tokens=bucket.input_tokens,
            output_tokens=bucket.output_tokens,
            total_tokens=bucket.total_tokens,
            cost=bucket.cost,
        )
        for month, bucket in sorted(by_month.items())
    ]

    return UsageData(
        data_source=data_source,
        data_source_label=data_source_label or DATA_SOURCE_LABELS[data_source],
        year=year,
        total_input_tokens=totals.input_tokens,
        total_output_tokens=totals.output_tokens,
        total_tokens=totals.total_tokens,
        total_cost=totals.cost,
        model_breakdown=model_breakdown,
        monthly_breakdown=monthly_breakdown,
    )
