from datetime import datetime, timezone
from decimal import Decimal

import pytest

from src.services.aggregator import (
    RawUsageRecord,
    aggregate_usage,
    month_label,
    month_number,
)


def _record(model, input_tokens, output_tokens, ts, **kwargs):
    return RawUsageRecord(
        model=model,
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        timestamp=ts,
        **kwargs,
    )


def test_single_model_single_month():
    records = [
        _record("claude-3-opus-20240229", 1000, 500, datetime(2025, 3, 1, tzinfo=timezone.utc)),
        _record("claude-3-opus-20240229", 2000, 1000, datetime(2025, 3, 15, tzinfo=timezone.utc)),
    ]

    usage = aggregate_usage(records, 2025, "admin-api")

    assert usage.total_input_tokens == 3000
    assert usage.total_output_tokens == 1500
    assert usage.total_tokens == 4500
    assert usage.total_cost == Decimal("0.1575")
    assert usage.data_source_label == "Claude API (Admin Key)"

    [model] = usage.model_breakdown
    assert model.model == "claude-3-opus-20240229"
    assert (model.input_tokens, model.output_tokens, model.total_tokens) == (3000, 1500, 4500)
    assert model.cost == Decimal("0.1575")

    [march] = usage.monthly_breakdown
    assert march.month == "Mar"
    assert march.total_tokens == 4500
    assert march.cost == Decimal("0.1575")


def test_year_boundaries():
    records = [
        _record("claude-2.1", 10, 0, datetime(2025, 12, 31, 23, 59, 59, tzinfo=timezone.utc)),
        _record("claude-2.1", 1000, 0, datetime(2026, 1, 1, tzinfo=timezone.utc)),
        _record("claude-2.1", 1000, 0, datetime(2024, 12, 31, tzinfo=timezone.utc)),
    ]

    usage = aggregate_usage(records, 2025, "local-files")

    assert usage.total_tokens == 10
    assert [m.month for m in usage.monthly_breakdown] == ["Dec"]


def test_cache_tokens_count_as_input():
    record = _record(
        "claude-sonnet-4-20250514",
        100,
        50,
        datetime(2025, 6, 1, tzinfo=timezone.utc),
        cache_creation_tokens=20,
        cache_read_tokens=30,
    )

    usage = aggregate_usage([record], 2025, "local-files")

    assert usage.total_input_tokens == 150
    assert usage.total_tokens == 200


def test_precomputed_cost_is_used_verbatim():
    record = _record(
        "claude-3-opus-20240229",
        1_000_000,
        1_000_000,
        datetime(2025, 1, 5, tzinfo=timezone.utc),
        cost=Decimal("1.23"),
    )

    usage = aggregate_usage([record], 2025, "admin-api")

    assert usage.total_cost == Decimal("1.23")


def test_breakdowns_are_ordered_and_sum_to_totals():
    ts = lambda month: datetime(2025, month, 10, tzinfo=timezone.utc)  # noqa: E731
    records = [
        _record("claude-3-haiku-20240307", 10, 10, ts(11)),
        _record("claude-3-opus-20240229", 500, 500, ts(2)),
        _record("claude-sonnet-4-20250514", 100, 100, ts(7)),
        _record("claude-3-haiku-20240307", 5, 5, ts(2)),
    ]

    usage = aggregate_usage(records, 2025, "local-files")

    assert [m.model for m in usage.model_breakdown] == [
        "claude-3-opus-20240229",
        "claude-sonnet-4-20250514",
        "claude-3-haiku-20240307",
    ]
    assert [m.month for m in usage.monthly_breakdown] == ["Feb", "Jul", "Nov"]
    assert sum(m.total_tokens for m in usage.model_breakdown) == usage.total_tokens
    assert sum(m.total_tokens for m in usage.monthly_breakdown) == usage.total_tokens
    assert sum(m.cost for m in usage.monthly_breakdown) == usage.total_cost


def test_no_records_gives_empty_usage():
    usage = aggregate_usage([], 2025, "local-files")

    assert usage.is_empty
    assert usage.model_breakdown == []
    assert usage.monthly_breakdown == []


@pytest.mark.parametrize(
    "label, expected",
    [("Jan", 1), ("Dec", 12), ("2025-03", 3), ("2025-13", None), ("March", None), ("", None)],
)
def test_month_number(label, expected):
    assert month_number(label) == expected


def test_month_label_round_trips_number():
    assert all(month_number(month_label(m)) == m for m in range(1, 13))
