import pytest

from blogsmith.config import PipelineConfig
from blogsmith.schemas import CompletionUsage
from blogsmith.usage import UsageAccumulator

A = CompletionUsage(prompt_tokens=120, completion_tokens=30, total_tokens=150)
B = CompletionUsage(prompt_tokens=7, completion_tokens=993, total_tokens=1000)


def _totals(*usages):
    accumulator = UsageAccumulator(0.00003, 0.00006)
    accumulator.accumulate_all(usages)
    return accumulator.total()


def test_accumulation_is_order_independent():
    assert _totals(A, B) == _totals(B, A)


def test_totals_sum_every_call():
    totals = _totals(A, B, A)
    assert totals.prompt_tokens == 247
    assert totals.completion_tokens == 1053
    assert totals.total_tokens == 1300


def test_cost_is_recomputed_from_totals():
    accumulator = UsageAccumulator(price_per_prompt_token=0.5, price_per_completion_token=2.0)
    accumulator.accumulate(CompletionUsage(prompt_tokens=2, completion_tokens=1, total_tokens=3))
    assert accumulator.total().estimated_cost == pytest.approx(3.0)

    accumulator.accumulate(CompletionUsage(prompt_tokens=4, completion_tokens=0, total_tokens=4))
    assert accumulator.total().estimated_cost == pytest.approx(5.0)


def test_empty_accumulator_is_zero():
    totals = UsageAccumulator(0.1, 0.1).total()
    assert totals.total_tokens == 0
    assert totals.estimated_cost == 0


def test_zero_usage_calls_are_counted_but_cost_nothing():
    accumulator = UsageAccumulator(0.1, 0.1)
    accumulator.accumulate(CompletionUsage())
    assert accumulator.calls == 1
    assert accumulator.total().estimated_cost == 0


def test_from_config_uses_configured_prices():
    config = PipelineConfig(price_per_prompt_token=0.01, price_per_completion_token=0.02)
    accumulator = UsageAccumulator.from_config(config)
    accumulator.accumulate(CompletionUsage(prompt_tokens=100, completion_tokens=100, total_tokens=200))
    assert accumulator.total().estimated_cost == pytest.approx(3.0)


def test_negative_prices_are_rejected():
    with pytest.raises(ValueError):
        UsageAccumulator(-0.1, 0.1)
