"""
Token usage accounting across every completion call of a run.

Only the pipeline coroutine writes to the accumulator. Concurrent stages hand
their usage records back and they are folded in after the join, so counters
never race. Cost is recomputed from the totals on every read.
"""
from typing import Iterable

from .schemas import CompletionUsage, UsageTotals


class UsageAccumulator:
    """Sums prompt/completion/total tokens and prices them on read."""

    def __init__(self, price_per_prompt_token: float, price_per_completion_token: float):
        if price_per_prompt_token < 0 or price_per_completion_token < 0:
            raise ValueError("token prices must be non-negative")
        self.price_per_prompt_token = price_per_prompt_token
        self.price_per_completion_token = price_per_completion_token
        self._prompt_tokens = 0
        self._completion_tokens = 0
        self._total_tokens = 0
        self._calls = 0

    @classmethod
    def from_config(cls, config) -> "UsageAccumulator":
        return cls(config.price_per_prompt_token, config.price_per_completion_token)

    @property
    def calls(self) -> int:
        """Number of usage records folded in."""
        return self._calls

    def accumulate(self, usage: CompletionUsage) -> None:
        self._prompt_tokens += usage.prompt_tokens
        self._completion_tokens += usage.completion_tokens
        self._total_tokens += usage.total_tokens
        self._calls += 1

    def accumulate_all(self, usages: Iterable[CompletionUsage]) -> None:
        for usage in usages:
            self.accumulate(usage)

    def total(self) -> UsageTotals:
        cost = (
            self._prompt_tokens * self.price_per_prompt_token
            + self._completion_tokens * self.price_per_completion_token
        )
        return UsageTotals(
            prompt_tokens=self._prompt_tokens,
            completion_tokens=self._completion_tokens,
            total_tokens=self._total_tokens,
            estimated_cost=cost,
        )
