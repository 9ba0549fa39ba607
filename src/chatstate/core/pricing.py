"""Token cost estimation.

Central pricing logic so the store and UI do not duplicate calculations.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

Direction = Literal["input", "output"]


@dataclass(frozen=True)
class Price:
    """USD per 1000 tokens."""

    input_per_1k: float
    output_per_1k: float

    def for_direction(self, direction: Direction) -> float:
        return self.input_per_1k if direction == "input" else self.output_per_1k


PRICE_TABLE: dict[str, Price] = {
    "gpt-3.5-turbo-0613": Price(0.0015, 0.002),
    "gpt-3.5-turbo-16k-0613": Price(0.003, 0.004),
    "gpt-4-0613": Price(0.03, 0.06),
    "gpt-4-32k-0613": Price(0.06, 0.12),
}


def token_cost(tokens: int, model: str, direction: Direction) -> float:
    """Cost of `tokens` for `model` in the given direction; unknown models are free."""
    price = PRICE_TABLE.get(model, Price(0.0, 0.0))
    return tokens / 1000 * price.for_direction(direction)
