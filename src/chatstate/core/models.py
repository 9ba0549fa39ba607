"""Model families, capacity tiers and input-token budgets.

A session picks a model *family*; the concrete model is chosen from the
family's tiers by the combined volume of context and input, in thousands
of tokens.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

ModelFamily = Literal["gpt-3.5", "gpt-4"]

CHEAP_FAMILY: ModelFamily = "gpt-3.5"
PREMIUM_FAMILY: ModelFamily = "gpt-4"


@dataclass(frozen=True)
class ModelTiers:
    """Small and large capacity variants of one family."""

    threshold: float  # thousands of tokens; volume below it stays small
    small: str
    large: str

    def pick(self, volume: float) -> str:
        return self.small if volume < self.threshold else self.large


MODEL_TIERS: dict[str, ModelTiers] = {
    CHEAP_FAMILY: ModelTiers(3.5, small="gpt-3.5-turbo-0613", large="gpt-3.5-turbo-16k-0613"),
    PREMIUM_FAMILY: ModelTiers(7, small="gpt-4-0613", large="gpt-4-32k-0613"),
}

# Budgets applied when the server's own API key is in use
DEFAULT_MAX_INPUT_TOKENS: dict[str, int] = {
    CHEAP_FAMILY: 16 * 1024,
    PREMIUM_FAMILY: 32 * 1024,
}


def resolve_model(family: str, volume: float) -> str:
    """Resolve a family and token volume (in thousands) to a concrete model.

    Any family other than the cheap one follows the premium rule, and any
    volume is accepted, including negative ones.
    """
    tiers = MODEL_TIERS[CHEAP_FAMILY] if family == CHEAP_FAMILY else MODEL_TIERS[PREMIUM_FAMILY]
    return tiers.pick(volume)


def input_budget(family: str, table: dict[str, int]) -> int:
    """Look up a family's input-token budget; unknown families get 0."""
    return table.get(family, 0)
