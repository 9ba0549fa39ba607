"""Tests for model tier resolution and pricing."""

from __future__ import annotations

import pytest

from chatstate.core.models import (
    DEFAULT_MAX_INPUT_TOKENS,
    MODEL_TIERS,
    input_budget,
    resolve_model,
)
from chatstate.core.pricing import PRICE_TABLE, Price, token_cost


class TestResolveModel:
    """Tests for the tier resolver."""

    @pytest.mark.parametrize(
        ("family", "volume", "expected"),
        [
            ("gpt-3.5", 0, "gpt-3.5-turbo-0613"),
            ("gpt-3.5", 3.499, "gpt-3.5-turbo-0613"),
            ("gpt-3.5", 3.5, "gpt-3.5-turbo-16k-0613"),
            ("gpt-3.5", 100, "gpt-3.5-turbo-16k-0613"),
            ("gpt-4", 6.999, "gpt-4-0613"),
            ("gpt-4", 7, "gpt-4-32k-0613"),
        ],
    )
    def test_thresholds(self, family: str, volume: float, expected: str) -> None:
        assert resolve_model(family, volume) == expected

    def test_negative_volume_is_small_tier(self) -> None:
        assert resolve_model("gpt-3.5", -10) == "gpt-3.5-turbo-0613"
        assert resolve_model("gpt-4", -10) == "gpt-4-0613"

    def test_unknown_family_follows_premium_rule(self) -> None:
        assert resolve_model("something-else", 1) == "gpt-4-0613"
        assert resolve_model("something-else", 7) == "gpt-4-32k-0613"

    def test_never_steps_back_down(self) -> None:
        for family, tiers in MODEL_TIERS.items():
            reached_large = False
            for step in range(0, 20000, 7):
                model = resolve_model(family, step / 1000)
                if reached_large:
                    assert model == tiers.large
                reached_large = model == tiers.large
            assert reached_large

    def test_every_tier_has_a_price(self) -> None:
        for tiers in MODEL_TIERS.values():
            assert tiers.small in PRICE_TABLE
            assert tiers.large in PRICE_TABLE


class TestInputBudget:
    """Tests for budget lookup."""

    def test_known_family(self) -> None:
        assert input_budget("gpt-4", DEFAULT_MAX_INPUT_TOKENS) == DEFAULT_MAX_INPUT_TOKENS["gpt-4"]

    def test_unknown_family_has_no_budget(self) -> None:
        assert input_budget("gpt-5", {"gpt-4": 10}) == 0


class TestTokenCost:
    """Tests for cost estimation."""

    def test_input_and_output_prices(self) -> None:
        assert token_cost(1000, "gpt-4-0613", "input") == pytest.approx(0.03)
        assert token_cost(1000, "gpt-4-0613", "output") == pytest.approx(0.06)

    def test_scales_linearly(self) -> None:
        for model in PRICE_TABLE:
            for direction in ("input", "output"):
                assert token_cost(3000, model, direction) == pytest.approx(
                    2 * token_cost(1500, model, direction)
                )

    def test_zero_tokens_cost_nothing(self) -> None:
        assert token_cost(0, "gpt-4-32k-0613", "output") == 0

    def test_unknown_model_is_free(self) -> None:
        assert token_cost(5000, "mystery", "input") == 0

    def test_price_direction(self) -> None:
        price = Price(1.0, 2.0)
        assert price.for_direction("input") == 1.0
        assert price.for_direction("output") == 2.0
