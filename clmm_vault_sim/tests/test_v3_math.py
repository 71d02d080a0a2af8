#!/usr/bin/env python3
"""
Concentrated Liquidity Math Test Suite

Covers the closed-form position formulas and the cost models:
1. Amount continuity at the range boundaries
2. Deposit sizing round-trips through get_amounts_for_liquidity
3. Swap pricing, fee share and MEV estimates
"""

import math
import pytest

from clmm_vault_sim.core.v3_math import (
    add_liquidity_amounts, calculate_fee_share, estimate_mev_cost,
    get_amounts_for_liquidity, get_effective_swap_price, get_position_value_usd,
    get_range_base_value_fraction, get_rebalance_swap
)


class TestPositionAmounts:
    """Amount and value conversions"""

    def setup_method(self):
        self.liquidity = 1_000.0
        self.lower = 1_600.0
        self.upper = 2_000.0

    def test_continuity_at_lower_bound(self):
        at_bound = get_amounts_for_liquidity(self.liquidity, self.lower, self.upper, self.lower)
        just_inside = get_amounts_for_liquidity(self.liquidity, self.lower, self.upper, self.lower * (1 + 1e-12))

        assert just_inside.base_amount == pytest.approx(at_bound.base_amount, rel=1e-9)
        assert just_inside.quote_amount == pytest.approx(at_bound.quote_amount, abs=1e-6)
        assert at_bound.quote_amount == 0.0

    def test_continuity_at_upper_bound(self):
        at_bound = get_amounts_for_liquidity(self.liquidity, self.lower, self.upper, self.upper)
        just_inside = get_amounts_for_liquidity(self.liquidity, self.lower, self.upper, self.upper * (1 - 1e-12))

        assert just_inside.quote_amount == pytest.approx(at_bound.quote_amount, rel=1e-9)
        assert just_inside.base_amount == pytest.approx(at_bound.base_amount, abs=1e-9)
        assert at_bound.base_amount == 0.0

    def test_one_sided_positions(self):
        below = get_amounts_for_liquidity(self.liquidity, self.lower, self.upper, 1_000.0)
        above = get_amounts_for_liquidity(self.liquidity, self.lower, self.upper, 3_000.0)

        expected_base = self.liquidity * (1 / math.sqrt(self.lower) - 1 / math.sqrt(self.upper))
        expected_quote = self.liquidity * (math.sqrt(self.upper) - math.sqrt(self.lower))

        assert below.base_amount == pytest.approx(expected_base)
        assert below.quote_amount == 0.0
        assert above.base_amount == 0.0
        assert above.quote_amount == pytest.approx(expected_quote)

    def test_position_value_is_base_times_price_plus_quote(self):
        price = 1_800.0
        amounts = get_amounts_for_liquidity(self.liquidity, self.lower, self.upper, price)
        value = get_position_value_usd(self.liquidity, self.lower, self.upper, price)

        assert value == pytest.approx(amounts.base_amount * price + amounts.quote_amount)


class TestLiquiditySizing:
    """Deposit sizing by the scarcer asset"""

    def test_sizing_round_trip_in_range(self):
        lower, upper, price = 1_600.0, 2_000.0, 1_800.0
        sizing = add_liquidity_amounts(3.0, 5_000.0, lower, upper, price)
        amounts = get_amounts_for_liquidity(sizing.liquidity, lower, upper, price)

        assert sizing.is_usable
        assert amounts.base_amount == pytest.approx(sizing.base_used, rel=1e-9)
        assert amounts.quote_amount == pytest.approx(sizing.quote_used, rel=1e-9)

    def test_scarcer_asset_is_fully_used(self):
        sizing = add_liquidity_amounts(3.0, 5_000.0, 1_600.0, 2_000.0, 1_800.0)

        # Quote is the binding side here; base is left over
        assert sizing.quote_used == pytest.approx(5_000.0)
        assert sizing.base_used < 3.0

    def test_below_range_uses_only_base(self):
        sizing = add_liquidity_amounts(2.0, 5_000.0, 1_600.0, 2_000.0, 1_500.0)

        assert sizing.base_used == 2.0
        assert sizing.quote_used == 0.0
        amounts = get_amounts_for_liquidity(sizing.liquidity, 1_600.0, 2_000.0, 1_500.0)
        assert amounts.base_amount == pytest.approx(2.0)

    def test_above_range_uses_only_quote(self):
        sizing = add_liquidity_amounts(2.0, 5_000.0, 1_600.0, 2_000.0, 2_500.0)

        assert sizing.base_used == 0.0
        assert sizing.quote_used == 5_000.0

    def test_collapsed_range_is_unusable(self):
        sizing = add_liquidity_amounts(2.0, 5_000.0, 1_800.0, 1_800.0, 1_800.0)

        assert not sizing.is_usable

    def test_rebalance_swap_matches_range_split(self):
        lower, upper, price = 1_700.0, 2_000.0, 1_800.0
        direction, amount = get_rebalance_swap(2.0, 0.0, lower, upper, price)

        assert direction == "base"
        base_after = 2.0 - amount
        quote_after = amount * price
        fraction = get_range_base_value_fraction(lower, upper, price)
        assert base_after * price / (base_after * price + quote_after) == pytest.approx(fraction)

    def test_rebalance_swap_none_when_balanced(self):
        lower, upper, price = 1_700.0, 2_000.0, 1_800.0
        fraction = get_range_base_value_fraction(lower, upper, price)
        total = 10_000.0
        base = total * fraction / price
        quote = total * (1 - fraction)

        assert get_rebalance_swap(base, quote, lower, upper, price) is None


class TestCostModels:
    """Swap price impact, fee share and MEV"""

    def test_effective_swap_price(self):
        buy = get_effective_swap_price(2_000.0, 100_000.0, 10_000_000.0, True, 10.0, 5.0)
        sell = get_effective_swap_price(2_000.0, 100_000.0, 10_000_000.0, False, 10.0, 5.0)

        # half spread 5 bps + impact 5 bps per 1% of depth
        assert buy == pytest.approx(2_002.0)
        assert sell == pytest.approx(1_998.0)

    def test_no_costs_means_mid_price(self):
        assert get_effective_swap_price(2_000.0, 1_000.0, 1_000_000.0, True, 0.0, 0.0) == 2_000.0

    def test_fee_share_zero_out_of_range(self):
        assert calculate_fee_share(1_000.0, 1_600.0, 2_000.0, 1_000_000.0, 1_500.0) == 0.0
        assert calculate_fee_share(1_000.0, 1_600.0, 2_000.0, 1_000_000.0, 2_100.0) == 0.0

    def test_narrow_range_earns_more_than_capital_share(self):
        price = 2_000.0
        lower, upper = price * 0.98, price * 1.02
        sizing = add_liquidity_amounts(2.5, 5_000.0, lower, upper, price)
        value = get_position_value_usd(sizing.liquidity, lower, upper, price)

        share = calculate_fee_share(sizing.liquidity, lower, upper, 10_000_000.0, price)

        assert share > value / 10_000_000.0
        assert share <= 1.0

    def test_fee_share_exact_value(self):
        liquidity, lower, upper, price, tvl = 1_000.0, 1_900.0, 2_100.0, 2_000.0, 10_000_000.0
        sqrt_price = math.sqrt(price)
        value = (liquidity * (1 / sqrt_price - 1 / math.sqrt(upper)) * price
                 + liquidity * (sqrt_price - math.sqrt(lower)))
        position_concentration = sqrt_price / (math.sqrt(upper) - math.sqrt(lower))
        # average LP holds +/- 20% around price
        avg_concentration = sqrt_price / (math.sqrt(2_400.0) - math.sqrt(1_600.0))

        share = calculate_fee_share(liquidity, lower, upper, tvl, price)

        assert share == pytest.approx(value / tvl * position_concentration / avg_concentration)

    def test_fee_share_with_wider_average_range(self):
        liquidity, lower, upper, price, tvl = 1_000.0, 1_900.0, 2_100.0, 2_000.0, 10_000_000.0
        value = get_position_value_usd(liquidity, lower, upper, price)
        sqrt_price = math.sqrt(price)
        position_concentration = sqrt_price / (math.sqrt(upper) - math.sqrt(lower))
        avg_concentration = sqrt_price / (math.sqrt(3_000.0) - math.sqrt(1_000.0))

        share = calculate_fee_share(liquidity, lower, upper, tvl, price, avg_pool_range_width=0.5)

        assert share == pytest.approx(value / tvl * position_concentration / avg_concentration)
        assert share > calculate_fee_share(liquidity, lower, upper, tvl, price)

    def test_fee_share_capped_at_one(self):
        assert calculate_fee_share(1_000_000.0, 1_990.0, 2_010.0, 100.0, 2_000.0) == 1.0

    def test_mev_cost_formula(self):
        cost = estimate_mev_cost(10_000.0, 10_000_000.0, 0.5, 30.0)
        size_factor = 1 + math.log10(1 + 0.001 * 100)

        assert cost == pytest.approx(10_000.0 * 0.003 * size_factor)

    def test_mev_small_trade_discount(self):
        full = estimate_mev_cost(500.0, 10_000_000.0, 0.5, 30.0)
        half = estimate_mev_cost(250.0, 10_000_000.0, 0.5, 30.0)

        # half the notional and half the discount factor
        assert half == pytest.approx(full / 4, rel=5e-3)

    def test_mev_factors_are_capped(self):
        cost = estimate_mev_cost(1_000_000.0, 1_000_000.0, 5.0, 30.0)

        assert cost == pytest.approx(1_000_000.0 * 0.003 * 2 * 2)

    def test_mev_zero_for_empty_trade(self):
        assert estimate_mev_cost(0.0, 1_000_000.0, 0.5) == 0.0
        assert estimate_mev_cost(1_000.0, 0.0, 0.5) == 0.0
