#!/usr/bin/env python3
"""
Concentrated Liquidity Range Strategies

1. Range-Around-TWAP - re-centers the band on the long TWAP whenever price
   leaves the range or the volatility-derived width shifts by more than 0.5%
2. Trend Skew - shifts the band in the direction of short/long TWAP momentum

Both only apply to CL pools and share the same gas gate: the fee + emission
gain over one rebalance horizon must cover gas * min_gas_multiple.
"""

from typing import List

from ..core import v3_math
from ..core.actions import Action, AddLiquidity, RemoveLiquidity, Swap
from .base_strategy import (
    BaseStrategy, StrategyContext, StrategyDecision, band_width, clamp,
    estimate_fee_gain, is_worth_rebalance, noop_decision, total_vault_value,
    vetoed_decision
)

# Relative width change that counts as a volatility regime shift
WIDTH_CHANGE_TOLERANCE = 0.005


def build_reposition_actions(ctx: StrategyContext, lower: float, upper: float) -> List[Action]:
    """
    REMOVE the whole position, SWAP freed inventory to the new range's value
    split when needed, then ADD over [lower, upper].
    """
    price = ctx.pool.price
    vault = ctx.vault

    base_after = vault.base_balance
    quote_after = vault.quote_balance
    if vault.position is not None:
        amounts = vault.position.amounts(price)
        base_after += amounts.base_amount
        quote_after += amounts.quote_amount

    actions: List[Action] = [RemoveLiquidity(percent=1.0)]

    swap_needed = v3_math.get_rebalance_swap(base_after, quote_after, lower, upper, price)
    if swap_needed is not None:
        from_asset, amount = swap_needed
        actions.append(Swap(from_asset=from_asset, amount=amount))

    actions.append(AddLiquidity(lower=lower, upper=upper, amount_usd=total_vault_value(ctx)))
    return actions


class RangeAroundTWAPStrategy(BaseStrategy):
    """Keep a volatility-sized band centered on the long TWAP"""

    name = "range-around-twap"

    def decide(self, ctx: StrategyContext) -> StrategyDecision:
        if not ctx.pool.is_concentrated:
            return noop_decision("CL-only strategy")

        center = ctx.pool.twap_long
        width = band_width(ctx.pool.vol, ctx.params)
        lower = center * (1 - width)
        upper = center * (1 + width)

        position = ctx.vault.position
        price_out_of_range = position is None or not position.in_range(ctx.pool.price)
        width_changed = (
            position is None
            or abs(position.width / (2 * center) - width) > WIDTH_CHANGE_TOLERANCE
        )

        if not price_out_of_range and not width_changed:
            return noop_decision("Price inside range; width stable")

        expected_gain = estimate_fee_gain(ctx, total_vault_value(ctx))
        score = expected_gain - ctx.pool.gas_usd
        if not is_worth_rebalance(ctx.pool.gas_usd, expected_gain, ctx.params.min_gas_multiple):
            return vetoed_decision(score, "Fee gain below gas threshold")

        return StrategyDecision(
            should_rebalance=True,
            score=score,
            reason="Price out of range" if price_out_of_range else "Volatility regime shift",
            actions=build_reposition_actions(ctx, lower, upper),
        )


class TrendSkewStrategy(BaseStrategy):
    """Skew the band toward the prevailing trend"""

    name = "trend-skew"

    def decide(self, ctx: StrategyContext) -> StrategyDecision:
        if not ctx.pool.is_concentrated:
            return noop_decision("CL-only strategy")

        if ctx.pool.twap_long <= 0:
            return noop_decision("No trend signal")

        momentum = ctx.pool.twap_short / ctx.pool.twap_long - 1
        if abs(momentum) < ctx.params.trend_threshold:
            return noop_decision("No trend signal")

        skew = clamp(momentum * 2, -ctx.params.max_skew, ctx.params.max_skew)
        center = ctx.pool.price * (1 + skew)
        width = band_width(ctx.pool.vol, ctx.params)
        lower = center * (1 - width)
        upper = center * (1 + width)

        expected_gain = estimate_fee_gain(ctx, total_vault_value(ctx))
        score = expected_gain - ctx.pool.gas_usd
        if not is_worth_rebalance(ctx.pool.gas_usd, expected_gain, ctx.params.min_gas_multiple):
            return vetoed_decision(score, "Trend detected but gas too high")

        return StrategyDecision(
            should_rebalance=True,
            score=score,
            reason="Trend skew reposition",
            actions=build_reposition_actions(ctx, lower, upper),
        )
