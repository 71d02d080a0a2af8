#!/usr/bin/env python3
"""
Inventory and Reward Strategies

1. Inventory Target - keeps a 50/50 base:quote value split on non-CL pools
2. Reward Compound - claims accrued emissions once they clear the threshold
"""

from ..core.actions import ClaimRewards, Swap
from .base_strategy import (
    BaseStrategy, StrategyContext, StrategyDecision, estimate_fee_gain,
    is_worth_rebalance, noop_decision, vetoed_decision
)

TARGET_BASE_SHARE = 0.5


class InventoryTargetStrategy(BaseStrategy):
    """Swap back to the target split when inventory drifts"""

    name = "inventory-target"

    def decide(self, ctx: StrategyContext) -> StrategyDecision:
        if ctx.pool.is_concentrated:
            return noop_decision("Non-CL inventory rebalance")

        price = ctx.pool.price
        base_value = ctx.vault.base_balance * price
        quote_value = ctx.vault.quote_balance
        total = base_value + quote_value
        if total <= 0:
            return noop_decision("Empty vault")

        target_base_value = total * TARGET_BASE_SHARE
        drift = (base_value - target_base_value) / total
        if abs(drift) < ctx.params.drift_threshold:
            return noop_decision("Inventory within drift threshold")

        value_to_swap = abs(base_value - target_base_value)
        expected_gain = estimate_fee_gain(ctx, total)
        score = expected_gain - ctx.pool.gas_usd
        if not is_worth_rebalance(ctx.pool.gas_usd, expected_gain, ctx.params.min_gas_multiple):
            return vetoed_decision(score, "Inventory drift but gas too high")

        if drift > 0:
            action = Swap(from_asset="base", amount=value_to_swap / price)
        else:
            action = Swap(from_asset="quote", amount=value_to_swap)

        return StrategyDecision(
            should_rebalance=True,
            score=score,
            reason="Inventory drift rebalance",
            actions=[action],
        )


class RewardCompoundStrategy(BaseStrategy):
    """Claim unclaimed rewards into the quote balance"""

    name = "reward-compound"

    def decide(self, ctx: StrategyContext) -> StrategyDecision:
        rewards = ctx.vault.unclaimed_rewards_usd
        if rewards < ctx.params.rewards_claim_usd:
            return noop_decision("Rewards below threshold")

        score = rewards - ctx.pool.gas_usd
        if not is_worth_rebalance(ctx.pool.gas_usd, rewards, ctx.params.min_gas_multiple):
            return vetoed_decision(score, "Rewards claim below gas threshold")

        return StrategyDecision(
            should_rebalance=True,
            score=score,
            reason="Compound emissions",
            actions=[ClaimRewards(min_usd=ctx.params.rewards_claim_usd)],
        )
