#!/usr/bin/env python3
"""
Vault State Machine

Owns the vault's balances and its (at most one) concentrated liquidity
position. States: Idle (no position) <-> Active (one open position).

Every operation takes the current VaultState and returns the next one;
nothing is mutated in place, so the engine can snapshot state before and
after each tick.
"""

import math
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional, Tuple

from . import v3_math
from .actions import (
    ACTION_CLASSES, Action, AddLiquidity, RemoveLiquidity, Swap, VaultAction, is_real_action
)
from .pool import PoolSnapshot

# Positions whose liquidity drops to this level are closed
DUST_LIQUIDITY = 0.01


class VaultInvariantError(RuntimeError):
    """Raised when the vault is asked to do something the action set does not allow"""


@dataclass(frozen=True)
class Position:
    """Concentrated liquidity position over [lower, upper]"""
    lower: float
    upper: float
    liquidity: float
    opened_at_ms: int = 0

    def __post_init__(self):
        if not self.lower < self.upper:
            raise ValueError(f"Position lower bound {self.lower} must be below upper bound {self.upper}")

    def amounts(self, price: float) -> v3_math.V3Amounts:
        return v3_math.get_amounts_for_liquidity(self.liquidity, self.lower, self.upper, price)

    def value_usd(self, price: float) -> float:
        return v3_math.get_position_value_usd(self.liquidity, self.lower, self.upper, price)

    def in_range(self, price: float) -> bool:
        return self.lower <= price <= self.upper

    @property
    def width(self) -> float:
        return self.upper - self.lower


@dataclass(frozen=True)
class VaultState:
    """Vault balances, open position and unclaimed rewards"""
    base_balance: float
    quote_balance: float
    position: Optional[Position] = None
    unclaimed_rewards_usd: float = 0.0

    @property
    def is_active(self) -> bool:
        return self.position is not None

    def inventory_value_usd(self, price: float) -> float:
        """Value of the idle balances (excluding the position)"""
        return self.base_balance * price + self.quote_balance

    def position_value_usd(self, price: float) -> float:
        return self.position.value_usd(price) if self.position else 0.0

    def total_value_usd(self, price: float) -> float:
        return self.inventory_value_usd(price) + self.position_value_usd(price)


@dataclass(frozen=True)
class ExecutionSettings:
    """Trading cost assumptions used when applying actions"""
    spread_bps: float = 0.0
    impact_bps: float = 0.0
    mev_bps: Optional[float] = None
    avg_pool_range_width: float = v3_math.DEFAULT_AVG_POOL_RANGE_WIDTH


@dataclass(frozen=True)
class AccrualResult:
    vault: VaultState
    fees_usd: float
    emissions_usd: float


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of applying one decision to the vault"""
    vault: VaultState
    gas_usd: float
    mev_usd: float
    slippage_usd: float


def create_vault(initial_capital_usd: float, price: float) -> VaultState:
    """Fund a vault with a 50/50 base/quote split at the given price"""
    return VaultState(
        base_balance=initial_capital_usd / 2 / price,
        quote_balance=initial_capital_usd / 2,
    )


# ---------------------------------------------------------------------------
# Vault operations
# ---------------------------------------------------------------------------

def remove_liquidity(vault: VaultState, price: float, percent: float) -> VaultState:
    """Withdraw `percent` (clamped to [0, 1]) of the open position"""
    position = vault.position
    if position is None:
        return vault

    fraction = max(0.0, min(1.0, percent))
    remaining_liquidity = position.liquidity * (1 - fraction)
    if remaining_liquidity <= DUST_LIQUIDITY:
        fraction = 1.0

    amounts = position.amounts(price)
    new_position = None if fraction >= 1.0 else replace(position, liquidity=remaining_liquidity)

    return replace(
        vault,
        base_balance=vault.base_balance + amounts.base_amount * fraction,
        quote_balance=vault.quote_balance + amounts.quote_amount * fraction,
        position=new_position,
    )


def add_liquidity(
    vault: VaultState,
    price: float,
    lower: float,
    upper: float,
    amount_usd: float,
    ts: int = 0
) -> VaultState:
    """
    Open a position over [lower, upper] from idle inventory.

    At most `amount_usd` worth of inventory is offered; liquidity is sized by
    the scarcer asset and exactly the consumed amounts leave the balances.
    Degenerate sizing (non-finite or zero liquidity) leaves the vault unchanged.
    """
    if not lower < upper or lower <= 0:
        return vault

    inventory_usd = vault.inventory_value_usd(price)
    if inventory_usd <= 0 or amount_usd <= 0:
        return vault

    offer = min(1.0, amount_usd / inventory_usd)
    sizing = v3_math.add_liquidity_amounts(
        vault.base_balance * offer, vault.quote_balance * offer, lower, upper, price
    )
    if not sizing.is_usable:
        return vault

    liquidity = sizing.liquidity
    base_used = min(sizing.base_used, vault.base_balance)
    quote_used = min(sizing.quote_used, vault.quote_balance)

    if vault.position is not None:
        # Callers remove before adding; fold any leftover position back into inventory
        vault = remove_liquidity(vault, price, 1.0)

    return replace(
        vault,
        base_balance=vault.base_balance - base_used,
        quote_balance=vault.quote_balance - quote_used,
        position=Position(lower=lower, upper=upper, liquidity=liquidity, opened_at_ms=ts),
    )


def swap(
    vault: VaultState,
    pool: PoolSnapshot,
    from_asset: str,
    amount: float,
    settings: ExecutionSettings
) -> Tuple[VaultState, float]:
    """
    Swap up to `amount` of `from_asset` at the effective (spread + impact) price.

    Returns the new state and the slippage cost in USD relative to mid price.
    """
    if amount <= 0:
        return vault, 0.0

    price = pool.price

    if from_asset == "base":
        base_used = min(amount, vault.base_balance)
        if base_used <= 0:
            return vault, 0.0
        trade_value = base_used * price
        execution_price = v3_math.get_effective_swap_price(
            price, trade_value, pool.liquidity_usd, False, settings.spread_bps, settings.impact_bps
        )
        quote_out = base_used * max(0.0, execution_price)
        new_vault = replace(
            vault,
            base_balance=vault.base_balance - base_used,
            quote_balance=vault.quote_balance + quote_out,
        )
        return new_vault, trade_value - quote_out

    if from_asset == "quote":
        quote_used = min(amount, vault.quote_balance)
        if quote_used <= 0:
            return vault, 0.0
        execution_price = v3_math.get_effective_swap_price(
            price, quote_used, pool.liquidity_usd, True, settings.spread_bps, settings.impact_bps
        )
        base_out = quote_used / execution_price
        new_vault = replace(
            vault,
            base_balance=vault.base_balance + base_out,
            quote_balance=vault.quote_balance - quote_used,
        )
        return new_vault, quote_used - base_out * price

    raise ValueError(f"Unknown swap asset: {from_asset}")


def claim_rewards(vault: VaultState) -> VaultState:
    """Move all unclaimed rewards into the quote balance"""
    if vault.unclaimed_rewards_usd <= 0:
        return vault
    return replace(
        vault,
        quote_balance=vault.quote_balance + vault.unclaimed_rewards_usd,
        unclaimed_rewards_usd=0.0,
    )


def deduct_cost(vault: VaultState, cost_usd: float, price: float) -> Tuple[VaultState, float]:
    """
    Pay a USD cost from idle balances: quote first, then base at `price`.

    Balances never go negative; the second value is the amount actually paid.
    """
    if cost_usd <= 0:
        return vault, 0.0

    if vault.quote_balance >= cost_usd:
        return replace(vault, quote_balance=vault.quote_balance - cost_usd), cost_usd

    shortfall = cost_usd - vault.quote_balance
    base_needed = shortfall / price
    base_paid = min(base_needed, vault.base_balance)
    paid = vault.quote_balance + base_paid * price

    return replace(vault, quote_balance=0.0, base_balance=vault.base_balance - base_paid), paid


# ---------------------------------------------------------------------------
# Per-tick accrual
# ---------------------------------------------------------------------------

def accrue(
    vault: VaultState,
    pool: PoolSnapshot,
    pool_fees_usd: float,
    dt_days: float,
    avg_pool_range_width: float = v3_math.DEFAULT_AVG_POOL_RANGE_WIDTH
) -> AccrualResult:
    """
    Accrue one tick of fees and emissions.

    CL position in range: fees = pool_fees_usd * fee share, paid to quote;
    emissions follow the position's share of pool liquidity. Out of range
    nothing accrues. Non-CL pools without a position earn APR on total value.
    """
    position = vault.position
    price = pool.price

    if position is not None:
        if not position.in_range(price):
            return AccrualResult(vault, 0.0, 0.0)

        fee_share = v3_math.calculate_fee_share(
            position.liquidity, position.lower, position.upper,
            pool.liquidity_usd, price, avg_pool_range_width
        )
        fees = pool_fees_usd * fee_share

        position_value = position.value_usd(price)
        if pool.liquidity_usd > 0:
            liquidity_share = min(1.0, position_value / pool.liquidity_usd)
        else:
            liquidity_share = 1.0
        pool_emissions = pool.liquidity_usd * pool.emissions_apr * (dt_days / 365)
        emissions = pool_emissions * liquidity_share

        return AccrualResult(
            replace(
                vault,
                quote_balance=vault.quote_balance + fees,
                unclaimed_rewards_usd=vault.unclaimed_rewards_usd + emissions,
            ),
            fees,
            emissions,
        )

    if pool.is_concentrated:
        return AccrualResult(vault, 0.0, 0.0)

    total = vault.total_value_usd(price)
    if total <= 0:
        return AccrualResult(vault, 0.0, 0.0)

    fees = total * pool.fees_apr * (dt_days / 365)
    emissions = total * pool.emissions_apr * (dt_days / 365)
    return AccrualResult(
        replace(
            vault,
            quote_balance=vault.quote_balance + fees,
            unclaimed_rewards_usd=vault.unclaimed_rewards_usd + emissions,
        ),
        fees,
        emissions,
    )


# ---------------------------------------------------------------------------
# Action dispatch
# ---------------------------------------------------------------------------

ActionHandler = Callable[[VaultState, Action, PoolSnapshot, ExecutionSettings, int], Tuple[VaultState, float]]


def _handle_remove(vault, action, pool, settings, ts):
    return remove_liquidity(vault, pool.price, action.percent), 0.0


def _handle_add(vault, action, pool, settings, ts):
    return add_liquidity(vault, pool.price, action.lower, action.upper, action.amount_usd, ts), 0.0


def _handle_swap(vault, action, pool, settings, ts):
    return swap(vault, pool, action.from_asset, action.amount, settings)


def _handle_claim(vault, action, pool, settings, ts):
    return claim_rewards(vault), 0.0


def _handle_noop(vault, action, pool, settings, ts):
    return vault, 0.0


ACTION_HANDLERS: Dict[VaultAction, ActionHandler] = {
    VaultAction.REMOVE_LIQUIDITY: _handle_remove,
    VaultAction.ADD_LIQUIDITY: _handle_add,
    VaultAction.SWAP: _handle_swap,
    VaultAction.CLAIM_REWARDS: _handle_claim,
    VaultAction.NOOP: _handle_noop,
}


def apply_action(
    vault: VaultState,
    action: Action,
    pool: PoolSnapshot,
    settings: ExecutionSettings,
    ts: int = 0
) -> Tuple[VaultState, float]:
    """Apply a single action. Returns the new state and its slippage cost."""
    action_type = getattr(action, "action_type", None)
    handler = ACTION_HANDLERS.get(action_type)
    if handler is None or type(action) is not ACTION_CLASSES.get(action_type):
        raise VaultInvariantError(f"Unhandled action type: {type(action).__name__}")
    return handler(vault, action, pool, settings, ts)


def estimate_mev_notional(vault: VaultState, actions: List[Action], price: float) -> float:
    """
    Trade value exposed to MEV for a set of actions.

    Swaps carry full exposure; liquidity adds/removes carry LP_MEV_EXPOSURE.
    """
    notional = 0.0
    for action in actions:
        if isinstance(action, Swap):
            value = action.amount * price if action.from_asset == "base" else action.amount
            notional += max(0.0, value)
        elif isinstance(action, RemoveLiquidity):
            fraction = max(0.0, min(1.0, action.percent))
            notional += vault.position_value_usd(price) * fraction * v3_math.LP_MEV_EXPOSURE
        elif isinstance(action, AddLiquidity):
            notional += max(0.0, action.amount_usd) * v3_math.LP_MEV_EXPOSURE
    return notional


def execute_actions(
    vault: VaultState,
    actions: List[Action],
    pool: PoolSnapshot,
    settings: ExecutionSettings,
    ts: int = 0
) -> Optional[ExecutionResult]:
    """
    Apply one rebalancing event.

    Gas is charged once per event and MEV (when configured) on the aggregate
    notional. Costs settle after withdrawals, swaps and claims, just before
    the first ADD_LIQUIDITY, so they are paid out of freed inventory.
    Returns None when the action list holds nothing but NOOPs.
    """
    real_actions = [action for action in actions if is_real_action(action)]
    if not real_actions:
        return None

    price = pool.price
    mev_cost = 0.0
    if settings.mev_bps is not None:
        notional = estimate_mev_notional(vault, real_actions, price)
        mev_cost = v3_math.estimate_mev_cost(notional, pool.liquidity_usd, pool.vol, settings.mev_bps)

    gas_paid = 0.0
    mev_paid = 0.0
    slippage = 0.0
    costs_settled = False

    for action in actions:
        if not costs_settled and action.action_type == VaultAction.ADD_LIQUIDITY:
            vault, gas_paid = deduct_cost(vault, pool.gas_usd, price)
            vault, mev_paid = deduct_cost(vault, mev_cost, price)
            costs_settled = True
        vault, action_slippage = apply_action(vault, action, pool, settings, ts)
        slippage += action_slippage

    if not costs_settled:
        vault, gas_paid = deduct_cost(vault, pool.gas_usd, price)
        vault, mev_paid = deduct_cost(vault, mev_cost, price)

    if not math.isfinite(vault.base_balance) or not math.isfinite(vault.quote_balance):
        raise VaultInvariantError("Vault balances became non-finite")

    return ExecutionResult(
        vault=vault,
        gas_usd=gas_paid,
        mev_usd=mev_paid,
        slippage_usd=slippage,
    )
