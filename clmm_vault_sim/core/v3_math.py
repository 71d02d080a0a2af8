#!/usr/bin/env python3
"""
Concentrated Liquidity (Uniswap V3 style) Math

Float implementation of the closed-form position formulas used by the vault:
- L = liquidity constant within a range [lower, upper]
- Price P inside the range:
    base  = L * (1/sqrt(P) - 1/sqrt(upper))
    quote = L * (sqrt(P) - sqrt(lower))
- P <= lower: position is 100% base
- P >= upper: position is 100% quote

Also provides swap pricing (spread + depth impact), fee share estimation
and MEV cost estimation. No state.
"""

import math
from dataclasses import dataclass
from typing import Optional, Tuple

BPS = 10_000.0

# Fraction of add/remove liquidity notional exposed to MEV extraction
LP_MEV_EXPOSURE = 0.10

# MEV baseline assumptions
MEV_BASELINE_VOL = 0.5
MEV_SMALL_TRADE_USD = 500.0
DEFAULT_MEV_BPS = 30.0

DEFAULT_AVG_POOL_RANGE_WIDTH = 0.2


@dataclass(frozen=True)
class V3Amounts:
    """Base/quote composition of a position"""
    base_amount: float
    quote_amount: float


@dataclass(frozen=True)
class LiquiditySizing:
    """Result of sizing a deposit into a range"""
    liquidity: float
    base_used: float
    quote_used: float

    @property
    def is_usable(self) -> bool:
        """False when sizing degenerated (zero/negative denominator)"""
        return math.isfinite(self.liquidity) and self.liquidity > 0


def get_amounts_for_liquidity(liquidity: float, lower: float, upper: float, price: float) -> V3Amounts:
    """Calculate base and quote amounts for a position at a given price"""
    sqrt_lower = math.sqrt(lower)
    sqrt_upper = math.sqrt(upper)

    if price <= lower:
        return V3Amounts(liquidity * (1 / sqrt_lower - 1 / sqrt_upper), 0.0)

    if price >= upper:
        return V3Amounts(0.0, liquidity * (sqrt_upper - sqrt_lower))

    sqrt_price = math.sqrt(price)
    return V3Amounts(
        liquidity * (1 / sqrt_price - 1 / sqrt_upper),
        liquidity * (sqrt_price - sqrt_lower),
    )


def get_position_value_usd(liquidity: float, lower: float, upper: float, price: float) -> float:
    """USD (quote) value of a position at the given price"""
    amounts = get_amounts_for_liquidity(liquidity, lower, upper, price)
    return amounts.base_amount * price + amounts.quote_amount


def add_liquidity_amounts(
    base_available: float,
    quote_available: float,
    lower: float,
    upper: float,
    price: float
) -> LiquiditySizing:
    """
    Size a deposit into [lower, upper] at the current price.

    Liquidity is limited by whichever asset runs out first; the returned
    base_used/quote_used are exactly what the position consumes. Unused
    inventory stays with the caller. A collapsed range yields a liquidity
    that is not finite; check `is_usable` before opening a position.
    """
    sqrt_lower = math.sqrt(lower)
    sqrt_upper = math.sqrt(upper)

    if price <= lower:
        base_denom = 1 / sqrt_lower - 1 / sqrt_upper
        liquidity = base_available / base_denom if base_denom > 0 else math.inf
        return LiquiditySizing(liquidity, base_available, 0.0)

    if price >= upper:
        quote_denom = sqrt_upper - sqrt_lower
        liquidity = quote_available / quote_denom if quote_denom > 0 else math.inf
        return LiquiditySizing(liquidity, 0.0, quote_available)

    sqrt_price = math.sqrt(price)
    base_denom = 1 / sqrt_price - 1 / sqrt_upper
    quote_denom = sqrt_price - sqrt_lower

    liquidity_from_base = base_available / base_denom if base_denom > 0 else math.inf
    liquidity_from_quote = quote_available / quote_denom if quote_denom > 0 else math.inf
    liquidity = min(liquidity_from_base, liquidity_from_quote)

    if not math.isfinite(liquidity):
        return LiquiditySizing(liquidity, 0.0, 0.0)

    return LiquiditySizing(liquidity, liquidity * base_denom, liquidity * quote_denom)


def get_range_base_value_fraction(lower: float, upper: float, price: float) -> float:
    """Fraction of a position's value held in base at the given price"""
    if price <= lower:
        return 1.0
    if price >= upper:
        return 0.0

    amounts = get_amounts_for_liquidity(1.0, lower, upper, price)
    base_value = amounts.base_amount * price
    total = base_value + amounts.quote_amount
    return base_value / total if total > 0 else 0.5


def get_rebalance_swap(
    base_amount: float,
    quote_amount: float,
    lower: float,
    upper: float,
    price: float
) -> Optional[Tuple[str, float]]:
    """
    Swap needed so inventory matches the value split of [lower, upper].

    Returns ("base", base_to_sell) or ("quote", quote_to_spend), or None
    when the inventory already matches.
    """
    base_value = base_amount * price
    total_value = base_value + quote_amount
    if total_value <= 0:
        return None

    target_base_value = total_value * get_range_base_value_fraction(lower, upper, price)
    excess_base_value = base_value - target_base_value

    if abs(excess_base_value) <= 1e-6:
        return None
    if excess_base_value > 0:
        return "base", excess_base_value / price
    return "quote", -excess_base_value


def _impact_factor(trade_value_usd: float, pool_liquidity_usd: float, impact_bps: float) -> float:
    if pool_liquidity_usd <= 0:
        return 0.0
    trade_ratio = trade_value_usd / pool_liquidity_usd
    # impact_bps is charged per 1% of pool depth
    return (impact_bps / BPS) * (trade_ratio * 100)


def get_effective_swap_price(
    mid_price: float,
    trade_value_usd: float,
    pool_liquidity_usd: float,
    is_buy: bool,
    spread_bps: float,
    impact_bps: float
) -> float:
    """
    Execution price including half the spread and depth impact.

    Args:
        mid_price: Current mid price (quote per base)
        trade_value_usd: Trade notional in USD
        pool_liquidity_usd: Pool depth in USD
        is_buy: True when buying base with quote
        spread_bps: Bid/ask spread in basis points
        impact_bps: Impact per 1% of pool liquidity, in basis points
    """
    half_spread = spread_bps / BPS / 2
    impact = _impact_factor(trade_value_usd, pool_liquidity_usd, impact_bps)

    if is_buy:
        return mid_price * (1 + half_spread + impact)
    return mid_price * (1 - half_spread - impact)


def get_liquidity_concentration(lower: float, upper: float, price: float) -> float:
    """
    Concentration of a range: sqrt(P) / (sqrt(upper) - sqrt(lower)).

    Narrower ranges earn more fees per unit of capital while in range.
    """
    sqrt_lower = math.sqrt(lower)
    sqrt_upper = math.sqrt(upper)
    sqrt_price = math.sqrt(max(lower, min(upper, price)))

    range_width = sqrt_upper - sqrt_lower
    if range_width <= 0:
        return 1.0
    return sqrt_price / range_width


def calculate_fee_share(
    position_liquidity: float,
    position_lower: float,
    position_upper: float,
    pool_tvl_usd: float,
    current_price: float,
    avg_pool_range_width: float = DEFAULT_AVG_POOL_RANGE_WIDTH
) -> float:
    """
    Share of pool fees earned by a position, in [0, 1].

    Capital share of pool TVL scaled by the position's concentration relative
    to an average LP holding a +/- avg_pool_range_width range. Zero when the
    price is outside the position's range.
    """
    if current_price < position_lower or current_price > position_upper:
        return 0.0

    position_concentration = get_liquidity_concentration(position_lower, position_upper, current_price)

    avg_lower = current_price * (1 - avg_pool_range_width)
    avg_upper = current_price * (1 + avg_pool_range_width)
    avg_concentration = get_liquidity_concentration(avg_lower, avg_upper, current_price)

    position_value_usd = get_position_value_usd(
        position_liquidity, position_lower, position_upper, current_price
    )

    if pool_tvl_usd <= 0 or position_value_usd >= pool_tvl_usd:
        return 1.0

    capital_share = position_value_usd / pool_tvl_usd
    concentration_ratio = position_concentration / avg_concentration if avg_concentration > 0 else 1.0

    return min(capital_share * concentration_ratio, 1.0)


def estimate_mev_cost(
    trade_value_usd: float,
    pool_liquidity_usd: float,
    volatility: float,
    base_mev_bps: float = DEFAULT_MEV_BPS
) -> float:
    """
    Estimated sandwich/MEV cost of a trade.

    tradeValue * bps/10000 * sizeFactor * volFactor * smallTradeDiscount where
    sizeFactor = min(2, 1 + log10(1 + 100 * trade/pool)), volFactor = vol/0.5
    clamped to [0.5, 2], and trades under $500 are discounted linearly.
    """
    if trade_value_usd <= 0 or pool_liquidity_usd <= 0:
        return 0.0

    trade_ratio = trade_value_usd / pool_liquidity_usd
    size_factor = min(2.0, 1 + math.log10(1 + trade_ratio * 100))
    vol_factor = max(0.5, min(2.0, volatility / MEV_BASELINE_VOL))

    if trade_value_usd < MEV_SMALL_TRADE_USD:
        small_trade_discount = trade_value_usd / MEV_SMALL_TRADE_USD
    else:
        small_trade_discount = 1.0

    mev_rate = (base_mev_bps / BPS) * size_factor * vol_factor * small_trade_discount
    return trade_value_usd * mev_rate

