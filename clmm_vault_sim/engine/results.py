#!/usr/bin/env python3
"""
Backtest Result Records

Immutable output of one backtest run and its JSON (camelCase) form.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class EquityPoint:
    ts: int
    value_usd: float
    price: float

    def to_dict(self) -> Dict[str, Any]:
        return {"ts": self.ts, "valueUsd": self.value_usd, "price": self.price}


@dataclass(frozen=True)
class ActionLogEntry:
    """One applied rebalancing decision"""
    ts: int
    strategy: str
    reason: str
    actions: List[str]
    gas_usd: float
    mev_usd: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ts": self.ts,
            "strategy": self.strategy,
            "reason": self.reason,
            "actions": list(self.actions),
            "gasUsd": self.gas_usd,
            "mevUsd": self.mev_usd,
        }


@dataclass(frozen=True)
class MarketSnapshot:
    """Rolling statistics at the last tick"""
    ts: int
    price: float
    twap_short: float
    twap_long: float
    vol: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ts": self.ts,
            "price": self.price,
            "twapShort": self.twap_short,
            "twapLong": self.twap_long,
            "vol": self.vol,
        }


@dataclass(frozen=True)
class BacktestSummary:
    start_value_usd: float
    end_value_usd: float
    total_return_pct: float
    annualized_return_pct: float
    fees_usd: float
    emissions_usd: float
    gas_usd: float
    mev_usd: float
    slippage_usd: float
    rebalances: int
    max_drawdown_pct: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "startValueUsd": self.start_value_usd,
            "endValueUsd": self.end_value_usd,
            "totalReturnPct": self.total_return_pct,
            "annualizedReturnPct": self.annualized_return_pct,
            "feesUsd": self.fees_usd,
            "emissionsUsd": self.emissions_usd,
            "gasUsd": self.gas_usd,
            "mevUsd": self.mev_usd,
            "slippageUsd": self.slippage_usd,
            "rebalances": self.rebalances,
            "maxDrawdownPct": self.max_drawdown_pct,
        }


@dataclass(frozen=True)
class BacktestMeta:
    generated_at: int  # epoch ms
    symbol: str
    pool_type: str
    points: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "generatedAt": self.generated_at,
            "symbol": self.symbol,
            "poolType": self.pool_type,
            "points": self.points,
        }


@dataclass(frozen=True)
class BacktestResult:
    """Full output of a backtest run"""
    meta: BacktestMeta
    summary: BacktestSummary
    equity_curve: List[EquityPoint] = field(default_factory=list)
    actions: List[ActionLogEntry] = field(default_factory=list)
    last_snapshot: Optional[MarketSnapshot] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "meta": self.meta.to_dict(),
            "summary": self.summary.to_dict(),
            "equityCurve": [point.to_dict() for point in self.equity_curve],
            "actions": [entry.to_dict() for entry in self.actions],
            "lastSnapshot": self.last_snapshot.to_dict() if self.last_snapshot else None,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "BacktestResult":
        meta = raw["meta"]
        summary = raw["summary"]
        snapshot = raw.get("lastSnapshot")

        return cls(
            meta=BacktestMeta(
                generated_at=meta["generatedAt"],
                symbol=meta["symbol"],
                pool_type=meta["poolType"],
                points=meta["points"],
            ),
            summary=BacktestSummary(
                start_value_usd=summary["startValueUsd"],
                end_value_usd=summary["endValueUsd"],
                total_return_pct=summary["totalReturnPct"],
                annualized_return_pct=summary["annualizedReturnPct"],
                fees_usd=summary["feesUsd"],
                emissions_usd=summary["emissionsUsd"],
                gas_usd=summary["gasUsd"],
                mev_usd=summary.get("mevUsd", 0.0),
                slippage_usd=summary.get("slippageUsd", 0.0),
                rebalances=summary["rebalances"],
                max_drawdown_pct=summary["maxDrawdownPct"],
            ),
            equity_curve=[
                EquityPoint(ts=point["ts"], value_usd=point["valueUsd"], price=point["price"])
                for point in raw.get("equityCurve", [])
            ],
            actions=[
                ActionLogEntry(
                    ts=entry["ts"],
                    strategy=entry["strategy"],
                    reason=entry["reason"],
                    actions=list(entry["actions"]),
                    gas_usd=entry["gasUsd"],
                    mev_usd=entry.get("mevUsd", 0.0),
                )
                for entry in raw.get("actions", [])
            ],
            last_snapshot=MarketSnapshot(
                ts=snapshot["ts"],
                price=snapshot["price"],
                twap_short=snapshot["twapShort"],
                twap_long=snapshot["twapLong"],
                vol=snapshot["vol"],
            ) if snapshot else None,
        )
