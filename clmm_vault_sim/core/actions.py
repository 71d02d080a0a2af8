#!/usr/bin/env python3
"""
Vault Actions

Closed set of actions a strategy can ask the vault to perform. Every
VaultAction member must have exactly one action class and one handler in
the vault state machine.
"""

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Dict, Type


class VaultAction(Enum):
    """Vault action types"""
    REMOVE_LIQUIDITY = "REMOVE_LIQUIDITY"
    ADD_LIQUIDITY = "ADD_LIQUIDITY"
    SWAP = "SWAP"
    CLAIM_REWARDS = "CLAIM_REWARDS"
    NOOP = "NOOP"


@dataclass(frozen=True)
class Action:
    """Base class for all vault actions"""
    action_type: ClassVar[VaultAction]

    @property
    def name(self) -> str:
        return self.action_type.value


@dataclass(frozen=True)
class RemoveLiquidity(Action):
    """Withdraw a fraction (0-1) of the open position"""
    action_type: ClassVar[VaultAction] = VaultAction.REMOVE_LIQUIDITY
    percent: float = 1.0


@dataclass(frozen=True)
class AddLiquidity(Action):
    """Open a position over [lower, upper] with up to amount_usd of inventory"""
    action_type: ClassVar[VaultAction] = VaultAction.ADD_LIQUIDITY
    lower: float = 0.0
    upper: float = 0.0
    amount_usd: float = 0.0


@dataclass(frozen=True)
class Swap(Action):
    """Sell `amount` of `from_asset` ("base" or "quote") for the other asset"""
    action_type: ClassVar[VaultAction] = VaultAction.SWAP
    from_asset: str = "base"
    amount: float = 0.0


@dataclass(frozen=True)
class ClaimRewards(Action):
    """Move unclaimed rewards into the quote balance"""
    action_type: ClassVar[VaultAction] = VaultAction.CLAIM_REWARDS
    min_usd: float = 0.0


@dataclass(frozen=True)
class Noop(Action):
    action_type: ClassVar[VaultAction] = VaultAction.NOOP


ACTION_CLASSES: Dict[VaultAction, Type[Action]] = {
    VaultAction.REMOVE_LIQUIDITY: RemoveLiquidity,
    VaultAction.ADD_LIQUIDITY: AddLiquidity,
    VaultAction.SWAP: Swap,
    VaultAction.CLAIM_REWARDS: ClaimRewards,
    VaultAction.NOOP: Noop,
}


def is_real_action(action: Action) -> bool:
    """True for anything other than NOOP"""
    return action.action_type != VaultAction.NOOP
