"""Core vault components: CLMM math, actions and the vault state machine"""

from .actions import VaultAction, Action
from .pool import PoolType, PoolSnapshot
from .vault import Position, VaultState, VaultInvariantError

__all__ = [
    "VaultAction", "Action",
    "PoolType", "PoolSnapshot",
    "Position", "VaultState", "VaultInvariantError"
]
