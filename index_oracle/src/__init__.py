"""
Basket Index Oracle

This module derives the peg of a synthetic asset from a weighted basket of
independently priced assets:
- Basket: Initial and fixed asset weights
- IndexOracle: Peg computation, staleness freeze and rollback
- IndexOracleContract: Message dispatch, authorization and atomic commits
- IndexOracleService: Periodic computation loop
- OracleRouter: Key to provider routing with protected keys
- LiquidityPoolMath: Spot and fair LP token prices
- StateStore: State persistence
- providers: Modular price provider implementations
"""

from .Basket import AssetWeights, Basket
from .ContractStatus import ContractStatus
from .IndexOracle import SIX_HOURS, IndexConfig, IndexOracle, Peg
from .IndexOracleContract import IndexOracleContract
from .IndexOracleService import IndexOracleService
from .OraclePrice import OraclePrice, ReferenceData
from .OracleRouter import OracleRouter
from .StateStore import CborStateStore, MemoryStateStore, StateStore

__all__ = [
    "AssetWeights",
    "Basket",
    "CborStateStore",
    "ContractStatus",
    "IndexConfig",
    "IndexOracle",
    "IndexOracleContract",
    "IndexOracleService",
    "MemoryStateStore",
    "OraclePrice",
    "OracleRouter",
    "Peg",
    "ReferenceData",
    "SIX_HOURS",
    "StateStore",
]
