from hedgeflow.models.analysis import (
    CacheInfo,
    ChainAnalysis,
    RefreshReport,
    TickerRefreshResult,
)
from hedgeflow.models.common import (
    ContractType,
    HedgeWeighting,
    InstrumentClass,
    SourceState,
)
from hedgeflow.models.options import (
    Contract,
    DeltaData,
    MaxPainResult,
    OptionsChain,
    StrikeExposure,
)

__all__ = [
    "CacheInfo",
    "ChainAnalysis",
    "Contract",
    "ContractType",
    "DeltaData",
    "HedgeWeighting",
    "InstrumentClass",
    "MaxPainResult",
    "OptionsChain",
    "RefreshReport",
    "SourceState",
    "StrikeExposure",
    "TickerRefreshResult",
]
