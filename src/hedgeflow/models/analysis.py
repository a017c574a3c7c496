from datetime import datetime

from pydantic import BaseModel

from hedgeflow.models.options import DeltaData, MaxPainResult, StrikeExposure


class CacheInfo(BaseModel):
    timestamp: datetime
    age: str


class ChainAnalysis(BaseModel):
    ticker: str
    company_name: str | None = None
    spot_price: float | None = None
    change_24h_percent: float | None = None
    is_synthetic: bool = False
    sources: list[str] = []
    put_call_ratio: float = 1.0
    call_multiplier: float = 0.0
    put_multiplier: float = 0.0
    deltas: list[DeltaData] = []
    strikes: list[StrikeExposure] = []
    max_pain: list[MaxPainResult] = []
    gamma_flip: float | None = None
    cache: CacheInfo | None = None

    @property
    def net_hedging_shares(self) -> float:
        return sum(s.hedging_shares for s in self.strikes)

    @property
    def net_gamma_exposure(self) -> float:
        return sum(s.gamma_exposure for s in self.strikes)


class TickerRefreshResult(BaseModel):
    ticker: str
    success: bool
    is_synthetic: bool = False
    contract_count: int = 0
    error: str | None = None


class RefreshReport(BaseModel):
    results: list[TickerRefreshResult] = []

    @property
    def refreshed(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> list[str]:
        return [r.ticker for r in self.results if not r.success]
