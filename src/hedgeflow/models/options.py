from pydantic import BaseModel, ConfigDict, Field

from hedgeflow.models.common import ContractType


class Contract(BaseModel):
    model_config = ConfigDict(frozen=True)

    strike: float = Field(gt=0)
    open_interest: int = Field(default=0, ge=0)
    volume: int | None = Field(default=None, ge=0)
    implied_volatility: float | None = Field(default=None, gt=0)
    expiration_days: int = Field(ge=0)
    type: ContractType


class OptionsChain(BaseModel):
    ticker: str
    company_name: str | None = None
    spot_price: float = 0.0  # 0 means unknown
    change_24h: float | None = None
    change_24h_percent: float | None = None
    implied_volatility: float | None = None
    calls: list[Contract] = []
    puts: list[Contract] = []
    sources: list[str] = []
    is_synthetic: bool = False

    @property
    def spot(self) -> float | None:
        return self.spot_price if self.spot_price > 0 else None

    @property
    def contracts(self) -> list[Contract]:
        return [*self.calls, *self.puts]

    @property
    def contract_count(self) -> int:
        return len(self.calls) + len(self.puts)


class DeltaData(BaseModel):
    strike: float
    type: ContractType
    expiration_days: int
    open_interest: int = 0
    volume: int | None = None
    delta: float
    gamma: float
    total_delta: float
    total_gamma: float
    hedging_shares: float  # positive = dealers buy
    gamma_exposure: float


class StrikeExposure(BaseModel):
    strike: float
    hedging_shares: float = 0.0
    gamma_exposure: float = 0.0
    buy_pressure: float = 0.0
    sell_pressure: float = 0.0
    call_open_interest: int = 0
    put_open_interest: int = 0


class MaxPainResult(BaseModel):
    max_pain_strike: float
    max_pain_value: float
    expiration_days: int
    total_open_interest: int = 0
    strike_count: int = 0
    is_reliable: bool = False
    reliability_notes: list[str] = []
