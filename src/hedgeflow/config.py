import os

from pydantic import BaseModel, Field

POPULAR_TICKERS: list[str] = [
    "TSLA",
    "AAPL",
    "NVDA",
    "SPY",
    "QQQ",
    "MSFT",
    "GOOGL",
    "AMZN",
]

# Market open, midday, market close (hours, market timezone)
DEFAULT_REFRESH_HOURS: list[float] = [9.5, 12.0, 16.0]


class MaxPainConfig(BaseModel):
    min_strikes: int = 8
    max_spot_distance: float = 0.40  # fraction of spot
    horizon_days: int = 60
    max_expirations: int = 4


class EngineConfig(BaseModel):
    volatility: float = 0.30
    risk_free_rate: float = 0.05
    use_contract_iv: bool = True

    # Fraction of open interest assumed to need dealer hedging
    base_hedge_multiplier: float = 0.6
    call_multiplier_floor: float = 0.4
    call_multiplier_slope: float = 0.1
    put_call_ratio_threshold: float = 1.5

    max_pain: MaxPainConfig = Field(default_factory=MaxPainConfig)


class CacheConfig(BaseModel):
    refresh_hours: list[float] = Field(
        default_factory=lambda: DEFAULT_REFRESH_HOURS.copy()
    )
    refresh_lead_minutes: float = 30.0
    max_age_hours: float = 8.0
    market_timezone: str = "America/New_York"


def _env_key(name: str) -> str | None:
    value = (os.environ.get(name, "") or "").strip()
    if not value or "your_" in value:
        return None
    return value


class ProviderConfig(BaseModel):
    polygon_api_key: str | None = None
    marketdata_api_key: str | None = None
    alphavantage_api_key: str | None = None
    enable_yfinance: bool = True
    enable_crypto: bool = True
    timeout: float = 15.0

    @classmethod
    def from_env(cls) -> "ProviderConfig":
        timeout = os.environ.get("HEDGEFLOW_PROVIDER_TIMEOUT")
        yf_flag = os.environ.get("HEDGEFLOW_ENABLE_YFINANCE", "true")
        return cls(
            polygon_api_key=_env_key("POLYGON_API_KEY"),
            marketdata_api_key=_env_key("MARKETDATA_API_KEY"),
            alphavantage_api_key=_env_key("ALPHAVANTAGE_API_KEY"),
            enable_yfinance=yf_flag.strip().lower() in ("1", "true", "yes"),
            timeout=float(timeout) if timeout else 15.0,
        )
