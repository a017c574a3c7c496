"""Synthetic options chains for when no real source can answer.

Open interest peaks at the money and tapers linearly with distance, with
random noise on top. Output is always flagged ``is_synthetic``.
"""

import logging
import math

import numpy as np

from hedgeflow.data.tickers import CRYPTO_NAMES
from hedgeflow.models.common import ContractType
from hedgeflow.models.options import Contract, OptionsChain

logger = logging.getLogger(__name__)

SYNTHETIC_SOURCE = "synthetic"

SYNTHETIC_SPOT_PRICES: dict[str, float] = {
    "TSLA": 250.0,
    "BTC": 45000.0,
    "ETH": 2500.0,
    "SOL": 100.0,
    "AAPL": 180.0,
    "NVDA": 500.0,
    "SPY": 450.0,
}
DEFAULT_SPOT = 100.0

STRIKE_RANGE = 0.30  # fraction of spot either side
STRIKE_STEP = 0.02
BASE_OPEN_INTEREST = 1000
EXPIRATION_DAYS = (7, 14, 21, 30, 45, 60, 90)


def _round_strike(value: float, spot: float) -> float:
    increment = 0.5 if spot < 25 else 5.0
    return round(value / increment) * increment


def synthetic_strikes(spot: float) -> list[float]:
    """Ascending, de-duplicated strikes from spot -30% in 2% steps."""
    low = spot * (1 - STRIKE_RANGE)
    step = spot * STRIKE_STEP
    count = round(2 * STRIKE_RANGE / STRIKE_STEP)
    strikes = (_round_strike(low + i * step, spot) for i in range(count))
    return sorted(dict.fromkeys(s for s in strikes if s > 0))


def generate_synthetic_chain(ticker: str, seed: int | None = None) -> OptionsChain:
    symbol = ticker.upper().strip()
    spot = SYNTHETIC_SPOT_PRICES.get(symbol, DEFAULT_SPOT)
    rng = np.random.default_rng(seed)

    calls: list[Contract] = []
    puts: list[Contract] = []
    strikes = synthetic_strikes(spot)
    for days in EXPIRATION_DAYS:
        noise = rng.uniform(0.5, 1.5, size=len(strikes))
        for strike, n in zip(strikes, noise, strict=True):
            distance = abs(strike - spot) / spot
            weight = max(0.1, 1 - 2 * distance)
            oi = math.floor(BASE_OPEN_INTEREST * weight * n)
            if oi <= 0:
                continue
            for ctype, bucket in ((ContractType.CALL, calls), (ContractType.PUT, puts)):
                bucket.append(
                    Contract(
                        strike=strike,
                        open_interest=oi,
                        expiration_days=days,
                        type=ctype,
                    )
                )

    logger.info("Generated synthetic chain for %s (%d contracts)", symbol, len(calls) * 2)
    return OptionsChain(
        ticker=symbol,
        company_name=CRYPTO_NAMES.get(symbol),
        spot_price=spot,
        calls=calls,
        puts=puts,
        sources=[SYNTHETIC_SOURCE],
        is_synthetic=True,
    )
