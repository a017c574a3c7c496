"""Black-Scholes delta and gamma for European options."""

import math

from hedgeflow.models.common import ContractType

DEFAULT_VOLATILITY = 0.30
DEFAULT_RISK_FREE_RATE = 0.05
DAYS_PER_YEAR = 365.0

_SQRT_2 = math.sqrt(2.0)
_SQRT_2PI = math.sqrt(2.0 * math.pi)


def norm_cdf(x: float) -> float:
    return 0.5 * (1.0 + math.erf(x / _SQRT_2))


def norm_pdf(x: float) -> float:
    return math.exp(-0.5 * x * x) / _SQRT_2PI


def years_to_expiry(expiration_days: int) -> float:
    return expiration_days / DAYS_PER_YEAR


def _d1(spot: float, strike: float, t: float, vol: float, rate: float) -> float:
    return (math.log(spot / strike) + (rate + 0.5 * vol * vol) * t) / (
        vol * math.sqrt(t)
    )


def calculate_delta(
    spot: float,
    strike: float,
    time_to_expiry: float,
    volatility: float = DEFAULT_VOLATILITY,
    risk_free_rate: float = DEFAULT_RISK_FREE_RATE,
    option_type: ContractType = ContractType.CALL,
) -> float:
    """Delta in [-1, 1]; collapses to the payoff indicator at expiry.

    A non-positive volatility or spot is treated like expiry so the result
    stays finite.
    """
    if time_to_expiry <= 0 or volatility <= 0 or spot <= 0:
        if option_type == ContractType.CALL:
            return 1.0 if spot > strike else 0.0
        return -1.0 if spot < strike else 0.0

    d1 = _d1(spot, strike, time_to_expiry, volatility, risk_free_rate)
    if option_type == ContractType.CALL:
        return norm_cdf(d1)
    return -norm_cdf(-d1)


def calculate_gamma(
    spot: float,
    strike: float,
    time_to_expiry: float,
    volatility: float = DEFAULT_VOLATILITY,
    risk_free_rate: float = DEFAULT_RISK_FREE_RATE,
) -> float:
    """Gamma, identical for calls and puts; 0 outside the valid domain."""
    if time_to_expiry <= 0 or spot <= 0 or volatility <= 0:
        return 0.0

    d1 = _d1(spot, strike, time_to_expiry, volatility, risk_free_rate)
    return norm_pdf(d1) / (spot * volatility * math.sqrt(time_to_expiry))
