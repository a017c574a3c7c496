import logging

import pandas as pd

from hedgeflow.analysis.pricing import (
    calculate_delta,
    calculate_gamma,
    years_to_expiry,
)
from hedgeflow.config import EngineConfig
from hedgeflow.models.common import ContractType, HedgeWeighting
from hedgeflow.models.options import Contract, DeltaData, StrikeExposure

logger = logging.getLogger(__name__)

CONTRACT_SIZE = 100


def _quantity(contract: Contract, weighting: HedgeWeighting) -> int:
    if weighting == HedgeWeighting.VOLUME:
        return contract.volume or 0
    return contract.open_interest


class HedgingExposureAggregator:
    """Turns open interest into dealer hedging and gamma exposure figures.

    Open interest mixes positions that need dealer hedging with covered calls
    and plain long holders, so every contract's exposure is scaled by a
    multiplier. The call side is discounted further when calls dominate the
    chain.
    """

    def __init__(self, config: EngineConfig | None = None) -> None:
        self.config = config or EngineConfig()

    def put_call_ratio(
        self,
        contracts: list[Contract],
        weighting: HedgeWeighting = HedgeWeighting.OPEN_INTEREST,
    ) -> float:
        call_qty = sum(
            _quantity(c, weighting) for c in contracts if c.type == ContractType.CALL
        )
        put_qty = sum(
            _quantity(c, weighting) for c in contracts if c.type == ContractType.PUT
        )
        return put_qty / call_qty if call_qty > 0 else 1.0

    def multipliers(self, put_call_ratio: float) -> tuple[float, float]:
        """Return (call multiplier, put multiplier)."""
        cfg = self.config
        base = cfg.base_hedge_multiplier
        call_mult = base
        if put_call_ratio > cfg.put_call_ratio_threshold:
            call_mult = max(
                cfg.call_multiplier_floor,
                base
                - cfg.call_multiplier_slope
                * (put_call_ratio - cfg.put_call_ratio_threshold),
            )
        return call_mult, base

    def compute(
        self,
        contracts: list[Contract],
        spot: float,
        weighting: HedgeWeighting = HedgeWeighting.OPEN_INTEREST,
    ) -> list[DeltaData]:
        if spot <= 0:
            logger.debug("Spot price unknown, skipping delta computation")
            return []

        ratio = self.put_call_ratio(contracts, weighting)
        call_mult, put_mult = self.multipliers(ratio)
        cfg = self.config

        results: list[DeltaData] = []
        for c in contracts:
            t = years_to_expiry(c.expiration_days)
            vol = cfg.volatility
            if cfg.use_contract_iv and c.implied_volatility:
                vol = c.implied_volatility

            delta = calculate_delta(
                spot, c.strike, t, vol, cfg.risk_free_rate, c.type
            )
            gamma = calculate_gamma(spot, c.strike, t, vol, cfg.risk_free_rate)

            mult = call_mult if c.type == ContractType.CALL else put_mult
            qty = _quantity(c, weighting)
            total_delta = delta * qty * CONTRACT_SIZE * mult
            total_gamma = gamma * qty * CONTRACT_SIZE * mult
            gex = -total_gamma if c.type == ContractType.CALL else total_gamma

            results.append(
                DeltaData(
                    strike=c.strike,
                    type=c.type,
                    expiration_days=c.expiration_days,
                    open_interest=c.open_interest,
                    volume=c.volume,
                    delta=delta,
                    gamma=gamma,
                    total_delta=total_delta,
                    total_gamma=total_gamma,
                    hedging_shares=-total_delta,
                    gamma_exposure=gex,
                )
            )
        return results

    def aggregate_by_strike(self, deltas: list[DeltaData]) -> list[StrikeExposure]:
        """Net exposure per strike, ascending.

        Buy and sell pressure come from the signed per-contract values, so a
        strike with offsetting calls and puts still shows both sides.
        """
        if not deltas:
            return []

        df = pd.DataFrame(
            {
                "strike": [d.strike for d in deltas],
                "hedging_shares": [d.hedging_shares for d in deltas],
                "gamma_exposure": [d.gamma_exposure for d in deltas],
                "call_open_interest": [
                    d.open_interest if d.type == ContractType.CALL else 0
                    for d in deltas
                ],
                "put_open_interest": [
                    d.open_interest if d.type == ContractType.PUT else 0
                    for d in deltas
                ],
            }
        )
        df["buy_pressure"] = df["hedging_shares"].clip(lower=0)
        df["sell_pressure"] = (-df["hedging_shares"]).clip(lower=0)

        grouped = df.groupby("strike", sort=True).sum()
        return [
            StrikeExposure(
                strike=float(strike),
                hedging_shares=float(row["hedging_shares"]),
                gamma_exposure=float(row["gamma_exposure"]),
                buy_pressure=float(row["buy_pressure"]),
                sell_pressure=float(row["sell_pressure"]),
                call_open_interest=int(row["call_open_interest"]),
                put_open_interest=int(row["put_open_interest"]),
            )
            for strike, row in grouped.iterrows()
        ]
