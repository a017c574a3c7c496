import logging
from collections import defaultdict

from hedgeflow.config import MaxPainConfig
from hedgeflow.models.common import ContractType
from hedgeflow.models.options import Contract, MaxPainResult

logger = logging.getLogger(__name__)

CONTRACT_SIZE = 100


class MaxPainSolver:
    def __init__(self, config: MaxPainConfig | None = None) -> None:
        self.config = config or MaxPainConfig()

    def calculate(
        self,
        contracts: list[Contract],
        expiration_days: int,
        spot: float | None = None,
    ) -> MaxPainResult | None:
        expiring = [c for c in contracts if c.expiration_days == expiration_days]
        if not expiring:
            return None

        by_strike: dict[float, list[int]] = defaultdict(lambda: [0, 0])
        for c in expiring:
            side = 0 if c.type == ContractType.CALL else 1
            by_strike[c.strike][side] += c.open_interest

        strikes = sorted(by_strike)
        min_pain = float("inf")
        max_pain_strike = strikes[0]

        for price in strikes:
            pain = 0.0
            for strike, (call_oi, put_oi) in by_strike.items():
                if price > strike:
                    pain += (price - strike) * call_oi * CONTRACT_SIZE
                elif price < strike:
                    pain += (strike - price) * put_oi * CONTRACT_SIZE
            if pain < min_pain:
                min_pain = pain
                max_pain_strike = price

        total_oi = sum(call + put for call, put in by_strike.values())
        notes = self._reliability_notes(strikes, total_oi, max_pain_strike, spot)

        return MaxPainResult(
            max_pain_strike=max_pain_strike,
            max_pain_value=min_pain,
            expiration_days=expiration_days,
            total_open_interest=total_oi,
            strike_count=len(strikes),
            is_reliable=not notes,
            reliability_notes=notes,
        )

    def _reliability_notes(
        self,
        strikes: list[float],
        total_oi: int,
        winner: float,
        spot: float | None,
    ) -> list[str]:
        cfg = self.config
        notes: list[str] = []
        if len(strikes) < cfg.min_strikes:
            notes.append(f"only {len(strikes)} strikes (need {cfg.min_strikes})")
        if total_oi <= 0:
            notes.append("no open interest")
        if winner in (strikes[0], strikes[-1]):
            notes.append("max pain at edge of strike range")
        if spot and spot > 0:
            distance = abs(winner - spot) / spot
            if distance > cfg.max_spot_distance:
                notes.append(f"{distance:.0%} away from spot")
        return notes

    def calculate_upcoming(
        self,
        contracts: list[Contract],
        spot: float | None = None,
    ) -> list[MaxPainResult]:
        """Max pain for the nearest expirations inside the horizon."""
        cfg = self.config
        expirations = sorted(
            {
                c.expiration_days
                for c in contracts
                if 0 < c.expiration_days <= cfg.horizon_days
            }
        )[: cfg.max_expirations]

        results: list[MaxPainResult] = []
        for days in expirations:
            result = self.calculate(contracts, days, spot)
            if result:
                results.append(result)
        return results

    def calculate_nearest(
        self,
        contracts: list[Contract],
        spot: float | None = None,
    ) -> MaxPainResult | None:
        if not contracts:
            return None
        nearest = min(c.expiration_days for c in contracts)
        return self.calculate(contracts, nearest, spot)
