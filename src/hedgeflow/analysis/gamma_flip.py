from collections.abc import Iterable

from hedgeflow.models.options import StrikeExposure


def find_gamma_flip(
    levels: Iterable[tuple[float, float]] | Iterable[StrikeExposure],
) -> float | None:
    """Price where net gamma exposure first changes sign, scanning upward.

    Accepts (strike, net_gex) pairs or StrikeExposure rows. The flip is
    linearly interpolated between the two strikes that bracket the change.
    """
    points: list[tuple[float, float]] = []
    for level in levels:
        if isinstance(level, StrikeExposure):
            points.append((level.strike, level.gamma_exposure))
        else:
            strike, gex = level
            points.append((float(strike), float(gex)))
    points.sort(key=lambda p: p[0])

    for (s1, g1), (s2, g2) in zip(points, points[1:]):
        if g1 * g2 < 0:
            weight = abs(g1) / (abs(g1) + abs(g2))
            return s1 + weight * (s2 - s1)
    return None
