from enum import StrEnum


class ContractType(StrEnum):
    CALL = "call"
    PUT = "put"

    @staticmethod
    def from_code(code: str) -> "ContractType":
        """Parse vendor codes such as "C", "call" or "Put"."""
        normalized = code.strip().lower()
        if normalized in ("c", "call"):
            return ContractType.CALL
        if normalized in ("p", "put"):
            return ContractType.PUT
        raise ValueError(f"Unknown contract type: {code!r}")


class InstrumentClass(StrEnum):
    EQUITY = "equity"
    CRYPTO = "crypto"


class SourceState(StrEnum):
    """Health of the real data sources behind an instrument class or ticker."""

    UNKNOWN = "unknown"
    HEALTHY = "healthy"
    AUTH_FAILED = "auth_failed"
    SYNTHETIC_ONLY = "synthetic_only"


class HedgeWeighting(StrEnum):
    OPEN_INTEREST = "open_interest"
    VOLUME = "volume"
