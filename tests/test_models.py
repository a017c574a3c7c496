import pytest
from pydantic import ValidationError

from hedgeflow.models import (
    ChainAnalysis,
    Contract,
    ContractType,
    OptionsChain,
    RefreshReport,
    StrikeExposure,
    TickerRefreshResult,
)


class TestContractType:
    def test_from_code(self):
        assert ContractType.from_code("C") == ContractType.CALL
        assert ContractType.from_code("call") == ContractType.CALL
        assert ContractType.from_code(" Put ") == ContractType.PUT
        assert ContractType.from_code("p") == ContractType.PUT

    def test_unknown_code(self):
        with pytest.raises(ValueError):
            ContractType.from_code("straddle")


class TestContract:
    def test_frozen(self):
        c = Contract(strike=100, open_interest=5, expiration_days=7, type=ContractType.CALL)
        with pytest.raises(ValidationError):
            c.strike = 105

    def test_rejects_non_positive_strike(self):
        with pytest.raises(ValidationError):
            Contract(strike=0, expiration_days=7, type=ContractType.PUT)

    def test_rejects_negative_open_interest(self):
        with pytest.raises(ValidationError):
            Contract(strike=100, open_interest=-1, expiration_days=7, type=ContractType.PUT)


class TestOptionsChain:
    def test_zero_spot_is_unknown(self):
        chain = OptionsChain(ticker="BTC")
        assert chain.spot_price == 0.0
        assert chain.spot is None

    def test_contracts(self):
        call = Contract(strike=100, expiration_days=7, type=ContractType.CALL)
        put = Contract(strike=95, expiration_days=7, type=ContractType.PUT)
        chain = OptionsChain(ticker="AAPL", spot_price=101.0, calls=[call], puts=[put])
        assert chain.spot == 101.0
        assert chain.contracts == [call, put]
        assert chain.contract_count == 2


class TestChainAnalysis:
    def test_net_totals(self):
        analysis = ChainAnalysis(
            ticker="AAPL",
            strikes=[
                StrikeExposure(strike=95, hedging_shares=100, gamma_exposure=5),
                StrikeExposure(strike=100, hedging_shares=-40, gamma_exposure=-8),
            ],
        )
        assert analysis.net_hedging_shares == 60
        assert analysis.net_gamma_exposure == -3


class TestRefreshReport:
    def test_counts(self):
        report = RefreshReport(
            results=[
                TickerRefreshResult(ticker="AAPL", success=True),
                TickerRefreshResult(ticker="MSFT", success=False, error="x"),
            ]
        )
        assert report.refreshed == 1
        assert report.failed == ["MSFT"]

    def test_empty(self):
        report = RefreshReport()
        assert report.refreshed == 0
        assert report.failed == []
