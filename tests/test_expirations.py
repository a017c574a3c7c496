from datetime import date

from hedgeflow.data.expirations import (
    expiration_date,
    expiration_label,
    filter_standard_expirations,
    is_monthly_expiration,
    is_quarterly_expiration,
    is_standard_expiration,
    upcoming_standard_expirations,
)
from hedgeflow.models.common import ContractType
from hedgeflow.models.options import Contract


class TestExpirationRule:
    def test_third_friday_is_monthly(self):
        assert is_monthly_expiration(date(2025, 3, 21))
        assert is_standard_expiration(date(2025, 3, 21))

    def test_last_friday_of_quarter(self):
        d = date(2025, 3, 28)
        assert is_quarterly_expiration(d)
        assert not is_monthly_expiration(d)
        assert is_standard_expiration(d)

    def test_monday_excluded(self):
        assert not is_standard_expiration(date(2025, 3, 10))

    def test_fourth_friday_outside_quarter_end(self):
        assert is_monthly_expiration(date(2025, 4, 25))
        assert not is_quarterly_expiration(date(2025, 4, 25))

    def test_first_friday_excluded(self):
        assert not is_standard_expiration(date(2025, 3, 7))

    def test_labels(self):
        assert expiration_label(date(2025, 3, 28)) == "Quarterly"
        assert expiration_label(date(2025, 3, 21)) == "Monthly"
        assert expiration_label(date(2025, 3, 10)) == "Other"


class TestDayOffsets:
    def test_expiration_date(self):
        assert expiration_date(11, date(2025, 3, 10)) == date(2025, 3, 21)

    def test_filter(self):
        today = date(2025, 3, 10)
        contracts = [
            Contract(strike=100, expiration_days=days, type=ContractType.CALL)
            for days in (4, 11, 18, 25)
        ]
        kept = filter_standard_expirations(contracts, today)
        # 3/21 (monthly) and 3/28 (quarterly)
        assert [c.expiration_days for c in kept] == [11, 18]

    def test_upcoming(self):
        dates = upcoming_standard_expirations(date(2025, 3, 1), days=60)
        assert dates[:2] == [date(2025, 3, 21), date(2025, 3, 28)]
        assert date(2025, 4, 18) in dates
        assert all(d.weekday() == 4 for d in dates)
