from hedgeflow.output.formatters import (
    exposure_color,
    fmt_number,
    fmt_pct,
    fmt_price,
    fmt_ratio,
    fmt_signed,
    fmt_strike,
    pressure_bar,
)


class TestFmtSigned:
    def test_billions(self):
        assert fmt_signed(2_500_000_000) == "+2.50B"

    def test_millions(self):
        assert fmt_signed(-1_250_000) == "-1.25M"

    def test_thousands(self):
        assert fmt_signed(340_000) == "+340.0K"

    def test_small(self):
        assert fmt_signed(-12.4) == "-12"

    def test_zero(self):
        assert fmt_signed(0) == "+0"

    def test_none(self):
        assert fmt_signed(None) == "N/A"


class TestFmtPrice:
    def test_regular(self):
        assert fmt_price(45123.5) == "$45,123.50"

    def test_sub_dollar(self):
        assert fmt_price(0.4567) == "$0.4567"

    def test_none(self):
        assert fmt_price(None) == "N/A"


class TestOtherFormatters:
    def test_fmt_pct(self):
        assert fmt_pct(2.5) == "+2.50%"
        assert fmt_pct(-0.3) == "-0.30%"
        assert fmt_pct(None) == "N/A"

    def test_fmt_number(self):
        assert fmt_number(1234.567) == "1,234.57"
        assert fmt_number(None) == "N/A"

    def test_fmt_ratio(self):
        assert fmt_ratio(1.234) == "1.23x"

    def test_fmt_strike(self):
        assert fmt_strike(50000.0) == "50,000"
        assert fmt_strike(12.5) == "12.50"

    def test_exposure_color(self):
        assert exposure_color(1.0) == "green"
        assert exposure_color(-1.0) == "red"
        assert exposure_color(0.0) == "white"


class TestPressureBar:
    def test_all_buy(self):
        assert pressure_bar(10, 0) == "█" * 10

    def test_split(self):
        assert pressure_bar(3, 1, width=8) == "██████░░"

    def test_empty(self):
        assert pressure_bar(0, 0, width=4) == "░░░░"
