def fmt_pct(value: float | None, decimals: int = 2) -> str:
    if value is None:
        return "N/A"
    return f"{value:+.{decimals}f}%"


def fmt_number(value: float | None, decimals: int = 2) -> str:
    if value is None:
        return "N/A"
    return f"{value:,.{decimals}f}"


def fmt_signed(value: float | None) -> str:
    """Compact signed quantity: +1.25M, -340.0K, +12."""
    if value is None:
        return "N/A"
    abs_val = abs(value)
    sign = "-" if value < 0 else "+"
    if abs_val >= 1e9:
        return f"{sign}{abs_val / 1e9:.2f}B"
    if abs_val >= 1e6:
        return f"{sign}{abs_val / 1e6:.2f}M"
    if abs_val >= 1e3:
        return f"{sign}{abs_val / 1e3:.1f}K"
    return f"{sign}{abs_val:,.0f}"


def fmt_ratio(value: float | None, decimals: int = 2) -> str:
    if value is None:
        return "N/A"
    return f"{value:.{decimals}f}x"


def fmt_price(value: float | None) -> str:
    if value is None:
        return "N/A"
    if abs(value) < 1:
        return f"${value:,.4f}"
    return f"${value:,.2f}"


def fmt_strike(value: float) -> str:
    if value == int(value):
        return f"{value:,.0f}"
    return f"{value:,.2f}"


def exposure_color(value: float) -> str:
    if value > 0:
        return "green"
    if value < 0:
        return "red"
    return "white"


def pressure_bar(buy: float, sell: float, width: int = 10) -> str:
    total = buy + sell
    if total <= 0:
        return "░" * width
    filled = round(buy / total * width)
    return "█" * filled + "░" * (width - filled)
