import re

TICKER_ALIASES: dict[str, str] = {
    # Crypto
    "bitcoin": "BTC",
    "btc": "BTC",
    "ethereum": "ETH",
    "eth": "ETH",
    "solana": "SOL",
    "sol": "SOL",
    # Common company names
    "tesla": "TSLA",
    "apple": "AAPL",
    "appl": "AAPL",  # common typo
    "microsoft": "MSFT",
    "google": "GOOGL",
    "amazon": "AMZN",
    "meta": "META",
    "facebook": "META",
    "nvidia": "NVDA",
    "amd": "AMD",
    "netflix": "NFLX",
    "disney": "DIS",
}

CRYPTO_TICKERS: frozenset[str] = frozenset(
    {"BTC", "ETH", "SOL", "XRP", "ADA", "DOGE", "MATIC", "AVAX", "DOT", "LINK"}
)

CRYPTO_NAMES: dict[str, str] = {
    "BTC": "Bitcoin",
    "ETH": "Ethereum",
    "SOL": "Solana",
}

_TICKER_RE = re.compile(r"^[A-Z0-9][A-Z0-9.\-^]{0,14}$")


def normalize_ticker(raw: str) -> str:
    key = raw.strip().lower()
    if key in TICKER_ALIASES:
        return TICKER_ALIASES[key]
    return raw.strip().upper()


def is_crypto_ticker(ticker: str) -> bool:
    return ticker.strip().upper() in CRYPTO_TICKERS


def is_valid_ticker(ticker: str) -> bool:
    return bool(_TICKER_RE.match(ticker))
