"""Seed prices and per-ticker parameters for the simulated driver."""

# Realistic starting prices for commonly watched Binance pairs
SEED_PRICES: dict[str, float] = {
    "BTCUSDT": 64000.00,
    "ETHUSDT": 3100.00,
    "BNBUSDT": 580.00,
    "SOLUSDT": 145.00,
    "XRPUSDT": 0.52,
    "ADAUSDT": 0.45,
    "DOGEUSDT": 0.12,
    "AVAXUSDT": 28.00,
    "LINKUSDT": 14.00,
    "DOTUSDT": 6.00,
}

# Annualized volatility per pair (higher = more price movement)
TICKER_SIGMA: dict[str, float] = {
    "BTCUSDT": 0.55,
    "ETHUSDT": 0.65,
    "BNBUSDT": 0.60,
    "SOLUSDT": 0.90,  # High volatility
    "XRPUSDT": 0.80,
    "ADAUSDT": 0.85,
    "DOGEUSDT": 1.00,  # Very high volatility
    "AVAXUSDT": 0.90,
    "LINKUSDT": 0.85,
    "DOTUSDT": 0.80,
}

# Volatility for pairs not listed above
DEFAULT_SIGMA = 0.70

# Starting price range for unknown pairs
DEFAULT_PRICE_RANGE = (1.0, 500.0)

# Chance that a read shows the same price as the previous read
# (the page often has not ticked between polls)
UNCHANGED_PROBABILITY = 0.3

# Symbols that look like exchange pairs; anything else fails page validation
VALID_SYMBOL_PATTERN = r"^[A-Z0-9.\-]{2,15}$"
