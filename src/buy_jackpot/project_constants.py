"""
Fixed parameters of the buy jackpot.

The probability bands and payout shares are the public rules of the game.
Changing them changes everyone's odds and MUST be publicly announced.
"""

from decimal import Decimal

LAMPORTS_PER_SOL = 1_000_000_000

# Lottery slots are numbered 1..100
DRAW_SLOTS = 100

# (low, high, percent): a USD value strictly inside (low, high) scores percent.
# Bounds are exclusive, so 200, 201, 300, ... fall through to the default.
PROBABILITY_BANDS = (
    (97, 200, 1),
    (201, 300, 2),
    (301, 400, 3),
    (401, 500, 4),
    (501, 600, 5),
    (601, 700, 6),
    (701, 800, 7),
    (801, 900, 8),
    (901, 1000, 9),
)
TOP_BAND_THRESHOLD = 1000
TOP_BAND_PERCENT = 10
DEFAULT_PERCENT = 2

# Buys below this USD value never enter a draw
MIN_BUY_USD = Decimal("100")

# Pump.fun tokens use 6 decimals; 1,000,000 tokens to qualify for the holder jackpot
TOKEN_DECIMALS = 6
HOLDER_MIN_RAW_BALANCE = 1_000_000 * (10**TOKEN_DECIMALS)

# Share of the live pool balance paid to a winner. The next jackpot shown to
# players is what a second win would pay after this one.
TRADE_PAYOUT_SHARE = Decimal("0.5")
HOLDER_PAYOUT_SHARE = Decimal("0.5")

# Addresses that can never win the holder jackpot (burn / incinerator)
BURN_ADDRESSES = frozenset(
    {
        "1nc1nerator11111111111111111111111111111111",
        "11111111111111111111111111111111",
    }
)

DEDUP_CAPACITY = 10_000
PRICE_TTL_SECONDS = 60.0
FALLBACK_FEE_LAMPORTS = 5000

COINGECKO_PRICE_URL = (
    "https://api.coingecko.com/api/v3/simple/price?ids=solana&vs_currencies=usd"
)
