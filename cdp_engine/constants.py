"""Engine-wide fixed-point and risk constants."""

# Fixed point
PRECISION = 10**18
FEED_DECIMALS = 8
ADDITIONAL_FEED_PRECISION = 10**10  # 8-decimal feed answers -> 18 decimals
MAX_UINT256 = 2**256 - 1

# Risk parameters (shared by every collateral type)
LIQUIDATION_THRESHOLD = 50  # 200% overcollateralized
LIQUIDATION_BONUS = 10  # 10% of the seized collateral
LIQUIDATION_PRECISION = 100
MIN_HEALTH_FACTOR = PRECISION

# Oracle
TIMEOUT = 3 * 60 * 60  # seconds before a feed answer is stale

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
