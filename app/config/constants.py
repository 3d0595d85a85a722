"""
Application constants.

Centralized constants for the application.
"""

# ========================================================================
# CHAIN CONSTANTS
# ========================================================================

# Supported chains and their default public RPC endpoints.
# Override per chain with CHAIN_RPC_URLS.
SUPPORTED_CHAINS: dict[int, str] = {
    1: "https://ethereum-rpc.publicnode.com",  # Ethereum mainnet
    11155111: "https://ethereum-sepolia-rpc.publicnode.com",  # Sepolia
    56: "https://bsc-dataseed.binance.org/",  # BNB Smart Chain
    97: "https://data-seed-prebsc-1-s1.binance.org:8545/",  # BSC testnet
    137: "https://polygon-rpc.com",  # Polygon PoS
    80002: "https://rpc-amoy.polygon.technology",  # Polygon Amoy
    42161: "https://arb1.arbitrum.io/rpc",  # Arbitrum One
    10: "https://mainnet.optimism.io",  # OP Mainnet
}

# Chains whose block headers carry oversized extraData (PoA)
POA_CHAIN_IDS = frozenset({56, 97, 137, 80002})

# Maximum blocks per eth_getLogs request (most providers reject more)
MAX_BLOCK_RANGE = 1000

# ========================================================================
# EVENT CONSTANTS
# ========================================================================

# Event name stored when a log cannot be decoded with the subscription ABI
UNKNOWN_EVENT_NAME = "UnknownEvent"

# ========================================================================
# DELIVERY CONSTANTS
# ========================================================================

DEFAULT_MAX_RETRIES = 5
DEFAULT_DELIVERY_BATCH_SIZE = 50

# Stored response bodies are truncated to this many characters
RESPONSE_BODY_MAX_LENGTH = 1000

WEBHOOK_USER_AGENT = "chainhook-webhooks/1.0"
EVENT_ID_HEADER = "X-Chainhook-Event-Id"
ATTEMPT_HEADER = "X-Chainhook-Attempt"

# Default page size for management queries
DEFAULT_EVENTS_PAGE_SIZE = 50
