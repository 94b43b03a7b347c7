"""
Fixed protocol parameters shared with the on-chain raffle program.

The account layout and instruction encoding below MUST match the deployed
program byte for byte. Changing them breaks the crank.
"""

# Account layout: [jackpot u64][end_time u64][winner 32][count u32][count x 32]
PUBKEY_LEN = 32
JACKPOT_FMT = "<Q"
END_TIME_FMT = "<Q"
TICKET_COUNT_FMT = "<I"

# Anchor-style instruction discriminator: sha256("global:<name>")[:8]
INSTRUCTION_NAMESPACE = "global"
DISCRIMINATOR_LEN = 8

# SOL uses 9 decimals (lamports)
LAMPORTS_PER_SOL = 10**9

NO_WINNER_TEXT = "No winner (No tickets sold)"

# Commitment levels in increasing order of finality
COMMITMENT_LEVELS = ("processed", "confirmed", "finalized")

DEFAULT_POLL_INTERVAL_S = 60.0
DEFAULT_CONFIRM_COMMITMENT = "confirmed"
DEFAULT_CONFIRM_TIMEOUT_S = 60.0
DEFAULT_RPC_TIMEOUT_S = 30.0

# A recent blockhash stays valid for ~150 slots (~60-90s); past this age an
# unconfirmed signature can no longer land.
DEFAULT_PENDING_TTL_S = 150.0

TELEGRAM_API_BASE = "https://api.telegram.org"
