import os

DEFAULT_STRATEGY = os.environ.get("TXBATCH_STRATEGY", "fee")
DEFAULT_SELECTION = os.environ.get("TXBATCH_SELECTION", "max_fee")
STRATEGIES = ("fee", "maximal", "ordered")
SELECTION_POLICIES = ("max_fee", "first")

# Bron-Kerbosch enumeration is exponential in the number of conflicting
# transactions; above this many the resolver falls back to fee priority.
MAX_ENUMERATION_CANDIDATES = int(os.environ.get("TXBATCH_MAX_ENUMERATION", "18"))

SIGNATURE_VERIFY_WORKERS = int(os.environ.get("TXBATCH_VERIFY_WORKERS", "1"))
SIGNATURE_CURVE = "secp256k1"

AMOUNT_PRECISION = int(os.environ.get("TXBATCH_AMOUNT_PRECISION", "8"))

LOG_LEVEL = os.environ.get("TXBATCH_LOG_LEVEL", "INFO")
STRUCTURED_LOGGING = os.environ.get("TXBATCH_STRUCTURED_LOGS", "1") not in ("0", "false", "False")

ADDRESS_PREFIX = "bqs"
