"""
Custom exception classes for transaction batch resolution
"""

class BlockchainError(Exception):
    """Base exception for ledger operations"""
    def __init__(self, message: str, code: str = None):
        super().__init__(message)
        self.message = message
        self.code = code or "BLOCKCHAIN_ERROR"

class ValidationError(BlockchainError):
    """Transaction validation failed"""
    def __init__(self, message: str):
        super().__init__(message, "VALIDATION_ERROR")

class MalformedTransactionError(ValidationError):
    """Transaction is structurally broken (self double-spend, negative output, no inputs)"""

class UnresolvedInputError(ValidationError):
    """Input is neither in the pool nor produced by a sibling candidate"""
    def __init__(self, utxo):
        super().__init__(f"Input {utxo} not found in UTXO pool")
        self.utxo = utxo

class SignatureMismatchError(ValidationError):
    """Invalid cryptographic signature on an input"""
    def __init__(self, message: str = "Invalid signature"):
        super().__init__(message)

class OverspendError(ValidationError):
    """Outputs are worth more than the consumed inputs"""
    def __init__(self, required, available):
        message = f"Overspend: outputs {required} exceed inputs {available}"
        super().__init__(message)
        self.required = required
        self.available = available

class DuplicateTransactionError(ValidationError):
    """Outputs of this transaction already exist in the pool"""

class PoolInvariantViolation(BlockchainError):
    """The UTXO pool was asked to do something a consistent resolver never asks"""
    def __init__(self, message: str):
        super().__init__(message, "POOL_INVARIANT_VIOLATION")

class UTXONotFoundError(PoolInvariantViolation):
    """Identifier is absent from the pool"""
    def __init__(self, utxo):
        super().__init__(f"UTXO {utxo} not found in pool")
        self.utxo = utxo

class UTXOAlreadyPresentError(PoolInvariantViolation):
    """Identifier already exists in the pool"""
    def __init__(self, utxo):
        super().__init__(f"UTXO {utxo} already present in pool")
        self.utxo = utxo

class EnumerationLimitError(BlockchainError):
    """Maximal set enumeration refused because the conflict graph is too large"""
    def __init__(self, size: int, limit: int):
        super().__init__(
            f"Conflict graph has {size} conflicting transactions, limit is {limit}",
            "ENUMERATION_LIMIT",
        )
        self.size = size
        self.limit = limit

class ConfigurationError(BlockchainError):
    """Unknown strategy or selection policy"""
    def __init__(self, message: str):
        super().__init__(message, "CONFIG_ERROR")
