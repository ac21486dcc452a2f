"""
Transaction validation module
Checks a single transaction against a UTXO pool snapshot
"""

import logging
from decimal import Decimal
from typing import Optional, Tuple

from blockchain.transaction import Transaction, TxOutput
from blockchain.utxo_pool import UTXOPool
from config.config import AMOUNT_PRECISION
from errors.exceptions import (
    DuplicateTransactionError,
    MalformedTransactionError,
    OverspendError,
    SignatureMismatchError,
    UnresolvedInputError,
    ValidationError,
)
from wallet.wallet import verify_signature

logger = logging.getLogger(__name__)


def check_structure(tx: Transaction) -> None:
    """Pool-independent input checks: at least one input, no UTXO claimed twice."""
    if not tx.inputs:
        raise MalformedTransactionError(f"Transaction {tx.txid} has no inputs")
    seen = set()
    for inp in tx.inputs:
        if inp.utxo in seen:
            raise MalformedTransactionError(
                f"Transaction {tx.txid} claims UTXO {inp.utxo} more than once"
            )
        seen.add(inp.utxo)


def check_outputs(tx: Transaction, pool: UTXOPool) -> None:
    for index, out in enumerate(tx.outputs):
        if not out.value.is_finite() or out.value < 0:
            raise MalformedTransactionError(
                f"Output {index} of {tx.txid} has invalid value {out.value}"
            )
        if out.value.normalize().as_tuple().exponent < -AMOUNT_PRECISION:
            raise MalformedTransactionError(
                f"Output {index} of {tx.txid} has more than {AMOUNT_PRECISION} decimal places"
            )
        if tx.utxo_for_output(index) in pool:
            raise DuplicateTransactionError(
                f"Output {tx.utxo_for_output(index)} of {tx.txid} already exists in the pool"
            )


def check_signature(tx: Transaction, index: int, spent: TxOutput, verify) -> None:
    inp = tx.inputs[index]
    if not verify(spent.owner, tx.raw_data_to_sign(index), inp.signature):
        raise SignatureMismatchError(
            f"Signature verification failed for input {index} ({inp.utxo}) of {tx.txid}"
        )


def check_conservation(tx: Transaction, total_in: Decimal) -> Decimal:
    total_out = tx.total_output()
    if total_out > total_in:
        raise OverspendError(total_out, total_in)
    return total_in - total_out


class TransactionValidator:
    """Validates transactions against the UTXO pool it was given"""

    def __init__(self, pool: UTXOPool, verify=verify_signature):
        self.pool = pool
        self.verify = verify

    def check_transaction(self, tx: Transaction) -> Decimal:
        """
        Raise a ValidationError subclass on the first failed check,
        otherwise return the fee.

        Checks (in order):
        1. every input claims a distinct UTXO that is in the pool, and its
           signature verifies under that UTXO's owner key
        2. every output value is non-negative and none of the outputs exists yet
        3. sum of inputs >= sum of outputs
        """
        check_structure(tx)

        total_in = Decimal("0")
        for index, inp in enumerate(tx.inputs):
            if inp.utxo not in self.pool:
                raise UnresolvedInputError(inp.utxo)
            spent = self.pool.get(inp.utxo)
            check_signature(tx, index, spent, self.verify)
            total_in += spent.value

        check_outputs(tx, self.pool)
        return check_conservation(tx, total_in)

    def validate_transaction(self, tx: Transaction) -> Tuple[bool, Optional[str], Decimal]:
        """
        Validate a single transaction.
        Returns (is_valid, error_message, transaction_fee)
        """
        try:
            fee = self.check_transaction(tx)
        except ValidationError as e:
            logger.debug(f"Transaction {tx.txid} rejected: {e.message}")
            return False, e.message, Decimal("0")
        return True, None, fee

    def is_valid(self, tx: Transaction) -> bool:
        return self.validate_transaction(tx)[0]

    def calculate_fee(self, tx: Transaction) -> Optional[Decimal]:
        """Fee of tx, or None while any input is not yet in the pool."""
        if any(inp.utxo not in self.pool for inp in tx.inputs):
            return None
        total_in = sum((self.pool.get(inp.utxo).value for inp in tx.inputs), Decimal("0"))
        return total_in - tx.total_output()
