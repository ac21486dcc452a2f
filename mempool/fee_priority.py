"""
Fee-priority propagation (the default commit path).

VALID transactions wait in a max-fee heap. Each pop re-validates the
transaction against the pool as it is now, commits it if it still holds up,
and then gives its dependents a chance to become VALID.
"""

import heapq
import logging
from typing import AbstractSet, List, Optional, Tuple

from blockchain.conflicts import ConflictModel, TxStatus
from blockchain.transaction_validator import TransactionValidator
from blockchain.utxo_pool import CommitRecord, UTXOPool

logger = logging.getLogger(__name__)


def resolve_by_fee(model: ConflictModel, pool: UTXOPool,
                   allowed: Optional[AbstractSet[bytes]] = None) -> List[CommitRecord]:
    """
    Commit transactions of `model` into `pool`, highest fee first.

    Heap entries hold only (-fee, hash); the fee a transaction is committed
    with is recomputed from the pool at pop time. Ties go to the smaller hash.
    If `allowed` is given, nothing outside it is ever committed.
    """
    validator = TransactionValidator(pool, model.verify)
    heap: List[Tuple] = []

    def push(tx_hash: bytes):
        if allowed is not None and tx_hash not in allowed:
            return
        heapq.heappush(heap, (-model.fees[tx_hash], tx_hash))

    for tx in model.with_status(TxStatus.VALID):
        push(tx.hash)

    commits: List[CommitRecord] = []
    while heap:
        _, tx_hash = heapq.heappop(heap)
        if model.status(tx_hash) in (TxStatus.COMMITTED, TxStatus.INVALID):
            continue

        tx = model.transactions[tx_hash]
        is_valid, error, _ = validator.validate_transaction(tx)
        if not is_valid:
            # a higher-fee sibling already spent one of its inputs
            model.mark_invalid(tx_hash, error)
            logger.info(f"Skipping {tx.txid}: {error}")
            continue

        record = pool.commit(tx)
        model.mark_committed(tx_hash, record.fee)
        commits.append(record)
        logger.debug(f"Committed {tx.txid} with fee {record.fee}")

        for dependent in sorted(model.dependents[tx_hash]):
            if model.status(dependent) is not TxStatus.POTENTIALLY_VALID:
                continue
            result = model.reclassify(dependent, pool)
            if result.status is TxStatus.VALID:
                push(dependent)
            elif result.status is TxStatus.INVALID:
                logger.info(f"Dependent {dependent.hex()} of {tx.txid} is invalid: {result.reason}")

    return commits
