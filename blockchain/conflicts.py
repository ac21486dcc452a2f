"""
Batch classification and the conflict model.

Every transaction of a batch is classified against a pool snapshot as VALID,
POTENTIALLY_VALID (some inputs are outputs of sibling candidates that are not
in the pool yet) or INVALID. Alongside, two graphs over the batch are kept,
both keyed by transaction hash:

* dependencies: tx -> siblings whose outputs it spends
* conflicts: undirected edges between transactions claiming the same UTXO
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Set

from blockchain.transaction import UTXO, Transaction, unique_by_hash
from blockchain.transaction_validator import (
    check_conservation,
    check_outputs,
    check_signature,
    check_structure,
)
from blockchain.utxo_pool import UTXOPool
from errors.exceptions import UnresolvedInputError, ValidationError

logger = logging.getLogger(__name__)


class TxStatus(str, Enum):
    UNSEEN = "unseen"
    VALID = "valid"
    POTENTIALLY_VALID = "potentially_valid"
    INVALID = "invalid"
    COMMITTED = "committed"


@dataclass(frozen=True)
class Classification:
    status: TxStatus
    reason: Optional[str] = None
    fee: Optional[Decimal] = None
    depends_on: FrozenSet[bytes] = field(default_factory=frozenset)


def classify_transaction(tx: Transaction, pool: UTXOPool,
                         producers: Mapping[UTXO, Transaction], verify) -> Classification:
    """
    Classify tx against pool, letting inputs be satisfied by sibling outputs.

    producers maps every UTXO created by a sibling candidate to that sibling.
    Malformed transactions, bad signatures and overspends are INVALID no
    matter what the siblings do; sibling outputs count at their face value.
    Fee is only reported when every input is in the pool.
    """
    try:
        check_structure(tx)
        depends_on = set()
        total_in = Decimal("0")
        for index, inp in enumerate(tx.inputs):
            utxo = inp.utxo
            if utxo in pool:
                spent = pool.get(utxo)
            else:
                sibling = producers.get(utxo)
                if sibling is None or sibling.hash == tx.hash:
                    raise UnresolvedInputError(utxo)
                spent = sibling.outputs[utxo.index]
                depends_on.add(sibling.hash)
            check_signature(tx, index, spent, verify)
            total_in += spent.value
        check_outputs(tx, pool)
        fee = check_conservation(tx, total_in)

        if depends_on:
            return Classification(TxStatus.POTENTIALLY_VALID, depends_on=frozenset(depends_on))
    except ValidationError as e:
        return Classification(TxStatus.INVALID, reason=f"{type(e).__name__}: {e.message}")
    return Classification(TxStatus.VALID, fee=fee)


def build_producers(batch: Iterable[Transaction]) -> Dict[UTXO, Transaction]:
    producers = {}
    for tx in batch:
        for utxo, _ in tx.produced_utxos():
            producers[utxo] = tx
    return producers


def find_conflicts(batch: Sequence[Transaction]) -> Dict[bytes, Set[bytes]]:
    """Adjacency map: every pair of distinct transactions sharing an input is an edge."""
    claims: Dict[UTXO, List[bytes]] = {}
    for tx in batch:
        for utxo in dict.fromkeys(tx.consumed_utxos()):
            claimants = claims.setdefault(utxo, [])
            if tx.hash not in claimants:
                claimants.append(tx.hash)

    conflicts: Dict[bytes, Set[bytes]] = {tx.hash: set() for tx in batch}
    for claimants in claims.values():
        if len(claimants) > 1:
            for a in claimants:
                for b in claimants:
                    if a != b:
                        conflicts[a].add(b)
    return conflicts


class ConflictModel:
    """Classification, dependency edges and conflict edges for one batch"""

    def __init__(self, batch: Sequence[Transaction], verify):
        self.transactions: Dict[bytes, Transaction] = {tx.hash: tx for tx in batch}
        self.order: List[bytes] = [tx.hash for tx in batch]
        self.verify = verify
        self.producers: Dict[UTXO, Transaction] = build_producers(batch)
        self.conflicts: Dict[bytes, Set[bytes]] = find_conflicts(batch)
        self.dependencies: Dict[bytes, Set[bytes]] = {h: set() for h in self.order}
        self.dependents: Dict[bytes, Set[bytes]] = {h: set() for h in self.order}
        self.statuses: Dict[bytes, TxStatus] = {h: TxStatus.UNSEEN for h in self.order}
        self.reasons: Dict[bytes, str] = {}
        self.fees: Dict[bytes, Decimal] = {}

    @classmethod
    def build(cls, batch: Sequence[Transaction], pool: UTXOPool, verify) -> "ConflictModel":
        unique = unique_by_hash(batch)
        if len(unique) != len(batch):
            logger.info(f"Ignoring {len(batch) - len(unique)} duplicate transactions in batch")
        model = cls(unique, verify)
        for tx_hash in model.order:
            model._apply(tx_hash, classify_transaction(
                model.transactions[tx_hash], pool, model.producers, verify))
        counts = {s.value: sum(1 for v in model.statuses.values() if v is s) for s in TxStatus}
        logger.info(f"Classified batch of {len(model.order)}: {counts}, "
                    f"{model.conflict_edge_count()} conflict edges")
        return model

    def _apply(self, tx_hash: bytes, result: Classification) -> Classification:
        self.statuses[tx_hash] = result.status
        for sibling in self.dependencies[tx_hash]:
            self.dependents[sibling].discard(tx_hash)
        self.dependencies[tx_hash] = set(result.depends_on)
        for sibling in result.depends_on:
            self.dependents[sibling].add(tx_hash)
        if result.status is TxStatus.INVALID:
            self.reasons[tx_hash] = result.reason
        if result.fee is not None:
            self.fees[tx_hash] = result.fee
        else:
            self.fees.pop(tx_hash, None)
        return result

    def reclassify(self, tx_hash: bytes, pool: UTXOPool) -> Classification:
        """Recompute a member's status against the current pool."""
        live = {
            utxo: tx for utxo, tx in self.producers.items()
            if self.statuses[tx.hash] in (TxStatus.VALID, TxStatus.POTENTIALLY_VALID)
        }
        return self._apply(tx_hash, classify_transaction(
            self.transactions[tx_hash], pool, live, self.verify))

    def mark_committed(self, tx_hash: bytes, fee: Decimal) -> None:
        self.statuses[tx_hash] = TxStatus.COMMITTED
        self.fees[tx_hash] = fee

    def mark_invalid(self, tx_hash: bytes, reason: str) -> None:
        self.statuses[tx_hash] = TxStatus.INVALID
        self.reasons[tx_hash] = reason

    def status(self, tx_hash: bytes) -> TxStatus:
        return self.statuses[tx_hash]

    def with_status(self, status: TxStatus) -> List[Transaction]:
        return [self.transactions[h] for h in self.order if self.statuses[h] is status]

    def candidates(self) -> List[Transaction]:
        """Members that can still end up committed."""
        return [self.transactions[h] for h in self.order
                if self.statuses[h] in (TxStatus.VALID, TxStatus.POTENTIALLY_VALID)]

    def unresolved(self) -> List[Transaction]:
        return self.with_status(TxStatus.POTENTIALLY_VALID)

    def conflict_edge_count(self) -> int:
        return sum(len(n) for n in self.conflicts.values()) // 2

    def conflicts_between(self, members: Iterable[bytes]) -> Dict[bytes, Set[bytes]]:
        """Conflict graph restricted to members."""
        keep = set(members)
        return {h: self.conflicts[h] & keep for h in self.order if h in keep}

    def dependency_map(self, pool: UTXOPool) -> Dict[bytes, Set[Optional[bytes]]]:
        """
        Which transaction provides each input: a sibling hash, or None for the pool.
        Members with an input found in neither are left out.
        """
        deps: Dict[bytes, Set[Optional[bytes]]] = {}
        for tx_hash in self.order:
            providers: Set[Optional[bytes]] = set()
            for utxo in self.transactions[tx_hash].consumed_utxos():
                if utxo in pool:
                    providers.add(None)
                elif utxo in self.producers:
                    providers.add(self.producers[utxo].hash)
                else:
                    break
            else:
                deps[tx_hash] = providers
        return deps
