import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Union

from blockchain.conflicts import ConflictModel, TxStatus
from blockchain.signatures import SignatureCache
from blockchain.transaction import UTXO, Transaction, TxOutput
from blockchain.transaction_validator import TransactionValidator
from blockchain.utxo_pool import CommitRecord, UTXOPool
from config.config import (
    DEFAULT_SELECTION,
    DEFAULT_STRATEGY,
    MAX_ENUMERATION_CANDIDATES,
    SELECTION_POLICIES,
    SIGNATURE_VERIFY_WORKERS,
    STRATEGIES,
)
from errors.exceptions import ConfigurationError, EnumerationLimitError, PoolInvariantViolation
from log_utils import get_logger, log_performance
from mempool.fee_priority import resolve_by_fee
from mempool.maximal_sets import SetCandidate, conflict_map_hex, search_maximal_sets, select_set
from wallet.wallet import verify_signature

logger = logging.getLogger(__name__)
perf_logger = get_logger(__name__)


@dataclass
class ResolutionResult:
    """Outcome of one batch: what was committed, in order, and what was left out and why."""
    strategy: str
    accepted: List[Transaction]
    commits: List[CommitRecord]
    pool: UTXOPool
    statuses: Dict[bytes, TxStatus]
    rejected: Dict[bytes, str] = field(default_factory=dict)
    dropped: Dict[bytes, str] = field(default_factory=dict)
    conflicts: Dict[bytes, set] = field(default_factory=dict)
    maximal_sets: List[SetCandidate] = field(default_factory=list)
    chosen_set: Optional[FrozenSet[bytes]] = None

    @property
    def total_fees(self) -> Decimal:
        return sum((c.fee for c in self.commits), Decimal("0"))

    @property
    def accepted_hashes(self) -> List[bytes]:
        return [tx.hash for tx in self.accepted]

    def to_dict(self) -> dict:
        return {
            "strategy": self.strategy,
            "accepted": [tx.txid for tx in self.accepted],
            "commits": [c.to_dict() for c in self.commits],
            "total_fees": str(self.total_fees),
            "statuses": {h.hex(): s.value for h, s in self.statuses.items()},
            "rejected": {h.hex(): r for h, r in self.rejected.items()},
            "dropped": {h.hex(): r for h, r in self.dropped.items()},
            "conflicts": conflict_map_hex({h: n for h, n in self.conflicts.items() if n}),
            "maximal_sets": [c.to_dict() for c in self.maximal_sets],
            "chosen_set": None if self.chosen_set is None else sorted(h.hex() for h in self.chosen_set),
            "pool": self.pool.to_dict(),
        }


def resolve_in_order(model: ConflictModel, pool: UTXOPool) -> List[CommitRecord]:
    """
    Arrival-order fixed point: commit whatever is valid in batch order,
    then keep sweeping the leftovers until a sweep commits nothing.
    """
    validator = TransactionValidator(pool, model.verify)
    pending = model.candidates()
    commits: List[CommitRecord] = []

    progress = True
    while pending and progress:
        progress = False
        for tx in list(pending):
            if not validator.is_valid(tx):
                continue
            record = pool.commit(tx)
            model.mark_committed(tx.hash, record.fee)
            commits.append(record)
            pending.remove(tx)
            progress = True

    for tx in pending:
        model.reclassify(tx.hash, pool)
    return commits


class BatchResolver:
    """
    Owns a UTXO pool and turns batches of proposed transactions into a
    mutually consistent, committed subset.
    """

    def __init__(self, pool: Union[UTXOPool, Mapping[UTXO, TxOutput], None] = None,
                 verify=verify_signature,
                 strategy: str = DEFAULT_STRATEGY,
                 selection: str = DEFAULT_SELECTION,
                 max_enumeration: Optional[int] = MAX_ENUMERATION_CANDIDATES,
                 verify_workers: int = SIGNATURE_VERIFY_WORKERS):
        self._check_strategy(strategy)
        if selection not in SELECTION_POLICIES:
            raise ConfigurationError(f"Unknown selection policy: {selection}")
        # own copy; later changes to the caller's mapping stay outside
        self.pool = UTXOPool(pool)
        self.verify = verify
        self.strategy = strategy
        self.selection = selection
        self.max_enumeration = max_enumeration
        self.verify_workers = verify_workers

    @staticmethod
    def _check_strategy(strategy: str):
        if strategy not in STRATEGIES:
            raise ConfigurationError(f"Unknown strategy: {strategy}")

    def is_valid(self, tx: Transaction) -> bool:
        return TransactionValidator(self.pool, self.verify).is_valid(tx)

    def _signature_cache(self, batch: Sequence[Transaction]) -> SignatureCache:
        cache = SignatureCache(self.verify)
        checks = [
            (self.pool.get(inp.utxo).owner, tx.raw_data_to_sign(i), inp.signature)
            for tx in batch
            for i, inp in enumerate(tx.inputs)
            if inp.utxo in self.pool
        ]
        cache.prefetch(checks, self.verify_workers)
        return cache

    def classify(self, batch: Sequence[Transaction]) -> ConflictModel:
        """Classification and conflict model against the current pool, no commits."""
        return ConflictModel.build(batch, self.pool, self._signature_cache(batch))

    def enumerate_maximal_sets(self, batch: Sequence[Transaction]) -> List[SetCandidate]:
        """All maximal conflict-free sets of the batch with their replay outcome."""
        return search_maximal_sets(self.classify(batch), self.pool, self.max_enumeration)

    @log_performance(perf_logger, "handle_transactions")
    def handle_transactions(self, batch: Iterable[Transaction],
                            strategy: Optional[str] = None) -> ResolutionResult:
        """
        Resolve one batch and commit the accepted transactions.

        The batch runs against a snapshot that replaces self.pool only once the
        whole batch succeeded; a PoolInvariantViolation leaves the pool as it was.
        """
        strategy = strategy or self.strategy
        self._check_strategy(strategy)
        batch = list(batch)
        log = perf_logger.with_context(batch_id=uuid.uuid4().hex[:8], strategy=strategy)
        log.info(f"Resolving batch of {len(batch)} transactions against pool of {len(self.pool)}")

        working = self.pool.snapshot()
        model = ConflictModel.build(batch, working, self._signature_cache(batch))
        maximal_sets: List[SetCandidate] = []
        chosen = None

        try:
            if strategy == "maximal":
                try:
                    maximal_sets = search_maximal_sets(model, working, self.max_enumeration)
                except EnumerationLimitError as e:
                    log.warning(f"{e.message}; falling back to fee priority")
                    strategy = "fee"
                else:
                    picked = select_set(maximal_sets, self.selection)
                    if picked is None:
                        log.warning("No consistent maximal set; falling back to fee priority")
                        strategy = "fee"
                    else:
                        chosen = picked.members

            if strategy == "ordered":
                commits = resolve_in_order(model, working)
            else:
                commits = resolve_by_fee(model, working, allowed=chosen)
        except PoolInvariantViolation as e:
            log.error(f"Pool invariant violated, aborting batch: {e.message}",
                      extra={"error_code": e.code})
            raise

        self.pool = working
        result = self._result(strategy, model, commits, maximal_sets, chosen)
        log.info(f"Accepted {len(result.accepted)} of {len(model.order)} transactions, "
                 f"fees {result.total_fees}, rejected {len(result.rejected)}, dropped {len(result.dropped)}")
        return result

    def _result(self, strategy: str, model: ConflictModel, commits: List[CommitRecord],
                maximal_sets: List[SetCandidate], chosen) -> ResolutionResult:
        dropped = {}
        for tx_hash in model.order:
            status = model.status(tx_hash)
            if status is TxStatus.POTENTIALLY_VALID:
                dropped[tx_hash] = "UnresolvedInput: waiting on a sibling that was never committed"
            elif status is TxStatus.VALID:
                dropped[tx_hash] = "not in the chosen conflict-free set"
        return ResolutionResult(
            strategy=strategy,
            accepted=[model.transactions[c.tx_hash] for c in commits],
            commits=commits,
            pool=self.pool,
            statuses=dict(model.statuses),
            rejected={h: model.reasons[h] for h in model.order
                      if model.status(h) is TxStatus.INVALID},
            dropped=dropped,
            conflicts={h: set(n) for h, n in model.conflicts.items()},
            maximal_sets=maximal_sets,
            chosen_set=chosen,
        )
