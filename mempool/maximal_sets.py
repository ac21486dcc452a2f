"""
Maximal conflict-free set enumeration.

The conflict graph is searched for all maximal independent sets with a
Bron-Kerbosch style (included, candidates, excluded) search. Each set found
is then replayed against a copy of the pool; only sets whose members can all
be committed together are kept.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Set

from blockchain.conflicts import ConflictModel, TxStatus
from blockchain.transaction import Transaction
from blockchain.transaction_validator import TransactionValidator
from blockchain.utxo_pool import UTXOPool
from config.config import MAX_ENUMERATION_CANDIDATES
from errors.exceptions import ConfigurationError, EnumerationLimitError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SetCandidate:
    members: FrozenSet[bytes]
    consistent: bool
    total_fee: Optional[Decimal] = None

    def to_dict(self) -> dict:
        return {
            "members": sorted(h.hex() for h in self.members),
            "consistent": self.consistent,
            "total_fee": None if self.total_fee is None else str(self.total_fee),
        }


def enumerate_maximal_sets(vertices: Iterable[bytes], conflicts: Mapping[bytes, Set[bytes]],
                           limit: Optional[int] = MAX_ENUMERATION_CANDIDATES) -> List[FrozenSet[bytes]]:
    """
    All maximal independent sets of the conflict graph over `vertices`.

    Vertices without conflict edges belong to every maximal set, so only the
    conflicting ones are searched; `limit` caps how many of those there may be.
    """
    vertices = sorted(set(vertices))
    members = set(vertices)
    neighbors = {v: set(conflicts.get(v, ())) & members - {v} for v in vertices}
    isolated = frozenset(v for v in vertices if not neighbors[v])
    contested = [v for v in vertices if neighbors[v]]
    if limit is not None and len(contested) > limit:
        raise EnumerationLimitError(len(contested), limit)

    closed = {v: frozenset(neighbors[v] | {v}) for v in contested}
    found: List[FrozenSet[bytes]] = []

    stack = [(frozenset(), frozenset(contested), frozenset())]
    while stack:
        included, candidates, excluded = stack.pop()
        if not candidates:
            if not excluded:
                found.append(included | isolated)
            continue

        remaining = set(candidates)
        skipped = set(excluded)
        branches = []
        for v in sorted(candidates):
            branches.append((
                included | {v},
                frozenset(remaining - closed[v]),
                frozenset(skipped - closed[v]),
            ))
            remaining.discard(v)
            skipped.add(v)
        # reversed so branches are expanded in sorted order
        stack.extend(reversed(branches))

    logger.debug(f"Found {len(found)} maximal sets over {len(contested)} conflicting "
                 f"and {len(isolated)} free transactions")
    return found


def check_set_consistency(members: Iterable[Transaction], pool: UTXOPool,
                          verify) -> Optional[Decimal]:
    """
    Replay members against a copy of pool, in whatever order their
    dependencies allow. Returns the total fee if every member could be
    committed, None otherwise. `pool` itself is never touched.
    """
    working = pool.snapshot()
    validator = TransactionValidator(working, verify)
    pending = sorted(members, key=lambda tx: tx.hash)
    total_fee = Decimal("0")

    progress = True
    while pending and progress:
        progress = False
        for tx in list(pending):
            is_valid, _, fee = validator.validate_transaction(tx)
            if not is_valid:
                continue
            working.commit(tx)
            total_fee += fee
            pending.remove(tx)
            progress = True

    return None if pending else total_fee


def viable_candidates(model: ConflictModel) -> List[bytes]:
    """
    Candidates whose sibling dependencies can all still be satisfied;
    a transaction waiting on an INVALID sibling can never be committed.
    """
    viable = {tx.hash for tx in model.candidates()}
    changed = True
    while changed:
        changed = False
        for tx_hash in sorted(viable):
            if model.status(tx_hash) is TxStatus.POTENTIALLY_VALID and \
                    not model.dependencies[tx_hash] <= viable:
                viable.discard(tx_hash)
                changed = True
    return [h for h in model.order if h in viable]


def search_maximal_sets(model: ConflictModel, pool: UTXOPool,
                        limit: Optional[int] = MAX_ENUMERATION_CANDIDATES) -> List[SetCandidate]:
    vertices = viable_candidates(model)
    graph = model.conflicts_between(vertices)
    found = []
    for members in enumerate_maximal_sets(vertices, graph, limit):
        total_fee = check_set_consistency(
            (model.transactions[h] for h in members), pool, model.verify)
        found.append(SetCandidate(members, total_fee is not None, total_fee))
    logger.info(f"Maximal set search: {len(found)} sets, "
                f"{sum(1 for c in found if c.consistent)} consistent")
    return found


def select_set(found: List[SetCandidate], selection: str = "max_fee") -> Optional[SetCandidate]:
    consistent = [c for c in found if c.consistent]
    if not consistent:
        return None
    if selection == "first":
        return consistent[0]
    if selection == "max_fee":
        return max(consistent, key=lambda c: (c.total_fee, len(c.members), sorted(c.members)))
    raise ConfigurationError(f"Unknown selection policy: {selection}")


def conflict_map_hex(conflicts: Mapping[bytes, Set[bytes]]) -> Dict[str, List[str]]:
    return {h.hex(): sorted(n.hex() for n in ns) for h, ns in conflicts.items()}
