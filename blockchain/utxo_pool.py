"""
UTXO pool: the set of outputs that are spendable right now.

The pool is only ever changed one whole transaction at a time through
`commit`, which removes every consumed identifier and adds every produced one
or changes nothing at all.
"""

import logging
import threading
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterator, List, Mapping, Optional, Tuple, Union

from blockchain.transaction import UTXO, Transaction, TxOutput
from errors.exceptions import UTXOAlreadyPresentError, UTXONotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommitRecord:
    """What one commit did to the pool, for an external ledger to persist."""
    tx_hash: bytes
    spent: Tuple[UTXO, ...]
    created: Tuple[Tuple[UTXO, TxOutput], ...]
    fee: Decimal

    def to_dict(self) -> dict:
        return {
            "txid": self.tx_hash.hex(),
            "spent": [str(u) for u in self.spent],
            "created": [{"utxo": str(u), **out.to_dict()} for u, out in self.created],
            "fee": str(self.fee),
        }


class UTXOPool:
    def __init__(self, utxos: Optional[Union[Mapping[UTXO, TxOutput], "UTXOPool"]] = None):
        if isinstance(utxos, UTXOPool):
            with utxos._lock:
                self._utxos: Dict[UTXO, TxOutput] = dict(utxos._utxos)
        else:
            self._utxos = dict(utxos or {})
        self._lock = threading.RLock()

    # readers take the lock too, so none of them sees a half-applied commit

    def __contains__(self, utxo: UTXO) -> bool:
        return self.contains(utxo)

    def __len__(self) -> int:
        with self._lock:
            return len(self._utxos)

    def __iter__(self) -> Iterator[UTXO]:
        return iter(self.all_utxos())

    def __eq__(self, other):
        if not isinstance(other, UTXOPool):
            return NotImplemented
        return dict(self.items()) == dict(other.items())

    def __repr__(self) -> str:
        return f"UTXOPool(size={len(self)})"

    def contains(self, utxo: UTXO) -> bool:
        with self._lock:
            return utxo in self._utxos

    def get(self, utxo: UTXO) -> TxOutput:
        with self._lock:
            try:
                return self._utxos[utxo]
            except KeyError:
                raise UTXONotFoundError(utxo) from None

    def add(self, utxo: UTXO, output: TxOutput) -> None:
        with self._lock:
            if utxo in self._utxos:
                raise UTXOAlreadyPresentError(utxo)
            self._utxos[utxo] = output

    def remove(self, utxo: UTXO) -> None:
        with self._lock:
            if utxo not in self._utxos:
                raise UTXONotFoundError(utxo)
            del self._utxos[utxo]

    def commit(self, tx: Transaction) -> CommitRecord:
        """
        Apply tx to the pool as one unit.

        Every precondition is checked before the first mutation, so a failing
        commit leaves the pool exactly as it was.
        """
        with self._lock:
            spent = tuple(tx.consumed_utxos())
            created = tuple(tx.produced_utxos())

            seen = set()
            for utxo in spent:
                if utxo not in self._utxos or utxo in seen:
                    raise UTXONotFoundError(utxo)
                seen.add(utxo)
            for utxo, _ in created:
                if utxo in self._utxos:
                    raise UTXOAlreadyPresentError(utxo)

            total_in = sum((self._utxos[u].value for u in spent), Decimal("0"))
            for utxo in spent:
                del self._utxos[utxo]
            for utxo, output in created:
                self._utxos[utxo] = output

        fee = total_in - tx.total_output()
        logger.debug(f"Committed {tx.txid}: spent {len(spent)}, created {len(created)}, fee {fee}")
        return CommitRecord(tx.hash, spent, created, fee)

    def snapshot(self) -> "UTXOPool":
        return UTXOPool(self)

    def all_utxos(self) -> List[UTXO]:
        with self._lock:
            return sorted(self._utxos)

    def items(self) -> List[Tuple[UTXO, TxOutput]]:
        with self._lock:
            return sorted(self._utxos.items())

    def utxos_for(self, owner: bytes) -> List[UTXO]:
        return [u for u, out in self.items() if out.owner == owner]

    def balance_of(self, owner: bytes) -> Decimal:
        return sum((out.value for _, out in self.items() if out.owner == owner), Decimal("0"))

    def total_value(self) -> Decimal:
        return sum((out.value for _, out in self.items()), Decimal("0"))

    def to_dict(self) -> Dict[str, dict]:
        return {str(u): out.to_dict() for u, out in self.items()}
