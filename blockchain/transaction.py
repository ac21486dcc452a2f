"""
Transaction data types and their canonical encoding.

A transaction is an ordered list of inputs (each pointing at a prior output
and carrying a signature) and an ordered list of outputs. Its hash is the
double SHA-256 of the canonical encoding, which leaves signatures out so that
every input can sign the very bytes the hash is computed over.
"""

from __future__ import annotations

import hashlib
import struct
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Iterable, List, Sequence, Tuple

from wallet.wallet import derive_address

# limits of the canonical encoding: "<L" indexes and counts, "<H" length prefixes
MAX_INDEX = 0xFFFFFFFF
MAX_FIELD_BYTES = 0xFFFF


def sha256d(b: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(b).digest()).digest()


def _pack_bytes(b: bytes) -> bytes:
    return struct.pack("<H", len(b)) + b


def encode_amount(value: Decimal) -> bytes:
    """Fixed-point string form, so Decimal('10') and Decimal('10.00') hash alike."""
    if not value.is_finite():
        return str(value).encode()
    normalized = value.normalize()
    if normalized == 0:
        return b"0"
    return format(normalized, "f").encode()


@dataclass(frozen=True, order=True)
class UTXO:
    """Identifier of a transaction output: (creating transaction hash, output index)."""
    tx_hash: bytes
    index: int

    def __str__(self) -> str:
        return f"{self.tx_hash.hex()}:{self.index}"

    @classmethod
    def from_key(cls, key: str) -> "UTXO":
        txid, index = key.rsplit(":", 1)
        return cls(bytes.fromhex(txid), int(index))


@dataclass(frozen=True)
class TxOutput:
    value: Decimal
    owner: bytes

    @property
    def address(self) -> str:
        return derive_address(self.owner)

    def serialize(self) -> bytes:
        return _pack_bytes(encode_amount(self.value)) + _pack_bytes(self.owner)

    def to_dict(self) -> dict:
        return {
            "amount": str(self.value),
            "owner": self.owner.hex(),
            "address": self.address,
        }


@dataclass(frozen=True)
class TxInput:
    prev_tx_hash: bytes
    output_index: int
    signature: bytes = b""

    @property
    def utxo(self) -> UTXO:
        return UTXO(self.prev_tx_hash, self.output_index)

    def serialize(self) -> bytes:
        # signature deliberately not part of the encoding
        return _pack_bytes(self.prev_tx_hash) + struct.pack("<L", self.output_index)


@dataclass(frozen=True)
class Transaction:
    inputs: Tuple[TxInput, ...] = ()
    outputs: Tuple[TxOutput, ...] = ()
    hash: bytes = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "inputs", tuple(self.inputs))
        object.__setattr__(self, "outputs", tuple(self.outputs))
        try:
            encoded = self.serialize()
        except struct.error as e:
            raise ValueError(f"Transaction cannot be encoded: {e}") from e
        object.__setattr__(self, "hash", sha256d(encoded))

    @classmethod
    def build(cls, inputs: Iterable[Tuple[bytes, int]],
              outputs: Iterable[Tuple[Decimal, bytes]]) -> "Transaction":
        """Unsigned transaction from (prev_hash, index) and (value, owner) pairs."""
        return cls(
            inputs=tuple(TxInput(h, i) for h, i in inputs),
            outputs=tuple(TxOutput(Decimal(v), owner) for v, owner in outputs),
        )

    def __eq__(self, other):
        if not isinstance(other, Transaction):
            return NotImplemented
        return self.hash == other.hash

    def __hash__(self):
        return hash(self.hash)

    def __repr__(self) -> str:
        return f"Transaction({self.txid[:16]}, inputs={len(self.inputs)}, outputs={len(self.outputs)})"

    @property
    def txid(self) -> str:
        return self.hash.hex()

    def serialize(self) -> bytes:
        parts = [struct.pack("<L", len(self.inputs))]
        parts.extend(inp.serialize() for inp in self.inputs)
        parts.append(struct.pack("<L", len(self.outputs)))
        parts.extend(out.serialize() for out in self.outputs)
        return b"".join(parts)

    def raw_data_to_sign(self, index: int) -> bytes:
        """Payload the owner of input `index` signs."""
        if not 0 <= index < len(self.inputs):
            raise IndexError(f"Input index {index} out of range")
        return struct.pack("<L", index) + self.serialize()

    def with_signature(self, index: int, signature: bytes) -> "Transaction":
        inputs = list(self.inputs)
        inputs[index] = replace(inputs[index], signature=signature)
        return Transaction(inputs=tuple(inputs), outputs=self.outputs)

    def utxo_for_output(self, index: int) -> UTXO:
        return UTXO(self.hash, index)

    def consumed_utxos(self) -> List[UTXO]:
        return [inp.utxo for inp in self.inputs]

    def produced_utxos(self) -> List[Tuple[UTXO, TxOutput]]:
        return [(UTXO(self.hash, i), out) for i, out in enumerate(self.outputs)]

    def total_output(self) -> Decimal:
        return sum((out.value for out in self.outputs), Decimal("0"))

    def to_dict(self) -> dict:
        return {
            "txid": self.txid,
            "inputs": [
                {
                    "txid": inp.prev_tx_hash.hex(),
                    "utxo_index": inp.output_index,
                    "signature": inp.signature.hex(),
                }
                for inp in self.inputs
            ],
            "outputs": [
                {"utxo_index": i, "amount": str(out.value), "owner": out.owner.hex()}
                for i, out in enumerate(self.outputs)
            ],
        }


def unique_by_hash(batch: Sequence[Transaction]) -> List[Transaction]:
    """Drop repeated transactions, keeping first occurrence and arrival order."""
    seen = set()
    unique = []
    for tx in batch:
        if tx.hash in seen:
            continue
        seen.add(tx.hash)
        unique.append(tx)
    return unique
