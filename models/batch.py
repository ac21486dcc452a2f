"""
Pydantic models for batch documents fed to the harness
"""

from decimal import Decimal
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator, model_validator

from blockchain.transaction import MAX_FIELD_BYTES, MAX_INDEX, UTXO, Transaction, TxInput, TxOutput
from blockchain.utxo_pool import UTXOPool
from config.config import SELECTION_POLICIES, STRATEGIES

MAX_HEX_LENGTH = 2 * MAX_FIELD_BYTES


def _check_hex(v: str) -> str:
    try:
        bytes.fromhex(v)
    except ValueError:
        raise ValueError('Must be a hex encoded string')
    return v.lower()


class UTXOEntry(BaseModel):
    txid: str = Field(..., min_length=2, max_length=MAX_HEX_LENGTH,
                      description="Hex hash of the creating transaction")
    utxo_index: int = Field(..., ge=0, le=MAX_INDEX)
    amount: Decimal
    owner: str = Field(..., min_length=2, max_length=MAX_HEX_LENGTH,
                       description="Hex encoded owner public key")

    @field_validator('txid', 'owner')
    @classmethod
    def validate_hex(cls, v):
        return _check_hex(v)

    def to_domain(self) -> Tuple[UTXO, TxOutput]:
        return UTXO(bytes.fromhex(self.txid), self.utxo_index), \
            TxOutput(self.amount, bytes.fromhex(self.owner))


class InputModel(BaseModel):
    txid: str = Field(..., min_length=2, max_length=MAX_HEX_LENGTH)
    utxo_index: int = Field(..., ge=0, le=MAX_INDEX)
    signature: str = Field("", description="Hex encoded signature")

    @field_validator('txid', 'signature')
    @classmethod
    def validate_hex(cls, v):
        return _check_hex(v)


class OutputModel(BaseModel):
    amount: Decimal
    owner: str = Field(..., min_length=2, max_length=MAX_HEX_LENGTH)

    @field_validator('owner')
    @classmethod
    def validate_hex(cls, v):
        return _check_hex(v)


class TransactionModel(BaseModel):
    txid: Optional[str] = Field(None, description="Expected hash; checked against the computed one")
    inputs: List[InputModel] = Field(default_factory=list)
    outputs: List[OutputModel] = Field(default_factory=list)

    @model_validator(mode='after')
    def validate_txid(self):
        # building the transaction also rejects anything the encoding cannot hold
        computed = self.to_domain().txid
        if self.txid is not None:
            if computed != self.txid.lower():
                raise ValueError(f'txid {self.txid} does not match computed hash {computed}')
        return self

    def to_domain(self) -> Transaction:
        return Transaction(
            inputs=tuple(
                TxInput(bytes.fromhex(i.txid), i.utxo_index, bytes.fromhex(i.signature))
                for i in self.inputs
            ),
            outputs=tuple(TxOutput(o.amount, bytes.fromhex(o.owner)) for o in self.outputs),
        )


class BatchRequest(BaseModel):
    pool: List[UTXOEntry] = Field(default_factory=list)
    transactions: List[TransactionModel] = Field(default_factory=list)
    strategy: Optional[str] = None
    selection: Optional[str] = None

    @field_validator('strategy')
    @classmethod
    def validate_strategy(cls, v):
        if v is not None and v not in STRATEGIES:
            raise ValueError(f'strategy must be one of {", ".join(STRATEGIES)}')
        return v

    @field_validator('selection')
    @classmethod
    def validate_selection(cls, v):
        if v is not None and v not in SELECTION_POLICIES:
            raise ValueError(f'selection must be one of {", ".join(SELECTION_POLICIES)}')
        return v

    @model_validator(mode='after')
    def validate_unique_pool(self):
        keys = [(e.txid, e.utxo_index) for e in self.pool]
        if len(keys) != len(set(keys)):
            raise ValueError('pool lists the same UTXO more than once')
        return self

    def to_pool(self) -> UTXOPool:
        return UTXOPool(dict(e.to_domain() for e in self.pool))

    def to_batch(self) -> List[Transaction]:
        return [t.to_domain() for t in self.transactions]
