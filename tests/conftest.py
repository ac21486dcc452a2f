# tests/conftest.py
"""
Shared fixtures for the test suite.

Key design points
─────────────────
1.  Make project-root importable so `from mempool import …` works no matter
    where pytest is launched.
2.  Provide real secp256k1 key pairs and a builder for signed transactions.
3.  Let tests opt-in to a fast "always-true" verifier via
    `@pytest.mark.stub_verify`; everything else exercises real signatures.
"""

from __future__ import annotations
import pathlib
import sys
from decimal import Decimal
import pytest

# ─────────────────────────────────────────────────────────────────────────────
#  Ensure the repo root is on sys.path
# ─────────────────────────────────────────────────────────────────────────────
ROOT = pathlib.Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

# Only now import modules that live in the repo
from blockchain.transaction import UTXO, Transaction, TxOutput, sha256d
from blockchain.utxo_pool import UTXOPool
from wallet.wallet import generate_keypair, sign_transaction, verify_signature


class Party:
    """A key pair with a name, for readable tests."""

    def __init__(self, name: str):
        self.name = name
        self.private_key, self.public_key = generate_keypair()

    def __repr__(self):
        return f"Party({self.name})"


# ─────────────────────────────── key pairs ──────────────────────────────────
@pytest.fixture(scope="session")
def alice() -> Party:
    return Party("alice")


@pytest.fixture(scope="session")
def bob() -> Party:
    return Party("bob")


@pytest.fixture(scope="session")
def carol() -> Party:
    return Party("carol")


# ───────────────────── conditional signature-verify stub ────────────────────
@pytest.fixture
def verify(request):
    """
    The signature oracle handed to validators and resolvers. Tests marked
    ``@pytest.mark.stub_verify`` get one that accepts every signature.
    """
    if request.node.get_closest_marker("stub_verify"):
        return lambda *a, **k: True
    return verify_signature


# ───────────────────────────── pool + builders ──────────────────────────────
@pytest.fixture
def h0() -> bytes:
    return sha256d(b"genesis")


@pytest.fixture
def genesis_pool(h0, alice, bob) -> UTXOPool:
    """(h0,0) = 10 to alice, (h0,1) = 5 to alice, (h0,2) = 20 to bob."""
    return UTXOPool({
        UTXO(h0, 0): TxOutput(Decimal("10"), alice.public_key),
        UTXO(h0, 1): TxOutput(Decimal("5"), alice.public_key),
        UTXO(h0, 2): TxOutput(Decimal("20"), bob.public_key),
    })


def build_tx(spends, outputs) -> Transaction:
    """
    spends:  [(prev_hash, index, signer Party), ...]
    outputs: [(value, recipient Party or raw key bytes), ...]
    """
    unsigned = Transaction.build(
        [(h, i) for h, i, _ in spends],
        [(Decimal(str(v)), getattr(to, "public_key", to)) for v, to in outputs],
    )
    if not spends:
        return unsigned
    return sign_transaction(unsigned, [signer.private_key for _, _, signer in spends])


@pytest.fixture
def make_tx():
    return build_tx
