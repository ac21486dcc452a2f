"""
Tests for single-transaction validation against a pool
"""

from decimal import Decimal

import pytest

from blockchain.transaction import UTXO, Transaction, TxOutput
from blockchain.transaction_validator import TransactionValidator
from errors.exceptions import (
    DuplicateTransactionError,
    MalformedTransactionError,
    OverspendError,
    SignatureMismatchError,
    UnresolvedInputError,
    ValidationError,
)


@pytest.fixture
def validator(genesis_pool, verify):
    return TransactionValidator(genesis_pool, verify)


def test_valid_transaction_and_fee(validator, h0, alice, bob, make_tx):
    tx = make_tx([(h0, 0, alice), (h0, 1, alice)], [(12, bob), (2.5, alice)])
    is_valid, error, fee = validator.validate_transaction(tx)
    assert is_valid is True
    assert error is None
    assert fee == Decimal("0.5")
    assert validator.is_valid(tx)
    assert validator.check_transaction(tx) == Decimal("0.5")


def test_zero_fee_is_valid(validator, h0, alice, bob, make_tx):
    tx = make_tx([(h0, 0, alice)], [(10, bob)])
    assert validator.validate_transaction(tx) == (True, None, Decimal("0"))


def test_missing_input(validator, h0, alice, bob, make_tx):
    tx = make_tx([(h0, 9, alice)], [(1, bob)])
    with pytest.raises(UnresolvedInputError):
        validator.check_transaction(tx)
    assert not validator.is_valid(tx)


def test_forged_signature(validator, h0, alice, bob, make_tx):
    # bob signs alice's output
    tx = make_tx([(h0, 0, bob)], [(10, bob)])
    with pytest.raises(SignatureMismatchError):
        validator.check_transaction(tx)


def test_signature_on_second_input_checked(validator, h0, alice, bob, make_tx):
    tx = make_tx([(h0, 0, alice), (h0, 2, alice)], [(30, alice)])
    with pytest.raises(SignatureMismatchError, match="input 1"):
        validator.check_transaction(tx)


def test_unsigned_input(validator, h0, bob):
    tx = Transaction.build([(h0, 0)], [(Decimal("10"), bob.public_key)])
    assert not validator.is_valid(tx)


def test_self_double_spend(validator, h0, alice, bob, make_tx):
    tx = make_tx([(h0, 0, alice), (h0, 0, alice)], [(20, bob)])
    with pytest.raises(MalformedTransactionError, match="more than once"):
        validator.check_transaction(tx)


def test_no_inputs(validator, bob):
    tx = Transaction.build([], [(Decimal("0"), bob.public_key)])
    with pytest.raises(MalformedTransactionError, match="no inputs"):
        validator.check_transaction(tx)


@pytest.mark.parametrize("value", ["-1", "NaN", "Infinity", "0.000000001"])
def test_bad_output_values(validator, h0, alice, bob, make_tx, value):
    tx = make_tx([(h0, 0, alice)], [(Decimal(value), bob)])
    with pytest.raises(MalformedTransactionError):
        validator.check_transaction(tx)


def test_overspend(validator, h0, alice, bob, make_tx):
    tx = make_tx([(h0, 0, alice)], [(12, bob)])
    with pytest.raises(OverspendError) as exc:
        validator.check_transaction(tx)
    assert exc.value.required == Decimal("12")
    assert exc.value.available == Decimal("10")

    is_valid, error, fee = validator.validate_transaction(tx)
    assert is_valid is False
    assert "Overspend" in error
    assert fee == Decimal("0")


def test_outputs_already_in_pool(validator, genesis_pool, h0, alice, bob, make_tx):
    tx = make_tx([(h0, 0, alice)], [(10, bob)])
    genesis_pool.add(UTXO(tx.hash, 0), TxOutput(Decimal("10"), bob.public_key))
    with pytest.raises(DuplicateTransactionError):
        validator.check_transaction(tx)


def test_all_failures_are_validation_errors():
    for exc in (MalformedTransactionError, OverspendError, SignatureMismatchError,
                UnresolvedInputError, DuplicateTransactionError):
        assert issubclass(exc, ValidationError)


def test_calculate_fee(validator, h0, alice, bob, make_tx):
    assert validator.calculate_fee(make_tx([(h0, 0, alice)], [(7, bob)])) == Decimal("3")
    assert validator.calculate_fee(make_tx([(h0, 8, alice)], [(7, bob)])) is None


def test_committed_transaction_is_not_valid_again(validator, genesis_pool, h0, alice, bob, make_tx):
    tx = make_tx([(h0, 0, alice)], [(10, bob)])
    assert validator.is_valid(tx)
    genesis_pool.commit(tx)
    assert not validator.is_valid(tx)


@pytest.mark.stub_verify
def test_stub_verifier_skips_signatures(validator, h0, bob):
    tx = Transaction.build([(h0, 0)], [(Decimal("10"), bob.public_key)])
    assert validator.is_valid(tx)
