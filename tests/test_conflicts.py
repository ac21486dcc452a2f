"""
Tests for batch classification, dependency edges and conflict edges
"""

from decimal import Decimal

from blockchain.conflicts import ConflictModel, TxStatus, build_producers, find_conflicts
from blockchain.transaction import UTXO


def test_statuses_for_mixed_batch(genesis_pool, h0, alice, bob, carol, make_tx, verify):
    valid = make_tx([(h0, 0, alice)], [(9, bob)])
    child = make_tx([(valid.hash, 0, bob)], [(9, carol)])
    forged = make_tx([(h0, 1, bob)], [(5, bob)])
    overspend = make_tx([(h0, 2, bob)], [(21, carol)])
    orphan = make_tx([(b"\x11" * 32, 0, alice)], [(1, bob)])

    model = ConflictModel.build([child, valid, forged, overspend, orphan], genesis_pool, verify)

    assert model.status(valid.hash) is TxStatus.VALID
    assert model.fees[valid.hash] == Decimal("1")
    assert model.status(child.hash) is TxStatus.POTENTIALLY_VALID
    assert child.hash not in model.fees
    assert model.status(forged.hash) is TxStatus.INVALID
    assert model.reasons[forged.hash].startswith("SignatureMismatchError")
    assert model.status(overspend.hash) is TxStatus.INVALID
    assert model.reasons[overspend.hash].startswith("OverspendError")
    assert model.status(orphan.hash) is TxStatus.INVALID
    assert model.reasons[orphan.hash].startswith("UnresolvedInputError")


def test_dependency_edges(genesis_pool, h0, alice, bob, carol, make_tx, verify):
    parent = make_tx([(h0, 0, alice)], [(4, bob), (6, carol)])
    child = make_tx([(parent.hash, 0, bob), (parent.hash, 1, carol)], [(10, alice)])

    model = ConflictModel.build([parent, child], genesis_pool, verify)

    assert model.dependencies[child.hash] == {parent.hash}
    assert model.dependents[parent.hash] == {child.hash}
    assert model.dependencies[parent.hash] == set()
    assert model.unresolved() == [child]


def test_malformed_with_sibling_inputs_is_invalid_not_pending(genesis_pool, h0, alice, bob, make_tx, verify):
    parent = make_tx([(h0, 0, alice)], [(10, bob)])
    double = make_tx([(parent.hash, 0, bob), (parent.hash, 0, bob)], [(1, bob)])
    negative = make_tx([(parent.hash, 0, bob)], [(-1, bob)])

    model = ConflictModel.build([parent, double, negative], genesis_pool, verify)

    assert model.status(double.hash) is TxStatus.INVALID
    assert model.status(negative.hash) is TxStatus.INVALID
    assert model.reasons[double.hash].startswith("MalformedTransactionError")


def test_sibling_signature_checked_against_sibling_owner(genesis_pool, h0, alice, bob, carol, make_tx, verify):
    parent = make_tx([(h0, 0, alice)], [(10, bob)])
    thief = make_tx([(parent.hash, 0, carol)], [(10, carol)])

    model = ConflictModel.build([parent, thief], genesis_pool, verify)

    assert model.status(thief.hash) is TxStatus.INVALID
    assert model.reasons[thief.hash].startswith("SignatureMismatchError")


def test_overspending_a_sibling_output_is_invalid(genesis_pool, h0, alice, bob, carol, make_tx, verify):
    parent = make_tx([(h0, 0, alice)], [(10, bob)])
    greedy = make_tx([(parent.hash, 0, bob)], [(11, carol)])
    mixed = make_tx([(parent.hash, 0, bob), (h0, 2, bob)], [(31, carol)])
    exact = make_tx([(parent.hash, 0, bob), (h0, 2, bob)], [(30, carol)])

    model = ConflictModel.build([parent, greedy, mixed, exact], genesis_pool, verify)

    assert model.status(greedy.hash) is TxStatus.INVALID
    assert model.reasons[greedy.hash].startswith("OverspendError")
    assert model.dependencies[greedy.hash] == set()
    assert model.status(mixed.hash) is TxStatus.INVALID
    assert model.status(exact.hash) is TxStatus.POTENTIALLY_VALID
    assert exact.hash not in model.fees


def test_conflict_edges_are_symmetric(genesis_pool, h0, alice, bob, carol, make_tx, verify):
    tx1 = make_tx([(h0, 0, alice)], [(10, bob)])
    tx2 = make_tx([(h0, 0, alice)], [(10, carol)])
    tx3 = make_tx([(h0, 0, alice), (h0, 1, alice)], [(15, carol)])
    free = make_tx([(h0, 2, bob)], [(20, alice)])

    model = ConflictModel.build([tx1, tx2, tx3, free], genesis_pool, verify)

    assert model.conflicts[tx1.hash] == {tx2.hash, tx3.hash}
    assert model.conflicts[tx2.hash] == {tx1.hash, tx3.hash}
    assert model.conflicts[tx3.hash] == {tx1.hash, tx2.hash}
    assert model.conflicts[free.hash] == set()
    assert model.conflict_edge_count() == 3
    assert model.conflicts_between([tx1.hash, tx2.hash]) == {
        tx1.hash: {tx2.hash}, tx2.hash: {tx1.hash},
    }


def test_conflicts_independent_of_dependencies(genesis_pool, h0, alice, bob, carol, make_tx, verify):
    parent = make_tx([(h0, 0, alice)], [(10, bob)])
    child_a = make_tx([(parent.hash, 0, bob)], [(10, carol)])
    child_b = make_tx([(parent.hash, 0, bob)], [(9, alice)])

    model = ConflictModel.build([parent, child_a, child_b], genesis_pool, verify)

    assert model.conflicts[child_a.hash] == {child_b.hash}
    assert model.conflicts[parent.hash] == set()
    assert model.dependents[parent.hash] == {child_a.hash, child_b.hash}


def test_duplicates_are_ignored(genesis_pool, h0, alice, bob, make_tx, verify):
    tx = make_tx([(h0, 0, alice)], [(10, bob)])
    model = ConflictModel.build([tx, tx], genesis_pool, verify)
    assert model.order == [tx.hash]
    assert model.conflicts[tx.hash] == set()


def test_reclassify_after_parent_commit(genesis_pool, h0, alice, bob, carol, make_tx, verify):
    parent = make_tx([(h0, 0, alice)], [(10, bob)])
    child = make_tx([(parent.hash, 0, bob)], [(8, carol)])
    model = ConflictModel.build([parent, child], genesis_pool, verify)

    record = genesis_pool.commit(parent)
    model.mark_committed(parent.hash, record.fee)
    result = model.reclassify(child.hash, genesis_pool)

    assert result.status is TxStatus.VALID
    assert result.fee == Decimal("2")
    assert model.status(child.hash) is TxStatus.VALID
    assert model.dependencies[child.hash] == set()
    assert model.dependents[parent.hash] == set()


def test_reclassify_after_input_consumed_elsewhere(genesis_pool, h0, alice, bob, carol, make_tx, verify):
    parent = make_tx([(h0, 0, alice)], [(10, bob)])
    child = make_tx([(parent.hash, 0, bob)], [(8, carol)])
    rival = make_tx([(parent.hash, 0, bob)], [(10, bob)])
    model = ConflictModel.build([parent, child, rival], genesis_pool, verify)

    for tx in (parent, rival):
        model.mark_committed(tx.hash, genesis_pool.commit(tx).fee)

    assert model.reclassify(child.hash, genesis_pool).status is TxStatus.INVALID


def test_dependency_map(genesis_pool, h0, alice, bob, make_tx, verify):
    parent = make_tx([(h0, 0, alice)], [(10, bob)])
    child = make_tx([(parent.hash, 0, bob), (h0, 2, bob)], [(30, alice)])
    orphan = make_tx([(b"\x22" * 32, 0, bob)], [(1, bob)])

    model = ConflictModel.build([parent, child, orphan], genesis_pool, verify)
    deps = model.dependency_map(genesis_pool)

    assert deps[parent.hash] == {None}
    assert deps[child.hash] == {parent.hash, None}
    assert orphan.hash not in deps


def test_helpers(h0, alice, bob, make_tx):
    tx1 = make_tx([(h0, 0, alice)], [(4, bob), (6, bob)])
    tx2 = make_tx([(h0, 0, alice)], [(10, bob)])
    producers = build_producers([tx1, tx2])
    assert producers[UTXO(tx1.hash, 1)] is tx1
    assert UTXO(tx1.hash, 2) not in producers
    assert find_conflicts([tx1, tx2]) == {tx1.hash: {tx2.hash}, tx2.hash: {tx1.hash}}
