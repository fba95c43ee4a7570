"""Unit tests for ledger replay"""

from loyalty.domain.ledger_transaction import LedgerTransaction, TransactionKind, replay


def _txn(id, balance_delta, stamps_delta, balance_after, stamps_after, kind=TransactionKind.EARN):
    return LedgerTransaction(
        id=id,
        account_id=1,
        kind=kind,
        balance_delta=balance_delta,
        stamps_delta=stamps_delta,
        balance_after=balance_after,
        stamps_after=stamps_after,
    )


def test_replay_of_empty_ledger_is_zero():
    assert replay([]) == (0, 0, None)


def test_replay_sums_deltas_in_order():
    transactions = [
        _txn(1, 23500, 0, 23500, 0),
        _txn(2, 0, 100, 23500, 100),
        _txn(3, 0, -100, 23500, 0, kind=TransactionKind.REDEEM),
        _txn(4, -1000, 0, 22500, 0, kind=TransactionKind.REDEEM),
    ]
    assert replay(transactions) == (22500, 0, None)


def test_replay_reports_first_inconsistent_snapshot():
    transactions = [
        _txn(1, 1000, 0, 1000, 0),
        _txn(2, 500, 0, 1400, 0),
        _txn(3, 0, 100, 1500, 999),
    ]
    balance, stamps, broken_at = replay(transactions)
    assert (balance, stamps) == (1500, 100)
    assert broken_at == 2
