"""Tests for store balance calculation."""

from datetime import date, datetime, time, UTC
from decimal import Decimal

import pytest

from cnabproc.domain.balance import calculate_balance, signed_minor_amount
from cnabproc.domain.entities import Nature, Sign, Transaction, TransactionType
from cnabproc.domain.errors import ContractViolation

CREDIT = TransactionType(code=1, description="Debit", nature=Nature.INCOME, sign=Sign.CREDIT)
BOLETO = TransactionType(code=2, description="Boleto", nature=Nature.EXPENSE, sign=Sign.DEBIT)
FINANCING = TransactionType(code=3, description="Financing", nature=Nature.EXPENSE, sign=Sign.DEBIT)


def _transaction(amount: int, transaction_type, txn_id: int = 1) -> Transaction:
    return Transaction(
        id=txn_id,
        file_id="file-1",
        store_id=1,
        transaction_type=transaction_type,
        amount=amount,
        date=date(2019, 3, 1),
        time=time(15, 34, 53),
        tax_id="09620676017",
        card="4753****3153",
        created_at=datetime(2024, 3, 1, tzinfo=UTC),
    )


def test_balance_example():
    """Test 500 credit, 200 debit and 150 debit balance to exactly 150.00."""
    transactions = [
        _transaction(50000, CREDIT, 1),
        _transaction(20000, BOLETO, 2),
        _transaction(15000, FINANCING, 3),
    ]

    balance = calculate_balance(transactions)

    assert balance == Decimal("150.00")
    assert str(balance) == "150.00"


def test_empty_balance_is_zero():
    """Test a store without transactions balances to 0.00."""
    assert calculate_balance([]) == Decimal("0.00")


def test_negative_balance():
    """Test debits can exceed credits."""
    assert calculate_balance([_transaction(1, BOLETO)]) == Decimal("-0.01")


def test_signed_minor_amount_uses_type_sign():
    """Test the sign comes from the transaction type."""
    assert signed_minor_amount(_transaction(14200, CREDIT)) == 14200
    assert signed_minor_amount(_transaction(14200, BOLETO)) == -14200


def test_unresolved_type_is_contract_violation():
    """Test a transaction without a resolved type cannot be balanced."""
    with pytest.raises(ContractViolation):
        calculate_balance([_transaction(100, 2)])
