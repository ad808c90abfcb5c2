"""Store balance calculation.

Balances are never stored. They are derived on demand from transactions whose
type has already been resolved, using the sign recorded on the type.
"""

from decimal import Decimal
from typing import Iterable

from cnabproc.domain.entities import Transaction, TransactionType
from cnabproc.domain.errors import ContractViolation

CENTS = Decimal("0.01")


def signed_minor_amount(transaction: Transaction) -> int:
    """Return the transaction amount in minor units with its type's sign applied.

    Raises:
        ContractViolation: If the transaction type was not resolved
    """
    txn_type = transaction.transaction_type
    if not isinstance(txn_type, TransactionType):
        raise ContractViolation(
            f"Transaction {transaction.id} has no resolved transaction type; "
            "load types before computing balances"
        )
    return transaction.amount * txn_type.sign.multiplier


def calculate_balance(transactions: Iterable[Transaction]) -> Decimal:
    """Return the signed sum of ``transactions`` in major units.

    An empty collection balances to 0.00.

    Raises:
        ContractViolation: If any transaction type was not resolved
    """
    total = sum(signed_minor_amount(transaction) for transaction in transactions)
    return (Decimal(total) / 100).quantize(CENTS)
