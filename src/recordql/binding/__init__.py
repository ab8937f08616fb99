"""
recordql binding module.

Binds a Schema to a table on a borrowed SQLAlchemy connection.
"""

from recordql.binding.executor import StatementExecutor
from recordql.binding.mutations import MutationExecutor
from recordql.binding.table import TableBinding
from recordql.binding.transaction import TransactionCoordinator, transaction

__all__ = [
    "TableBinding",
    "MutationExecutor",
    "StatementExecutor",
    "TransactionCoordinator",
    "transaction",
]
