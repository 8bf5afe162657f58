from .inventory import Product, StockMovement
from .transactions import Transaction, TransactionItem
from .auth import User, SessionToken

__all__ = [
    'Product', 'StockMovement',
    'Transaction', 'TransactionItem',
    'User', 'SessionToken',
]
