from .catalog import Product
from .parties import Customer, Supplier
from .orders import Order, OrderItem
from .ledger import Transaction, TransactionLine
from .auth import User, SessionToken

__all__ = [
    'Product',
    'Customer', 'Supplier',
    'Order', 'OrderItem',
    'Transaction', 'TransactionLine',
    'User', 'SessionToken',
]
