from .auth import Role, User
from .catalog import Category, Product, Discount
from .inventory import InventoryMovement
from .sales import Transaction, TransactionItem, TransactionSequence
from .feedback import CustomerFeedback, FarewellMessage

__all__ = [
    'Role', 'User',
    'Category', 'Product', 'Discount',
    'InventoryMovement',
    'Transaction', 'TransactionItem', 'TransactionSequence',
    'CustomerFeedback', 'FarewellMessage',
]
