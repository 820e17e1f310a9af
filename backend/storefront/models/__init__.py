from .catalog import Category, Product, Supplier
from .customers import Customer, ReservedLineItem
from .sales import Sale, SaleLine, Payment, Expense
from .auth import User, CatalogAccount, SessionToken
from .games import Game
from .ledger import LedgerEvent

__all__ = [
    'Category', 'Product', 'Supplier',
    'Customer', 'ReservedLineItem',
    'Sale', 'SaleLine', 'Payment', 'Expense',
    'User', 'CatalogAccount', 'SessionToken',
    'Game',
    'LedgerEvent',
]
