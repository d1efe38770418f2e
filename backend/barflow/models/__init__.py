from .auth import User, SessionToken
from .catalog import Product, InventoryStock
from .shifts import ShiftSession, ShiftInventorySnapshot, ShiftItem, ShiftAuditEntry
from .credit import CreditCustomer, CreditTransaction
from .sales import Sale, SaleItem
from .settings import AppConfig

__all__ = [
    'User', 'SessionToken',
    'Product', 'InventoryStock',
    'ShiftSession', 'ShiftInventorySnapshot', 'ShiftItem', 'ShiftAuditEntry',
    'CreditCustomer', 'CreditTransaction',
    'Sale', 'SaleItem',
    'AppConfig',
]
