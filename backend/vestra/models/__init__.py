from .tenancy import Organization, Store, InvoiceSettings
from .auth import User, SessionToken
from .customers import Client
from .inventory import Color, Size, Product, ProductVariant, InventoryItem
from .sales import Sale, SaleItem
from .cash import CashClosure

__all__ = [
    'Organization', 'Store', 'InvoiceSettings',
    'User', 'SessionToken',
    'Client',
    'Color', 'Size', 'Product', 'ProductVariant', 'InventoryItem',
    'Sale', 'SaleItem',
    'CashClosure',
]
