from .tenancy import BrandProfile, UserBrandScope
from .auth import User, Role, UserRole, SessionToken
from .inventory import Product, StockMutation
from .sales import SalesOrder, SalesOrderItem, Invoice, InvoiceItem
from .purchases import PurchaseDirect, PurchaseDirectItem
from .finance import Payment, Receipt, Expense
from .documents import DocumentSequence

__all__ = [
    "BrandProfile",
    "UserBrandScope",
    "User",
    "Role",
    "UserRole",
    "SessionToken",
    "Product",
    "StockMutation",
    "SalesOrder",
    "SalesOrderItem",
    "Invoice",
    "InvoiceItem",
    "PurchaseDirect",
    "PurchaseDirectItem",
    "Payment",
    "Receipt",
    "Expense",
    "DocumentSequence",
]
