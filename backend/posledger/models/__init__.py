from .inventory import Product, Supplier, InventoryTransaction, PurchaseReceipt, PurchaseReceiptItem
from .customers import Customer
from .sales import SalesInvoice, SalesInvoiceItem

__all__ = [
    'Product', 'Supplier', 'InventoryTransaction', 'PurchaseReceipt', 'PurchaseReceiptItem',
    'Customer',
    'SalesInvoice', 'SalesInvoiceItem',
]
