"""Models package - exports all SQLAlchemy models."""
# Catalog
from pharmastock.models.vendor import Vendor, VENDOR_STATUSES
from pharmastock.models.category import ProductCategory
from pharmastock.models.product import Product, pack_unit_value
from pharmastock.models.customer import Customer

# Acquisition ledger
from pharmastock.models.purchase import Purchase, PurchaseStatus
from pharmastock.models.purchase_item import PurchaseItem

# Consumption ledger
from pharmastock.models.sale import Sale, PaymentMethod
from pharmastock.models.sale_item import SaleItem

# Access
from pharmastock.models.user_access import UserAccess

__all__ = [
    'Vendor', 'VENDOR_STATUSES', 'ProductCategory', 'Product', 'pack_unit_value', 'Customer',
    'Purchase', 'PurchaseStatus', 'PurchaseItem',
    'Sale', 'PaymentMethod', 'SaleItem',
    'UserAccess',
]
