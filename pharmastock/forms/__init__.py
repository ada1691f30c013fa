"""Forms package."""
from pharmastock.forms.catalog_forms import ProductForm, VendorForm, CategoryForm

__all__ = ['ProductForm', 'VendorForm', 'CategoryForm']
