"""Catalog service: product, vendor and category registration plus stock-annotated lookups."""
import logging
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy import or_, func
from sqlalchemy.exc import IntegrityError

from pharmastock.database import transaction
from pharmastock.models import Product, ProductCategory, Vendor, VENDOR_STATUSES, pack_unit_value
from pharmastock.exceptions import BusinessLogicError, NotFoundError
from pharmastock.services import stock_projector
from pharmastock.utils.formatters import date_iso

logger = logging.getLogger(__name__)


def _clean(value) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


# =====================================================
# REGISTRATION
# =====================================================

def register_product(data: Dict[str, Any], session, default_emoji: str = '💊') -> Product:
    """
    Create a product from validated form data.

    Unit value is coerced once here: missing, zero or negative becomes 1.
    """
    vendor_id = data.get('vendor_id')
    if vendor_id and session.get(Vendor, int(vendor_id)) is None:
        raise NotFoundError(f'Vendor {vendor_id} not found')

    product = Product(
        name=data['name'].strip(),
        category=_clean(data.get('category')),
        brand=_clean(data.get('brand')),
        dosage_form=_clean(data.get('dosage_form')),
        unit_value=pack_unit_value(data.get('unit_value')),
        unit_type=_clean(data.get('unit_type')),
        emoji=_clean(data.get('emoji')) or default_emoji,
        description=_clean(data.get('description')),
        vendor_id=int(vendor_id) if vendor_id else None,
        current_stock=0,
    )
    with transaction(session):
        session.add(product)
    logger.info(f"Product registered: {product.id} '{product.name}' ({product.unit_value} {product.unit_type})")
    return product


def register_vendor(data: Dict[str, Any], session) -> Vendor:
    status = data.get('status') or 'Active'
    if status not in VENDOR_STATUSES:
        raise BusinessLogicError(f'Invalid vendor status: {status}')

    vendor = Vendor(
        full_name=data['full_name'].strip(),
        business_name=_clean(data.get('business_name')),
        phone_number=_clean(data.get('phone_number')),
        email=_clean(data.get('email')),
        address=_clean(data.get('address')),
        website=_clean(data.get('website')),
        status=status,
    )
    with transaction(session):
        session.add(vendor)
    logger.info(f"Vendor registered: {vendor.id} '{vendor.display_name}'")
    return vendor


def create_category(name: str, session) -> ProductCategory:
    """Create a category; names are unique case-insensitively."""
    name = (name or '').strip()
    if not name:
        raise BusinessLogicError('Category name is required')

    existing = session.query(ProductCategory).filter(func.lower(ProductCategory.name) == name.lower()).first()
    if existing:
        raise BusinessLogicError(f'Category "{name}" already exists')

    category = ProductCategory(name=name)
    try:
        with transaction(session):
            session.add(category)
    except IntegrityError:
        raise BusinessLogicError(f'Category "{name}" already exists')
    return category


def list_categories(session) -> List[Dict[str, Any]]:
    return [{'id': c.id, 'name': c.name}
            for c in session.query(ProductCategory).order_by(ProductCategory.name).all()]


# =====================================================
# LOOKUPS
# =====================================================

def serialize_vendor(vendor: Vendor) -> Dict[str, Any]:
    return {
        'id': vendor.id,
        'full_name': vendor.full_name,
        'business_name': vendor.business_name,
        'display_name': vendor.display_name,
        'phone_number': vendor.phone_number,
        'email': vendor.email,
        'address': vendor.address,
        'website': vendor.website,
        'status': vendor.status,
    }


def list_vendors(session, search: str = '', status: str = 'All') -> List[Dict[str, Any]]:
    query = session.query(Vendor)

    search = (search or '').strip()
    if search:
        pattern = f'%{search.lower()}%'
        query = query.filter(or_(
            func.lower(Vendor.full_name).like(pattern),
            func.lower(Vendor.business_name).like(pattern),
            func.lower(Vendor.email).like(pattern),
            func.lower(Vendor.phone_number).like(pattern),
        ))

    if status and status != 'All':
        if status not in VENDOR_STATUSES:
            raise BusinessLogicError(f'Invalid vendor status: {status}')
        query = query.filter(Vendor.status == status)

    return [serialize_vendor(v) for v in query.order_by(Vendor.full_name).all()]


def serialize_product(product: Product, totals: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Product row; with ``totals`` it is annotated with live stock."""
    data = {
        'id': product.id,
        'name': product.name,
        'category': product.category,
        'brand': product.brand,
        'dosage_form': product.dosage_form,
        'unit_value': str(product.pack_size),
        'unit_type': product.unit_type,
        'emoji': product.emoji,
        'description': product.description,
        'vendor_id': product.vendor_id,
    }
    if totals is not None:
        available = totals.get('available_qty', stock_projector.ZERO)
        data['available_stock'] = str(available)
        data['available_packs'] = stock_projector.packs(available, product.pack_size)
        data['batch_count'] = totals.get('batch_count', 0)
        data['earliest_expiry'] = date_iso(totals.get('earliest_expiry'))
    return data


def search_products(query: str, projection, session, limit: int = 50) -> List[Dict[str, Any]]:
    """
    Case-insensitive match on name, category or brand.

    Results carry available_stock (base units over live batches) and
    available_packs; products in stock come first. Empty query returns [].
    """
    query = (query or '').strip()
    if not query:
        return []

    pattern = f'%{query.lower()}%'
    products = (session.query(Product)
                .filter(or_(func.lower(Product.name).like(pattern),
                            func.lower(Product.category).like(pattern),
                            func.lower(Product.brand).like(pattern)))
                .order_by(Product.name)
                .limit(limit)
                .all())

    totals = stock_projector.product_totals(projection)
    results = [serialize_product(p, totals.get(int(p.id), {})) for p in products]
    # stable sort keeps name order within each group
    results.sort(key=lambda r: r['available_packs'] <= 0)
    return results


def inventory_summary(projection, session, today: Optional[date] = None, warning_days: int = 90) -> List[Dict[str, Any]]:
    """One row per product with live stock totals, earliest expiry and a low_stock flag."""
    today = today or date.today()
    totals = stock_projector.product_totals(projection)

    rows = []
    for product in session.query(Product).order_by(Product.name).all():
        row = serialize_product(product, totals.get(int(product.id), {}))
        row['low_stock'] = row['available_packs'] == 0
        earliest = totals.get(int(product.id), {}).get('earliest_expiry')
        row['expiry_status'] = stock_projector.expiry_status(earliest, today, warning_days)
        row['current_stock'] = str(product.current_stock or 0)
        rows.append(row)
    return rows
