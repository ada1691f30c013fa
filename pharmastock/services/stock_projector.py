"""
Stock Projector - batch availability derived from the ledgers.

Available stock is never stored. For every (product, batch code) pair it is
recomputed from the full acquisition and consumption ledgers:

    available = Σ purchases (quantity + free_quantity) × unit_value
              − Σ sales quantity × unit_value

expressed in base units (mg, ml, pieces...) and in whole packs. The
``products.current_stock`` counter maintained by purchase writes is a separate
bookkeeping figure and is not consulted here.
"""
from datetime import date, timedelta
from decimal import Decimal, ROUND_FLOOR
from typing import Dict, Iterable, List, Optional, Tuple, Any

from sqlalchemy.orm import joinedload

from pharmastock.models import Product, Purchase, PurchaseItem, SaleItem, pack_unit_value

BatchKey = Tuple[int, str]

ZERO = Decimal('0')


def batch_key(product_id, batch_code) -> BatchKey:
    """Normalized (product_id, batch_code) key."""
    return int(product_id), str(batch_code or '')


def _as_decimal(value) -> Decimal:
    if value is None or value == '':
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _products_by_id(products) -> Dict[int, Any]:
    if isinstance(products, dict):
        return products
    return {int(p.id): p for p in products}


def purchase_unit_value(item, products_by_id: Dict[int, Any]) -> Decimal:
    """Unit value for a purchase line: its own snapshot, else the product's."""
    snapshot = getattr(item, 'unit_value', None)
    if snapshot not in (None, '') and _as_decimal(snapshot) > 0:
        return pack_unit_value(snapshot)
    product = products_by_id.get(int(item.product_id))
    return pack_unit_value(product.unit_value if product is not None else None)


def sale_unit_value(item, products_by_id: Dict[int, Any]) -> Decimal:
    """Unit value for a sale line: always the product's current pack definition."""
    product = products_by_id.get(int(item.product_id))
    return pack_unit_value(product.unit_value if product is not None else None)


def packs(available: Decimal, unit_value: Decimal) -> int:
    """Whole packs contained in ``available`` base units (floor, never negative)."""
    if available <= 0:
        return 0
    return int((available / pack_unit_value(unit_value)).to_integral_value(rounding=ROUND_FLOOR))


def _metadata_from_item(item) -> Dict[str, Any]:
    purchase = getattr(item, 'purchase', None)
    vendor = getattr(purchase, 'vendor', None) if purchase is not None else None
    return {
        'expiry_date': item.expiry_date,
        'mrp': _as_decimal(item.mrp),
        'purchase_price': _as_decimal(item.purchase_price),
        'vendor_name': vendor.display_name if vendor is not None else None,
        'purchase_date': purchase.purchase_date if purchase is not None else None,
    }


def batch_metadata(purchase_items: Iterable) -> Dict[BatchKey, Dict[str, Any]]:
    """
    Canonical metadata (expiry, MRP, purchase price...) for every batch ever received,
    including exhausted ones. The first purchase line seen for a batch wins.
    """
    metadata: Dict[BatchKey, Dict[str, Any]] = {}
    for item in purchase_items:
        key = batch_key(item.product_id, item.batch_code)
        if key not in metadata:
            metadata[key] = _metadata_from_item(item)
    return metadata


def compute_stock(purchase_items: Iterable, sale_items: Iterable, products,
                  exclude_sale_id: Optional[int] = None) -> Dict[BatchKey, Dict[str, Any]]:
    """
    Project live batch stock from the ledgers.

    Args:
        purchase_items: PurchaseItem rows (or objects with the same attributes)
        sale_items: SaleItem rows
        products: Product rows, as an iterable or a {product_id: product} dict
        exclude_sale_id: ignore this sale's consumption (used while editing it)

    Returns:
        {(product_id, batch_code): batch} for batches with available > 0, where
        batch is a dict with purchased_qty, sold_qty, available_qty (base units),
        available_packs, unit_value, expiry_date, mrp, purchase_price,
        vendor_name and purchase_date.
    """
    products_by_id = _products_by_id(products)
    purchased: Dict[BatchKey, Decimal] = {}
    metadata: Dict[BatchKey, Dict[str, Any]] = {}

    for item in purchase_items:
        key = batch_key(item.product_id, item.batch_code)
        received = _as_decimal(item.quantity) + _as_decimal(item.free_quantity)
        purchased[key] = purchased.get(key, ZERO) + received * purchase_unit_value(item, products_by_id)
        if key not in metadata:
            metadata[key] = _metadata_from_item(item)

    sold: Dict[BatchKey, Decimal] = {}
    for item in sale_items:
        if exclude_sale_id is not None and item.sale_id is not None and int(item.sale_id) == int(exclude_sale_id):
            continue
        key = batch_key(item.product_id, item.batch_code)
        sold[key] = sold.get(key, ZERO) + _as_decimal(item.quantity) * sale_unit_value(item, products_by_id)

    projection: Dict[BatchKey, Dict[str, Any]] = {}
    for key in set(purchased) | set(sold):
        purchased_qty = purchased.get(key, ZERO)
        sold_qty = sold.get(key, ZERO)
        available = purchased_qty - sold_qty
        if available <= 0:
            continue

        product = products_by_id.get(key[0])
        unit_value = pack_unit_value(product.unit_value if product is not None else None)
        meta = metadata.get(key) or {
            'expiry_date': None, 'mrp': ZERO, 'purchase_price': ZERO,
            'vendor_name': None, 'purchase_date': None,
        }

        projection[key] = {
            'product_id': key[0],
            'batch_code': key[1],
            'purchased_qty': purchased_qty,
            'sold_qty': sold_qty,
            'available_qty': available,
            'available_packs': packs(available, unit_value),
            'unit_value': unit_value,
            **meta,
        }

    return projection


# =====================================================
# ORDERINGS
# =====================================================

def batches_for_product(projection: Dict[BatchKey, Dict[str, Any]], product_id) -> List[Dict[str, Any]]:
    """All live batches of one product, in no particular order."""
    pid = int(product_id)
    return [batch for (key_pid, _), batch in projection.items() if key_pid == pid]


def _ascending_expiry(batches: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    dated = sorted((b for b in batches if b['expiry_date'] is not None),
                   key=lambda b: (b['expiry_date'], b['batch_code']))
    undated = sorted((b for b in batches if b['expiry_date'] is None), key=lambda b: b['batch_code'])
    return dated + undated


def _descending_expiry(batches: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    dated = sorted((b for b in batches if b['expiry_date'] is not None),
                   key=lambda b: (-b['expiry_date'].toordinal(), b['batch_code']))
    undated = sorted((b for b in batches if b['expiry_date'] is None), key=lambda b: b['batch_code'])
    return dated + undated


def list_fefo(projection, product_id) -> List[Dict[str, Any]]:
    """Live batches of a product, soonest expiry first."""
    return _ascending_expiry(batches_for_product(projection, product_id))


def pick_for_auto_add(projection, product_id) -> Optional[Dict[str, Any]]:
    """Earliest-expiring batch holding at least one whole pack (FEFO), or None."""
    for batch in list_fefo(projection, product_id):
        if batch['available_packs'] >= 1:
            return batch
    return None


def list_for_manual_switch(projection, product_id) -> List[Dict[str, Any]]:
    """Live batches of a product, latest expiry first (batch switcher order)."""
    return _descending_expiry(batches_for_product(projection, product_id))


# =====================================================
# AGGREGATES
# =====================================================

def product_totals(projection) -> Dict[int, Dict[str, Any]]:
    """Per-product sums over live batches."""
    totals: Dict[int, Dict[str, Any]] = {}
    for (product_id, _), batch in projection.items():
        entry = totals.setdefault(product_id, {
            'available_qty': ZERO,
            'batch_count': 0,
            'earliest_expiry': None,
        })
        entry['available_qty'] += batch['available_qty']
        entry['batch_count'] += 1
        expiry = batch['expiry_date']
        if expiry is not None and (entry['earliest_expiry'] is None or expiry < entry['earliest_expiry']):
            entry['earliest_expiry'] = expiry
    return totals


def expiry_status(expiry_date: Optional[date], today: date, warning_days: int) -> str:
    """'expired', 'near_expiry', 'ok' or 'unknown' for a batch expiry date."""
    if expiry_date is None:
        return 'unknown'
    if expiry_date <= today:
        return 'expired'
    if expiry_date <= today + timedelta(days=warning_days):
        return 'near_expiry'
    return 'ok'


# =====================================================
# DATA ACCESS
# =====================================================

def load_projection(session, exclude_sale_id: Optional[int] = None) -> Dict[BatchKey, Dict[str, Any]]:
    """Read the full ledgers and project live batch stock."""
    purchase_items = (session.query(PurchaseItem)
                      .options(joinedload(PurchaseItem.purchase).joinedload(Purchase.vendor))
                      .order_by(PurchaseItem.id)
                      .all())
    sale_items = session.query(SaleItem).all()
    products = session.query(Product).all()
    return compute_stock(purchase_items, sale_items, products, exclude_sale_id=exclude_sale_id)


def serialize_batch(batch: Dict[str, Any], today: Optional[date] = None, warning_days: Optional[int] = None) -> Dict[str, Any]:
    """JSON-friendly view of a projected batch."""
    data = {
        'product_id': batch['product_id'],
        'batch_code': batch['batch_code'],
        'expiry_date': batch['expiry_date'].isoformat() if batch['expiry_date'] else None,
        'purchased_qty': str(batch['purchased_qty']),
        'sold_qty': str(batch['sold_qty']),
        'available_qty': str(batch['available_qty']),
        'available_packs': batch['available_packs'],
        'unit_value': str(batch['unit_value']),
        'mrp': str(batch['mrp']),
        'purchase_price': str(batch['purchase_price']),
        'vendor_name': batch['vendor_name'],
        'purchase_date': batch['purchase_date'].isoformat() if batch['purchase_date'] else None,
    }
    if today is not None and warning_days is not None:
        data['expiry_status'] = expiry_status(batch['expiry_date'], today, warning_days)
    return data
