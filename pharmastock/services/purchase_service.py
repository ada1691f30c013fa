"""
Purchase service with transactional logic.

Vendor bills (header + batch lines). Each write keeps the denormalized
``products.current_stock`` counter in step with the purchase items:
create adds, delete reverses, update reverses the old lines then applies the new.
"""
import logging
from decimal import Decimal
from datetime import date
from typing import Dict, Any, List, Optional

from sqlalchemy.orm import joinedload

from pharmastock.database import transaction
from pharmastock.models import Product, Vendor, Purchase, PurchaseItem, PurchaseStatus, pack_unit_value
from pharmastock.exceptions import AppError, BusinessLogicError, NotFoundError
from pharmastock.utils.number_format import parse_decimal, parse_quantity, parse_date, parse_id
from pharmastock.utils.formatters import date_iso, decimal_str

logger = logging.getLogger(__name__)

ZERO = Decimal('0')
TWO_PLACES = Decimal('0.01')

STATUSES = (PurchaseStatus.PAID.value, PurchaseStatus.UNPAID.value)


def _base_units(item) -> Decimal:
    """Base units a purchase line adds to stock: (quantity + free) x snapshot unit value."""
    received = Decimal(str(item.quantity or 0)) + Decimal(str(item.free_quantity or 0))
    unit_value = item.unit_value
    if unit_value in (None, '') or Decimal(str(unit_value)) <= 0:
        unit_value = item.product.unit_value if item.product is not None else None
    return received * pack_unit_value(unit_value)


def _apply_to_counter(session, items, sign: int):
    """Add (sign=1) or reverse (sign=-1) the items' contribution to current_stock."""
    for item in items:
        product = item.product or session.get(Product, item.product_id)
        if product is None:
            continue
        product.current_stock = Decimal(str(product.current_stock or 0)) + sign * _base_units(item)


def _validate_header(payload: dict, session) -> Dict[str, Any]:
    vendor_id = payload.get('vendor_id')
    if not vendor_id:
        raise BusinessLogicError('Vendor is required')
    try:
        vendor_id = parse_id(vendor_id, field='vendor_id')
    except ValueError as e:
        raise BusinessLogicError(str(e))
    vendor = session.get(Vendor, vendor_id)
    if vendor is None:
        raise NotFoundError(f'Vendor {vendor_id} not found')

    bill_number = (payload.get('bill_number') or '').strip()
    if not bill_number:
        raise BusinessLogicError('Bill number is required')

    try:
        purchase_date = parse_date(payload.get('purchase_date'), field='purchase_date') or date.today()
        due_date = parse_date(payload.get('due_date'), field='due_date')
        overall_discount = parse_decimal(payload.get('overall_discount'), field='overall_discount', default=ZERO)
    except ValueError as e:
        raise BusinessLogicError(str(e))

    is_credit = bool(payload.get('is_credit'))
    status = payload.get('status') or (PurchaseStatus.UNPAID.value if is_credit else PurchaseStatus.PAID.value)
    if status not in STATUSES:
        raise BusinessLogicError(f'Invalid purchase status: {status}')

    return {
        'vendor_id': vendor.id,
        'bill_number': bill_number,
        'purchase_date': purchase_date,
        'is_credit': is_credit,
        'due_date': due_date if is_credit else None,
        'overall_discount': overall_discount.quantize(TWO_PLACES),
        'status': status,
    }


def _validate_items(payload: dict, session) -> List[Dict[str, Any]]:
    raw_items = payload.get('items') or []
    if not raw_items:
        raise BusinessLogicError('Add at least one item to the purchase')

    items = []
    for position, raw in enumerate(raw_items, start=1):
        product_id = raw.get('product_id')
        if not product_id:
            raise BusinessLogicError(f'Item {position}: product is required')
        try:
            product_id = parse_id(product_id, field=f'product of item {position}')
        except ValueError as e:
            raise BusinessLogicError(str(e))
        product = session.get(Product, product_id)
        if product is None:
            raise NotFoundError(f'Product {product_id} not found')

        batch_code = (raw.get('batch_code') or '').strip()
        if not batch_code:
            raise BusinessLogicError(f'Batch number is required for "{product.name}"')

        try:
            quantity = parse_quantity(raw.get('quantity'), field=f'quantity of "{product.name}"')
            free_quantity = parse_quantity(raw.get('free_quantity'), field=f'free quantity of "{product.name}"',
                                           default=ZERO)
            purchase_price = parse_decimal(raw.get('purchase_price'), field=f'purchase price of "{product.name}"',
                                           default=ZERO)
            mrp = parse_decimal(raw.get('mrp'), field=f'MRP of "{product.name}"', default=ZERO)
            expiry_date = parse_date(raw.get('expiry_date'), field=f'expiry date of "{product.name}"')
        except ValueError as e:
            raise BusinessLogicError(str(e))

        if quantity <= 0:
            raise BusinessLogicError(f'Quantity must be greater than 0 for "{product.name}"')

        items.append({
            'product': product,
            'batch_code': batch_code,
            'expiry_date': expiry_date,
            'quantity': quantity,
            'free_quantity': free_quantity,
            'purchase_price': purchase_price,
            'mrp': mrp,
        })
    return items


def purchase_totals(items, overall_discount) -> Dict[str, Decimal]:
    """Subtotal = sum of quantity x purchase price; grand total floored at zero."""
    subtotal = ZERO
    for item in items:
        if isinstance(item, dict):
            quantity, price = item['quantity'], item['purchase_price']
        else:
            quantity, price = item.quantity, item.purchase_price
        subtotal += Decimal(str(quantity or 0)) * Decimal(str(price or 0))
    discount = Decimal(str(overall_discount or 0))
    return {
        'subtotal': subtotal.quantize(TWO_PLACES),
        'discount': discount.quantize(TWO_PLACES),
        'grand_total': max(ZERO, subtotal - discount).quantize(TWO_PLACES),
    }


def _build_items(purchase: Purchase, items: List[Dict[str, Any]]):
    for data in items:
        product = data['product']
        purchase.items.append(PurchaseItem(
            product=product,
            product_id=product.id,
            batch_code=data['batch_code'],
            expiry_date=data['expiry_date'],
            quantity=data['quantity'],
            free_quantity=data['free_quantity'],
            purchase_price=data['purchase_price'],
            mrp=data['mrp'],
            unit_value=product.pack_size,
            unit_type=product.unit_type,
        ))


def create_purchase(payload: dict, session) -> int:
    """
    Create a vendor bill with its batch lines and add them to current_stock.

    Args:
        payload: vendor_id, bill_number, purchase_date, is_credit, due_date,
                 overall_discount, status, items[{product_id, batch_code, expiry_date,
                 quantity, free_quantity, purchase_price, mrp}]
        session: SQLAlchemy session

    Returns:
        purchase_id
    """
    header = _validate_header(payload, session)
    items = _validate_items(payload, session)
    totals = purchase_totals(items, header['overall_discount'])

    try:
        with transaction(session):
            purchase = Purchase(total_amount=totals['grand_total'], **header)
            session.add(purchase)
            _build_items(purchase, items)
            session.flush()
            _apply_to_counter(session, purchase.items, 1)
            purchase_id = purchase.id
    except AppError:
        raise
    except Exception as e:
        logger.exception("Failed to create purchase")
        raise Exception(f'Error creating purchase: {str(e)}')

    logger.info(f"Purchase {purchase_id} created: bill {header['bill_number']}, "
                f"{len(items)} items, total {totals['grand_total']}")
    return purchase_id


def update_purchase(purchase_id: int, payload: dict, session) -> int:
    """
    Replace a vendor bill.

    The old lines' counter contribution is reversed item by item before they are
    deleted; the new lines are inserted and applied. One transaction.
    """
    purchase = session.get(Purchase, int(purchase_id))
    if purchase is None:
        raise NotFoundError(f'Purchase {purchase_id} not found')

    header = _validate_header(payload, session)
    items = _validate_items(payload, session)
    totals = purchase_totals(items, header['overall_discount'])

    try:
        with transaction(session):
            _apply_to_counter(session, purchase.items, -1)
            purchase.items.clear()
            session.flush()

            for field, value in header.items():
                setattr(purchase, field, value)
            purchase.total_amount = totals['grand_total']

            _build_items(purchase, items)
            session.flush()
            _apply_to_counter(session, purchase.items, 1)
    except AppError:
        raise
    except Exception as e:
        logger.exception(f"Failed to update purchase {purchase_id}")
        raise Exception(f'Error updating purchase: {str(e)}')

    logger.info(f"Purchase {purchase_id} updated: {len(items)} items, total {totals['grand_total']}")
    return int(purchase_id)


def delete_purchase(purchase_id: int, session) -> Dict[str, Any]:
    """Reverse the bill's counter contribution, then delete its lines and header."""
    purchase = session.get(Purchase, int(purchase_id))
    if purchase is None:
        raise NotFoundError(f'Purchase {purchase_id} not found')

    item_count = len(purchase.items)
    bill_number = purchase.bill_number
    try:
        with transaction(session):
            _apply_to_counter(session, purchase.items, -1)
            session.delete(purchase)
    except Exception as e:
        logger.exception(f"Failed to delete purchase {purchase_id}")
        raise Exception(f'Error deleting purchase: {str(e)}')

    logger.info(f"Purchase {purchase_id} deleted (bill {bill_number}, {item_count} items reversed)")
    return {'purchase_id': int(purchase_id), 'bill_number': bill_number, 'items_deleted': item_count}


def set_purchase_status(purchase_id: int, status: str, session) -> Purchase:
    if status not in STATUSES:
        raise BusinessLogicError(f'Invalid purchase status: {status}')
    purchase = session.get(Purchase, int(purchase_id))
    if purchase is None:
        raise NotFoundError(f'Purchase {purchase_id} not found')

    with transaction(session):
        purchase.status = status
    logger.info(f"Purchase {purchase_id} marked {status}")
    return purchase


def set_purchase_discount(purchase_id: int, discount, session) -> Purchase:
    """Change the overall discount and recompute the grand total from the lines."""
    try:
        discount = parse_decimal(discount, field='discount')
    except ValueError as e:
        raise BusinessLogicError(str(e))

    purchase = session.get(Purchase, int(purchase_id))
    if purchase is None:
        raise NotFoundError(f'Purchase {purchase_id} not found')

    totals = purchase_totals(purchase.items, discount)
    with transaction(session):
        purchase.overall_discount = totals['discount']
        purchase.total_amount = totals['grand_total']
    logger.info(f"Purchase {purchase_id} discount set to {totals['discount']}, total {totals['grand_total']}")
    return purchase


def get_purchase(purchase_id: int, session) -> Purchase:
    purchase = (session.query(Purchase)
                .options(joinedload(Purchase.vendor), joinedload(Purchase.items).joinedload(PurchaseItem.product))
                .filter(Purchase.id == int(purchase_id))
                .first())
    if purchase is None:
        raise NotFoundError(f'Purchase {purchase_id} not found')
    return purchase


def serialize_purchase_item(item: PurchaseItem) -> Dict[str, Any]:
    return {
        'id': item.id,
        'product_id': item.product_id,
        'product_name': item.product.name if item.product is not None else None,
        'batch_code': item.batch_code,
        'expiry_date': date_iso(item.expiry_date),
        'quantity': str(item.quantity),
        'free_quantity': str(item.free_quantity or 0),
        'purchase_price': decimal_str(item.purchase_price),
        'mrp': decimal_str(item.mrp),
        'unit_value': str(item.unit_value) if item.unit_value is not None else None,
        'unit_type': item.unit_type,
        'line_total': decimal_str(Decimal(str(item.quantity)) * Decimal(str(item.purchase_price or 0))),
    }


def serialize_purchase(purchase: Purchase, today: Optional[date] = None) -> Dict[str, Any]:
    """Purchase with vendor name, totals, overdue flag and days until due."""
    today = today or date.today()
    totals = purchase_totals(purchase.items, purchase.overall_discount)
    is_overdue = bool(purchase.is_credit and purchase.due_date is not None
                      and purchase.due_date < today and purchase.status != PurchaseStatus.PAID.value)
    days_remaining = (purchase.due_date - today).days if purchase.is_credit and purchase.due_date else None

    return {
        'id': purchase.id,
        'vendor_id': purchase.vendor_id,
        'vendor_name': purchase.vendor.display_name if purchase.vendor is not None else None,
        'bill_number': purchase.bill_number,
        'purchase_date': date_iso(purchase.purchase_date),
        'is_credit': bool(purchase.is_credit),
        'due_date': date_iso(purchase.due_date),
        'status': purchase.status,
        'subtotal': str(totals['subtotal']),
        'discount': str(totals['discount']),
        'grand_total': decimal_str(purchase.total_amount),
        'is_overdue': is_overdue,
        'days_remaining': days_remaining,
        'items': [serialize_purchase_item(item) for item in purchase.items],
    }
