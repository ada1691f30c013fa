"""
Sales service with transactional logic.
Handles checkout (new sale or in-place edit), edit-mode loading and deletion.
"""
import logging
from decimal import Decimal
from typing import Dict, Any, List, Optional

from sqlalchemy.orm import joinedload

from pharmastock.database import transaction
from pharmastock.models import Product, Purchase, PurchaseItem, Sale, SaleItem
from pharmastock.exceptions import (
    AppError, BusinessLogicError, NotFoundError, InsufficientStockError, InsufficientPaymentError
)
from pharmastock.services import stock_projector
from pharmastock.services.customer_service import resolve_customer
from pharmastock.services.sale_composer import SaleComposer, PAYMENT_METHODS, TWO_PLACES
from pharmastock.utils.number_format import parse_decimal
from pharmastock.utils.formatters import invoice_number

logger = logging.getLogger(__name__)

ZERO = Decimal('0')


def _amount(payload: dict, key: str) -> Decimal:
    try:
        return parse_decimal(payload.get(key), field=key, default=ZERO)
    except ValueError as e:
        raise BusinessLogicError(str(e))


def checkout(composer: SaleComposer, payload: Dict[str, Any], session,
             tolerance: Decimal = Decimal('0.01'), oversell_guard: bool = False) -> Dict[str, Any]:
    """
    Confirm the cart as a sale.

    Creates a new sale, or rewrites the sale being edited in place
    (header updated, all items deleted and re-inserted). Header, customer and
    items are written in a single transaction; the cart is cleared on success.

    Args:
        composer: cart to confirm
        payload: customer_id | customer_name, customer_phone, payment_method,
                 cash_amount, online_amount, discount, doctor_name, notes
        session: SQLAlchemy session
        tolerance: allowed shortfall between tendered amount and grand total
        oversell_guard: re-project stock under row locks and reject oversells

    Returns:
        dict with sale_id, invoice_number, grand_total and mode ('create' / 'edit')

    Raises:
        BusinessLogicError: empty cart, missing customer name, bad payment method
        InsufficientPaymentError: tendered amount short of the grand total
        InsufficientStockError: oversell detected with the guard enabled
    """
    if composer.is_empty:
        raise BusinessLogicError('Cart is empty')

    customer_id = payload.get('customer_id') or None
    if not customer_id and not (payload.get('customer_name') or '').strip():
        raise BusinessLogicError('Customer Name is required.')

    payment_method = payload.get('payment_method') or 'Cash'
    if payment_method not in PAYMENT_METHODS:
        raise BusinessLogicError(f'Invalid payment method: {payment_method}')

    cash_amount = _amount(payload, 'cash_amount')
    online_amount = _amount(payload, 'online_amount')
    discount = _amount(payload, 'discount')

    totals = composer.totals(discount)
    grand_total = totals['grand_total']
    tendered = composer.tendered(payment_method, cash_amount, online_amount)
    if grand_total > 0 and tendered - grand_total < -Decimal(str(tolerance)):
        raise InsufficientPaymentError(grand_total, tendered)

    if payment_method == 'Online':
        cash_amount = ZERO
    elif payment_method == 'Cash':
        online_amount = ZERO

    edit_sale_id = composer.edit_sale_id
    mode = 'edit' if edit_sale_id else 'create'

    try:
        with transaction(session):
            if oversell_guard:
                _guard_against_oversell(session, composer, edit_sale_id)

            customer = resolve_customer(session, customer_id,
                                        payload.get('customer_name'), payload.get('customer_phone'))

            if edit_sale_id:
                sale = session.get(Sale, int(edit_sale_id))
                if sale is None:
                    raise NotFoundError(f'Sale {edit_sale_id} not found')
                sale.items.clear()
                session.flush()
            else:
                sale = Sale(status='Completed')
                session.add(sale)

            sale.customer_id = customer.id
            sale.payment_method = payment_method
            sale.cash_amount = cash_amount.quantize(TWO_PLACES)
            sale.online_amount = online_amount.quantize(TWO_PLACES)
            sale.discount_amount = totals['discount']
            sale.total_amount = grand_total
            sale.doctor_name = (payload.get('doctor_name') or '').strip() or None
            sale.notes = (payload.get('notes') or '').strip() or None
            session.flush()

            for line in composer.lines:
                sale.items.append(SaleItem(
                    product_id=line['product_id'],
                    batch_code=line['batch_code'],
                    quantity=Decimal(line['qty']),
                    unit_price=line['mrp'],
                    subtotal=(line['mrp'] * line['qty']).quantize(TWO_PLACES),
                ))
            session.flush()
            sale_id = sale.id

    except AppError as e:
        logger.warning(f"Checkout rejected ({mode}): {e.message}")
        raise
    except Exception as e:
        logger.exception(f"Checkout failed ({mode})")
        raise Exception(f'Error confirming sale: {str(e)}')

    logger.info(f"Sale {sale_id} {'updated' if mode == 'edit' else 'created'}: {len(composer.lines)} lines, total {grand_total}, {payment_method}")
    composer.clear()

    return {
        'sale_id': sale_id,
        'invoice_number': invoice_number(sale_id),
        'grand_total': str(grand_total),
        'mode': mode,
    }


def _guard_against_oversell(session, composer: SaleComposer, edit_sale_id: Optional[int]):
    """Lock the cart's product rows, re-project stock and reject lines over availability."""
    product_ids = sorted({line['product_id'] for line in composer.lines})
    (session.query(Product)
     .filter(Product.id.in_(product_ids))
     .order_by(Product.id)
     .with_for_update()
     .all())

    projection = stock_projector.load_projection(session, exclude_sale_id=edit_sale_id)
    for line in composer.lines:
        batch = projection.get(stock_projector.batch_key(line['product_id'], line['batch_code']))
        available = batch['available_packs'] if batch else 0
        if line['qty'] > available:
            raise InsufficientStockError(line.get('name') or f"product {line['product_id']}",
                                         Decimal(line['qty']), Decimal(available),
                                         batch_code=line['batch_code'])


def hydrate_cart(composer: SaleComposer, session) -> SaleComposer:
    """Reload the display fields of a cart restored from the session."""
    if composer.is_empty:
        return composer

    product_ids = sorted({line['product_id'] for line in composer.lines})
    products = session.query(Product).filter(Product.id.in_(product_ids)).all()
    purchase_items = (session.query(PurchaseItem)
                      .options(joinedload(PurchaseItem.purchase).joinedload(Purchase.vendor))
                      .filter(PurchaseItem.product_id.in_(product_ids))
                      .order_by(PurchaseItem.id)
                      .all())
    composer.hydrate({int(p.id): p for p in products}, stock_projector.batch_metadata(purchase_items))
    return composer


def start_edit(sale_id: int, composer: SaleComposer, session) -> List[Dict[str, Any]]:
    """
    Load an existing sale into the composer with its own consumption restored.

    Returns:
        items left out of the cart because their batch no longer holds a full pack
    """
    sale = session.get(Sale, int(sale_id))
    if sale is None:
        raise NotFoundError(f'Sale {sale_id} not found')

    projection = stock_projector.load_projection(session, exclude_sale_id=sale.id)
    dropped = composer.load_sale(sale, projection)
    for item in dropped:
        logger.warning(f"Sale {sale_id}: {item['name']} batch {item['batch_code']} has no stock left, "
                       f"{item['qty']} packs left out of the cart")
    logger.info(f"Sale {sale_id} loaded for editing ({len(composer.lines)} lines)")
    return dropped


def delete_sale(sale_id: int, session) -> Dict[str, Any]:
    """
    Delete a sale and its items.

    Stock is derived from the ledgers, so removing the rows is the whole reversal.
    """
    sale = session.get(Sale, int(sale_id))
    if sale is None:
        raise NotFoundError(f'Sale {sale_id} not found')

    item_count = len(sale.items)
    try:
        with transaction(session):
            session.delete(sale)
    except Exception as e:
        logger.exception(f"Failed to delete sale {sale_id}")
        raise Exception(f'Error deleting sale: {str(e)}')

    logger.info(f"Sale {sale_id} deleted ({item_count} items)")
    return {
        'sale_id': int(sale_id),
        'invoice_number': invoice_number(sale_id),
        'items_deleted': item_count,
    }
