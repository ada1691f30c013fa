"""
Ledger views: read-only aggregates over the sales and purchase ledgers.

Formulas:
    amount_paid    = cash_amount + online_amount
    amount_due     = max(0, grand_total - amount_paid)
    payment_status = Paid if amount_due <= tolerance, Partial if amount_paid > 0, else Unpaid
    item_profit    = (unit_price - purchase_price) x quantity
    sale_profit    = sum(item_profit) - discount
"""
from datetime import date, datetime, time
from decimal import Decimal
from typing import Dict, Any, Iterable, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import joinedload

from pharmastock.models import Purchase, PurchaseItem, Sale, SaleItem, Vendor
from pharmastock.services import stock_projector
from pharmastock.services.purchase_service import serialize_purchase
from pharmastock.utils.formatters import invoice_number, date_iso, decimal_str

ZERO = Decimal('0')
DEFAULT_TOLERANCE = Decimal('0.01')

WALK_IN_CUSTOMER = 'Walk-in Customer'
PAYMENT_STATUSES = ('Paid', 'Partial', 'Unpaid')


def _dec(value) -> Decimal:
    return Decimal(str(value)) if value not in (None, '') else ZERO


def amount_due(grand_total, amount_paid) -> Decimal:
    return max(ZERO, _dec(grand_total) - _dec(amount_paid))


def payment_status(grand_total, amount_paid, tolerance=DEFAULT_TOLERANCE) -> str:
    if amount_due(grand_total, amount_paid) <= _dec(tolerance):
        return 'Paid'
    if _dec(amount_paid) > 0:
        return 'Partial'
    return 'Unpaid'


def item_profit(unit_price, purchase_price, quantity) -> Decimal:
    return (_dec(unit_price) - _dec(purchase_price)) * _dec(quantity)


def sale_profit(item_profits: Iterable[Decimal], discount) -> Decimal:
    return sum(item_profits, ZERO) - _dec(discount)


# =====================================================
# SALES LEDGER
# =====================================================

def sale_record(sale: Sale, metadata: Dict, tolerance=DEFAULT_TOLERANCE) -> Dict[str, Any]:
    """Flatten one sale with its derived payment and profit figures."""
    grand_total = _dec(sale.total_amount)
    discount = _dec(sale.discount_amount)
    paid = _dec(sale.cash_amount) + _dec(sale.online_amount)

    items = []
    profits = []
    for item in sale.items:
        meta = metadata.get(stock_projector.batch_key(item.product_id, item.batch_code), {})
        profit = item_profit(item.unit_price, meta.get('purchase_price'), item.quantity)
        profits.append(profit)
        items.append({
            'product_id': item.product_id,
            'product_name': item.product.name if item.product is not None else None,
            'batch_code': item.batch_code,
            'expiry_date': date_iso(meta.get('expiry_date')),
            'mrp': decimal_str(meta.get('mrp')),
            'quantity': str(item.quantity),
            'unit_price': decimal_str(item.unit_price),
            'subtotal': decimal_str(item.subtotal),
            'profit': decimal_str(profit),
        })

    customer = sale.customer
    return {
        'id': sale.id,
        'invoice_number': invoice_number(sale.id),
        'sale_date': sale.sale_date.isoformat() if sale.sale_date else None,
        'customer_name': customer.name if customer is not None else WALK_IN_CUSTOMER,
        'customer_phone': (customer.phone if customer is not None else None) or 'N/A',
        'doctor_name': sale.doctor_name,
        'payment_method': sale.payment_method,
        'subtotal': decimal_str(grand_total + discount),
        'discount': decimal_str(discount),
        'grand_total': decimal_str(grand_total),
        'amount_paid': decimal_str(paid),
        'amount_due': decimal_str(amount_due(grand_total, paid)),
        'payment_status': payment_status(grand_total, paid, tolerance),
        'profit': decimal_str(sale_profit(profits, discount)),
        'items': items,
    }


def _date_bounds(query, column, start: Optional[date], end: Optional[date], as_datetime: bool):
    if start:
        query = query.filter(column >= (datetime.combine(start, time.min) if as_datetime else start))
    if end:
        query = query.filter(column <= (datetime.combine(end, time.max) if as_datetime else end))
    return query


def list_sales(session, search: str = '', status: str = 'All', payment_method: str = 'All',
               start: Optional[date] = None, end: Optional[date] = None,
               tolerance=DEFAULT_TOLERANCE) -> Dict[str, Any]:
    """
    Sales ledger with filters and stats.

    Date and payment-method filters run in SQL; search (customer name, invoice
    number, phone) and payment status are matched on the derived record.
    """
    query = (session.query(Sale)
             .options(joinedload(Sale.customer), joinedload(Sale.items).joinedload(SaleItem.product)))
    if payment_method and payment_method != 'All':
        query = query.filter(Sale.payment_method == payment_method)
    query = _date_bounds(query, Sale.sale_date, start, end, as_datetime=True)
    sales = query.order_by(Sale.sale_date.desc(), Sale.id.desc()).all()

    metadata = stock_projector.batch_metadata(
        session.query(PurchaseItem)
        .options(joinedload(PurchaseItem.purchase).joinedload(Purchase.vendor))
        .order_by(PurchaseItem.id)
        .all()
    )

    needle = (search or '').strip().lower()
    records = []
    for sale in sales:
        record = sale_record(sale, metadata, tolerance)
        if status and status != 'All' and record['payment_status'] != status:
            continue
        if needle and not any(needle in (record[field] or '').lower()
                              for field in ('customer_name', 'invoice_number', 'customer_phone')):
            continue
        records.append(record)

    return {'records': records, 'stats': sales_stats(records)}


def sales_stats(records: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {
        'total_sales': decimal_str(sum((_dec(r['grand_total']) for r in records), ZERO)),
        'total_paid': decimal_str(sum((_dec(r['amount_paid']) for r in records), ZERO)),
        'total_due': decimal_str(sum((_dec(r['amount_due']) for r in records), ZERO)),
        'transaction_count': len(records),
        'total_profit': decimal_str(sum((_dec(r['profit']) for r in records), ZERO)),
    }


# =====================================================
# PURCHASE LEDGER
# =====================================================

def list_purchases(session, search: str = '', status: str = 'All', start: Optional[date] = None,
                   end: Optional[date] = None, today: Optional[date] = None) -> List[Dict[str, Any]]:
    """Purchase ledger: vendor bills newest first, with overdue flags."""
    query = (session.query(Purchase)
             .join(Vendor, Purchase.vendor_id == Vendor.id)
             .options(joinedload(Purchase.vendor),
                      joinedload(Purchase.items).joinedload(PurchaseItem.product)))

    needle = (search or '').strip()
    if needle:
        pattern = f'%{needle}%'
        query = query.filter(or_(Vendor.full_name.ilike(pattern),
                                 Vendor.business_name.ilike(pattern),
                                 Purchase.bill_number.ilike(pattern)))
    if status and status != 'All':
        query = query.filter(Purchase.status == status)
    query = _date_bounds(query, Purchase.purchase_date, start, end, as_datetime=False)

    purchases = query.order_by(Purchase.purchase_date.desc(), Purchase.id.desc()).all()
    return [serialize_purchase(p, today=today) for p in purchases]
