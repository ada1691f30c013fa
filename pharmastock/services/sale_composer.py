"""
Sale Composer - cart state for the sale terminal.

The cart is an explicit state object owned by the current request. Between
requests it lives in the Flask session as plain JSON (see to_state/from_state);
only the fields in STATE_FIELDS are stored there and the display fields are
rebuilt from the catalog by hydrate().
Every line is bound to one batch of one product; its ``max_qty`` is the batch's
whole-pack availability as projected when the line was built.

All validation failures raise CartError before touching the cart.
"""
import logging
import uuid
from decimal import Decimal, ROUND_FLOOR
from typing import Any, Dict, List, Optional

from pharmastock.exceptions import CartError
from pharmastock.services import stock_projector

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal('0.01')
ZERO = Decimal('0')

PAYMENT_METHODS = ('Cash', 'Online', 'Mixed')

# Line fields kept in the session cookie
STATE_FIELDS = ('cart_id', 'product_id', 'batch_code', 'qty', 'max_qty', 'mrp')


def _new_cart_id() -> str:
    return uuid.uuid4().hex[:9]


def whole_packs(value, field: str = 'Quantity') -> int:
    """Coerce a requested quantity to a whole number of packs."""
    try:
        number = Decimal(str(value))
    except (ArithmeticError, ValueError):
        raise CartError(f'{field} must be a number', reason='invalid_quantity')
    if not number.is_finite() or number != number.to_integral_value(rounding=ROUND_FLOOR):
        raise CartError(f'{field} must be a whole number of packs', reason='invalid_quantity')
    return int(number)


def tendered_amount(payment_method: str, cash_amount: Decimal, online_amount: Decimal) -> Decimal:
    """Amount counted towards the bill for the chosen payment method."""
    if payment_method == 'Mixed':
        return cash_amount + online_amount
    if payment_method == 'Cash':
        return cash_amount
    return online_amount


class SaleComposer:
    """In-memory cart bound to product batches, validated against live stock."""

    def __init__(self, lines: Optional[List[Dict[str, Any]]] = None, edit_sale_id: Optional[int] = None,
                 default_emoji: str = '💊'):
        self.lines: List[Dict[str, Any]] = lines or []
        self.edit_sale_id = edit_sale_id
        self.default_emoji = default_emoji

    # -------------------------------------------------
    # Session round-trip
    # -------------------------------------------------

    @classmethod
    def from_state(cls, state: Optional[dict], default_emoji: str = '💊') -> 'SaleComposer':
        """
        Rebuild a composer from its session representation.

        Lines come back with their STATE_FIELDS only; call hydrate() before
        serializing them.
        """
        state = state or {}
        lines = []
        for raw in state.get('lines', []):
            lines.append({
                'cart_id': raw['cart_id'],
                'product_id': int(raw['product_id']),
                'batch_code': raw['batch_code'],
                'qty': int(raw['qty']),
                'max_qty': int(raw['max_qty']),
                'mrp': Decimal(str(raw['mrp'])),
            })
        return cls(lines=lines, edit_sale_id=state.get('edit_sale_id'), default_emoji=default_emoji)

    def to_state(self) -> dict:
        """JSON-serializable representation (Decimals as strings)."""
        lines = []
        for line in self.lines:
            stored = {field: line[field] for field in STATE_FIELDS}
            stored['mrp'] = str(line['mrp'])
            lines.append(stored)
        return {'edit_sale_id': self.edit_sale_id, 'lines': lines}

    def hydrate(self, products: Dict[int, Any], metadata: Dict[Any, Dict[str, Any]]) -> None:
        """
        Fill in each line's display fields from the catalog.

        Args:
            products: {product_id: Product} for the cart's products
            metadata: batch metadata (see stock_projector.batch_metadata)
        """
        for line in self.lines:
            line.update(self._describe(products.get(line['product_id'])))
            batch = metadata.get(stock_projector.batch_key(line['product_id'], line['batch_code'])) or {}
            expiry = batch.get('expiry_date')
            line['expiry_date'] = expiry.isoformat() if expiry else None

    # -------------------------------------------------
    # Queries
    # -------------------------------------------------

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def find_line(self, cart_id: str) -> Dict[str, Any]:
        for line in self.lines:
            if line['cart_id'] == cart_id:
                return line
        raise CartError('Item is not in the cart', reason='not_in_cart', status_code=404)

    def has_batch(self, product_id, batch_code, ignore_cart_id: Optional[str] = None) -> bool:
        key = stock_projector.batch_key(product_id, batch_code)
        return any(
            stock_projector.batch_key(line['product_id'], line['batch_code']) == key
            and line['cart_id'] != ignore_cart_id
            for line in self.lines
        )

    def totals(self, discount=ZERO) -> Dict[str, Decimal]:
        """
        Subtotal (MRP x packs) and grand total after the overall discount.

        The discount is capped at the subtotal, so subtotal - discount == grand_total.
        """
        subtotal = sum((line['mrp'] * line['qty'] for line in self.lines), ZERO)
        discount = min(Decimal(str(discount or 0)), subtotal)
        grand_total = max(ZERO, subtotal - discount)
        return {
            'subtotal': subtotal.quantize(TWO_PLACES),
            'discount': discount.quantize(TWO_PLACES),
            'grand_total': grand_total.quantize(TWO_PLACES),
        }

    @staticmethod
    def tendered(payment_method: str, cash_amount, online_amount) -> Decimal:
        return tendered_amount(payment_method, Decimal(str(cash_amount or 0)), Decimal(str(online_amount or 0)))

    # -------------------------------------------------
    # Mutations
    # -------------------------------------------------

    def _describe(self, product) -> Dict[str, Any]:
        """Display fields of a line; products deleted from the catalog show as 'Unknown'."""
        if product is None:
            return {'name': 'Unknown', 'emoji': self.default_emoji, 'category': None,
                    'unit_value': Decimal('1'), 'unit_type': None}
        return {
            'name': product.name,
            'emoji': product.emoji or self.default_emoji,
            'category': product.category,
            'unit_value': product.pack_size,
            'unit_type': product.unit_type,
        }

    def _line_from_batch(self, product, batch: Dict[str, Any], qty: int = 1) -> Dict[str, Any]:
        return {
            'cart_id': _new_cart_id(),
            'product_id': int(product.id),
            **self._describe(product),
            'mrp': Decimal(str(batch['mrp'] or 0)),
            'batch_code': batch['batch_code'],
            'expiry_date': batch['expiry_date'].isoformat() if batch['expiry_date'] else None,
            'qty': qty,
            'max_qty': int(batch['available_packs']),
        }

    def add_to_cart(self, product, projection) -> Dict[str, Any]:
        """
        Add one pack of ``product`` from its earliest-expiring batch (FEFO).

        Rejects when the product has no live batch, when only part of a pack is
        left, or when that batch is already in the cart.
        """
        live_batches = stock_projector.list_fefo(projection, product.id)
        if not live_batches:
            raise CartError(f'Insufficient stock for "{product.name}"', reason='no_stock', status_code=409)

        batch = stock_projector.pick_for_auto_add(projection, product.id)
        if batch is None:
            raise CartError(f'Not enough stock of "{product.name}" to sell a full pack',
                            reason='partial_pack', status_code=409)

        if self.has_batch(product.id, batch['batch_code']):
            raise CartError('This batch is already in the cart. Adjust quantity there.', reason='duplicate_batch')

        line = self._line_from_batch(product, batch)
        self.lines.insert(0, line)
        logger.info(f"Cart add: product_id={product.id} batch={batch['batch_code']} max_qty={line['max_qty']}")
        return line

    def change_quantity(self, cart_id: str, new_qty) -> Dict[str, Any]:
        """Set a line's pack count (floored at 1); rejected above the batch's max_qty."""
        line = self.find_line(cart_id)
        qty = max(1, whole_packs(new_qty))
        if qty > line['max_qty']:
            raise CartError(f"Only {line['max_qty']} packs available in this batch.",
                            reason='exceeds_batch', status_code=409)
        line['qty'] = qty
        return line

    def adjust_quantity(self, cart_id: str, delta) -> Dict[str, Any]:
        """Increment/decrement a line's pack count (the +/- buttons)."""
        line = self.find_line(cart_id)
        return self.change_quantity(cart_id, line['qty'] + whole_packs(delta, field='Delta'))

    def remove_line(self, cart_id: str) -> Dict[str, Any]:
        line = self.find_line(cart_id)
        self.lines.remove(line)
        return line

    def switch_batch(self, cart_id: str, batch_code: str, projection) -> Dict[str, Any]:
        """
        Rebind a line to another live batch of the same product.

        The line's expiry, MRP and max_qty follow the new batch; its quantity is
        clamped down when the new batch holds fewer packs.
        """
        line = self.find_line(cart_id)
        key = stock_projector.batch_key(line['product_id'], batch_code)
        batch = projection.get(key)
        if batch is None:
            raise CartError(f'Batch {batch_code} has no stock for this product', reason='unknown_batch', status_code=404)
        if batch['available_packs'] < 1:
            raise CartError(f'Batch {batch_code} does not hold a full pack', reason='partial_pack', status_code=409)
        if self.has_batch(line['product_id'], batch_code, ignore_cart_id=cart_id):
            raise CartError('This batch is already in the cart. Adjust quantity there.', reason='duplicate_batch')

        line['batch_code'] = batch['batch_code']
        line['expiry_date'] = batch['expiry_date'].isoformat() if batch['expiry_date'] else None
        line['mrp'] = Decimal(str(batch['mrp'] or 0))
        line['max_qty'] = int(batch['available_packs'])
        line['qty'] = min(line['qty'], line['max_qty'])
        return line

    def clear(self) -> None:
        self.lines = []
        self.edit_sale_id = None

    def load_sale(self, sale, projection) -> List[Dict[str, Any]]:
        """
        Enter edit mode for an existing sale.

        ``projection`` must have been built with exclude_sale_id=sale.id so that each
        line's max_qty includes the stock this sale itself consumed. Quantities are
        clamped to max_qty; items whose batch no longer holds a full pack are left
        out of the cart.

        Returns:
            the left-out items as {product_id, name, batch_code, qty}
        """
        lines = []
        dropped = []
        for item in sale.items:
            described = self._describe(item.product)
            key = stock_projector.batch_key(item.product_id, item.batch_code)
            batch = projection.get(key)
            max_qty = int(batch['available_packs']) if batch else 0
            if max_qty < 1:
                dropped.append({
                    'product_id': int(item.product_id),
                    'name': described['name'],
                    'batch_code': item.batch_code,
                    'qty': int(item.quantity),
                })
                continue
            lines.append({
                'cart_id': _new_cart_id(),
                'product_id': int(item.product_id),
                **described,
                'mrp': Decimal(str(item.unit_price)),
                'batch_code': item.batch_code,
                'expiry_date': batch['expiry_date'].isoformat() if batch['expiry_date'] else None,
                'qty': min(int(item.quantity), max_qty),
                'max_qty': max_qty,
            })
        self.lines = lines
        self.edit_sale_id = int(sale.id)
        return dropped

    # -------------------------------------------------
    # Presentation
    # -------------------------------------------------

    def serialize(self, discount=ZERO) -> Dict[str, Any]:
        totals = self.totals(discount)
        return {
            'edit_sale_id': self.edit_sale_id,
            'lines': [
                {
                    **line,
                    'unit_value': str(line['unit_value']),
                    'mrp': str(line['mrp']),
                    'line_total': str((line['mrp'] * line['qty']).quantize(TWO_PLACES)),
                }
                for line in self.lines
            ],
            'subtotal': str(totals['subtotal']),
            'discount': str(totals['discount']),
            'grand_total': str(totals['grand_total']),
        }
