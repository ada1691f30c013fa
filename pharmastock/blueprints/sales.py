"""Sales blueprint: the sale terminal (cart, batch switching, checkout, edit mode)."""
from decimal import Decimal
from datetime import date
from flask import Blueprint, request, session, jsonify, current_app
from pharmastock.database import get_session
from pharmastock.models import Product
from pharmastock.exceptions import BusinessLogicError, NotFoundError, CartError
from pharmastock.services import stock_projector, sales_service
from pharmastock.services.customer_service import search_customers
from pharmastock.services.sale_composer import SaleComposer
from pharmastock.blueprints.metrics import sales_checkout_total, cart_rejections_total
from pharmastock.utils.number_format import parse_decimal, parse_id

sales_bp = Blueprint('sales', __name__, url_prefix='/sales')

CART_SESSION_KEY = 'cart'


def get_composer() -> SaleComposer:
    """Rebuild the cart from the session, with display fields reloaded from the catalog."""
    composer = SaleComposer.from_state(
        session.get(CART_SESSION_KEY),
        default_emoji=current_app.config.get('DEFAULT_PRODUCT_EMOJI', '💊')
    )
    return sales_service.hydrate_cart(composer, get_session())


def save_composer(composer: SaleComposer) -> None:
    session[CART_SESSION_KEY] = composer.to_state()
    session.modified = True


def _payload() -> dict:
    return request.get_json(silent=True) or {}


def _int_arg(value, field: str) -> int:
    try:
        return parse_id(value, field=field)
    except ValueError as e:
        raise BusinessLogicError(str(e))


def _projection(composer: SaleComposer):
    """Live stock; in edit mode the edited sale's own consumption is restored."""
    return stock_projector.load_projection(get_session(), exclude_sale_id=composer.edit_sale_id)


def _cart_response(composer: SaleComposer, status_code: int = 200, **extra):
    body = {'status': 'ok', 'cart': composer.serialize()}
    body.update(extra)
    return jsonify(body), status_code


def _reject(error: CartError):
    cart_rejections_total.labels(reason=error.reason).inc()
    current_app.logger.info(f"Cart action rejected ({error.reason}): {error.message}")
    raise error


@sales_bp.route('/stock', methods=['GET'])
def stock():
    """Live batches, FEFO order; optionally for one product."""
    db_session = get_session()
    composer = get_composer()
    projection = _projection(composer)
    warning_days = current_app.config.get('EXPIRY_WARNING_DAYS', 90)
    today = date.today()

    product_id = request.args.get('product_id', '').strip()
    if product_id:
        batches = stock_projector.list_fefo(projection, _int_arg(product_id, 'product_id'))
    else:
        product_ids = sorted({pid for pid, _ in projection})
        batches = [b for pid in product_ids for b in stock_projector.list_fefo(projection, pid)]

    names = {p.id: p.name for p in db_session.query(Product.id, Product.name).all()}
    data = []
    for batch in batches:
        row = stock_projector.serialize_batch(batch, today=today, warning_days=warning_days)
        row['product_name'] = names.get(batch['product_id'])
        data.append(row)
    return jsonify({'status': 'ok', 'batches': data})


@sales_bp.route('/customers', methods=['GET'])
def customers():
    return jsonify({'status': 'ok', 'customers': search_customers(get_session(), request.args.get('q', ''))})


@sales_bp.route('/cart', methods=['GET'])
def view_cart():
    composer = get_composer()
    try:
        discount = parse_decimal(request.args.get('discount'), field='discount', default=Decimal('0'))
    except ValueError as e:
        raise BusinessLogicError(str(e))
    return jsonify({'status': 'ok', 'cart': composer.serialize(discount)})


@sales_bp.route('/cart/add', methods=['POST'])
def cart_add():
    """Add one pack of a product from its earliest-expiring batch."""
    data = _payload()
    product_id = _int_arg(data.get('product_id'), 'product_id')

    db_session = get_session()
    product = db_session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f'Product {product_id} not found')

    composer = get_composer()
    try:
        line = composer.add_to_cart(product, _projection(composer))
    except CartError as e:
        _reject(e)

    save_composer(composer)
    current_app.logger.info(f"Added {product.name} batch {line['batch_code']} to cart")
    return _cart_response(composer, 201, line=line['cart_id'])


@sales_bp.route('/cart/update', methods=['POST'])
def cart_update():
    """Set a line's quantity ({cart_id, qty}) or step it ({cart_id, delta})."""
    data = _payload()
    cart_id = data.get('cart_id')
    composer = get_composer()
    try:
        if 'delta' in data:
            composer.adjust_quantity(cart_id, data.get('delta'))
        else:
            composer.change_quantity(cart_id, data.get('qty'))
    except CartError as e:
        _reject(e)

    save_composer(composer)
    return _cart_response(composer)


@sales_bp.route('/cart/remove', methods=['POST'])
def cart_remove():
    composer = get_composer()
    composer.remove_line(_payload().get('cart_id'))
    save_composer(composer)
    return _cart_response(composer)


@sales_bp.route('/cart/batches/<cart_id>', methods=['GET'])
def cart_batches(cart_id):
    """Batches a cart line may switch to, latest expiry first."""
    composer = get_composer()
    line = composer.find_line(cart_id)
    projection = _projection(composer)
    warning_days = current_app.config.get('EXPIRY_WARNING_DAYS', 90)
    today = date.today()

    batches = []
    for batch in stock_projector.list_for_manual_switch(projection, line['product_id']):
        row = stock_projector.serialize_batch(batch, today=today, warning_days=warning_days)
        row['selected'] = batch['batch_code'] == line['batch_code']
        row['in_cart'] = composer.has_batch(line['product_id'], batch['batch_code'], ignore_cart_id=cart_id)
        batches.append(row)
    return jsonify({'status': 'ok', 'cart_id': cart_id, 'batches': batches})


@sales_bp.route('/cart/switch-batch', methods=['POST'])
def cart_switch_batch():
    data = _payload()
    composer = get_composer()
    try:
        composer.switch_batch(data.get('cart_id'), (data.get('batch_code') or '').strip(), _projection(composer))
    except CartError as e:
        _reject(e)

    save_composer(composer)
    return _cart_response(composer)


@sales_bp.route('/cart/clear', methods=['POST'])
def cart_clear():
    composer = get_composer()
    composer.clear()
    save_composer(composer)
    return _cart_response(composer)


@sales_bp.route('/<int:sale_id>/edit', methods=['POST'])
def edit_sale(sale_id):
    """Load a confirmed sale into the cart for editing."""
    composer = get_composer()
    dropped = sales_service.start_edit(sale_id, composer, get_session())
    if dropped:
        cart_rejections_total.labels(reason='no_stock').inc(len(dropped))
    save_composer(composer)
    return _cart_response(composer, dropped=dropped)


@sales_bp.route('/checkout', methods=['POST'])
def checkout():
    """Confirm the cart as a new sale or as the edited one."""
    composer = get_composer()
    result = sales_service.checkout(
        composer,
        _payload(),
        get_session(),
        tolerance=Decimal(str(current_app.config.get('PAYMENT_TOLERANCE', '0.01'))),
        oversell_guard=current_app.config.get('STOCK_OVERSELL_GUARD', False)
    )
    save_composer(composer)
    sales_checkout_total.labels(mode=result['mode']).inc()
    current_app.logger.info(f"Checkout {result['invoice_number']} ({result['mode']}) total {result['grand_total']}")
    return jsonify({'status': 'ok', **result}), 201 if result['mode'] == 'create' else 200
