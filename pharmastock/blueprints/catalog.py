"""Catalog blueprint: products, inventory and categories."""
from datetime import date
from flask import Blueprint, request, jsonify, current_app
from pharmastock.database import get_session
from pharmastock.exceptions import BusinessLogicError
from pharmastock.forms import ProductForm, CategoryForm
from pharmastock.services import catalog_service, stock_projector

catalog_bp = Blueprint('catalog', __name__, url_prefix='/catalog')


def form_error(form) -> BusinessLogicError:
    """First validation message, with every field error in the payload."""
    first = next(iter(form.errors.values()))[0]
    return BusinessLogicError(first, payload={'errors': form.errors})


@catalog_bp.route('/products', methods=['GET'])
def list_products():
    """Search products by name, category or brand, annotated with live stock."""
    db_session = get_session()
    projection = stock_projector.load_projection(db_session)
    results = catalog_service.search_products(request.args.get('q', ''), projection, db_session)
    return jsonify({'status': 'ok', 'products': results})


@catalog_bp.route('/products', methods=['POST'])
def create_product():
    form = ProductForm()
    if not form.validate():
        raise form_error(form)

    product = catalog_service.register_product(
        form.data,
        get_session(),
        default_emoji=current_app.config.get('DEFAULT_PRODUCT_EMOJI', '💊')
    )
    current_app.logger.info(f"Product '{product.name}' created")
    return jsonify({'status': 'ok', 'product': catalog_service.serialize_product(product)}), 201


@catalog_bp.route('/inventory', methods=['GET'])
def inventory():
    db_session = get_session()
    projection = stock_projector.load_projection(db_session)
    rows = catalog_service.inventory_summary(
        projection,
        db_session,
        today=date.today(),
        warning_days=current_app.config.get('EXPIRY_WARNING_DAYS', 90)
    )
    return jsonify({'status': 'ok', 'inventory': rows})


@catalog_bp.route('/categories', methods=['GET'])
def list_categories():
    return jsonify({'status': 'ok', 'categories': catalog_service.list_categories(get_session())})


@catalog_bp.route('/categories', methods=['POST'])
def create_category():
    form = CategoryForm()
    if not form.validate():
        raise form_error(form)

    category = catalog_service.create_category(form.name.data, get_session())
    return jsonify({'status': 'ok', 'category': {'id': category.id, 'name': category.name}}), 201
