"""Purchases blueprint: vendor bills (the acquisition ledger)."""
from datetime import date
from flask import Blueprint, request, jsonify, current_app
from pharmastock.database import get_session
from pharmastock.middleware import require_admin
from pharmastock.services import purchase_service, ledger_service
from pharmastock.blueprints.metrics import purchase_writes_total
from pharmastock.utils.number_format import parse_date

purchases_bp = Blueprint('purchases', __name__, url_prefix='/purchases')


def _payload() -> dict:
    return request.get_json(silent=True) or {}


def date_filter(name: str):
    """Date query arg; invalid values are ignored like an empty filter."""
    try:
        return parse_date(request.args.get(name), field=name)
    except ValueError:
        current_app.logger.info(f"Ignoring invalid {name} filter: {request.args.get(name)}")
        return None


@purchases_bp.route('/', methods=['GET'])
def list_purchases():
    """Purchase ledger with search, status and date-range filters."""
    records = ledger_service.list_purchases(
        get_session(),
        search=request.args.get('q', ''),
        status=request.args.get('status', 'All'),
        start=date_filter('start'),
        end=date_filter('end'),
        today=date.today()
    )
    return jsonify({'status': 'ok', 'purchases': records})


@purchases_bp.route('/<int:purchase_id>', methods=['GET'])
def view_purchase(purchase_id):
    purchase = purchase_service.get_purchase(purchase_id, get_session())
    return jsonify({'status': 'ok', 'purchase': purchase_service.serialize_purchase(purchase)})


@purchases_bp.route('/', methods=['POST'])
def create_purchase():
    db_session = get_session()
    purchase_id = purchase_service.create_purchase(_payload(), db_session)
    purchase_writes_total.labels(operation='create').inc()
    purchase = purchase_service.get_purchase(purchase_id, db_session)
    return jsonify({'status': 'ok', 'purchase': purchase_service.serialize_purchase(purchase)}), 201


@purchases_bp.route('/<int:purchase_id>', methods=['PUT'])
def update_purchase(purchase_id):
    """Replace a bill's header and items (stock counter reconciled)."""
    db_session = get_session()
    purchase_service.update_purchase(purchase_id, _payload(), db_session)
    purchase_writes_total.labels(operation='update').inc()
    purchase = purchase_service.get_purchase(purchase_id, db_session)
    return jsonify({'status': 'ok', 'purchase': purchase_service.serialize_purchase(purchase)})


@purchases_bp.route('/<int:purchase_id>', methods=['DELETE'])
@require_admin
def delete_purchase(purchase_id):
    result = purchase_service.delete_purchase(purchase_id, get_session())
    purchase_writes_total.labels(operation='delete').inc()
    current_app.logger.info(f"Purchase {purchase_id} deleted by admin")
    return jsonify({'status': 'ok', **result})


@purchases_bp.route('/<int:purchase_id>/status', methods=['POST'])
def update_status(purchase_id):
    purchase = purchase_service.set_purchase_status(purchase_id, _payload().get('status'), get_session())
    return jsonify({'status': 'ok', 'purchase': purchase_service.serialize_purchase(purchase)})


@purchases_bp.route('/<int:purchase_id>/discount', methods=['POST'])
def update_discount(purchase_id):
    purchase = purchase_service.set_purchase_discount(purchase_id, _payload().get('discount'), get_session())
    return jsonify({'status': 'ok', 'purchase': purchase_service.serialize_purchase(purchase)})
