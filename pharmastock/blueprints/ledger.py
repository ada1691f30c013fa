"""Ledger blueprint: sales ledger view and sale deletion."""
from decimal import Decimal
from flask import Blueprint, request, jsonify, current_app
from pharmastock.database import get_session
from pharmastock.exceptions import BusinessLogicError
from pharmastock.services import ledger_service, sales_service
from pharmastock.models import PaymentMethod
from pharmastock.blueprints.purchases import date_filter

ledger_bp = Blueprint('ledger', __name__, url_prefix='/ledger')


@ledger_bp.route('/sales', methods=['GET'])
def list_sales():
    """Sales ledger with payment figures, profit and stats."""
    status = request.args.get('status', 'All')
    method = request.args.get('method', 'All')

    if status != 'All' and status not in ledger_service.PAYMENT_STATUSES:
        raise BusinessLogicError(f'Invalid payment status: {status}')
    if method != 'All' and method not in [m.value for m in PaymentMethod]:
        raise BusinessLogicError(f'Invalid payment method: {method}')

    ledger = ledger_service.list_sales(
        get_session(),
        search=request.args.get('q', ''),
        status=status,
        payment_method=method,
        start=date_filter('start'),
        end=date_filter('end'),
        tolerance=Decimal(str(current_app.config.get('PAYMENT_TOLERANCE', '0.01')))
    )
    return jsonify({'status': 'ok', 'sales': ledger['records'], 'stats': ledger['stats']})


@ledger_bp.route('/sales/<int:sale_id>', methods=['DELETE'])
def delete_sale(sale_id):
    result = sales_service.delete_sale(sale_id, get_session())
    current_app.logger.info(f"Sale {result['invoice_number']} deleted")
    return jsonify({'status': 'ok', **result})
