"""Vendors blueprint."""
from flask import Blueprint, request, jsonify, current_app
from pharmastock.database import get_session
from pharmastock.forms import VendorForm
from pharmastock.middleware import require_admin
from pharmastock.services import catalog_service
from pharmastock.blueprints.catalog import form_error

vendors_bp = Blueprint('vendors', __name__, url_prefix='/vendors')


@vendors_bp.route('/', methods=['GET'])
def list_vendors():
    """List vendors, optionally filtered by search text and status."""
    vendors = catalog_service.list_vendors(
        get_session(),
        search=request.args.get('q', ''),
        status=request.args.get('status', 'All')
    )
    return jsonify({'status': 'ok', 'vendors': vendors})


@vendors_bp.route('/', methods=['POST'])
@require_admin
def create_vendor():
    form = VendorForm()
    if not form.validate():
        raise form_error(form)

    vendor = catalog_service.register_vendor(form.data, get_session())
    current_app.logger.info(f"Vendor '{vendor.display_name}' created")
    return jsonify({'status': 'ok', 'vendor': catalog_service.serialize_vendor(vendor)}), 201
