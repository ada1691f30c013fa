"""
Integration tests for the catalog: product and vendor registration,
categories, product search and the inventory summary.
"""

from decimal import Decimal

from pharmastock.models import Product, Vendor


def product_payload(**overrides):
    payload = {
        'name': 'Amoxicillin 250mg',
        'category': 'Antibiotic',
        'dosage_form': 'Capsule',
        'unit_value': '10',
        'unit_type': 'cap',
        'brand': 'Mox',
    }
    payload.update(overrides)
    return payload


class TestProductRegistration:
    """POST /catalog/products"""

    def test_register_product(self, client, session, vendor):
        response = client.post('/catalog/products', json=product_payload(vendor_id=vendor.id))

        assert response.status_code == 201
        data = response.get_json()['product']
        assert data['name'] == 'Amoxicillin 250mg'
        assert Decimal(data['unit_value']) == Decimal('10')
        assert data['emoji'] == '💊'
        assert data['vendor_id'] == vendor.id

        product = session.get(Product, data['id'])
        assert Decimal(str(product.current_stock)) == Decimal('0')

    def test_non_positive_unit_value_becomes_one(self, client):
        response = client.post('/catalog/products', json=product_payload(unit_value='0'))
        assert Decimal(response.get_json()['product']['unit_value']) == Decimal('1')

    def test_short_name_is_rejected(self, client, session):
        response = client.post('/catalog/products', json=product_payload(name='Ab'))

        assert response.status_code == 400
        body = response.get_json()
        assert body['message'] == 'Product name must be at least 3 characters'
        assert 'name' in body['errors']
        assert session.query(Product).count() == 0

    def test_missing_required_fields(self, client):
        response = client.post('/catalog/products', json={'name': 'Cetirizine'})

        assert response.status_code == 400
        errors = response.get_json()['errors']
        assert {'category', 'dosage_form', 'unit_value', 'unit_type'} <= set(errors)

    def test_unknown_vendor(self, client):
        response = client.post('/catalog/products', json=product_payload(vendor_id=999))
        assert response.status_code == 404


class TestProductSearch:
    """GET /catalog/products?q="""

    def test_in_stock_products_come_first(self, client, stocked, syrup):
        results = client.get('/catalog/products?q=a').get_json()['products']

        assert [r['name'] for r in results] == ['Paracetamol 500mg', 'Benadryl Cough Syrup']
        in_stock = results[0]
        assert in_stock['available_packs'] == 8
        assert Decimal(in_stock['available_stock']) == Decimal('80')
        assert in_stock['batch_count'] == 2
        assert results[1]['available_packs'] == 0

    def test_matches_brand_case_insensitively(self, client, stocked):
        results = client.get('/catalog/products?q=CALPOL').get_json()['products']
        assert [r['name'] for r in results] == ['Paracetamol 500mg']

    def test_empty_query_returns_nothing(self, client, stocked):
        assert client.get('/catalog/products?q=').get_json()['products'] == []


class TestInventory:
    """GET /catalog/inventory"""

    def test_inventory_summary(self, client, stocked, syrup):
        rows = client.get('/catalog/inventory').get_json()['inventory']

        assert [r['name'] for r in rows] == ['Benadryl Cough Syrup', 'Paracetamol 500mg']
        empty, paracetamol = rows
        assert empty['low_stock'] is True
        assert empty['expiry_status'] == 'unknown'

        assert paracetamol['low_stock'] is False
        assert paracetamol['available_packs'] == 8
        assert paracetamol['expiry_status'] == 'near_expiry'
        assert Decimal(paracetamol['current_stock']) == Decimal('80')


class TestCategories:

    def test_create_and_list(self, client):
        assert client.post('/catalog/categories', json={'name': 'Antibiotic'}).status_code == 201
        client.post('/catalog/categories', json={'name': 'Analgesic'})

        names = [c['name'] for c in client.get('/catalog/categories').get_json()['categories']]
        assert names == ['Analgesic', 'Antibiotic']

    def test_duplicate_name_ignores_case(self, client):
        client.post('/catalog/categories', json={'name': 'Antibiotic'})
        response = client.post('/catalog/categories', json={'name': 'antibiotic'})

        assert response.status_code == 400
        assert 'already exists' in response.get_json()['message']

    def test_blank_name(self, client):
        assert client.post('/catalog/categories', json={'name': ''}).status_code == 400


class TestVendors:
    """Vendor registration is admin-only; listing is open."""

    payload = {
        'full_name': 'Sunil Mehta',
        'business_name': 'Mehta Medical Agencies',
        'phone_number': '9812345678',
        'email': 'sunil@mehtamedical.in',
        'website': 'https://mehtamedical.in',
    }

    def test_admin_registers_vendor(self, admin_client, session):
        response = admin_client.post('/vendors/', json=self.payload)

        assert response.status_code == 201
        data = response.get_json()['vendor']
        assert data['display_name'] == 'Mehta Medical Agencies'
        assert data['status'] == 'Active'
        assert session.query(Vendor).count() == 1

    def test_staff_is_denied(self, staff_client, session):
        response = staff_client.post('/vendors/', json=self.payload)

        assert response.status_code == 403
        assert response.get_json()['message'] == 'Admin access required'
        assert session.query(Vendor).count() == 0

    def test_anonymous_is_denied(self, client):
        assert client.post('/vendors/', json=self.payload).status_code == 403

    def test_invalid_fields(self, admin_client):
        payload = dict(self.payload, email='not-an-email', phone_number='12345')
        response = admin_client.post('/vendors/', json=payload)

        assert response.status_code == 400
        assert {'email', 'phone_number'} <= set(response.get_json()['errors'])

    def test_list_and_filter(self, client, vendor):
        vendors = client.get('/vendors/?q=kumar').get_json()['vendors']
        assert [v['id'] for v in vendors] == [vendor.id]

        assert client.get('/vendors/?q=nobody').get_json()['vendors'] == []
        assert client.get('/vendors/?status=Suspended').get_json()['vendors'] == []
        assert client.get('/vendors/?status=Gone').status_code == 400
