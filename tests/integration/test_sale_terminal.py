"""
Integration tests for the sale terminal: FEFO cart, batch switching,
checkout, edit mode and the optional oversell guard.
"""

from decimal import Decimal

import pytest

from pharmastock.models import Customer, PurchaseItem, Sale, SaleItem
from pharmastock.services import purchase_service, stock_projector


def add(client, product):
    return client.post('/sales/cart/add', json={'product_id': product.id})


def checkout(client, **payload):
    body = {'customer_name': 'Meera Iyer', 'customer_phone': '9000000001', 'payment_method': 'Cash'}
    body.update(payload)
    return client.post('/sales/checkout', json=body)


def live_packs(session, product):
    projection = stock_projector.load_projection(session)
    return {b['batch_code']: b['available_packs'] for b in stock_projector.list_fefo(projection, product.id)}


class TestCart:
    """Cart actions keep the cart consistent with live batch stock."""

    def test_add_picks_earliest_expiry(self, client, stocked):
        response = add(client, stocked)

        assert response.status_code == 201
        body = response.get_json()
        line = body['cart']['lines'][0]
        assert line['cart_id'] == body['line']
        assert line['batch_code'] == 'B-EARLY'
        assert line['qty'] == 1
        assert line['max_qty'] == 3
        assert Decimal(line['mrp']) == Decimal('100')
        assert body['cart']['grand_total'] == '100.00'

    def test_cart_persists_between_requests(self, client, stocked):
        add(client, stocked)
        cart = client.get('/sales/cart?discount=10').get_json()['cart']
        assert len(cart['lines']) == 1
        assert cart['grand_total'] == '90.00'

    def test_add_without_stock(self, client, syrup):
        response = add(client, syrup)

        assert response.status_code == 409
        body = response.get_json()
        assert body['reason'] == 'no_stock'
        assert body['status'] == 'error'
        assert client.get('/sales/cart').get_json()['cart']['lines'] == []

    def test_add_same_batch_twice(self, client, stocked):
        add(client, stocked)
        response = add(client, stocked)

        assert response.status_code == 400
        assert response.get_json()['reason'] == 'duplicate_batch'
        assert len(client.get('/sales/cart').get_json()['cart']['lines']) == 1

    def test_add_unknown_product(self, client):
        assert client.post('/sales/cart/add', json={'product_id': 999}).status_code == 404

    def test_quantity_over_batch_is_rejected(self, client, stocked):
        cart_id = add(client, stocked).get_json()['line']

        response = client.post('/sales/cart/update', json={'cart_id': cart_id, 'qty': 4})

        assert response.status_code == 409
        body = response.get_json()
        assert body['reason'] == 'exceeds_batch'
        assert body['message'] == 'Only 3 packs available in this batch.'
        assert client.get('/sales/cart').get_json()['cart']['lines'][0]['qty'] == 1

    def test_quantity_steps(self, client, stocked):
        cart_id = add(client, stocked).get_json()['line']

        client.post('/sales/cart/update', json={'cart_id': cart_id, 'qty': 3})
        response = client.post('/sales/cart/update', json={'cart_id': cart_id, 'delta': -1})

        line = response.get_json()['cart']['lines'][0]
        assert line['qty'] == 2
        assert line['line_total'] == '200.00'

    def test_update_unknown_line(self, client):
        response = client.post('/sales/cart/update', json={'cart_id': 'nope', 'qty': 2})
        assert response.status_code == 404

    def test_remove_and_clear(self, client, stocked, syrup, receive):
        receive(syrup, 'S-1', 2)
        first = add(client, stocked).get_json()['line']
        add(client, syrup)

        response = client.post('/sales/cart/remove', json={'cart_id': first})
        assert [line['name'] for line in response.get_json()['cart']['lines']] == ['Benadryl Cough Syrup']

        response = client.post('/sales/cart/clear')
        assert response.get_json()['cart']['lines'] == []


class TestBatchSwitching:

    def test_batches_listed_latest_expiry_first(self, client, stocked):
        cart_id = add(client, stocked).get_json()['line']

        batches = client.get(f'/sales/cart/batches/{cart_id}').get_json()['batches']

        assert [b['batch_code'] for b in batches] == ['B-LATE', 'B-EARLY']
        assert [b['selected'] for b in batches] == [False, True]
        assert all(b['in_cart'] is False for b in batches)

    def test_switch_batch(self, client, stocked):
        cart_id = add(client, stocked).get_json()['line']
        client.post('/sales/cart/update', json={'cart_id': cart_id, 'qty': 3})

        response = client.post('/sales/cart/switch-batch', json={'cart_id': cart_id, 'batch_code': 'B-LATE'})

        assert response.status_code == 200
        line = response.get_json()['cart']['lines'][0]
        assert line['batch_code'] == 'B-LATE'
        assert line['max_qty'] == 5
        assert line['qty'] == 3

    def test_switch_to_unknown_batch(self, client, stocked):
        cart_id = add(client, stocked).get_json()['line']
        response = client.post('/sales/cart/switch-batch', json={'cart_id': cart_id, 'batch_code': 'B-NONE'})

        assert response.status_code == 404
        assert response.get_json()['reason'] == 'unknown_batch'

    def test_second_line_after_switch_uses_freed_batch(self, client, stocked):
        first = add(client, stocked).get_json()['line']
        client.post('/sales/cart/switch-batch', json={'cart_id': first, 'batch_code': 'B-LATE'})

        response = add(client, stocked)

        assert response.status_code == 201
        assert response.get_json()['cart']['lines'][0]['batch_code'] == 'B-EARLY'
        batches = client.get(f'/sales/cart/batches/{first}').get_json()['batches']
        assert {b['batch_code']: b['in_cart'] for b in batches} == {'B-LATE': False, 'B-EARLY': True}


class TestCheckout:
    """POST /sales/checkout"""

    def test_checkout_creates_sale_and_customer(self, client, session, stocked):
        cart_id = add(client, stocked).get_json()['line']
        client.post('/sales/cart/update', json={'cart_id': cart_id, 'qty': 2})

        response = checkout(client, cash_amount='200', doctor_name='Dr. Rao')

        assert response.status_code == 201
        body = response.get_json()
        assert body['invoice_number'] == 'INV-00001'
        assert body['grand_total'] == '200.00'
        assert body['mode'] == 'create'

        sale = session.get(Sale, body['sale_id'])
        assert sale.customer.name == 'Meera Iyer'
        assert sale.doctor_name == 'Dr. Rao'
        assert [(i.batch_code, int(i.quantity)) for i in sale.items] == [('B-EARLY', 2)]

        assert live_packs(session, stocked) == {'B-EARLY': 1, 'B-LATE': 5}
        assert client.get('/sales/cart').get_json()['cart']['lines'] == []

    def test_payment_within_tolerance_is_accepted(self, client, stocked):
        add(client, stocked)
        assert checkout(client, cash_amount='99.99').status_code == 201

    def test_short_payment_is_rejected(self, client, session, stocked):
        add(client, stocked)

        response = checkout(client, cash_amount='99.98')

        assert response.status_code == 400
        assert response.get_json()['balance'] == '-0.02'
        assert session.query(Sale).count() == 0
        assert len(client.get('/sales/cart').get_json()['cart']['lines']) == 1

    def test_mixed_payment_counts_both_parts(self, client, stocked):
        add(client, stocked)
        response = checkout(client, payment_method='Mixed', cash_amount='40', online_amount='60')
        assert response.status_code == 201

    def test_online_payment_zeroes_cash(self, client, session, stocked):
        add(client, stocked)
        body = checkout(client, payment_method='Online', cash_amount='50', online_amount='100').get_json()

        sale = session.get(Sale, body['sale_id'])
        assert Decimal(str(sale.cash_amount)) == Decimal('0')
        assert Decimal(str(sale.online_amount)) == Decimal('100')

    def test_discount_reduces_grand_total(self, client, stocked):
        add(client, stocked)
        body = checkout(client, discount='25', cash_amount='75').get_json()
        assert body['grand_total'] == '75.00'

    def test_discount_above_subtotal_is_capped(self, client, session, stocked):
        add(client, stocked)
        body = checkout(client, discount='500', cash_amount='0').get_json()

        assert body['grand_total'] == '0.00'
        assert Decimal(str(session.get(Sale, body['sale_id']).discount_amount)) == Decimal('100')

        record = client.get('/ledger/sales').get_json()['sales'][0]
        assert record['subtotal'] == '100.00'
        assert record['discount'] == '100.00'

    def test_non_numeric_customer_id(self, client, session, stocked):
        add(client, stocked)

        response = checkout(client, customer_id='abc', cash_amount='100')

        assert response.status_code == 400
        assert response.get_json()['message'] == 'Invalid customer_id: abc'
        assert session.query(Sale).count() == 0
        assert len(client.get('/sales/cart').get_json()['cart']['lines']) == 1

    def test_cart_cookie_holds_only_cart_fields(self, client, stocked):
        add(client, stocked)

        with client.session_transaction() as cookie:
            line = cookie['cart']['lines'][0]
        assert set(line) == {'cart_id', 'product_id', 'batch_code', 'qty', 'max_qty', 'mrp'}

        cart_line = client.get('/sales/cart').get_json()['cart']['lines'][0]
        assert cart_line['name'] == 'Paracetamol 500mg'
        assert Decimal(cart_line['unit_value']) == Decimal('10')
        assert cart_line['expiry_date'] is not None

    def test_existing_customer_is_reused(self, client, session, stocked):
        customer = Customer(name='Arjun Nair', phone='9000000002')
        session.add(customer)
        session.commit()

        add(client, stocked)
        body = checkout(client, customer_id=customer.id, customer_name='', cash_amount='100').get_json()

        assert session.get(Sale, body['sale_id']).customer_id == customer.id
        assert session.query(Customer).count() == 1

    def test_customer_name_required(self, client, stocked):
        add(client, stocked)
        response = checkout(client, customer_name='  ', cash_amount='100')
        assert response.status_code == 400
        assert response.get_json()['message'] == 'Customer Name is required.'

    def test_empty_cart(self, client):
        response = checkout(client, cash_amount='100')
        assert response.status_code == 400
        assert response.get_json()['message'] == 'Cart is empty'

    def test_invalid_payment_method(self, client, stocked):
        add(client, stocked)
        assert checkout(client, payment_method='Cheque', cash_amount='100').status_code == 400

    def test_customer_lookup(self, client, stocked):
        add(client, stocked)
        checkout(client, cash_amount='100')

        found = client.get('/sales/customers?q=meera').get_json()['customers']
        assert [c['name'] for c in found] == ['Meera Iyer']
        assert client.get('/sales/customers?q=').get_json()['customers'] == []


class TestEditSale:
    """A confirmed sale reloaded into the cart sees its own stock as available."""

    @pytest.fixture
    def sold(self, client, stocked):
        cart_id = add(client, stocked).get_json()['line']
        client.post('/sales/cart/update', json={'cart_id': cart_id, 'qty': 2})
        return checkout(client, cash_amount='200').get_json()['sale_id']

    def test_edit_restores_own_consumption(self, client, sold):
        response = client.post(f'/sales/{sold}/edit')

        cart = response.get_json()['cart']
        assert cart['edit_sale_id'] == sold
        line = cart['lines'][0]
        assert line['batch_code'] == 'B-EARLY'
        assert line['qty'] == 2
        assert line['max_qty'] == 3

    def test_stock_view_in_edit_mode(self, client, sold):
        client.post(f'/sales/{sold}/edit')
        batches = client.get('/sales/stock').get_json()['batches']
        assert {b['batch_code']: b['available_packs'] for b in batches} == {'B-EARLY': 3, 'B-LATE': 5}

    def test_edit_checkout_rewrites_sale_in_place(self, client, session, stocked, sold):
        cart = client.post(f'/sales/{sold}/edit').get_json()['cart']
        client.post('/sales/cart/update', json={'cart_id': cart['lines'][0]['cart_id'], 'qty': 3})
        customer_id = session.get(Sale, sold).customer_id

        response = checkout(client, customer_id=customer_id, cash_amount='300')

        assert response.status_code == 200
        body = response.get_json()
        assert body['mode'] == 'edit'
        assert body['sale_id'] == sold
        assert session.query(Sale).count() == 1
        assert [int(i.quantity) for i in session.query(SaleItem).all()] == [3]
        assert live_packs(session, stocked) == {'B-LATE': 5}

        cart = client.get('/sales/cart').get_json()['cart']
        assert cart['edit_sale_id'] is None

    def test_edit_unknown_sale(self, client):
        assert client.post('/sales/404/edit').status_code == 404

    def test_edit_clamps_quantity_to_remaining_stock(self, client, session, stocked, sold):
        sell_elsewhere(session, stocked, 'B-EARLY', 2)

        cart = client.post(f'/sales/{sold}/edit').get_json()['cart']

        line = cart['lines'][0]
        assert line['qty'] == 1
        assert line['max_qty'] == 1

    def test_edit_leaves_out_batch_without_stock(self, client, session, stocked, sold):
        bill = session.query(PurchaseItem).filter_by(batch_code='B-EARLY').one().purchase_id
        purchase_service.delete_purchase(bill, session)

        body = client.post(f'/sales/{sold}/edit').get_json()

        assert body['cart']['lines'] == []
        assert body['cart']['edit_sale_id'] == sold
        assert body['dropped'] == [{'product_id': stocked.id, 'name': 'Paracetamol 500mg',
                                    'batch_code': 'B-EARLY', 'qty': 2}]

        response = checkout(client, cash_amount='200')
        assert response.status_code == 400
        assert response.get_json()['message'] == 'Cart is empty'


def sell_elsewhere(session, product, batch_code, packs):
    """Record a sale made from another terminal."""
    sale = Sale(total_amount=Decimal('100') * packs, cash_amount=Decimal('100') * packs)
    sale.items.append(SaleItem(product_id=product.id, batch_code=batch_code, quantity=Decimal(packs),
                               unit_price=Decimal('100'), subtotal=Decimal('100') * packs))
    session.add(sale)
    session.commit()


class TestOversellGuard:
    """Another terminal sells the batch between add-to-cart and checkout."""

    def test_guard_rejects_stale_cart(self, app, client, session, stocked):
        app.config['STOCK_OVERSELL_GUARD'] = True
        add(client, stocked)
        sell_elsewhere(session, stocked, 'B-EARLY', 3)

        response = checkout(client, cash_amount='100')

        assert response.status_code == 409
        assert response.get_json()['batch_code'] == 'B-EARLY'
        assert session.query(Sale).count() == 1

    def test_without_guard_checkout_goes_through(self, client, session, stocked):
        add(client, stocked)
        sell_elsewhere(session, stocked, 'B-EARLY', 3)

        assert checkout(client, cash_amount='100').status_code == 201
        assert live_packs(session, stocked) == {'B-LATE': 5}
