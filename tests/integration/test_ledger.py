"""
Integration tests for the sales ledger view and sale deletion.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from pharmastock.models import Sale, SaleItem
from pharmastock.services import stock_projector


@pytest.fixture
def two_sales(client, session, stocked):
    """INV-00001: 2 packs of B-EARLY paid in cash; INV-00002: walk-in, 1 pack of B-LATE, unpaid."""
    client.post('/sales/cart/add', json={'product_id': stocked.id})
    cart_id = client.get('/sales/cart').get_json()['cart']['lines'][0]['cart_id']
    client.post('/sales/cart/update', json={'cart_id': cart_id, 'qty': 2})
    client.post('/sales/checkout', json={
        'customer_name': 'Meera Iyer', 'customer_phone': '9000000001',
        'payment_method': 'Cash', 'cash_amount': '200',
    })

    walk_in = Sale(total_amount=Decimal('100'), payment_method='Online')
    walk_in.items.append(SaleItem(product_id=stocked.id, batch_code='B-LATE', quantity=Decimal('1'),
                                  unit_price=Decimal('100'), subtotal=Decimal('100')))
    session.add(walk_in)
    session.commit()
    return stocked


class TestSalesLedger:
    """GET /ledger/sales"""

    def test_records_and_stats(self, client, two_sales):
        body = client.get('/ledger/sales').get_json()
        records = body['sales']

        assert [r['invoice_number'] for r in records] == ['INV-00002', 'INV-00001']

        walk_in, cash_sale = records
        assert walk_in['customer_name'] == 'Walk-in Customer'
        assert walk_in['customer_phone'] == 'N/A'
        assert walk_in['payment_status'] == 'Unpaid'
        assert walk_in['amount_due'] == '100.00'

        assert cash_sale['customer_name'] == 'Meera Iyer'
        assert cash_sale['payment_status'] == 'Paid'
        assert cash_sale['profit'] == '80.00'
        assert cash_sale['items'][0]['batch_code'] == 'B-EARLY'
        assert cash_sale['items'][0]['expiry_date'] == (date.today() + timedelta(days=60)).isoformat()

        assert body['stats'] == {
            'total_sales': '300.00',
            'total_paid': '200.00',
            'total_due': '100.00',
            'transaction_count': 2,
            'total_profit': '120.00',
        }

    def test_filters(self, client, two_sales):
        def invoices(query):
            return [r['invoice_number'] for r in client.get(f'/ledger/sales?{query}').get_json()['sales']]

        assert invoices('status=Paid') == ['INV-00001']
        assert invoices('status=Unpaid') == ['INV-00002']
        assert invoices('method=Online') == ['INV-00002']
        assert invoices('q=meera') == ['INV-00001']
        assert invoices('q=inv-00002') == ['INV-00002']
        assert invoices('q=9000000001') == ['INV-00001']

        tomorrow = (date.today() + timedelta(days=1)).isoformat()
        assert invoices(f'start={tomorrow}') == []
        assert invoices(f'end={tomorrow}') == ['INV-00002', 'INV-00001']
        assert invoices('start=not-a-date') == ['INV-00002', 'INV-00001']

    def test_invalid_filters(self, client):
        assert client.get('/ledger/sales?status=Overdue').status_code == 400
        assert client.get('/ledger/sales?method=Cheque').status_code == 400


class TestDeleteSale:
    """DELETE /ledger/sales/<id> returns the sold packs to stock."""

    def test_delete_restores_stock(self, client, session, two_sales):
        response = client.delete('/ledger/sales/1')

        assert response.status_code == 200
        body = response.get_json()
        assert body['invoice_number'] == 'INV-00001'
        assert body['items_deleted'] == 1

        projection = stock_projector.load_projection(session)
        packs = {b['batch_code']: b['available_packs'] for b in stock_projector.list_fefo(projection, two_sales.id)}
        assert packs == {'B-EARLY': 3, 'B-LATE': 4}
        assert session.query(SaleItem).count() == 1

    def test_delete_unknown_sale(self, client):
        assert client.delete('/ledger/sales/77').status_code == 404
