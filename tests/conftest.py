import pytest
from datetime import date, timedelta
from decimal import Decimal
import uuid

from pharmastock import create_app
from pharmastock.database import get_session
from pharmastock.models import Vendor, Product, UserAccess
from pharmastock.services import purchase_service


@pytest.fixture(scope='function')
def app():
    """Create application instance backed by a fresh in-memory database."""
    app = create_app('config.TestConfig')
    yield app


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app):
    """Database session for the current test."""
    session = get_session()
    yield session
    session.rollback()
    session.remove()


@pytest.fixture(scope='function')
def vendor(session):
    """Create test vendor."""
    suffix = str(uuid.uuid4())[:8]
    vendor = Vendor(
        full_name=f'Ravi Kumar {suffix}',
        business_name=f'Kumar Pharma Distributors {suffix}',
        phone_number='9876543210',
        email=f'ravi-{suffix}@kumarpharma.in',
        status='Active'
    )
    session.add(vendor)
    session.commit()
    return vendor


@pytest.fixture(scope='function')
def product(session, vendor):
    """Paracetamol strips: 10 tablets per pack."""
    product = Product(
        name='Paracetamol 500mg',
        category='Analgesic',
        brand='Calpol',
        dosage_form='Tablet',
        unit_value=Decimal('10'),
        unit_type='tab',
        emoji='💊',
        vendor_id=vendor.id
    )
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def syrup(session, vendor):
    """Cough syrup sold by the 100 ml bottle."""
    product = Product(
        name='Benadryl Cough Syrup',
        category='Respiratory',
        brand='Benadryl',
        dosage_form='Syrup',
        unit_value=Decimal('100'),
        unit_type='ml',
        vendor_id=vendor.id
    )
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def receive(session, vendor):
    """Factory: record a purchase bill for one batch and return the purchase id."""
    counter = {'n': 0}

    def _receive(product, batch_code, quantity, expiry_date=None, free_quantity=0,
                 purchase_price='60', mrp='100', is_credit=False, due_date=None):
        counter['n'] += 1
        return purchase_service.create_purchase({
            'vendor_id': vendor.id,
            'bill_number': f'BILL-{counter["n"]:03d}',
            'purchase_date': date.today().isoformat(),
            'is_credit': is_credit,
            'due_date': due_date.isoformat() if due_date else None,
            'items': [{
                'product_id': product.id,
                'batch_code': batch_code,
                'expiry_date': expiry_date.isoformat() if expiry_date else None,
                'quantity': str(quantity),
                'free_quantity': str(free_quantity),
                'purchase_price': purchase_price,
                'mrp': mrp,
            }],
        }, session)

    return _receive


@pytest.fixture(scope='function')
def stocked(product, receive):
    """Two Paracetamol batches: B-EARLY (3 packs, sooner expiry) and B-LATE (5 packs)."""
    today = date.today()
    receive(product, 'B-EARLY', 3, expiry_date=today + timedelta(days=60))
    receive(product, 'B-LATE', 5, expiry_date=today + timedelta(days=400))
    return product


@pytest.fixture(scope='function')
def admin_client(client, session):
    """Client whose session belongs to a user with the admin role."""
    session.add(UserAccess(uid='admin-uid', role='admin'))
    session.commit()
    with client.session_transaction() as sess:
        sess['user_uid'] = 'admin-uid'
    return client


@pytest.fixture(scope='function')
def staff_client(client, session):
    """Client whose session belongs to a non-admin user."""
    session.add(UserAccess(uid='staff-uid', role='staff'))
    session.commit()
    with client.session_transaction() as sess:
        sess['user_uid'] = 'staff-uid'
    return client
