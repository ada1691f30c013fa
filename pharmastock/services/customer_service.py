"""Customer service: lookup for the sale terminal and resolve-or-create at checkout."""
from typing import List, Optional

from sqlalchemy import or_

from pharmastock.models import Customer
from pharmastock.exceptions import BusinessLogicError, NotFoundError
from pharmastock.utils.number_format import parse_id


def search_customers(session, query: str, limit: int = 10) -> List[dict]:
    """Case-insensitive search by name or phone; empty query returns nothing."""
    query = (query or '').strip()
    if not query:
        return []

    pattern = f'%{query}%'
    customers = (session.query(Customer)
                 .filter(or_(Customer.name.ilike(pattern), Customer.phone.ilike(pattern)))
                 .order_by(Customer.name)
                 .limit(limit)
                 .all())
    return [{'id': c.id, 'name': c.name, 'phone': c.phone} for c in customers]


def resolve_customer(session, customer_id: Optional[int] = None, name: Optional[str] = None,
                     phone: Optional[str] = None) -> Customer:
    """
    Return the selected customer, or create one from the typed name / phone.

    The new row is flushed (not committed) so the caller's transaction owns it.

    Raises:
        NotFoundError: if customer_id does not exist
        BusinessLogicError: if customer_id is not a valid id, or no customer is
            selected and the name is empty
    """
    if customer_id:
        try:
            customer_id = parse_id(customer_id, field='customer_id')
        except ValueError as e:
            raise BusinessLogicError(str(e))
        customer = session.get(Customer, customer_id)
        if customer is None:
            raise NotFoundError(f'Customer {customer_id} not found')
        return customer

    name = (name or '').strip()
    if not name:
        raise BusinessLogicError('Customer Name is required.')

    customer = Customer(name=name, phone=(phone or '').strip() or None)
    session.add(customer)
    session.flush()
    return customer
