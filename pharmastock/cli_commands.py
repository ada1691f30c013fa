"""
Flask CLI commands.

Commands:
- flask init-db: Create all tables
- flask stock-report [--product-id N]: Print live batches, soonest expiry first
- flask grant-role --uid UID --role ROLE: Set a user's access role
"""
from datetime import date

import click
from flask import current_app

from pharmastock.database import create_schema, get_session
from pharmastock.models import Product, UserAccess
from pharmastock.services import stock_projector
from pharmastock.utils.formatters import date_iso, money_in, qty


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create all database tables."""
        create_schema()
        click.echo(click.style('✅ Tables created', fg='green'))

    @app.cli.command('stock-report')
    @click.option('--product-id', type=int, default=None, help='Only report this product')
    def stock_report(product_id):
        """Print the projected batch stock per product (FEFO order)."""
        session = get_session()
        projection = stock_projector.load_projection(session)
        warning_days = current_app.config.get('EXPIRY_WARNING_DAYS', 90)
        symbol = current_app.config.get('CURRENCY_SYMBOL', '₹')
        today = date.today()

        query = session.query(Product).order_by(Product.name)
        if product_id is not None:
            query = query.filter(Product.id == product_id)
        products = query.all()

        if not products:
            click.echo(click.style('No products found', fg='yellow'))
            return

        for product in products:
            batches = stock_projector.list_fefo(projection, product.id)
            click.echo(click.style(f'{product.emoji or ""} {product.name} (#{product.id})', bold=True))
            if not batches:
                click.echo('   out of stock')
                continue
            for batch in batches:
                status = stock_projector.expiry_status(batch['expiry_date'], today, warning_days)
                colour = {'expired': 'red', 'near_expiry': 'yellow'}.get(status)
                expiry = date_iso(batch['expiry_date']) or '-'
                line = (f"   {batch['batch_code']:<14} exp {expiry:<10} "
                        f"{batch['available_packs']:>5} packs ({qty(batch['available_qty'])} {product.unit_type or 'units'}) "
                        f"MRP {money_in(batch['mrp'], symbol)}")
                click.echo(click.style(line, fg=colour) if colour else line)

    @app.cli.command('grant-role')
    @click.option('--uid', required=True, help='Authenticated user id')
    @click.option('--role', default='admin', show_default=True, help='Role to assign')
    def grant_role(uid, role):
        """Create or update a user's access role."""
        session = get_session()
        try:
            access = session.query(UserAccess).filter_by(uid=uid).first()
            if access is None:
                access = UserAccess(uid=uid)
                session.add(access)
            access.role = role
            session.commit()
            click.echo(click.style(f'✅ {uid} is now {role}', fg='green'))
        except Exception as e:
            session.rollback()
            click.echo(click.style(f'❌ Error assigning role: {str(e)}', fg='red'))
