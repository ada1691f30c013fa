"""
Unit tests for request value coercion and display formatting.
"""

from datetime import date, datetime
from decimal import Decimal

import pytest

from pharmastock.utils.number_format import parse_decimal, parse_quantity, parse_date, parse_id
from pharmastock.utils.formatters import money_in, qty, invoice_number, decimal_str, date_iso
from pharmastock.models import pack_unit_value


class TestParseDecimal:

    @pytest.mark.parametrize('raw, expected', [
        ('12.50', Decimal('12.50')),
        (7, Decimal('7')),
        ('1,234.56', Decimal('1234.56')),
        ('1,23,456.50', Decimal('123456.50')),
        (Decimal('3.3'), Decimal('3.3')),
    ])
    def test_valid_values(self, raw, expected):
        assert parse_decimal(raw) == expected

    def test_empty_uses_default(self):
        assert parse_decimal('  ', default=Decimal('0')) == Decimal('0')

    def test_empty_without_default_fails(self):
        with pytest.raises(ValueError, match='price is required'):
            parse_decimal(None, field='price')

    @pytest.mark.parametrize('raw', ['abc', 'NaN', 'Infinity', True])
    def test_invalid_values(self, raw):
        with pytest.raises(ValueError):
            parse_decimal(raw)

    def test_negative_rejected_unless_allowed(self):
        with pytest.raises(ValueError, match='cannot be negative'):
            parse_quantity('-1')
        assert parse_decimal('-1', allow_negative=True) == Decimal('-1')


class TestParseDate:

    def test_iso_date(self):
        assert parse_date('2025-06-01') == date(2025, 6, 1)

    def test_iso_datetime_keeps_date(self):
        assert parse_date('2025-06-01T10:30:00') == date(2025, 6, 1)
        assert parse_date(datetime(2025, 6, 1, 10, 30)) == date(2025, 6, 1)

    def test_empty(self):
        assert parse_date('') is None
        with pytest.raises(ValueError):
            parse_date(None, required=True)

    def test_invalid(self):
        with pytest.raises(ValueError, match='YYYY-MM-DD'):
            parse_date('01/06/2025')


class TestParseId:

    def test_numbers_and_numeric_strings(self):
        assert parse_id(7) == 7
        assert parse_id(' 12 ') == 12

    @pytest.mark.parametrize('value', ['abc', '1.5', '0', -3, True])
    def test_rejects_non_ids(self, value):
        with pytest.raises(ValueError, match='Invalid vendor_id|vendor_id is required'):
            parse_id(value, field='vendor_id')

    def test_missing(self):
        with pytest.raises(ValueError, match='customer_id is required'):
            parse_id('', field='customer_id')


class TestPackUnitValue:

    @pytest.mark.parametrize('raw', [None, '', '0', 0, '-5', 'abc', 'NaN'])
    def test_unusable_values_become_one(self, raw):
        assert pack_unit_value(raw) == Decimal('1')

    def test_positive_value_kept(self):
        assert pack_unit_value('2.5') == Decimal('2.5')


class TestFormatters:

    def test_money_uses_indian_grouping(self):
        assert money_in(1500) == '₹1,500.00'
        assert money_in(Decimal('123456.5')) == '₹1,23,456.50'
        assert money_in(-2500000, symbol='Rs ') == '-Rs 25,00,000.00'
        assert money_in(None) == '-'

    def test_qty_strips_trailing_zeros(self):
        assert qty(Decimal('5.000')) == '5'
        assert qty(Decimal('2.50')) == '2.5'

    def test_invoice_number(self):
        assert invoice_number(7) == 'INV-00007'
        assert invoice_number(123456) == 'INV-123456'

    def test_decimal_str_and_dates(self):
        assert decimal_str(Decimal('3')) == '3.00'
        assert decimal_str(None) is None
        assert date_iso(datetime(2025, 1, 2, 3, 4)) == '2025-01-02'
