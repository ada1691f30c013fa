"""
Catalog registration forms (products, vendors, categories).

The API posts JSON; FlaskForm reads it from the request body.
"""
from flask_wtf import FlaskForm
from wtforms import DecimalField, IntegerField, SelectField, StringField, TextAreaField
from wtforms.validators import DataRequired, InputRequired, Length, Optional, Regexp, URL

from pharmastock.models import VENDOR_STATUSES

EMAIL_PATTERN = r'^[^@\s]+@[^@\s]+\.[^@\s]+$'


class ProductForm(FlaskForm):
    """Form for registering a product (pack definition included)."""

    class Meta:
        csrf = False

    name = StringField(
        'Product Name',
        validators=[
            DataRequired(message='Product name is required'),
            Length(min=3, max=200, message='Product name must be at least 3 characters')
        ]
    )
    category = StringField('Category', validators=[DataRequired(message='Category is required')])
    dosage_form = StringField('Dosage Form', validators=[DataRequired(message='Dosage form is required')])
    unit_value = DecimalField(
        'Unit Value',
        validators=[InputRequired(message='Unit value is required')],
        places=None
    )
    unit_type = StringField(
        'Unit Type',
        validators=[DataRequired(message='Unit type is required'), Length(max=20)]
    )
    brand = StringField('Brand', validators=[Optional(), Length(max=100)])
    vendor_id = IntegerField('Vendor', validators=[Optional()])
    emoji = StringField('Emoji', validators=[Optional(), Length(max=16)])
    description = TextAreaField('Description', validators=[Optional()])


class VendorForm(FlaskForm):
    """Form for registering a vendor."""

    class Meta:
        csrf = False

    full_name = StringField(
        'Full Name',
        validators=[
            DataRequired(message='Full name is required'),
            Length(min=2, max=50, message='Full name must be between 2 and 50 characters')
        ]
    )
    phone_number = StringField(
        'Phone Number',
        validators=[
            DataRequired(message='Phone number is required'),
            Length(min=10, max=30, message='Phone number must be at least 10 characters')
        ]
    )
    email = StringField(
        'Email',
        validators=[Optional(), Regexp(EMAIL_PATTERN, message='Invalid email address')]
    )
    business_name = StringField('Business Name', validators=[Optional(), Length(max=200)])
    address = TextAreaField('Address', validators=[Optional()])
    website = StringField('Website', validators=[Optional(), URL(message='Invalid website URL')])
    status = SelectField(
        'Status',
        choices=[(status, status) for status in VENDOR_STATUSES],
        default='Active'
    )


class CategoryForm(FlaskForm):
    """Form for creating a product category."""

    class Meta:
        csrf = False

    name = StringField(
        'Category Name',
        validators=[DataRequired(message='Category name is required'), Length(max=100)]
    )
