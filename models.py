from flask_sqlalchemy import SQLAlchemy
from flask_login import UserMixin
from datetime import datetime
from werkzeug.security import generate_password_hash, check_password_hash
import json
import uuid

db = SQLAlchemy()


def new_id():
    return uuid.uuid4().hex


class User(UserMixin, db.Model):
    """User model for authentication"""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    full_name = db.Column(db.String(120), nullable=True)
    email = db.Column(db.String(120), nullable=True)
    phone = db.Column(db.String(40), nullable=True)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(20), nullable=False, default='user')  # admin, user
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def set_password(self, password):
        """Hash and set password"""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        """Verify password"""
        return check_password_hash(self.password_hash, password)

    def is_admin(self):
        return self.role == 'admin'

    def as_salesperson(self):
        """Contact details printed on the quotes this user creates"""
        return {
            'name': self.full_name or self.username,
            'email': self.email or '',
            'phone': self.phone or '',
        }

    def __repr__(self):
        return f'<User {self.username} ({self.role})>'


class Brand(db.Model):
    """Brand of the products in the catalog"""
    __tablename__ = 'brands'

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    name = db.Column(db.String(120), unique=True, nullable=False, index=True)
    description = db.Column(db.Text, nullable=True)
    logo_data_url = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    products = db.relationship('Product', backref='brand', lazy=True)

    def __repr__(self):
        return f'<Brand {self.name}>'


class Product(db.Model):
    """Product model for catalog management"""
    __tablename__ = 'products'

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    sku = db.Column(db.String(80), nullable=False, index=True)
    name = db.Column(db.String(300), nullable=False, index=True)
    description = db.Column(db.Text, nullable=True)
    price = db.Column(db.Numeric(12, 2), default=0, nullable=False)
    currency = db.Column(db.String(3), default='USD', nullable=False)
    unit = db.Column(db.String(20), nullable=True, default='pcs')
    brand_id = db.Column(db.String(32), db.ForeignKey('brands.id'), nullable=True, index=True)
    note = db.Column(db.Text, nullable=True)

    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    @property
    def brand_name(self):
        return self.brand.name if self.brand else ''

    @classmethod
    def search(cls, query):
        """Search active products by SKU or name"""
        filters = [cls.is_active == True]
        if query:
            filters.append(cls.sku.ilike(f'%{query}%') | cls.name.ilike(f'%{query}%'))
        return cls.query.filter(*filters).order_by(cls.sku)

    def __repr__(self):
        return f'<Product {self.sku} - {self.name}>'


class Customer(db.Model):
    """Customer (counterparty) of quotes and contracts"""
    __tablename__ = 'customers'

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    name = db.Column(db.String(200), nullable=False, index=True)
    contact_person = db.Column(db.String(120), nullable=True)
    email = db.Column(db.String(120), nullable=True)
    phone = db.Column(db.String(40), nullable=True)
    address = db.Column(db.Text, nullable=True)
    city = db.Column(db.String(100), nullable=True)
    country = db.Column(db.String(100), nullable=True)
    zip_code = db.Column(db.String(20), nullable=True)
    tax_id = db.Column(db.String(60), nullable=True)
    bank_name = db.Column(db.String(120), nullable=True)
    bank_account = db.Column(db.String(60), nullable=True)
    region = db.Column(db.String(20), nullable=False, default='International')  # International, Domestic
    source = db.Column(db.String(60), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f'<Customer {self.name} ({self.region})>'


class StoredDocument(db.Model):
    """Saved quote or contract, kept as an opaque JSON payload"""
    __tablename__ = 'documents'

    id = db.Column(db.String(32), primary_key=True)
    kind = db.Column(db.String(20), nullable=False, index=True)  # quote, contract
    number = db.Column(db.String(80), nullable=False, index=True)
    data = db.Column(db.Text, nullable=False)

    created_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.Index('idx_document_kind_number', 'kind', 'number'),
    )

    def get_data(self):
        return json.loads(self.data) if self.data else {}

    def set_data(self, payload):
        self.data = json.dumps(payload)

    def __repr__(self):
        return f'<StoredDocument {self.kind} {self.number}>'


class DocumentDraft(db.Model):
    """Auto-saved editor state of a document, keyed by document id"""
    __tablename__ = 'document_drafts'

    document_id = db.Column(db.String(32), primary_key=True)
    kind = db.Column(db.String(20), nullable=False)
    data = db.Column(db.Text, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def get_data(self):
        return json.loads(self.data) if self.data else {}

    def set_data(self, payload):
        self.data = json.dumps(payload)

    def __repr__(self):
        return f'<DocumentDraft {self.kind} {self.document_id}>'
