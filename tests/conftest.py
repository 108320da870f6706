"""Pytest configuration and fixtures."""

import os
from decimal import Decimal

import pytest

os.environ['ENVIRONMENT'] = 'testing'

from app import app as flask_app
from docexport.document import Contract, Counterparty, LineItem, Quote
from docexport.exporter import DocumentExporter, ExportOptions
from docexport.rendering import TemplateRenderer
from docexport.settings import CompanySettings
from models import db, Customer, Product, Brand
from tests.fakes import FakeRasterizer, FakeRenderer


# ---------------------------------------------------------------------------
# Application fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def app():
    """Application with a fresh in-memory database."""
    with flask_app.app_context():
        db.create_all()
        yield flask_app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def settings(app):
    return CompanySettings.from_mapping(app.config['COMPANY_SETTINGS'])


@pytest.fixture
def rasterizer():
    return FakeRasterizer()


@pytest.fixture
def exporter(rasterizer):
    return DocumentExporter(FakeRenderer(), rasterizer, ExportOptions(render_timeout=0.2))


@pytest.fixture
def app_exporter(app, monkeypatch, rasterizer):
    """Real template renderer, fake rasterizer, installed on the app."""
    exporter = DocumentExporter(TemplateRenderer(), rasterizer, ExportOptions(render_timeout=0.2))
    monkeypatch.setitem(app.extensions, 'document_exporter', exporter)
    return exporter


# ---------------------------------------------------------------------------
# Sample data
# ---------------------------------------------------------------------------

@pytest.fixture
def customer(app):
    record = Customer(name='Acme Industrial Supply', contact_person='John Smith',
                      email='john@acme.example', country='USA', region='International')
    db.session.add(record)
    db.session.commit()
    return record


@pytest.fixture
def domestic_customer(app):
    record = Customer(name='华东机电设备有限公司', contact_person='王经理',
                      city='上海', country='中国', region='Domestic')
    db.session.add(record)
    db.session.commit()
    return record


@pytest.fixture
def product(app):
    brand = Brand(name='Lianhe')
    db.session.add(brand)
    db.session.flush()
    record = Product(sku='LH-FV-050', name='Flow Valve DN50', description='Cast iron body',
                     price=Decimal('10.00'), currency='USD', unit='set', brand_id=brand.id)
    db.session.add(record)
    db.session.commit()
    return record


def make_items():
    return [
        LineItem(sku='A', name='Gauge', quantity=2, unit_price='10.00'),
        LineItem(sku='B', name='Valve', quantity=1, unit_price='50.00'),
        LineItem(sku='C', name='Seal', quantity=5, unit_price='3.00'),
    ]


@pytest.fixture
def quote():
    return Quote(number='LH-202401150042', items=make_items(),
                 discount_rate=10, shipping_cost=20,
                 counterparty=Counterparty(id='c1', name='Acme'), customer_id='c1')


@pytest.fixture
def contract():
    return Contract(number='ULHTZH202401150007', items=make_items(),
                    counterparty=Counterparty(id='c2', name='Buyer Co'), customer_id='c2')
