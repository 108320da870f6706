"""Tests for the document model: line items, totals, conversion and serialization."""

import random
from datetime import date
from decimal import Decimal

import pytest

from docexport.document import (
    CatalogProduct,
    Contract,
    Counterparty,
    Currency,
    DocumentKind,
    LineItem,
    PriceConverter,
    Quote,
    add_line_item,
    apply_product_defaults,
    compute_totals,
    convert_price,
    document_from_dict,
    document_to_dict,
    generate_document_number,
    new_line_item,
    remove_line_item,
    to_decimal,
    update_line_item,
    validate_for_save,
)


def make_items():
    return [
        LineItem(sku='A', name='Gauge', quantity=2, unit_price='10.00'),
        LineItem(sku='B', name='Valve', quantity=1, unit_price='50.00'),
        LineItem(sku='C', name='Seal', quantity=5, unit_price='3.00'),
    ]


VALVE = CatalogProduct(id='p1', sku='FV-050', name='Flow Valve', description='DN50',
                       unit_price='12.50', currency='USD', unit='set', brand='Lianhe')


class TestLineItems:
    """Adding, updating and removing line items."""

    def test_new_line_item_is_zeroed(self):
        item = new_line_item()
        assert item.quantity == 0
        assert item.unit_price == 0
        assert item.line_amount == 0
        assert item.unit == 'pcs'

    def test_add_line_item_appends_without_mutating(self):
        items = make_items()
        result = add_line_item(items)
        assert len(result) == 4
        assert len(items) == 3
        assert result[-1].line_amount == 0

    def test_update_quantity_recomputes_line_amount(self):
        items = make_items()
        target = items[0].id
        result = update_line_item(items, target, 'quantity', '7')
        assert result[0].quantity == Decimal('7')
        assert result[0].line_amount == Decimal('70.00')

    @pytest.mark.parametrize('quantity,price', [
        ('0', '0'),
        ('3', '19.99'),
        ('1.5', '0.01'),
        ('1000000', '123456.78'),
        ('0.333', '3'),
    ])
    def test_line_amount_is_exact_product(self, quantity, price):
        item = new_line_item()
        items = update_line_item([item], item.id, 'quantity', quantity)
        items = update_line_item(items, item.id, 'unit_price', price)
        assert items[0].line_amount == Decimal(quantity) * Decimal(price)

    def test_line_amount_cannot_be_set(self):
        items = make_items()
        with pytest.raises(ValueError):
            update_line_item(items, items[0].id, 'line_amount', '999')

    def test_line_amount_in_payload_is_ignored(self):
        item = LineItem.from_dict({'quantity': '2', 'unit_price': '5', 'line_amount': '999'})
        assert item.line_amount == Decimal('10')

    def test_update_unknown_id_is_noop(self):
        items = make_items()
        assert update_line_item(items, 'missing', 'quantity', 3) == items

    def test_update_rejects_non_numeric_quantity(self):
        items = make_items()
        with pytest.raises(ValueError):
            update_line_item(items, items[0].id, 'quantity', 'abc')

    def test_remove_line_item(self):
        items = make_items()
        result = remove_line_item(items, items[1].id)
        assert [item.sku for item in result] == ['A', 'C']

    def test_remove_unknown_id_is_noop(self):
        items = make_items()
        assert remove_line_item(items, 'missing') == items

    def test_selecting_product_pulls_catalog_values(self):
        item = new_line_item()
        result = update_line_item([item], item.id, 'product_id', 'p1',
                                  lookup_product={'p1': VALVE}.get)
        updated = result[0]
        assert updated.product_id == 'p1'
        assert updated.sku == 'FV-050'
        assert updated.unit_price == Decimal('12.50')
        assert updated.unit == 'set'
        assert updated.brand == 'Lianhe'

    def test_selecting_unknown_product_only_sets_the_id(self):
        item = new_line_item()
        result = update_line_item([item], item.id, 'product_id', 'nope', lookup_product=lambda _: None)
        assert result[0].product_id == 'nope'
        assert result[0].sku == ''


class TestApplyProductDefaults:
    """Last-write-wins merge of catalog values into a line item."""

    def test_overrides_manual_edits(self):
        item = LineItem(sku='MANUAL', name='Custom name', unit_price='99', quantity=4)
        merged = apply_product_defaults(item, VALVE)
        assert merged.sku == 'FV-050'
        assert merged.name == 'Flow Valve'
        assert merged.unit_price == Decimal('12.50')
        assert merged.quantity == 4
        assert merged.id == item.id

    def test_converts_price_for_contracts(self):
        converter = PriceConverter(target=Currency.CNY, rates={'USD': Decimal('1'), 'CNY': Decimal('7.2')})
        merged = apply_product_defaults(new_line_item(), VALVE, converter)
        assert merged.unit_price == Decimal('90.00')


class TestComputeTotals:
    """Subtotal, discount, shipping and grand total."""

    def test_worked_example(self):
        totals = compute_totals(make_items(), discount_rate=10, shipping_cost=20)
        assert totals.subtotal == Decimal('85.00')
        assert totals.discount_amount == Decimal('8.50')
        assert totals.grand_total == Decimal('96.50')

    def test_empty_document(self):
        totals = compute_totals([], 0, 0)
        assert totals.subtotal == 0
        assert totals.grand_total == 0

    def test_totals_follow_the_items(self):
        rng = random.Random(7)
        for _ in range(50):
            items = [LineItem(quantity=rng.randint(0, 20), unit_price=Decimal(rng.randint(0, 10000)) / 100)
                     for _ in range(rng.randint(0, 8))]
            shipping = Decimal(rng.randint(0, 5000)) / 100
            rate = Decimal(rng.randint(0, 100))
            totals = compute_totals(items, rate, shipping)
            assert totals.subtotal == sum((item.line_amount for item in items), Decimal('0'))
            assert totals.grand_total == totals.subtotal - totals.discount_amount + totals.shipping_cost

    def test_discount_rate_is_not_clamped(self):
        totals = compute_totals(make_items(), discount_rate=150)
        assert totals.discount_amount == Decimal('127.50')
        assert totals.grand_total == Decimal('-42.50')

    def test_document_totals_are_derived(self, quote):
        assert quote.totals.grand_total == Decimal('96.50')
        quote.items = update_line_item(quote.items, quote.items[0].id, 'quantity', 3)
        assert quote.totals.subtotal == Decimal('95.00')


class TestCurrency:

    def test_same_currency_is_unchanged(self):
        assert convert_price('10.00', 'USD', 'USD', {}) == Decimal('10.00')

    def test_usd_to_cny_uses_fallback_rate(self):
        assert convert_price('10', 'USD', 'CNY', {}) == Decimal('72.00')

    def test_eur_to_cny(self):
        rates = {'USD': Decimal('1'), 'EUR': Decimal('0.92'), 'CNY': Decimal('7.2')}
        assert convert_price('9.20', 'EUR', 'CNY', rates) == Decimal('72.00')

    def test_contract_currency_is_forced_domestic(self):
        contract = Contract(currency='USD')
        assert contract.currency is Currency.CNY

    def test_to_decimal_rejects_bad_input(self):
        for value in ('abc', True, 'NaN', 'Infinity'):
            with pytest.raises(ValueError):
                to_decimal(value)
        assert to_decimal('') == 0


class TestDocumentNumbers:

    def test_format(self):
        number = generate_document_number('LH-', today=date(2024, 1, 15), rng=random.Random(1))
        assert number.startswith('LH-20240115')
        assert len(number) == len('LH-20240115') + 4
        assert number[-4:].isdigit()

    def test_contract_prefix(self, settings):
        number = settings.next_number(DocumentKind.CONTRACT, today=date(2024, 3, 1))
        assert number.startswith('ULHTZH20240301')


class TestValidateForSave:

    def test_valid_quote(self, quote):
        assert validate_for_save(quote) == []

    def test_missing_customer_and_items(self):
        errors = validate_for_save(Quote(number='LH-1'))
        assert 'Please select a customer' in errors
        assert 'Please add at least one product' in errors

    def test_missing_number(self, quote):
        quote.number = '  '
        assert validate_for_save(quote) == ['Document number is required']

    def test_out_of_range_discount_is_flagged(self, quote):
        quote.discount_rate = Decimal('120')
        assert validate_for_save(quote) == ['Discount rate must be between 0 and 100']

    def test_negative_values_are_flagged(self, quote):
        quote.shipping_cost = Decimal('-1')
        quote.items = update_line_item(quote.items, quote.items[0].id, 'quantity', -2)
        errors = validate_for_save(quote)
        assert 'Shipping cost cannot be negative' in errors
        assert 'Line item quantities and prices cannot be negative' in errors


class TestSerialization:

    def test_roundtrip_recomputes_derived_values(self, quote):
        data = document_to_dict(quote)
        assert data['kind'] == 'quote'
        assert Decimal(data['totals']['grand_total']) == Decimal('96.50')
        data['totals']['grand_total'] = '1'
        data['items'][0]['line_amount'] = '1'

        restored = document_from_dict(data)
        assert isinstance(restored, Quote)
        assert restored.totals.grand_total == Decimal('96.50')
        assert restored.items[0].line_amount == Decimal('20.00')
        assert restored.counterparty == Counterparty(id='c1', name='Acme')

    def test_contract_keeps_supplier(self, contract, settings):
        contract.supplier = settings.domestic
        restored = document_from_dict(document_to_dict(contract))
        assert isinstance(restored, Contract)
        assert restored.supplier.name == settings.domestic.name
        assert restored.currency is Currency.CNY

    def test_quote_defaults(self):
        quote = Quote()
        assert quote.incoterms == 'EXW'
        assert quote.lead_time == '2-3 Weeks'
        assert quote.payment_terms == '100% T/T in advance'
        assert quote.status == 'Draft'

    @pytest.mark.parametrize('data', [
        {'items': ['x']},
        {'items': [3]},
        {'counterparty': 'Acme'},
        {'salesperson': ['Lee']},
    ])
    def test_wrongly_shaped_fields_are_rejected(self, data):
        with pytest.raises(TypeError):
            document_from_dict(data, kind='quote')

    def test_contract_supplier_must_be_an_object(self):
        with pytest.raises(TypeError):
            document_from_dict({'supplier': 'Acme'}, kind='contract')
