"""
Document model for quotes and domestic sales contracts

Line amounts and totals are derived: they are computed from the fields they
depend on every time they are read and can never be set on their own.
"""
import random
import uuid
from dataclasses import dataclass, field, fields, is_dataclass, replace
from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum
from typing import Callable, Dict, List, Optional


CENT = Decimal('0.01')
ZERO = Decimal('0')


class Currency(str, Enum):
    USD = 'USD'
    EUR = 'EUR'
    CNY = 'CNY'
    GBP = 'GBP'


# Contracts are always issued in the domestic currency
DOMESTIC_CURRENCY = Currency.CNY

# Used when a rate is missing from the configured table (base: 1 USD)
FALLBACK_RATES = {'USD': Decimal('1'), 'CNY': Decimal('7.2')}


class DocumentKind(str, Enum):
    QUOTE = 'quote'
    CONTRACT = 'contract'


class DocumentType(str, Enum):
    PROFORMA = 'Proforma Invoice'
    COMMERCIAL = 'Commercial Invoice'
    QUOTATION = 'Quotation'
    CONTRACT = 'Sales Contract'


STATUSES = ('Draft', 'Sent', 'Accepted')

EDITABLE_ITEM_FIELDS = frozenset([
    'product_id', 'sku', 'name', 'description', 'unit',
    'quantity', 'unit_price', 'brand', 'lead_time',
])


def generate_id():
    return uuid.uuid4().hex


def to_decimal(value, default=ZERO):
    """Coerce form/JSON input into a Decimal; blank input gives the default"""
    if value is None or value == '':
        return default
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f'Not a number: {value!r}')
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValueError(f'Not a number: {value!r}')
    if not number.is_finite():
        raise ValueError(f'Not a number: {value!r}')
    return number


def _from_mapping(cls, data):
    if data is not None and not isinstance(data, dict):
        raise TypeError(f'Expected an object for {cls.__name__}, got {data!r}')
    names = {f.name for f in fields(cls)}
    return cls(**{key: value for key, value in (data or {}).items() if key in names})


def _nested(cls, value):
    if value is None or isinstance(value, cls):
        return value
    return cls.from_dict(value)


@dataclass(frozen=True)
class Counterparty:
    """Copy of the customer's contact details taken when the document is saved"""
    id: str = ''
    name: str = ''
    contact_person: str = ''
    email: str = ''
    phone: str = ''
    address: str = ''
    city: str = ''
    country: str = ''
    zip_code: str = ''
    tax_id: str = ''
    bank_name: str = ''
    bank_account: str = ''
    region: str = ''

    @classmethod
    def from_dict(cls, data):
        return _from_mapping(cls, data)


@dataclass(frozen=True)
class Salesperson:
    name: str = ''
    email: str = ''
    phone: str = ''

    @classmethod
    def from_dict(cls, data):
        return _from_mapping(cls, data)


@dataclass(frozen=True)
class CatalogProduct:
    """Current catalog values of a product, as returned by a product lookup"""
    id: str
    sku: str
    name: str
    description: str = ''
    unit_price: Decimal = ZERO
    currency: Currency = Currency.USD
    unit: str = ''
    brand: str = ''

    def __post_init__(self):
        object.__setattr__(self, 'unit_price', to_decimal(self.unit_price))
        object.__setattr__(self, 'currency', Currency(self.currency))


@dataclass(frozen=True)
class LineItem:
    id: str = field(default_factory=generate_id)
    product_id: str = ''
    sku: str = ''
    name: str = ''
    description: str = ''
    unit: str = 'pcs'
    quantity: Decimal = ZERO
    unit_price: Decimal = ZERO
    brand: str = ''
    lead_time: str = ''

    def __post_init__(self):
        object.__setattr__(self, 'quantity', to_decimal(self.quantity))
        object.__setattr__(self, 'unit_price', to_decimal(self.unit_price))

    @property
    def line_amount(self):
        return self.quantity * self.unit_price

    @classmethod
    def from_dict(cls, data):
        return _from_mapping(cls, data)


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    discount_rate: Decimal
    discount_amount: Decimal
    shipping_cost: Decimal
    grand_total: Decimal


def compute_totals(items, discount_rate=ZERO, shipping_cost=ZERO):
    """
    Compute document totals from its line items.

    The discount rate is not clamped to 0-100: out of range values propagate
    into the result and are reported by validate_for_save instead.

    Args:
        items: iterable of LineItem
        discount_rate: percentage applied to the subtotal
        shipping_cost: amount added after the discount

    Returns:
        Totals
    """
    rate = to_decimal(discount_rate)
    shipping = to_decimal(shipping_cost)
    subtotal = sum((item.line_amount for item in items), ZERO)
    discount_amount = subtotal * rate / Decimal('100')
    return Totals(
        subtotal=subtotal,
        discount_rate=rate,
        discount_amount=discount_amount,
        shipping_cost=shipping,
        grand_total=subtotal - discount_amount + shipping,
    )


def convert_price(amount, source, target, rates):
    """Convert an amount between currencies using rates expressed against 1 USD"""
    source = Currency(source)
    target = Currency(target)
    amount = to_decimal(amount)
    if source == target:
        return amount

    def rate_for(currency):
        rate = to_decimal((rates or {}).get(currency.value), ZERO)
        if rate <= 0:
            rate = FALLBACK_RATES.get(currency.value, Decimal('1'))
        return rate

    in_usd = amount / rate_for(source)
    return (in_usd * rate_for(target)).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PriceConverter:
    """Converts catalog prices into the currency of the document being edited"""
    target: Currency
    rates: Dict[str, Decimal] = field(default_factory=dict)

    def convert(self, amount, source):
        return convert_price(amount, source, self.target, self.rates)


# ---------------------------------------------------------------------------
# Line item operations (all return a new list)
# ---------------------------------------------------------------------------

def new_line_item(unit='pcs'):
    return LineItem(unit=unit, quantity=ZERO, unit_price=ZERO)


def add_line_item(items, item=None):
    return list(items) + [item if item is not None else new_line_item()]


def apply_product_defaults(item, product, converter=None):
    """
    Overwrite an item's catalog fields with the product's current values.

    Last write wins: manual overrides of sku, name, description, unit price,
    unit and brand made before the product was (re)selected are discarded.
    When a converter is given the catalog price is converted into the
    converter's currency.
    """
    price = product.unit_price
    if converter is not None:
        price = converter.convert(price, product.currency)
    return replace(
        item,
        product_id=product.id,
        sku=product.sku,
        name=product.name,
        description=product.description or '',
        unit_price=price,
        unit=product.unit or item.unit,
        brand=product.brand or '',
    )


def update_line_item(items, item_id, field_name, value,
                     lookup_product: Optional[Callable[[str], Optional[CatalogProduct]]] = None,
                     converter: Optional[PriceConverter] = None):
    """
    Set one field of the item with the given id.

    Selecting a product (field_name == 'product_id') also pulls the product's
    catalog values into the item. Unknown ids leave the list unchanged.
    """
    if field_name not in EDITABLE_ITEM_FIELDS:
        raise ValueError(f'{field_name} is not an editable line item field')

    updated = []
    for item in items:
        if item.id == item_id:
            item = replace(item, **{field_name: value})
            if field_name == 'product_id' and lookup_product is not None and value:
                product = lookup_product(value)
                if product is not None:
                    item = apply_product_defaults(item, product, converter)
        updated.append(item)
    return updated


def remove_line_item(items, item_id):
    return [item for item in items if item.id != item_id]


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------

def _today():
    return date.today().isoformat()


@dataclass
class Document:
    id: str = field(default_factory=generate_id)
    number: str = ''
    document_type: DocumentType = DocumentType.QUOTATION
    date_issued: str = field(default_factory=_today)
    valid_until: str = ''
    customer_id: str = ''
    counterparty: Optional[Counterparty] = None
    items: List[LineItem] = field(default_factory=list)
    currency: Currency = Currency.USD
    discount_rate: Decimal = ZERO
    shipping_cost: Decimal = ZERO
    status: str = 'Draft'
    notes: str = ''

    kind = None

    def __post_init__(self):
        self.document_type = DocumentType(self.document_type)
        self.currency = Currency(self.currency)
        self.discount_rate = to_decimal(self.discount_rate)
        self.shipping_cost = to_decimal(self.shipping_cost)
        self.counterparty = _nested(Counterparty, self.counterparty)
        self.items = [item if isinstance(item, LineItem) else LineItem.from_dict(item)
                      for item in self.items]

    @property
    def totals(self):
        return compute_totals(self.items, self.discount_rate, self.shipping_cost)


@dataclass
class Quote(Document):
    document_type: DocumentType = DocumentType.PROFORMA
    incoterms: str = 'EXW'
    lead_time: str = '2-3 Weeks'
    payment_terms: str = '100% T/T in advance'
    salesperson: Optional[Salesperson] = None

    kind = DocumentKind.QUOTE

    def __post_init__(self):
        super().__post_init__()
        self.salesperson = _nested(Salesperson, self.salesperson)


@dataclass
class Contract(Document):
    document_type: DocumentType = DocumentType.CONTRACT
    currency: Currency = DOMESTIC_CURRENCY
    place: str = ''
    terms: str = ''
    supplier: Optional[Counterparty] = None

    kind = DocumentKind.CONTRACT

    def __post_init__(self):
        super().__post_init__()
        self.currency = DOMESTIC_CURRENCY
        self.supplier = _nested(Counterparty, self.supplier)

    @property
    def sign_date(self):
        return self.valid_until or self.date_issued


DOCUMENT_CLASSES = {
    DocumentKind.QUOTE: Quote,
    DocumentKind.CONTRACT: Contract,
}


def generate_document_number(prefix, today=None, rng=None):
    """Generate a number in the format <prefix><YYYYMMDD><NNNN>"""
    today = today or date.today()
    rng = rng or random
    return f'{prefix}{today:%Y%m%d}{rng.randint(0, 9999):04d}'


def validate_for_save(document):
    """
    Check that a document may be saved.

    Returns:
        list: messages to show next to the form, empty when the document is valid
    """
    errors = []
    if not (document.number or '').strip():
        errors.append('Document number is required')
    if not document.customer_id and document.counterparty is None:
        errors.append('Please select a customer')
    if not document.items:
        errors.append('Please add at least one product')
    if document.discount_rate < 0 or document.discount_rate > 100:
        errors.append('Discount rate must be between 0 and 100')
    if document.shipping_cost < 0:
        errors.append('Shipping cost cannot be negative')
    if any(item.quantity < 0 or item.unit_price < 0 for item in document.items):
        errors.append('Line item quantities and prices cannot be negative')
    if document.status not in STATUSES:
        errors.append(f'Unknown status: {document.status}')
    return errors


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------

def _plain(value):
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    if is_dataclass(value):
        return {f.name: _plain(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


def document_to_dict(document):
    """Serialize a document, including the derived line amounts and totals"""
    data = _plain(document)
    data['kind'] = document.kind.value
    for item_data, item in zip(data['items'], document.items):
        item_data['line_amount'] = str(item.line_amount)
    data['totals'] = _plain(document.totals)
    return data


def document_from_dict(data, kind=None):
    """
    Build a document from its serialized form.

    Derived values in the input (line_amount, totals) are ignored and
    recomputed from the fields they depend on.
    """
    kind = DocumentKind(kind or data.get('kind') or DocumentKind.QUOTE)
    cls = DOCUMENT_CLASSES[kind]
    names = {f.name for f in fields(cls)}
    values = {key: value for key, value in data.items() if key in names}
    values['items'] = [LineItem.from_dict(item) for item in values.get('items') or []]
    return cls(**values)
