"""
Company settings passed explicitly to the renderer and the document editor
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict

from docexport.document import (Counterparty, DocumentKind, PriceConverter,
                                generate_document_number, to_decimal)


@dataclass(frozen=True)
class CompanySettings:
    name: str = ''
    address: str = ''
    city: str = ''
    country: str = ''
    phone: str = ''
    email: str = ''
    logo_data_url: str = ''
    stamp_data_url: str = ''
    bank_info: str = ''
    quote_prefix: str = 'LH-'
    contract_prefix: str = 'ULHTZH'
    exchange_rates: Dict[str, Decimal] = field(default_factory=dict)
    domestic: Counterparty = field(default_factory=Counterparty)
    contract_terms: str = ''

    @classmethod
    def from_mapping(cls, data):
        """Build settings from the COMPANY_SETTINGS config mapping"""
        data = dict(data or {})
        rates = {code: to_decimal(rate) for code, rate in (data.pop('exchange_rates', None) or {}).items()}
        domestic = Counterparty.from_dict(data.pop('domestic', None))
        known = set(cls.__dataclass_fields__)
        values = {key: value for key, value in data.items() if key in known}
        return cls(exchange_rates=rates, domestic=domestic, **values)

    def price_converter(self, target):
        return PriceConverter(target=target, rates=self.exchange_rates)

    def next_number(self, kind, today=None, rng=None):
        prefix = self.contract_prefix if DocumentKind(kind) is DocumentKind.CONTRACT else self.quote_prefix
        return generate_document_number(prefix, today=today, rng=rng)
