import os
from dotenv import load_dotenv

load_dotenv()


DEFAULT_CONTRACT_TERMS = """1. Quality standard: manufacturer's factory standard, one year warranty, consumables excluded.
2. Delivery: by courier to the buyer's address.
3. Freight: paid by the supplier.
4. Packaging: original factory packaging.
5. Acceptance: according to the technical specification supplied by the buyer.
6. Settlement: payment before delivery.
7. Disputes: settled through friendly negotiation between both parties.
8. Prices include 13% VAT invoice.
This contract takes effect once signed and stamped by both parties. Scanned copies are equally valid."""


class Config:
    """Base configuration"""
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-this')
    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL', 'sqlite:///quotedesk.sqlite')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Session configuration
    SESSION_COOKIE_SECURE = True if os.getenv('ENVIRONMENT') == 'production' else False
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'
    PERMANENT_SESSION_LIFETIME = 86400  # 24 hours

    # WTForms configuration
    WTF_CSRF_ENABLED = True
    WTF_CSRF_TIME_LIMIT = None  # No time limit for CSRF tokens

    # Document export (A4 at 96 DPI)
    EXPORT_PAGE_WIDTH_MM = 210.0
    EXPORT_PAGE_HEIGHT_MM = 297.0
    EXPORT_TARGET_PIXEL_WIDTH = 794
    EXPORT_RASTER_SCALE = 2
    EXPORT_RENDER_TIMEOUT = float(os.getenv('EXPORT_RENDER_TIMEOUT', '1.5'))  # seconds
    EXPORT_JPEG_QUALITY = 95
    PREVIEW_PAGE_HEIGHT = 1123

    # Optional copy of every exported file: None, 'local' or 's3'
    EXPORT_ARCHIVE = os.getenv('EXPORT_ARCHIVE') or None
    EXPORT_ARCHIVE_DIR = os.getenv('EXPORT_ARCHIVE_DIR', 'exports')
    AWS_BUCKET_NAME = os.getenv('AWS_BUCKET_NAME', 'quotedesk-exports')
    AWS_REGION = os.getenv('AWS_REGION', 'ap-east-1')

    # Company settings used on every generated document
    COMPANY_SETTINGS = {
        'name': os.getenv('COMPANY_NAME', 'LH WAVE TRADING CO., LTD.'),
        'address': '123 Ocean Business Park, Coastal Road',
        'city': 'Shenzhen',
        'country': 'China',
        'phone': '+86 755 1234 5678',
        'email': 'sales@lhwave.com',
        'logo_data_url': os.getenv('COMPANY_LOGO_URL', ''),
        'stamp_data_url': os.getenv('COMPANY_STAMP_URL', ''),
        'bank_info': 'BENEFICIARY: LH WAVE TRADING CO., LTD.\nBANK: BANK OF CHINA\nSWIFT: BKCHCNBJ300',
        'quote_prefix': os.getenv('QUOTE_PREFIX', 'LH-'),
        'contract_prefix': os.getenv('CONTRACT_PREFIX', 'ULHTZH'),
        'exchange_rates': {'USD': 1, 'CNY': 7.20, 'EUR': 0.92, 'GBP': 0.79},
        'domestic': {
            'name': 'Shenzhen LH Wave Technology Co., Ltd.',
            'address': 'Floor 6, Zhuoyue Times Building, Baoan District, Shenzhen',
            'phone': '+86 755 8765 4321',
            'tax_id': '91440300MA5FXXXXXX',
            'bank_name': 'Bank of China Shenzhen Branch',
            'bank_account': '7654 3210 9876 5432',
        },
        'contract_terms': DEFAULT_CONTRACT_TERMS,
    }


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    SQLALCHEMY_ECHO = True


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    SQLALCHEMY_ECHO = False


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    WTF_CSRF_ENABLED = False
    LOGIN_DISABLED = True
    EXPORT_RENDER_TIMEOUT = 0.5
    EXPORT_ARCHIVE = None


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
