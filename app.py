from flask import Flask, render_template, redirect, url_for, flash, request, jsonify, send_file, abort
from flask_login import LoginManager, login_user, logout_user, login_required, current_user
from flask_migrate import Migrate
from datetime import date, timedelta
from io import BytesIO
import logging
import os
import pymysql

# Install PyMySQL as MySQLdb for MySQL compatibility
pymysql.install_as_MySQLdb()

from models import db, User, Product, Customer
from config import config
from forms import LoginForm, ExportForm
from docexport.document import (DocumentKind, DOMESTIC_CURRENCY, Contract, Quote, Salesperson,
                                add_line_item, new_line_item, remove_line_item, update_line_item,
                                document_from_dict, document_to_dict)
from docexport.errors import ValidationFailure
from docexport.exporter import DocumentExporter, ExportFormat, ExportOptions, ExportStatus
from docexport.rendering import TemplateRenderer, WeasyPrintRasterizer
from docexport.settings import CompanySettings
from docexport.storage import (CatalogLookup, DocumentStore, DraftStore,
                               LocalArtifactStore, S3ArtifactStore)

# Initialize Flask app
app = Flask(__name__)

# Load configuration
env = os.getenv('ENVIRONMENT', 'development')
app.config.from_object(config[env])

logging.basicConfig(
    level=logging.DEBUG if app.debug else logging.INFO,
    format='%(asctime)s %(levelname)s %(name)s: %(message)s'
)

# Initialize extensions
db.init_app(app)
migrate = Migrate(app, db)
login_manager = LoginManager(app)
login_manager.login_view = 'login'
login_manager.login_message = 'Please log in to access this page.'
login_manager.login_message_category = 'info'

# Export pipeline: one exporter per process, shared by every request
app.extensions['document_exporter'] = DocumentExporter(
    TemplateRenderer(app.config['EXPORT_TARGET_PIXEL_WIDTH'], app.config['PREVIEW_PAGE_HEIGHT']),
    WeasyPrintRasterizer(base_url=app.root_path),
    ExportOptions.from_config(app.config),
)

catalog = CatalogLookup()
document_store = DocumentStore(catalog)
draft_store = DraftStore()

KIND_SEGMENTS = {
    'quotes': DocumentKind.QUOTE,
    'contracts': DocumentKind.CONTRACT,
}


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, int(user_id))


@app.template_filter('money')
def money_filter(value):
    """Format an amount with thousands separators and two decimals"""
    if value is None or value == '':
        return '0.00'
    return f'{value:,.2f}'


def get_exporter():
    return app.extensions['document_exporter']


def company_settings():
    return CompanySettings.from_mapping(app.config['COMPANY_SETTINGS'])


def kind_or_404(segment):
    kind = KIND_SEGMENTS.get(segment)
    if kind is None:
        abort(404)
    return kind


def bad_request(message, status=400):
    return jsonify({'error': message}), status


def current_user_id():
    return current_user.id if current_user.is_authenticated else None


def request_document(kind, payload=None):
    """Build a document from the JSON body; returns None if it cannot be parsed"""
    payload = payload if payload is not None else request.get_json(silent=True)
    if not isinstance(payload, dict):
        return None
    try:
        return document_from_dict(payload, kind=kind)
    except (TypeError, ValueError) as e:
        app.logger.info(f'Rejected document payload: {e}')
        return None


def archive_artifact(artifact):
    """Keep a copy of the exported file when EXPORT_ARCHIVE is configured"""
    target = app.config.get('EXPORT_ARCHIVE')
    if target == 'local':
        try:
            LocalArtifactStore(app.config['EXPORT_ARCHIVE_DIR']).save(artifact)
        except OSError as e:
            app.logger.error(f'Could not archive {artifact.filename}: {e}')
    elif target == 's3':
        S3ArtifactStore(app.config['AWS_BUCKET_NAME'], app.config['AWS_REGION']).save(artifact)


def send_artifact(artifact):
    archive_artifact(artifact)
    return send_file(
        BytesIO(artifact.data),
        mimetype=artifact.mimetype,
        as_attachment=True,
        download_name=artifact.filename,
    )


# ============================================================================
# AUTHENTICATION ROUTES
# ============================================================================

@app.route('/login', methods=['GET', 'POST'])
def login():
    """Login page"""
    if current_user.is_authenticated:
        return redirect(url_for('index'))

    form = LoginForm()
    if form.validate_on_submit():
        user = User.query.filter_by(username=form.username.data).first()

        if user and user.check_password(form.password.data):
            if not user.is_active:
                flash('Your account has been deactivated. Please contact an administrator.', 'danger')
                return redirect(url_for('login'))

            login_user(user, remember=form.remember_me.data)
            flash(f'Welcome back, {user.username}!', 'success')

            next_page = request.args.get('next')
            if next_page and next_page.startswith('/'):
                return redirect(next_page)
            return redirect(url_for('index'))
        else:
            flash('Invalid username or password.', 'danger')

    return render_template('login.html', form=form)


@app.route('/logout')
@login_required
def logout():
    """Logout user"""
    logout_user()
    flash('You have been logged out successfully.', 'info')
    return redirect(url_for('login'))


@app.route('/')
@login_required
def index():
    """Saved quotes and contracts"""
    return render_template('index.html',
                           quotes=document_store.list_documents(DocumentKind.QUOTE),
                           contracts=document_store.list_documents(DocumentKind.CONTRACT))


@app.route('/health')
def health_check():
    return jsonify({'status': 'ok', 'exporter': get_exporter().state.value})


# ============================================================================
# CATALOG LOOKUP API
# ============================================================================

@app.route('/api/products/search')
@login_required
def api_products_search():
    """Search products for the line item picker"""
    query = request.args.get('q', '').strip()
    products = Product.search(query).limit(50).all()
    return jsonify([{
        'id': p.id,
        'sku': p.sku,
        'name': p.name,
        'brand': p.brand_name,
        'price': str(p.price),
        'currency': p.currency,
        'unit': p.unit or '',
    } for p in products])


@app.route('/api/customers')
@login_required
def api_customers():
    """Customers for the counterparty picker; contracts only list domestic ones"""
    query = Customer.query
    region = request.args.get('region')
    if region:
        query = query.filter_by(region=region)
    customers = query.order_by(Customer.name).all()
    return jsonify([{
        'id': c.id,
        'name': c.name,
        'contact_person': c.contact_person or '',
        'country': c.country or '',
        'region': c.region,
    } for c in customers])


# ============================================================================
# DOCUMENT API
# ============================================================================

@app.route('/api/documents/<segment>')
@login_required
def api_documents_list(segment):
    kind = kind_or_404(segment)
    return jsonify([{
        'id': record.id,
        'number': record.number,
        'updated_at': record.updated_at.isoformat(),
    } for record in document_store.list_documents(kind)])


@app.route('/api/documents/<segment>/next-number')
@login_required
def api_next_number(segment):
    """Get a new document number"""
    kind = kind_or_404(segment)
    return jsonify({'number': company_settings().next_number(kind)})


@app.route('/api/documents/<segment>/new')
@login_required
def api_document_new(segment):
    """Blank document with the defaults of the editor"""
    kind = kind_or_404(segment)
    settings = company_settings()
    today = date.today()

    if kind is DocumentKind.CONTRACT:
        document = Contract(
            number=settings.next_number(kind),
            terms=settings.contract_terms,
            supplier=settings.domestic,
            items=[new_line_item(unit='unit')],
        )
    else:
        salesperson = None
        if current_user.is_authenticated:
            salesperson = Salesperson(**current_user.as_salesperson())
        document = Quote(
            number=settings.next_number(kind),
            valid_until=(today + timedelta(days=30)).isoformat(),
            salesperson=salesperson,
            items=[new_line_item()],
        )
    return jsonify(document_to_dict(document))


@app.route('/api/documents/<segment>/<document_id>')
@login_required
def api_document_get(segment, document_id):
    kind = kind_or_404(segment)
    document = document_store.load_document(kind, document_id)
    if document is None:
        return bad_request('Document not found', 404)
    return jsonify(document_to_dict(document))


@app.route('/api/documents/<segment>', methods=['POST'])
@login_required
def api_document_save(segment):
    """Save a quote or contract"""
    kind = kind_or_404(segment)
    document = request_document(kind)
    if document is None:
        return bad_request('Invalid document')

    if kind is DocumentKind.CONTRACT and document.supplier is None:
        document.supplier = company_settings().domestic

    try:
        document_store.save_document(document, user_id=current_user_id())
    except ValidationFailure as e:
        db.session.rollback()
        return jsonify({'errors': e.messages}), 400

    draft_store.clear_draft(document.id)
    return jsonify(document_to_dict(document))


@app.route('/api/documents/<segment>/edit', methods=['POST'])
@login_required
def api_document_edit(segment):
    """
    Apply one line item operation to an unsaved document.

    Body: {"document": {...}, "action": "add" | "update" | "remove" | "normalize",
           "item_id": ..., "field": ..., "value": ...}
    """
    kind = kind_or_404(segment)
    payload = request.get_json(silent=True) or {}
    document = request_document(kind, payload.get('document') or {})
    if document is None:
        return bad_request('Invalid document')

    action = payload.get('action') or 'normalize'
    item_id = payload.get('item_id')
    try:
        if action == 'add':
            unit = 'unit' if kind is DocumentKind.CONTRACT else 'pcs'
            document.items = add_line_item(document.items, new_line_item(unit=unit))
        elif action == 'update':
            converter = None
            if kind is DocumentKind.CONTRACT:
                converter = company_settings().price_converter(DOMESTIC_CURRENCY)
            document.items = update_line_item(
                document.items, item_id, payload.get('field'), payload.get('value'),
                lookup_product=catalog.lookup_product, converter=converter)
        elif action == 'remove':
            document.items = remove_line_item(document.items, item_id)
        elif action != 'normalize':
            return bad_request(f'Unknown action: {action}')
    except ValueError as e:
        return bad_request(str(e))

    return jsonify(document_to_dict(document))


# ============================================================================
# DRAFT API
# ============================================================================

@app.route('/api/drafts/<document_id>', methods=['GET'])
@login_required
def api_draft_get(document_id):
    document = draft_store.load_draft(document_id)
    if document is None:
        return bad_request('No draft', 404)
    return jsonify(document_to_dict(document))


@app.route('/api/drafts/<document_id>', methods=['PUT'])
@login_required
def api_draft_save(document_id):
    payload = request.get_json(silent=True) or {}
    document = request_document(payload.get('kind'), payload.get('document') or {})
    if document is None:
        return bad_request('Invalid draft')
    draft_store.save_draft(document_id, document)
    return jsonify({'saved': True})


@app.route('/api/drafts/<document_id>', methods=['DELETE'])
@login_required
def api_draft_clear(document_id):
    return jsonify({'cleared': draft_store.clear_draft(document_id)})


# ============================================================================
# PREVIEW AND EXPORT
# ============================================================================

@app.route('/documents/<segment>/<document_id>/preview')
@login_required
def document_preview(segment, document_id):
    """On-screen preview of a saved document"""
    kind = kind_or_404(segment)
    document = document_store.load_document(kind, document_id)
    if document is None:
        abort(404)
    surface = get_exporter().preview(document, company_settings())
    return render_template('documents/preview.html',
                           document=document,
                           surface=surface,
                           segment=segment,
                           form=ExportForm())


@app.route('/api/documents/<segment>/preview', methods=['POST'])
@login_required
def api_document_preview(segment):
    """Preview an unsaved document from the editor"""
    kind = kind_or_404(segment)
    document = request_document(kind)
    if document is None:
        return bad_request('Invalid document')
    surface = get_exporter().preview(document, company_settings())
    return surface.html


@app.route('/documents/<segment>/<document_id>/export', methods=['POST'])
@login_required
def document_export(segment, document_id):
    """Download a saved document as PDF or PNG"""
    kind = kind_or_404(segment)
    document = document_store.load_document(kind, document_id)
    if document is None:
        abort(404)

    form = ExportForm()
    if not form.validate_on_submit():
        flash('Please choose an export format.', 'warning')
        return redirect(url_for('document_preview', segment=segment, document_id=document_id))

    outcome = get_exporter().export(document, form.format.data, company_settings())
    if outcome.ok:
        return send_artifact(outcome.artifact)

    if outcome.status is ExportStatus.BUSY:
        flash('An export is already in progress. Please wait for it to finish.', 'warning')
    else:
        flash(outcome.message or 'Generation Failed', 'danger')
    return redirect(url_for('document_preview', segment=segment, document_id=document_id))


@app.route('/api/documents/<segment>/export/<fmt>', methods=['POST'])
@login_required
def api_document_export(segment, fmt):
    """Export the document in the request body (saved or not)"""
    kind = kind_or_404(segment)
    if fmt not in {f.value for f in ExportFormat}:
        abort(404)
    document = request_document(kind)
    if document is None:
        return bad_request('Invalid document')

    outcome = get_exporter().export(document, fmt, company_settings())
    if outcome.ok:
        return send_artifact(outcome.artifact)
    if outcome.status is ExportStatus.BUSY:
        return bad_request(outcome.message, 409)
    return bad_request(outcome.message, 500)


# ============================================================================
# ERROR HANDLERS
# ============================================================================

@app.errorhandler(404)
def not_found_error(error):
    if request.path.startswith('/api/'):
        return bad_request('Not found', 404)
    return render_template('errors/404.html'), 404


@app.errorhandler(500)
def internal_error(error):
    db.session.rollback()
    return render_template('errors/500.html'), 500


if __name__ == '__main__':
    with app.app_context():
        db.create_all()
    app.run(debug=app.debug)
