"""
Persistence and catalog lookups used by the document editor and exporter
"""
import logging
import os
from datetime import datetime

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from docexport.document import (CatalogProduct, Counterparty, DocumentKind,
                                document_from_dict, document_to_dict, validate_for_save)
from docexport.errors import ValidationFailure
from models import db, Customer, DocumentDraft, Product, StoredDocument

logger = logging.getLogger(__name__)


class CatalogLookup:
    """Resolve catalog records at line-item edit time and snapshot time"""

    def lookup_product(self, product_id):
        product = db.session.get(Product, product_id) if product_id else None
        if product is None:
            return None
        return CatalogProduct(
            id=product.id,
            sku=product.sku,
            name=product.name,
            description=product.description or '',
            unit_price=product.price,
            currency=product.currency,
            unit=product.unit or '',
            brand=product.brand_name,
        )

    def lookup_customer(self, customer_id):
        customer = db.session.get(Customer, customer_id) if customer_id else None
        if customer is None:
            return None
        return Counterparty(
            id=customer.id,
            name=customer.name,
            contact_person=customer.contact_person or '',
            email=customer.email or '',
            phone=customer.phone or '',
            address=customer.address or '',
            city=customer.city or '',
            country=customer.country or '',
            zip_code=customer.zip_code or '',
            tax_id=customer.tax_id or '',
            bank_name=customer.bank_name or '',
            bank_account=customer.bank_account or '',
            region=customer.region or '',
        )


class DocumentStore:
    """Load and save quotes and contracts as JSON payloads keyed by id"""

    def __init__(self, catalog=None):
        self.catalog = catalog or CatalogLookup()

    def load_document(self, kind, document_id):
        record = db.session.get(StoredDocument, document_id)
        if record is None or record.kind != DocumentKind(kind).value:
            return None
        return document_from_dict(record.get_data(), kind=record.kind)

    def list_documents(self, kind):
        return (StoredDocument.query
                .filter_by(kind=DocumentKind(kind).value)
                .order_by(StoredDocument.updated_at.desc())
                .all())

    def take_snapshot(self, document):
        """
        Embed the customer's current details in the document.

        An existing snapshot of the same customer is kept, so later edits of
        the customer record never change a saved document.
        """
        if document.counterparty is not None and document.counterparty.id == document.customer_id:
            return document
        snapshot = self.catalog.lookup_customer(document.customer_id)
        if snapshot is not None:
            document.counterparty = snapshot
        return document

    def save_document(self, document, user_id=None):
        """
        Validate and persist a document.

        Raises:
            ValidationFailure: with the messages to show the user
        """
        self.take_snapshot(document)
        errors = validate_for_save(document)
        snapshot = document.counterparty
        if document.customer_id and (snapshot is None or snapshot.id != document.customer_id):
            errors.append('Selected customer no longer exists')

        duplicate = (StoredDocument.query
                     .filter(StoredDocument.kind == document.kind.value,
                             StoredDocument.number == document.number,
                             StoredDocument.id != document.id)
                     .first())
        if duplicate is not None:
            errors.append(f'Document number {document.number} is already in use')

        if errors:
            raise ValidationFailure(errors)

        record = db.session.get(StoredDocument, document.id)
        if record is None:
            record = StoredDocument(id=document.id, kind=document.kind.value, created_by=user_id)
            db.session.add(record)
        record.number = document.number
        record.set_data(document_to_dict(document))
        record.updated_at = datetime.utcnow()
        db.session.commit()
        logger.info('Saved %s %s', document.kind.value, document.number)
        return record


class DraftStore:
    """Auto-saved editor state, one draft per document id"""

    def save_draft(self, document_id, document):
        draft = db.session.get(DocumentDraft, document_id)
        if draft is None:
            draft = DocumentDraft(document_id=document_id, kind=document.kind.value)
            db.session.add(draft)
        draft.kind = document.kind.value
        draft.set_data(document_to_dict(document))
        draft.updated_at = datetime.utcnow()
        db.session.commit()
        return draft

    def load_draft(self, document_id):
        draft = db.session.get(DocumentDraft, document_id)
        if draft is None:
            return None
        return document_from_dict(draft.get_data(), kind=draft.kind)

    def clear_draft(self, document_id):
        draft = db.session.get(DocumentDraft, document_id)
        if draft is None:
            return False
        db.session.delete(draft)
        db.session.commit()
        return True


class LocalArtifactStore:
    """Keep a copy of every exported file in a directory"""

    def __init__(self, directory):
        self.directory = directory

    def save(self, artifact):
        os.makedirs(self.directory, exist_ok=True)
        path = os.path.join(self.directory, artifact.filename)
        with open(path, 'wb') as f:
            f.write(artifact.data)
        return path


class S3ArtifactStore:
    """Upload exported files to S3"""

    def __init__(self, bucket_name=None, region=None, client=None):
        self.bucket_name = bucket_name or os.environ.get('AWS_BUCKET_NAME', 'quotedesk-exports')
        self.region = region or os.environ.get('AWS_REGION', 'ap-east-1')

        if client is not None:
            self.s3_client = client
        elif os.environ.get('ENVIRONMENT') == 'production':
            # Production - use IAM role
            self.s3_client = boto3.client('s3', region_name=self.region)
        else:
            # Local development - use explicit credentials
            self.s3_client = boto3.client(
                's3',
                aws_access_key_id=os.environ.get('AWS_ACCESS_KEY_ID'),
                aws_secret_access_key=os.environ.get('AWS_SECRET_ACCESS_KEY'),
                region_name=self.region
            )

    def save(self, artifact):
        """
        Upload an exported file.

        Returns:
            str: public S3 URL, or None if the upload failed
        """
        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        s3_key = f"exports/{timestamp}/{artifact.filename}"
        try:
            self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=s3_key,
                Body=artifact.data,
                ContentType=artifact.mimetype,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error('Error uploading %s to S3: %s', artifact.filename, e)
            return None
        return f"https://{self.bucket_name}.s3.{self.region}.amazonaws.com/{s3_key}"
