# bills/services.py
"""
Bill ingestion: store the file, hand it to the extraction workflow, persist
what comes back.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict

from django.db import transaction
from django.utils import timezone

from common.exceptions import ClientInputError

from .extraction import ExtractedBill, normalize_bill, resolve_payload
from .models import Bill, BillItem, TransactionType
from .utils import is_supported_content_type

logger = logging.getLogger(__name__)


@dataclass
class IngestionResult:
    bill: Bill
    data: Dict[str, Any]

    @property
    def bill_id(self):
        return self.bill.id


def persist_bill(*, user_id: str, stored, transaction_type: str,
                 extracted: ExtractedBill, raw_response) -> Bill:
    """Header and items in one transaction; a failing item leaves no bill behind."""
    with transaction.atomic():
        bill = Bill.objects.create(
            user_id=str(user_id),
            file_url=stored.public_url,
            file_key=stored.key,
            transaction_type=transaction_type,
            raw_data=raw_response,
            **extracted.header_fields(),
        )
        BillItem.objects.bulk_create([
            BillItem(
                bill=bill,
                description=item.description,
                quantity=item.quantity,
                unit_price=item.unit_price,
                amount=item.amount,
                gst_rate=item.gst_rate,
                category=item.category,
            )
            for item in extracted.items
        ])
    return bill


class BillIngestionService:
    """
    ingest() is not idempotent: the same file uploaded twice yields two bills.
    """

    def __init__(self, storage, token_issuer, extraction_client):
        self.storage = storage
        self.token_issuer = token_issuer
        self.extraction_client = extraction_client

    def ingest(self, *, uploaded_file, transaction_type, user) -> IngestionResult:
        if uploaded_file is None or not getattr(uploaded_file, "size", 0):
            raise ClientInputError("No file uploaded")

        transaction_type = (transaction_type or TransactionType.PURCHASE).strip().lower()
        if transaction_type not in TransactionType.values:
            raise ClientInputError("billType must be 'purchase' or 'sales'")

        content_type = getattr(uploaded_file, "content_type", "") or ""
        if not is_supported_content_type(content_type):
            raise ClientInputError("Only image files and PDFs are allowed")

        file_name = uploaded_file.name or "bill"
        logger.info(
            f"Ingesting {file_name} ({uploaded_file.size} bytes, {content_type}) "
            f"as {transaction_type} for user {user.id}"
        )

        uploaded_file.seek(0)
        stored = self.storage.store(uploaded_file.read(), content_type, user.id, file_name)
        logger.info(f"Stored {file_name} at {stored.key}")

        token = self.token_issuer.issue(
            user_id=user.id,
            user_email=user.email,
            file_name=stored.key,
            file_url=stored.public_url,
        )
        logger.info(f"Issued hand-off token for {stored.key}")

        raw_response = self.extraction_client.process(
            file_url=stored.public_url,
            file_name=stored.key,
            file_type=content_type,
            user_id=user.id,
            user_email=user.email,
            token=token,
        )

        payload = resolve_payload(raw_response)
        logger.info(f"Extraction response for {stored.key} used the {payload.shape} shape")

        extracted = normalize_bill(payload, today=timezone.localdate())
        bill = persist_bill(
            user_id=user.id,
            stored=stored,
            transaction_type=transaction_type,
            extracted=extracted,
            raw_response=raw_response,
        )
        logger.info(f"Saved bill {bill.id} with {len(extracted.items)} item(s) for user {user.id}")

        return IngestionResult(bill=bill, data=payload.bill)
