# bills/queries.py
"""
Read side of bills: listing, detail, stats, download, plus the two writes a
user may make after ingestion (status change and delete).
"""
import logging
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.db.models import Count, DecimalField, Q, Sum, Value
from django.db.models.functions import Coalesce
from django.utils import timezone

from common.exceptions import ClientInputError, NotFoundError

from .models import Bill, BillStatus, TransactionType
from .storage import safe_filename
from .utils import content_type_for

logger = logging.getLogger(__name__)

ZERO = Value(Decimal("0"), output_field=DecimalField(max_digits=18, decimal_places=2))
GENERIC_CONTENT_TYPES = ("", "application/octet-stream", "binary/octet-stream")
STATS_FIELDS = (
    ("total_amount", "sum_total"),
    ("total_gst", "sum_gst"),
    ("sales_amount", "sum_sales"),
    ("purchase_amount", "sum_purchase"),
    ("sales_gst", "sum_sales_gst"),
    ("purchase_gst", "sum_purchase_gst"),
)


def _sum(field, **filters):
    condition = Q(**filters) if filters else None
    return Coalesce(Sum(field, filter=condition), ZERO)


def _money(value):
    return str(Decimal(value or 0).quantize(Decimal("0.01")))


@dataclass(frozen=True)
class DownloadedFile:
    content: bytes
    content_type: str
    filename: str


class BillQueryService:
    def __init__(self, storage=None):
        self.storage = storage

    def _owned(self, user_id):
        return Bill.objects.owned_by(user_id)

    def list_bills(self, user_id, limit=None, include_items=False):
        default_limit = settings.BILLS_DEFAULT_LIST_LIMIT
        try:
            limit = int(limit) if limit not in (None, "") else default_limit
        except (TypeError, ValueError):
            limit = default_limit
        if limit <= 0:
            limit = default_limit
        limit = min(limit, settings.BILLS_MAX_LIST_LIMIT)

        qs = self._owned(user_id).order_by("-created_at", "-id")
        if include_items:
            qs = qs.prefetch_related("items")
        return list(qs[:limit])

    def get_bill(self, user_id, bill_id) -> Bill:
        # foreign bills are reported exactly like missing ones
        bill = self._owned(user_id).prefetch_related("items").filter(pk=bill_id).first()
        if bill is None:
            raise NotFoundError("Bill not found")
        return bill

    def get_stats(self, user_id, period_days=None, now=None):
        default_period = settings.BILLS_DEFAULT_STATS_PERIOD
        try:
            period_days = int(period_days) if period_days not in (None, "") else default_period
        except (TypeError, ValueError):
            period_days = default_period
        if period_days <= 0:
            period_days = default_period

        end = now or timezone.now()
        start = end - timedelta(days=period_days)

        purchase = TransactionType.PURCHASE
        sales = TransactionType.SALES
        # aliases must not shadow the summed columns
        agg = self._owned(user_id).filter(created_at__gte=start, created_at__lte=end).aggregate(
            bill_count=Count("id"),
            sum_total=_sum("total_amount"),
            sum_gst=_sum("gst_amount"),
            sum_sales=_sum("total_amount", transaction_type=sales),
            sum_purchase=_sum("total_amount", transaction_type=purchase),
            sum_sales_gst=_sum("gst_amount", transaction_type=sales),
            sum_purchase_gst=_sum("gst_amount", transaction_type=purchase),
        )

        stats = {"total_bills": int(agg["bill_count"] or 0)}
        for key, alias in STATS_FIELDS:
            stats[key] = _money(agg[alias])
        # reclaimable input tax is purchase GST only, nothing else is netted off
        stats["reclaimable_gst"] = stats["purchase_gst"]
        stats["period_days"] = period_days
        stats["start_date"] = start.isoformat()
        stats["end_date"] = end.isoformat()
        return stats

    def download_bill(self, user_id, bill_id) -> DownloadedFile:
        bill = self.get_bill(user_id, bill_id)
        retrieved = self.storage.retrieve(bill.file_key or None, bill.file_url)

        # legacy keys come from URLs and may carry header-breaking characters
        filename = safe_filename(bill.file_name) if bill.file_name else f"bill-{bill.id}"
        content_type = (retrieved.content_type or "").split(";")[0].strip()
        if content_type in GENERIC_CONTENT_TYPES:
            content_type = content_type_for(filename)

        logger.info(f"Serving bill {bill.id} file {filename} ({len(retrieved.content)} bytes) to user {user_id}")
        return DownloadedFile(content=retrieved.content, content_type=content_type, filename=filename)

    def delete_bill(self, user_id, bill_id) -> None:
        bill = self.get_bill(user_id, bill_id)
        item_count = bill.items.count()
        bill.delete()
        logger.info(f"User {user_id} deleted bill {bill_id} with {item_count} item(s)")

    def update_status(self, user_id, bill_id, status) -> Bill:
        if status not in BillStatus.values:
            raise ClientInputError(f"status must be one of: {', '.join(BillStatus.values)}")
        bill = self.get_bill(user_id, bill_id)
        bill.status = status
        bill.save(update_fields=["status", "updated_at"])
        return bill
