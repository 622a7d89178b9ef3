# bills/models.py
from django.db import models
from django.db.models import Q

from common.models import TimeStampedModel


class TransactionType(models.TextChoices):
    PURCHASE = "purchase", "Purchase"
    SALES = "sales", "Sales"


class BillStatus(models.TextChoices):
    PROCESSED = "processed", "Processed"
    REVIEWED = "reviewed", "Reviewed"
    DISPUTED = "disputed", "Disputed"
    ARCHIVED = "archived", "Archived"


class BillQuerySet(models.QuerySet):
    def owned_by(self, user_id):
        return self.filter(user_id=str(user_id))


class Bill(TimeStampedModel):
    """
    Normalized invoice header. Everything except `status` is written once by
    ingestion; `raw_data` keeps the workflow response verbatim.
    """
    user_id = models.CharField(max_length=64, db_index=True, help_text="Identity provider user id")
    file_url = models.URLField(max_length=1000)
    file_key = models.CharField(max_length=512, blank=True, default="", help_text="Object storage key")
    invoice_number = models.CharField(max_length=100, blank=True, default="")
    invoice_date = models.DateField()
    seller_name = models.CharField(max_length=255, blank=True, default="")
    seller_address = models.TextField(blank=True, default="")
    seller_gstin = models.CharField(max_length=20, blank=True, default="")
    buyer_name = models.CharField(max_length=255, blank=True, default="")
    buyer_address = models.TextField(blank=True, default="")
    buyer_gstin = models.CharField(max_length=20, blank=True, default="")
    total_amount = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    gst_amount = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    transaction_type = models.CharField(
        max_length=10, choices=TransactionType.choices, default=TransactionType.PURCHASE, db_index=True
    )
    category = models.CharField(max_length=100, blank=True, default="uncategorized")
    status = models.CharField(max_length=20, choices=BillStatus.choices, default=BillStatus.PROCESSED)
    raw_data = models.JSONField(default=dict, blank=True)

    objects = BillQuerySet.as_manager()

    class Meta:
        db_table = "bills"
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["user_id", "created_at"], name="bills_user_created_idx"),
            models.Index(fields=["user_id", "transaction_type", "created_at"], name="bills_user_type_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(condition=Q(total_amount__gte=0), name="bill_total_amount_non_negative"),
            models.CheckConstraint(condition=Q(gst_amount__gte=0), name="bill_gst_amount_non_negative"),
            models.CheckConstraint(
                condition=Q(transaction_type__in=[TransactionType.PURCHASE, TransactionType.SALES]),
                name="bill_transaction_type_valid",
            ),
        ]

    def __str__(self):
        return f"Bill #{self.id} - {self.invoice_number or 'no invoice no.'} ({self.transaction_type})"

    @property
    def file_name(self):
        """Last segment of the stored object key (or of the URL for legacy rows)."""
        source = self.file_key or self.file_url or ""
        return source.rstrip("/").split("/")[-1].split("?")[0]


class BillItem(models.Model):
    """
    Line item. amount is always quantity * unit_price; the scales below keep
    that product exact (3 + 2 decimal places -> 5).
    """
    bill = models.ForeignKey(Bill, on_delete=models.CASCADE, related_name="items")
    description = models.TextField(blank=True, default="")
    quantity = models.DecimalField(max_digits=12, decimal_places=3, default=0)
    unit_price = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    amount = models.DecimalField(max_digits=20, decimal_places=5, default=0)
    gst_rate = models.DecimalField(max_digits=5, decimal_places=2, default=0, help_text="Percent")
    category = models.CharField(max_length=100, blank=True, default="uncategorized")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "bill_items"
        ordering = ["id"]
        constraints = [
            models.CheckConstraint(condition=Q(quantity__gte=0), name="bill_item_quantity_non_negative"),
            models.CheckConstraint(condition=Q(unit_price__gte=0), name="bill_item_unit_price_non_negative"),
        ]

    def __str__(self):
        return f"BillItem #{self.id} - {self.description[:40]} x{self.quantity}"
