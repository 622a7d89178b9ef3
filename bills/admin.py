from django.contrib import admin
from .models import Bill, BillItem


class BillItemInline(admin.TabularInline):
    model = BillItem
    extra = 0
    fields = ("description", "quantity", "unit_price", "amount", "gst_rate", "category")
    readonly_fields = fields
    can_delete = False


@admin.register(Bill)
class BillAdmin(admin.ModelAdmin):
    list_display = (
        "id", "user_id", "invoice_number", "invoice_date", "seller_name",
        "transaction_type", "total_amount", "gst_amount", "status", "created_at",
    )
    list_filter = ("transaction_type", "status", "created_at")
    search_fields = ("invoice_number", "seller_name", "buyer_name", "seller_gstin", "buyer_gstin", "user_id")
    readonly_fields = ("created_at", "updated_at", "raw_data", "file_url", "file_key")
    date_hierarchy = "created_at"
    inlines = [BillItemInline]
