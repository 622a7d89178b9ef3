# bills/serializers.py
from django.conf import settings
from rest_framework import serializers

from .models import Bill, BillItem, BillStatus, TransactionType
from .utils import is_supported_content_type, is_valid_gstin


class BillUploadSerializer(serializers.Serializer):
    """multipart/form-data: file (required), billType (purchase|sales, default purchase)."""
    file = serializers.FileField(
        required=True,
        allow_empty_file=False,
        error_messages={
            "required": "No file uploaded",
            "empty": "No file uploaded",
            "invalid": "No file uploaded",
        },
    )
    billType = serializers.ChoiceField(
        choices=TransactionType.choices,
        required=False,
        default=TransactionType.PURCHASE,
    )

    def validate_file(self, value):
        max_size = settings.BILL_UPLOAD_MAX_BYTES
        if value.size > max_size:
            raise serializers.ValidationError(
                f"File size exceeds maximum of {max_size / (1024 * 1024):.0f}MB"
            )
        if not is_supported_content_type(getattr(value, "content_type", "")):
            raise serializers.ValidationError("Only image files and PDFs are allowed")
        return value


class BillItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = BillItem
        fields = [
            "id", "description", "quantity", "unit_price", "amount",
            "gst_rate", "category", "created_at",
        ]


class BillSerializer(serializers.ModelSerializer):
    class Meta:
        model = Bill
        fields = [
            "id", "user_id", "file_url", "file_key", "invoice_number", "invoice_date",
            "seller_name", "seller_address", "seller_gstin",
            "buyer_name", "buyer_address", "buyer_gstin",
            "total_amount", "gst_amount", "transaction_type", "category",
            "status", "created_at", "updated_at",
        ]
        read_only_fields = fields


class BillListSerializer(BillSerializer):
    """List rows; items are attached only when the caller prefetched them."""

    def to_representation(self, instance):
        data = super().to_representation(instance)
        if self.context.get("include_items"):
            data["items"] = BillItemSerializer(instance.items.all(), many=True).data
        return data


class BillDetailSerializer(BillSerializer):
    items = BillItemSerializer(many=True, read_only=True)
    seller_gstin_valid = serializers.SerializerMethodField()
    buyer_gstin_valid = serializers.SerializerMethodField()

    class Meta(BillSerializer.Meta):
        fields = BillSerializer.Meta.fields + [
            "raw_data", "items", "seller_gstin_valid", "buyer_gstin_valid",
        ]
        read_only_fields = fields

    def get_seller_gstin_valid(self, obj) -> bool:
        return is_valid_gstin(obj.seller_gstin)

    def get_buyer_gstin_valid(self, obj) -> bool:
        return is_valid_gstin(obj.buyer_gstin)


class BillStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=BillStatus.choices)
