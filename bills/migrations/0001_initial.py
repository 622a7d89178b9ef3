import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Bill",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("user_id", models.CharField(db_index=True, help_text="Identity provider user id", max_length=64)),
                ("file_url", models.URLField(max_length=1000)),
                ("file_key", models.CharField(blank=True, default="", help_text="Object storage key", max_length=512)),
                ("invoice_number", models.CharField(blank=True, default="", max_length=100)),
                ("invoice_date", models.DateField()),
                ("seller_name", models.CharField(blank=True, default="", max_length=255)),
                ("seller_address", models.TextField(blank=True, default="")),
                ("seller_gstin", models.CharField(blank=True, default="", max_length=20)),
                ("buyer_name", models.CharField(blank=True, default="", max_length=255)),
                ("buyer_address", models.TextField(blank=True, default="")),
                ("buyer_gstin", models.CharField(blank=True, default="", max_length=20)),
                ("total_amount", models.DecimalField(decimal_places=2, default=0, max_digits=14)),
                ("gst_amount", models.DecimalField(decimal_places=2, default=0, max_digits=14)),
                (
                    "transaction_type",
                    models.CharField(
                        choices=[("purchase", "Purchase"), ("sales", "Sales")],
                        db_index=True,
                        default="purchase",
                        max_length=10,
                    ),
                ),
                ("category", models.CharField(blank=True, default="uncategorized", max_length=100)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("processed", "Processed"),
                            ("reviewed", "Reviewed"),
                            ("disputed", "Disputed"),
                            ("archived", "Archived"),
                        ],
                        default="processed",
                        max_length=20,
                    ),
                ),
                ("raw_data", models.JSONField(blank=True, default=dict)),
            ],
            options={
                "db_table": "bills",
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(fields=["user_id", "created_at"], name="bills_user_created_idx"),
                    models.Index(fields=["user_id", "transaction_type", "created_at"], name="bills_user_type_created_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(total_amount__gte=0), name="bill_total_amount_non_negative"),
                    models.CheckConstraint(condition=models.Q(gst_amount__gte=0), name="bill_gst_amount_non_negative"),
                    models.CheckConstraint(
                        condition=models.Q(transaction_type__in=["purchase", "sales"]),
                        name="bill_transaction_type_valid",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="BillItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("description", models.TextField(blank=True, default="")),
                ("quantity", models.DecimalField(decimal_places=3, default=0, max_digits=12)),
                ("unit_price", models.DecimalField(decimal_places=2, default=0, max_digits=14)),
                ("amount", models.DecimalField(decimal_places=5, default=0, max_digits=20)),
                ("gst_rate", models.DecimalField(decimal_places=2, default=0, help_text="Percent", max_digits=5)),
                ("category", models.CharField(blank=True, default="uncategorized", max_length=100)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "bill",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="bills.bill",
                    ),
                ),
            ],
            options={
                "db_table": "bill_items",
                "ordering": ["id"],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(quantity__gte=0), name="bill_item_quantity_non_negative"),
                    models.CheckConstraint(condition=models.Q(unit_price__gte=0), name="bill_item_unit_price_non_negative"),
                ],
            },
        ),
    ]
