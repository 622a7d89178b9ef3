# bills/extraction.py
"""
Shapes of the extraction workflow response.

The workflow answers either {"output": {...bill...}} or the bill object
itself. Both are still seen upstream, so the response is resolved once into
WrappedPayload | BarePayload and everything downstream works on the bill
object only.
"""
from dataclasses import dataclass, field, asdict
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Union

from common.exceptions import UpstreamError

from .utils import parse_invoice_date, to_decimal

ITEM_DEFAULT_CATEGORY = "uncategorized"


class InvalidExtractionResponse(UpstreamError):
    pass


@dataclass(frozen=True)
class WrappedPayload:
    output: Dict[str, Any]
    shape = "wrapped"

    @property
    def bill(self):
        return self.output


@dataclass(frozen=True)
class BarePayload:
    body: Dict[str, Any]
    shape = "bare"

    @property
    def bill(self):
        return self.body


ExtractionPayload = Union[WrappedPayload, BarePayload]


def resolve_payload(raw) -> ExtractionPayload:
    if isinstance(raw, dict):
        if "output" in raw:
            output = raw["output"]
            if isinstance(output, dict) and output:
                return WrappedPayload(output=output)
        elif raw:
            return BarePayload(body=raw)
    raise InvalidExtractionResponse(
        f"Invalid response format from extraction workflow ({type(raw).__name__})"
    )


@dataclass
class ExtractedItem:
    description: str
    quantity: Decimal
    unit_price: Decimal
    amount: Decimal
    gst_rate: Decimal
    category: str


@dataclass
class ExtractedBill:
    invoice_number: str
    invoice_date: date
    seller_name: str
    seller_address: str
    seller_gstin: str
    buyer_name: str
    buyer_address: str
    buyer_gstin: str
    total_amount: Decimal
    gst_amount: Decimal
    items: List[ExtractedItem] = field(default_factory=list)

    def header_fields(self):
        data = asdict(self)
        data.pop("items")
        return data


def _text(section, key):
    value = (section or {}).get(key)
    if value is None:
        return ""
    return str(value).strip()


def _section(bill, key):
    value = bill.get(key)
    return value if isinstance(value, dict) else {}


def _amount(value, label, places="0.01"):
    try:
        number = to_decimal(value, places)
    except ValueError as e:
        raise InvalidExtractionResponse(f"{label} is not numeric: {value!r}") from e
    if number < 0:
        raise InvalidExtractionResponse(f"{label} must not be negative: {number}")
    return number


def normalize_item(raw_item) -> ExtractedItem:
    item = raw_item if isinstance(raw_item, dict) else {}
    quantity = _amount(item.get("quantity"), "item quantity", "0.001")
    unit_price = _amount(item.get("unitPrice"), "item unitPrice")
    category = _text(item, "category") or ITEM_DEFAULT_CATEGORY
    return ExtractedItem(
        description=_text(item, "description"),
        quantity=quantity,
        unit_price=unit_price,
        # recomputed from quantity and price; 3dp * 2dp is exact at 5dp
        amount=quantity * unit_price,
        gst_rate=_amount(item.get("gstRate"), "item gstRate"),
        category=category,
    )


def normalize_bill(payload: ExtractionPayload, today: date) -> ExtractedBill:
    bill = payload.bill
    invoice = _section(bill, "invoice")
    seller = _section(bill, "seller")
    buyer = _section(bill, "buyer")

    raw_items = bill.get("items")
    items = [normalize_item(i) for i in raw_items] if isinstance(raw_items, list) else []

    return ExtractedBill(
        invoice_number=_text(invoice, "invoiceNo"),
        invoice_date=parse_invoice_date(invoice.get("invoiceDate")) or today,
        seller_name=_text(seller, "name"),
        seller_address=_text(seller, "address"),
        seller_gstin=_text(seller, "gstin").upper(),
        buyer_name=_text(buyer, "name"),
        buyer_address=_text(buyer, "address"),
        buyer_gstin=_text(buyer, "gstin").upper(),
        total_amount=_amount(bill.get("totalAmount"), "totalAmount"),
        gst_amount=_amount(bill.get("gstAmount"), "gstAmount"),
        items=items,
    )
