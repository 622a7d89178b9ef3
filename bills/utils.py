# bills/utils.py
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

from dateutil.parser import parse as parse_datetime

GSTIN_RE = re.compile(r"^[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z][0-9A-Z]Z[0-9A-Z]$")

CONTENT_TYPES_BY_EXTENSION = {
    "pdf": "application/pdf",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "bmp": "image/bmp",
    "tiff": "image/tiff",
    "tif": "image/tiff",
    "heic": "image/heic",
}

# currency symbols, thousands separators and spaces seen in extracted amounts
_NUMERIC_NOISE_RE = re.compile(r"[,\s₹$€£]|(?i:rs\.?|inr)")


def is_valid_gstin(gstin: Optional[str]) -> bool:
    if not gstin:
        return False
    return bool(GSTIN_RE.match(gstin.strip().upper()))


def parse_invoice_date(value) -> Optional[date]:
    """
    Accepts DD/MM/YYYY, DD-MM-YYYY, YYYY-MM-DD (two-digit years mean 20YY)
    and ISO timestamps, then anything dateutil reads day-first ("5 Mar 2024").
    Returns None when nothing matches.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    if not text:
        return None

    iso = re.match(r"^(\d{4})-(\d{1,2})-(\d{1,2})", text)
    if iso:
        year, month, day = (int(p) for p in iso.groups())
        return _safe_date(year, month, day)

    dmy = re.match(r"^(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{2}|\d{4})$", text)
    if dmy:
        day, month, year = dmy.groups()
        year = int(f"20{year}") if len(year) == 2 else int(year)
        return _safe_date(year, int(month), int(day))

    try:
        return parse_datetime(text, dayfirst=True).date()
    except (ValueError, OverflowError):
        return None


def _safe_date(year, month, day):
    try:
        return date(year, month, day)
    except ValueError:
        return None


def to_decimal(value, places: str = "0.01") -> Decimal:
    """
    Coerce an extracted number (int, float, or string like "₹1,180.00") to a
    Decimal quantized to `places`. None and "" become 0; anything else that
    does not parse raises ValueError.
    """
    if value is None or value == "":
        return Decimal("0").quantize(Decimal(places))
    if isinstance(value, bool):
        raise ValueError(f"Not a number: {value!r}")
    if isinstance(value, Decimal):
        number = value
    elif isinstance(value, (int, float)):
        number = Decimal(str(value))
    else:
        cleaned = _NUMERIC_NOISE_RE.sub("", str(value))
        if cleaned == "":
            return Decimal("0").quantize(Decimal(places))
        try:
            number = Decimal(cleaned)
        except InvalidOperation:
            raise ValueError(f"Not a number: {value!r}")
    if not number.is_finite():
        raise ValueError(f"Not a number: {value!r}")
    return number.quantize(Decimal(places), rounding=ROUND_HALF_UP)


def content_type_for(filename: str, fallback: str = "application/octet-stream") -> str:
    ext = filename.rsplit(".", 1)[-1].lower() if "." in (filename or "") else ""
    return CONTENT_TYPES_BY_EXTENSION.get(ext, fallback)


def is_supported_content_type(content_type: Optional[str]) -> bool:
    content_type = (content_type or "").split(";")[0].strip().lower()
    return content_type.startswith("image/") or content_type == "application/pdf"
