"""
utils.py
Fee math, validation, dates, search, exports.
"""

from __future__ import annotations

import math
import re
from datetime import date, timedelta

import pandas as pd

from models import FeeSummary, Member

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

ALLOWED_IMAGE_TYPES = ("image/jpeg", "image/jpg", "image/png", "image/gif")
MAX_IMAGE_BYTES = 200 * 1024

WHATSAPP_PREFIX = "https://wa.me/+91"


def parse_iso(d: str) -> date:
    return date.fromisoformat(d)


def add_months(start: date, months: int) -> date:
    """
    Add months while keeping day in valid range (e.g., Jan 31 + 1 month => Feb 28/29).
    """
    y = start.year + (start.month - 1 + months) // 12
    m = (start.month - 1 + months) % 12 + 1
    # last day of target month
    if m == 12:
        next_month = date(y + 1, 1, 1)
    else:
        next_month = date(y, m + 1, 1)
    last_day = next_month - timedelta(days=1)
    day = min(start.day, last_day.day)
    return date(y, m, day)


def default_renewal_window(today: date | None = None) -> tuple[str, str]:
    start = today or date.today()
    return start.isoformat(), add_months(start, 1).isoformat()


# ---------- Fees ----------

def parse_amount(text) -> float:
    """
    Lenient number parsing for currency inputs. Never raises:
    blank, non-numeric, NaN and infinite values all read as 0.
    """
    if text is None:
        return 0.0
    if isinstance(text, (int, float)):
        value = float(text)
    else:
        try:
            value = float(str(text).strip())
        except ValueError:
            return 0.0
    if math.isnan(value) or math.isinf(value):
        return 0.0
    return value


def reconcile_fees(total_fee, cash, online) -> FeeSummary:
    paid = parse_amount(cash) + parse_amount(online)
    return FeeSummary(amount_paid=paid, due=parse_amount(total_fee) - paid)


def format_amount(value: float) -> str:
    return f"{value:.2f}"


def amount_text(value) -> str:
    # Prefill for number inputs: falsy amounts show as "0"
    if not value:
        return "0"
    return str(value)


# ---------- Validation ----------

def is_valid_email(email: str) -> bool:
    return bool(EMAIL_RE.match(email))


def _end_after_start(start: str, end: str) -> list[str]:
    try:
        if parse_iso(end) <= parse_iso(start):
            return ["Membership End date must be after Membership Start date."]
    except ValueError:
        return ["Membership dates must be valid ISO dates (YYYY-MM-DD)."]
    return []


def validate_edit_inputs(name: str, phone: str, address: str, branch_id, start: str, end: str,
                         email: str = "") -> list[str]:
    if not name.strip() or not phone.strip() or not address.strip() or not branch_id or not start or not end:
        return ["Name, Phone, Address, Branch, and Membership Dates are required."]
    errors: list[str] = []
    if email.strip() and not is_valid_email(email.strip()):
        errors.append("Please enter a valid email address or leave it empty.")
    errors.extend(_end_after_start(start, end))
    return errors


def validate_renewal_inputs(name: str, phone: str, address: str, branch_id, shift_id, total_fee: str,
                            start: str, end: str) -> list[str]:
    if (
        not name.strip() or not phone.strip() or not address.strip()
        or not branch_id or not shift_id or not str(total_fee).strip()
        or not start or not end
    ):
        return ["Please ensure Name, Phone, Address, Branch, Shift, and Fee are filled correctly."]
    try:
        float(str(total_fee).strip())
    except ValueError:
        return ["Total fee must be numeric."]
    return []


def validate_image(content_type: str, size: int) -> str | None:
    if content_type not in ALLOWED_IMAGE_TYPES:
        return "Only JPEG, JPG, PNG, and GIF images are allowed."
    if size > MAX_IMAGE_BYTES:
        return "Image size exceeds 200KB limit."
    return None


# ---------- Listing ----------

def filter_members(members: list[Member], term: str) -> list[Member]:
    term = term.strip()
    if not term:
        return list(members)
    low = term.lower()
    return [
        m for m in members
        if low in m.name.lower()
        or (m.phone and term in m.phone)
        or (m.registration_number and low in m.registration_number.lower())
    ]


def whatsapp_link(phone: str) -> str:
    digits = re.sub(r"\D", "", phone or "")
    return f"{WHATSAPP_PREFIX}{digits}"


def members_to_frame(members: list[Member]) -> pd.DataFrame:
    columns = ["id", "name", "registration_number", "email", "phone", "expiry"]
    if not members:
        return pd.DataFrame(columns=columns)
    return pd.DataFrame([m.to_row() for m in members], columns=columns)


def members_to_csv_bytes(members: list[Member]) -> bytes:
    return members_to_frame(members).to_csv(index=False).encode("utf-8")
