"""Invoice-related service helpers."""

import logging
import re
from calendar import monthrange
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from sqlalchemy.orm import Session

from backend.app.core.settings import get_settings
from backend.app.core.time import utc_now
from backend.app.models.invoice import Invoice
from backend.app.models.invoice_item import InvoiceItem
from backend.app.schemas.invoice import InvoiceCreate, InvoiceUpdate
from backend.app.services.recurrence import compute_next_occurrence

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
RECURRENCE_FIELDS = (
    "recurrence_day",
    "auto_send",
    "max_occurrences",
    "end_date",
    "next_generation_date",
)


def _money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def calculate_line_total(quantity, unit_price) -> Decimal:
    return _money(Decimal(str(quantity)) * Decimal(str(unit_price)))


def calculate_invoice_totals(items: Iterable, tva_rate: Decimal | float | None = None) -> dict:
    """Compute net, VAT and gross amounts for a set of lines.

    ``items`` only needs ``quantity`` and ``unit_price`` attributes.
    """
    rate = Decimal(str(tva_rate)) if tva_rate is not None else get_settings().default_tva_rate
    total_ht = sum(
        (Decimal(str(item.quantity)) * Decimal(str(item.unit_price)) for item in items),
        Decimal("0.00"),
    )
    total_tva = total_ht * rate
    return {
        "total_ht": _money(total_ht),
        "total_tva": _money(total_tva),
        "total_ttc": _money(total_ht + total_tva),
    }


_NUMBER_PATTERN = re.compile(r"FAC-(\d{4})-(\d{4})")


def generate_invoice_number(db: Session, year: int | None = None) -> str:
    """Return the next ``FAC-YYYY-NNNN`` number for the given year."""
    year = year or utc_now().year
    numbers = (
        db.query(Invoice.invoice_number)
        .filter(Invoice.invoice_number.like(f"FAC-{year}-%"))
        .all()
    )
    last = 0
    for (number,) in numbers:
        match = _NUMBER_PATTERN.fullmatch(number)
        if match:
            last = max(last, int(match.group(2)))
    return f"FAC-{year}-{last + 1:04d}"


def apply_recurrence_config(invoice: Invoice, cadence: str, config: dict) -> None:
    """Set or clear the recurrence fields of a (non-generated) invoice.

    Raises ``ValueError`` when the new limits would leave an active template
    already past its occurrence limit or end date.
    """
    if cadence == "oneshot":
        invoice.is_recurring = "oneshot"
        invoice.recurrence_day = None
        invoice.auto_send = False
        invoice.max_occurrences = None
        invoice.end_date = None
        invoice.next_generation_date = None
        return

    max_occurrences = config.get("max_occurrences")
    if max_occurrences is not None and max_occurrences <= (invoice.occurrences_count or 0):
        raise ValueError(
            f"max_occurrences must exceed the {invoice.occurrences_count} occurrence(s) already generated"
        )
    end_date = config.get("end_date")
    if end_date is not None and end_date < utc_now().date():
        raise ValueError("end_date cannot be in the past")

    invoice.is_recurring = cadence
    for field in RECURRENCE_FIELDS:
        if field in config:
            setattr(invoice, field, config[field])
    if invoice.recurrence_day is None:
        invoice.recurrence_day = invoice.issue_date.day
    if invoice.auto_send is None:
        invoice.auto_send = False
    if invoice.next_generation_date is None:
        invoice.next_generation_date = compute_next_occurrence(
            invoice.issue_date, cadence, invoice.recurrence_day
        )


def create_invoice(db: Session, owner_id: int, invoice_in: InvoiceCreate) -> Invoice:
    settings = get_settings()
    issue_date = invoice_in.issue_date or utc_now().date()
    due_date = invoice_in.due_date or issue_date + timedelta(days=settings.payment_terms_days)
    tva_rate = settings.default_tva_rate if invoice_in.tva_applicable else Decimal("0")
    totals = calculate_invoice_totals(invoice_in.items, tva_rate)

    invoice = Invoice(
        owner_id=owner_id,
        client_id=invoice_in.client_id,
        mandat_id=invoice_in.mandat_id,
        invoice_number=generate_invoice_number(db, issue_date.year),
        issue_date=issue_date,
        due_date=due_date,
        status=invoice_in.status,
        qr_additional_info=invoice_in.qr_additional_info,
        occurrences_count=0,
        **totals,
    )
    apply_recurrence_config(
        invoice,
        invoice_in.is_recurring,
        invoice_in.model_dump(include=set(RECURRENCE_FIELDS), exclude_none=True),
    )
    db.add(invoice)
    db.flush()  # obtain invoice id for invoice_items
    for line in invoice_in.items:
        db.add(
            InvoiceItem(
                invoice_id=invoice.id,
                description=line.description,
                quantity=line.quantity,
                unit_price=line.unit_price,
                total=calculate_line_total(line.quantity, line.unit_price),
            )
        )
    db.commit()
    db.refresh(invoice)
    logger.info("Created invoice %s (%s) for owner %s", invoice.id, invoice.invoice_number, owner_id)
    return invoice


def update_invoice(db: Session, invoice: Invoice, payload: InvoiceUpdate) -> Invoice:
    update_data = payload.model_dump(exclude_unset=True)
    cadence = update_data.pop("is_recurring", None)
    recurrence_data = {field: update_data.pop(field) for field in RECURRENCE_FIELDS if field in update_data}

    for field, value in update_data.items():
        setattr(invoice, field, value)

    if cadence is not None or recurrence_data:
        apply_recurrence_config(invoice, cadence or invoice.is_recurring, recurrence_data)

    db.commit()
    db.refresh(invoice)
    return invoice


def mark_invoice_paid(db: Session, invoice: Invoice) -> Invoice:
    invoice.status = "payee"
    db.commit()
    db.refresh(invoice)
    logger.info("Invoice %s marked as paid", invoice.id)
    return invoice


def _init_bucket():
    return {"count": 0, "total": Decimal("0.00")}


def get_monthly_stats(db: Session, owner_id: int, year: int, month: int) -> dict:
    """Summarise invoiced, paid and unpaid amounts for one calendar month."""
    start = date(year, month, 1)
    end = date(year, month, monthrange(year, month)[1])

    invoices = (
        db.query(Invoice)
        .filter(
            Invoice.owner_id == owner_id,
            Invoice.issue_date >= start,
            Invoice.issue_date <= end,
            Invoice.status.in_(["envoyee", "payee"]),
        )
        .all()
    )

    buckets = {"facturees": _init_bucket(), "payees": _init_bucket(), "impayees": _init_bucket()}
    for invoice in invoices:
        amount = _money(invoice.total_ttc or 0)
        keys = ["facturees", "payees" if invoice.status == "payee" else "impayees"]
        for key in keys:
            buckets[key]["count"] += 1
            buckets[key]["total"] += amount

    invoiced_total = buckets["facturees"]["total"]
    payment_rate = Decimal("0.00")
    if invoiced_total > 0:
        payment_rate = _money(buckets["payees"]["total"] / invoiced_total * 100)

    # Format totals to strings for response consistency
    formatted = {
        key: {"count": data["count"], "total": str(data["total"].quantize(CENT))}
        for key, data in buckets.items()
    }
    return {"month": f"{year}-{month:02d}", **formatted, "taux_paiement": str(payment_rate)}
