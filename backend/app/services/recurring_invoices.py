"""Generation of invoices from recurring invoice templates.

A template is an invoice whose ``is_recurring`` holds a cadence and which has
no parent. Each generation copies the template header and lines into a new
one-shot invoice and advances the template's bookkeeping (occurrence counter
and next generation date) in the same transaction.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from backend.app.core.exceptions import (
    ConcurrentGenerationConflict,
    GenerationLimitReached,
    ItemCopyFailed,
    RecurrenceError,
    RecurrenceExpired,
    TemplateNotFound,
    TemplateNotRecurring,
)
from backend.app.core.settings import get_settings
from backend.app.core.time import as_date, utc_now
from backend.app.models.invoice import Invoice
from backend.app.models.invoice_item import InvoiceItem
from backend.app.services.recurrence import (
    CADENCE_MONTHS,
    compute_next_occurrence,
    is_eligible_to_generate,
    limit_reached,
    past_end_date,
    should_continue,
)

logger = logging.getLogger(__name__)


def _template_query(db: Session, owner_id: Optional[int] = None):
    query = db.query(Invoice).filter(Invoice.parent_invoice_id.is_(None))
    if owner_id is not None:
        query = query.filter(Invoice.owner_id == owner_id)
    return query


def get_template(db: Session, template_id: int, owner_id: Optional[int] = None) -> Invoice:
    template = (
        _template_query(db, owner_id)
        .options(selectinload(Invoice.items))
        .filter(Invoice.id == template_id)
        .first()
    )
    if template is None:
        raise TemplateNotFound(f"Recurring invoice template {template_id} not found", template_id)
    return template


def get_recurring_templates(db: Session, owner_id: int) -> List[Invoice]:
    """Return active templates, soonest generation first."""
    return (
        _template_query(db, owner_id)
        .filter(Invoice.is_recurring != "oneshot")
        .order_by(Invoice.next_generation_date.asc(), Invoice.id.asc())
        .all()
    )


def get_template_history(db: Session, template_id: int, owner_id: int) -> List[Invoice]:
    get_template(db, template_id, owner_id)
    return (
        db.query(Invoice)
        .filter(Invoice.parent_invoice_id == template_id, Invoice.owner_id == owner_id)
        .order_by(Invoice.issue_date.desc(), Invoice.id.desc())
        .all()
    )


def get_due_templates(db: Session, now: datetime, owner_id: Optional[int] = None) -> List[Invoice]:
    return (
        _template_query(db, owner_id)
        .filter(
            Invoice.is_recurring != "oneshot",
            Invoice.next_generation_date.isnot(None),
            Invoice.next_generation_date <= as_date(now),
        )
        .order_by(Invoice.next_generation_date.asc(), Invoice.id.asc())
        .all()
    )


def ensure_can_generate(template: Invoice, now: datetime) -> None:
    """Raise the error matching the first eligibility rule the template fails."""
    if is_eligible_to_generate(template, now):
        return
    if template.is_recurring not in CADENCE_MONTHS:
        raise TemplateNotRecurring(f"Invoice {template.id} is not recurring", template.id)
    if limit_reached(template):
        raise GenerationLimitReached(
            f"Invoice {template.id} already generated {template.occurrences_count} of "
            f"{template.max_occurrences} occurrences",
            template.id,
        )
    if past_end_date(template, now):
        raise RecurrenceExpired(f"Recurrence of invoice {template.id} ended on {template.end_date}", template.id)


def build_invoice_number(db: Session, base_number: str, now: datetime) -> str:
    suffix = int(now.timestamp() * 1000)
    candidate = f"{base_number}-{suffix}"
    while db.query(Invoice.id).filter(Invoice.invoice_number == candidate).first() is not None:
        suffix += 1
        candidate = f"{base_number}-{suffix}"
    return candidate


def _copy_items(db: Session, items: List[InvoiceItem], invoice: Invoice) -> None:
    for item in items:
        db.add(
            InvoiceItem(
                invoice_id=invoice.id,
                description=item.description,
                quantity=item.quantity,
                unit_price=item.unit_price,
                total=item.total,
            )
        )
    db.flush()


def generate_from_template(
    db: Session,
    template_id: int,
    owner_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Invoice:
    """Create the next invoice of a recurring template.

    Eligibility is checked before any write. The new invoice, its lines and
    the template update are committed together; the template update only
    applies if ``occurrences_count`` still holds the value read here, so two
    overlapping generations cannot both advance the same cycle.
    """
    settings = get_settings()
    now = now or utc_now()
    template = get_template(db, template_id, owner_id)
    ensure_can_generate(template, now)

    source_items = list(template.items)
    previous_count = template.occurrences_count or 0
    issue_date = as_date(now)

    invoice = Invoice(
        owner_id=template.owner_id,
        client_id=template.client_id,
        mandat_id=template.mandat_id,
        invoice_number=build_invoice_number(db, template.invoice_number, now),
        issue_date=issue_date,
        due_date=issue_date + timedelta(days=settings.payment_terms_days),
        total_ht=template.total_ht,
        total_tva=template.total_tva,
        total_ttc=template.total_ttc,
        status="envoyee" if template.auto_send else "brouillon",
        qr_additional_info=template.qr_additional_info,
        is_recurring="oneshot",
        recurrence_day=None,
        parent_invoice_id=template.id,
        next_generation_date=None,
        auto_send=False,
        max_occurrences=None,
        occurrences_count=0,
        end_date=None,
    )

    try:
        db.add(invoice)
        db.flush()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to create invoice from template %s", template_id)
        raise

    savepoint = db.begin_nested()
    try:
        _copy_items(db, source_items, invoice)
        savepoint.commit()
    except SQLAlchemyError as exc:
        savepoint.rollback()
        if settings.atomic_generation:
            db.rollback()
            logger.error("Item copy failed for template %s, generation rolled back: %s", template_id, exc)
            raise ItemCopyFailed(f"Could not copy items of invoice {template_id}", template_id) from exc
        logger.error("ItemCopyFailed for template %s, keeping invoice %s without items: %s", template_id, invoice.id, exc)

    new_count = previous_count + 1
    next_date = compute_next_occurrence(issue_date, template.is_recurring, template.recurrence_day or 1)
    values = {"occurrences_count": new_count}
    if should_continue(new_count, next_date, template.max_occurrences, template.end_date):
        values["next_generation_date"] = next_date
    else:
        values["is_recurring"] = "oneshot"
        values["next_generation_date"] = None

    result = db.execute(
        update(Invoice)
        .where(Invoice.id == template.id, Invoice.occurrences_count == previous_count)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        logger.warning("Template %s changed during generation, aborting", template_id)
        raise ConcurrentGenerationConflict(
            f"Invoice {template_id} was updated by another generation", template_id
        )

    db.commit()
    db.refresh(invoice)
    if values.get("is_recurring") == "oneshot":
        logger.info("Template %s reached its last occurrence (%s)", template_id, new_count)
    logger.info(
        "Generated invoice %s (%s) from template %s",
        invoice.id,
        invoice.invoice_number,
        template_id,
    )
    return invoice


@dataclass
class BatchResult:
    generated: List[tuple] = field(default_factory=list)
    errors: List[RecurrenceError] = field(default_factory=list)


def batch_generate(db: Session, now: Optional[datetime] = None, owner_id: Optional[int] = None) -> BatchResult:
    """Generate one invoice for every template whose generation date has come.

    A failing template is recorded and does not stop the others.
    """
    now = now or utc_now()
    template_ids = [template.id for template in get_due_templates(db, now, owner_id)]
    result = BatchResult()

    for template_id in template_ids:
        try:
            invoice = generate_from_template(db, template_id, owner_id=owner_id, now=now)
        except RecurrenceError as exc:
            logger.warning("Batch generation skipped template %s: %s", template_id, exc.kind)
            result.errors.append(exc)
            continue
        result.generated.append((template_id, invoice))

    logger.info("Batch generation: %s generated, %s failed", len(result.generated), len(result.errors))
    return result
