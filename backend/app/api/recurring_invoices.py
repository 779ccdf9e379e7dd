"""Recurring invoice endpoints: template overview and invoice generation.

``POST /recurring-invoices/batch-generate`` is meant to be called by an
external scheduler; nothing in this service runs on a timer.
"""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from backend.app.core.security import get_current_user
from backend.app.core.time import utc_now
from backend.app.db.session import get_db
from backend.app.models.invoice import Invoice
from backend.app.models.user import User
from backend.app.schemas.invoice import InvoiceDetail, InvoiceRead
from backend.app.schemas.recurring import (
    BatchError,
    BatchGenerated,
    BatchGenerateResponse,
    GenerateRequest,
    GenerateResponse,
    RecurringStatusRead,
    RecurringTemplateRead,
)
from backend.app.services.recurrence import get_recurring_status
from backend.app.services.recurring_invoices import (
    batch_generate,
    generate_from_template,
    get_due_templates,
    get_recurring_templates,
    get_template,
    get_template_history,
)

router = APIRouter(prefix="/recurring-invoices", tags=["recurring_invoices"])


def _status_read(template: Invoice) -> RecurringStatusRead:
    info = get_recurring_status(template, utc_now())
    return RecurringStatusRead(
        template_id=template.id,
        status=info.status,
        progress=info.progress,
        remaining=info.remaining,
        occurrences_count=template.occurrences_count or 0,
        max_occurrences=template.max_occurrences,
    )


def _template_read(template: Invoice) -> RecurringTemplateRead:
    read = RecurringTemplateRead.model_validate(template)
    read.status_info = _status_read(template)
    return read


@router.get("/", response_model=List[RecurringTemplateRead])
async def list_recurring_invoices(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return [_template_read(template) for template in get_recurring_templates(db, current_user.id)]


@router.get("/due", response_model=List[RecurringTemplateRead])
async def list_due_recurring_invoices(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return [_template_read(template) for template in get_due_templates(db, utc_now(), current_user.id)]


@router.get("/{template_id}/status", response_model=RecurringStatusRead)
async def read_recurring_status(
    template_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)
):
    return _status_read(get_template(db, template_id, current_user.id))


@router.get("/{template_id}/history", response_model=List[InvoiceRead])
async def read_recurring_history(
    template_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)
):
    return get_template_history(db, template_id, current_user.id)


@router.post("/generate", response_model=GenerateResponse, status_code=201)
async def generate_recurring_invoice(
    payload: GenerateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    invoice = generate_from_template(db, payload.invoice_id, owner_id=current_user.id)
    return GenerateResponse(invoice=InvoiceDetail.model_validate(invoice))


@router.post("/batch-generate", response_model=BatchGenerateResponse)
async def batch_generate_recurring_invoices(
    db: Session = Depends(get_db), current_user: User = Depends(get_current_user)
):
    result = batch_generate(db, owner_id=current_user.id)
    if not result.generated and not result.errors:
        return BatchGenerateResponse(message="No invoices to generate")
    return BatchGenerateResponse(
        message=f"{len(result.generated)} invoice(s) generated",
        generated=[
            BatchGenerated(template_id=template_id, invoice=InvoiceRead.model_validate(invoice))
            for template_id, invoice in result.generated
        ],
        errors=[
            BatchError(template_id=error.template_id, error=error.kind, detail=error.message)
            for error in result.errors
        ],
    )
