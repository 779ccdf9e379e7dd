"""Invoice routes for account owners."""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session, selectinload

from backend.app.core.security import get_current_user
from backend.app.db.session import get_db
from backend.app.models.client import Client
from backend.app.models.invoice import Invoice
from backend.app.models.user import User
from backend.app.schemas.invoice import InvoiceCreate, InvoiceDetail, InvoiceRead, InvoiceUpdate
from backend.app.services.invoices import (
    RECURRENCE_FIELDS,
    create_invoice,
    get_monthly_stats,
    mark_invoice_paid,
    update_invoice,
)

router = APIRouter(prefix="/invoices", tags=["invoices"])


def _get_owned_client(db: Session, client_id: int, owner_id: int) -> Client:
    client = db.query(Client).filter(Client.id == client_id, Client.owner_id == owner_id).first()
    if not client:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client not found")
    return client


def _get_owned_invoice(db: Session, invoice_id: int, owner_id: int) -> Invoice:
    invoice = (
        db.query(Invoice)
        .options(selectinload(Invoice.items))
        .filter(Invoice.id == invoice_id, Invoice.owner_id == owner_id)
        .first()
    )
    if not invoice:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invoice not found")
    return invoice


@router.get("/monthly-stats")
async def read_monthly_stats(
    year: int = Query(..., ge=2000, le=2100),
    month: int = Query(..., ge=1, le=12),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return get_monthly_stats(db, current_user.id, year, month)


@router.post("/", response_model=InvoiceDetail, status_code=status.HTTP_201_CREATED)
async def create_new_invoice(
    invoice_in: InvoiceCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    _get_owned_client(db, invoice_in.client_id, current_user.id)
    try:
        return create_invoice(db, current_user.id, invoice_in)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


@router.get("/", response_model=List[InvoiceRead])
async def list_invoices(
    status: str | None = None,
    client_id: int | None = None,
    recurring: bool | None = None,
    skip: int = 0,
    limit: int = 50,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    query = db.query(Invoice).filter(Invoice.owner_id == current_user.id)
    if status:
        query = query.filter(Invoice.status == status)
    if client_id:
        query = query.filter(Invoice.client_id == client_id)
    if recurring is True:
        query = query.filter(Invoice.is_recurring != "oneshot")
    elif recurring is False:
        query = query.filter(Invoice.is_recurring == "oneshot")

    query = query.order_by(Invoice.issue_date.desc(), Invoice.id.desc()).offset(skip).limit(limit)
    return query.all()


@router.get("/{invoice_id}", response_model=InvoiceDetail)
async def get_invoice(invoice_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return _get_owned_invoice(db, invoice_id, current_user.id)


@router.patch("/{invoice_id}", response_model=InvoiceDetail)
async def patch_invoice(
    invoice_id: int,
    payload: InvoiceUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    invoice = _get_owned_invoice(db, invoice_id, current_user.id)
    changes = payload.model_fields_set
    if invoice.parent_invoice_id is not None and changes & {"is_recurring", *RECURRENCE_FIELDS}:
        raise HTTPException(status_code=400, detail="Generated invoices cannot be made recurring")
    try:
        return update_invoice(db, invoice, payload)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


@router.post("/{invoice_id}/mark-paid", response_model=InvoiceDetail)
async def mark_paid(invoice_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    invoice = _get_owned_invoice(db, invoice_id, current_user.id)
    if invoice.status == "annulee":
        raise HTTPException(status_code=400, detail="Cannot mark a cancelled invoice as paid.")
    return mark_invoice_paid(db, invoice)
