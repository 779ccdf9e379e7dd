"""Invoice schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from backend.app.schemas.invoice_item import InvoiceItemCreate, InvoiceItemRead

InvoiceStatus = Literal["brouillon", "envoyee", "payee", "annulee"]
RecurrenceCadence = Literal["oneshot", "mensuel", "trimestriel", "annuel"]


class RecurrenceConfig(BaseModel):
    is_recurring: RecurrenceCadence = "oneshot"
    recurrence_day: Optional[int] = Field(default=None, ge=1, le=31)
    auto_send: bool = False
    max_occurrences: Optional[int] = Field(default=None, gt=0)
    end_date: Optional[date] = None
    next_generation_date: Optional[date] = None


class InvoiceCreate(RecurrenceConfig):
    client_id: int
    mandat_id: Optional[int] = None
    issue_date: Optional[date] = None
    due_date: Optional[date] = None
    status: InvoiceStatus = "brouillon"
    tva_applicable: bool = True
    qr_additional_info: Optional[str] = None
    items: List[InvoiceItemCreate] = Field(min_length=1)


class InvoiceUpdate(BaseModel):
    status: Optional[InvoiceStatus] = None
    due_date: Optional[date] = None
    qr_additional_info: Optional[str] = None
    is_recurring: Optional[RecurrenceCadence] = None
    recurrence_day: Optional[int] = Field(default=None, ge=1, le=31)
    auto_send: Optional[bool] = None
    max_occurrences: Optional[int] = Field(default=None, gt=0)
    end_date: Optional[date] = None
    next_generation_date: Optional[date] = None

    @field_validator("status", "is_recurring", "auto_send")
    @classmethod
    def reject_null(cls, value):
        if value is None:
            raise ValueError("field cannot be null")
        return value


class InvoiceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    owner_id: int
    client_id: int
    mandat_id: Optional[int]

    invoice_number: str
    issue_date: date
    due_date: Optional[date]
    status: str
    total_ht: Decimal
    total_tva: Decimal
    total_ttc: Decimal
    qr_additional_info: Optional[str]

    is_recurring: str
    recurrence_day: Optional[int]
    parent_invoice_id: Optional[int]
    next_generation_date: Optional[date]
    auto_send: bool
    max_occurrences: Optional[int]
    occurrences_count: int
    end_date: Optional[date]

    created_at: datetime
    updated_at: datetime


class InvoiceDetail(InvoiceRead):
    items: List[InvoiceItemRead] = []
