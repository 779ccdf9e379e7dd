"""Schemas for recurring invoice templates and their generation."""

from typing import List, Optional

from pydantic import BaseModel

from backend.app.schemas.invoice import InvoiceDetail, InvoiceRead


class GenerateRequest(BaseModel):
    invoice_id: int


class GenerateResponse(BaseModel):
    success: bool = True
    invoice: InvoiceDetail
    message: str = "Invoice generated"


class RecurringStatusRead(BaseModel):
    template_id: int
    status: str
    progress: int
    remaining: Optional[int]
    occurrences_count: int
    max_occurrences: Optional[int]


class RecurringTemplateRead(InvoiceRead):
    status_info: Optional[RecurringStatusRead] = None


class BatchGenerated(BaseModel):
    template_id: int
    invoice: InvoiceRead


class BatchError(BaseModel):
    template_id: int
    error: str
    detail: str


class BatchGenerateResponse(BaseModel):
    success: bool = True
    message: str
    generated: List[BatchGenerated] = []
    errors: List[BatchError] = []
