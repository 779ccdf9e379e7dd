"""Invoice model.

One table holds one-shot invoices, recurring templates (``is_recurring`` set
to a cadence, no parent) and the invoices generated from those templates
(``parent_invoice_id`` set).
"""

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from backend.app.db.base_class import Base

INVOICE_STATUSES = ("brouillon", "envoyee", "payee", "annulee")
RECURRENCE_CADENCES = ("oneshot", "mensuel", "trimestriel", "annuel")


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    mandat_id = Column(Integer, nullable=True)

    invoice_number = Column(String(64), unique=True, nullable=False, index=True)
    issue_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=True)

    total_ht = Column(Numeric(10, 2), default=0.00, nullable=False)
    total_tva = Column(Numeric(10, 2), default=0.00, nullable=False)
    total_ttc = Column(Numeric(10, 2), default=0.00, nullable=False)
    status = Column(String, default="brouillon", nullable=False)
    qr_additional_info = Column(Text, nullable=True)

    is_recurring = Column(String, default="oneshot", nullable=False, index=True)
    recurrence_day = Column(Integer, nullable=True)
    parent_invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=True, index=True)
    next_generation_date = Column(Date, nullable=True)
    auto_send = Column(Boolean, default=False, nullable=False)
    max_occurrences = Column(Integer, nullable=True)
    occurrences_count = Column(Integer, default=0, nullable=False)
    end_date = Column(Date, nullable=True)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc), nullable=False)

    client = relationship("Client", back_populates="invoices")
    owner = relationship("User", back_populates="invoices")
    items = relationship("InvoiceItem", back_populates="invoice", cascade="all, delete-orphan", order_by="InvoiceItem.id")
    parent = relationship("Invoice", remote_side=[id], back_populates="generated_invoices")
    generated_invoices = relationship("Invoice", back_populates="parent")