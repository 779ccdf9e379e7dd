import pytest
from datetime import date
from decimal import Decimal
from types import SimpleNamespace

from backend.app.db.base import Base
from backend.app.db.session import SessionLocal, engine
from backend.app.models.client import Client
from backend.app.models.invoice import Invoice
from backend.app.models.user import User
from backend.app.schemas.invoice import InvoiceCreate
from backend.app.services.invoices import (
    calculate_invoice_totals,
    calculate_line_total,
    create_invoice,
    generate_invoice_number,
    get_monthly_stats,
)


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


def _line(quantity, unit_price):
    return SimpleNamespace(quantity=quantity, unit_price=unit_price)


def _create_owner_and_client(db):
    user = User(email="owner@example.com", hashed_password="x", is_active=True)
    db.add(user)
    db.commit()
    db.refresh(user)
    client = Client(owner_id=user.id, name="Client SA")
    db.add(client)
    db.commit()
    db.refresh(client)
    return user, client


def _add_invoice(db, user, client, number, issue_date, status, total_ttc):
    invoice = Invoice(
        owner_id=user.id,
        client_id=client.id,
        invoice_number=number,
        issue_date=issue_date,
        status=status,
        total_ht=Decimal(total_ttc),
        total_tva=Decimal("0.00"),
        total_ttc=Decimal(total_ttc),
    )
    db.add(invoice)
    db.commit()
    return invoice


def test_invoice_totals_apply_swiss_vat():
    totals = calculate_invoice_totals([_line(2, "150.00"), _line("1.5", "100.00")])
    assert totals == {
        "total_ht": Decimal("450.00"),
        "total_tva": Decimal("36.45"),
        "total_ttc": Decimal("486.45"),
    }


def test_invoice_totals_without_vat():
    totals = calculate_invoice_totals([_line(3, "33.33")], tva_rate=0)
    assert totals["total_ht"] == Decimal("99.99")
    assert totals["total_tva"] == Decimal("0.00")
    assert totals["total_ttc"] == Decimal("99.99")


def test_line_total_rounds_half_up():
    assert calculate_line_total("0.5", "0.05") == Decimal("0.03")


def test_invoice_number_sequence_ignores_generated_numbers():
    db = SessionLocal()
    try:
        user, client = _create_owner_and_client(db)
        assert generate_invoice_number(db, 2025) == "FAC-2025-0001"
        _add_invoice(db, user, client, "FAC-2025-0001", date(2025, 1, 5), "envoyee", "10.00")
        _add_invoice(db, user, client, "FAC-2025-0001-1736000000000", date(2025, 2, 5), "brouillon", "10.00")
        _add_invoice(db, user, client, "FAC-2024-0042", date(2024, 12, 5), "envoyee", "10.00")
        assert generate_invoice_number(db, 2025) == "FAC-2025-0002"
        assert generate_invoice_number(db, 2024) == "FAC-2024-0043"
    finally:
        db.close()


def test_create_recurring_invoice_schedules_first_generation():
    db = SessionLocal()
    try:
        user, client = _create_owner_and_client(db)
        invoice_in = InvoiceCreate(
            client_id=client.id,
            issue_date=date(2025, 1, 31),
            items=[{"description": "Community management", "quantity": 1, "unit_price": 800}],
            is_recurring="mensuel",
            max_occurrences=12,
        )
        invoice = create_invoice(db, user.id, invoice_in)

        assert invoice.invoice_number == "FAC-2025-0001"
        assert invoice.due_date == date(2025, 3, 2)
        assert invoice.recurrence_day == 31
        assert invoice.next_generation_date == date(2025, 2, 28)
        assert invoice.occurrences_count == 0
        assert invoice.total_ttc == Decimal("864.80")
        assert [item.total for item in invoice.items] == [Decimal("800.00")]
    finally:
        db.close()


def test_create_oneshot_invoice_clears_recurrence_fields():
    db = SessionLocal()
    try:
        user, client = _create_owner_and_client(db)
        invoice_in = InvoiceCreate(
            client_id=client.id,
            issue_date=date(2025, 3, 1),
            tva_applicable=False,
            items=[{"description": "Logo", "quantity": 1, "unit_price": 500}],
            recurrence_day=5,
            auto_send=True,
            max_occurrences=3,
        )
        invoice = create_invoice(db, user.id, invoice_in)

        assert invoice.is_recurring == "oneshot"
        assert invoice.recurrence_day is None
        assert invoice.auto_send is False
        assert invoice.max_occurrences is None
        assert invoice.next_generation_date is None
        assert invoice.total_tva == Decimal("0.00")
    finally:
        db.close()


def test_monthly_stats_split_paid_and_unpaid():
    db = SessionLocal()
    try:
        user, client = _create_owner_and_client(db)
        _add_invoice(db, user, client, "FAC-2025-0001", date(2025, 4, 2), "payee", "300.00")
        _add_invoice(db, user, client, "FAC-2025-0002", date(2025, 4, 20), "envoyee", "100.00")
        _add_invoice(db, user, client, "FAC-2025-0003", date(2025, 4, 21), "brouillon", "999.00")
        _add_invoice(db, user, client, "FAC-2025-0004", date(2025, 5, 1), "payee", "50.00")

        stats = get_monthly_stats(db, user.id, 2025, 4)
        assert stats["month"] == "2025-04"
        assert stats["facturees"] == {"count": 2, "total": "400.00"}
        assert stats["payees"] == {"count": 1, "total": "300.00"}
        assert stats["impayees"] == {"count": 1, "total": "100.00"}
        assert stats["taux_paiement"] == "75.00"
    finally:
        db.close()


def test_monthly_stats_empty_month():
    db = SessionLocal()
    try:
        user, _ = _create_owner_and_client(db)
        stats = get_monthly_stats(db, user.id, 2025, 2)
        assert stats["facturees"] == {"count": 0, "total": "0.00"}
        assert stats["taux_paiement"] == "0.00"
    finally:
        db.close()
