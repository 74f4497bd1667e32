import csv
from datetime import date, timedelta
from decimal import Decimal
from io import StringIO

from fastapi.testclient import TestClient

from woundcare.database import SessionLocal
from woundcare.main import app
from woundcare.models import Patient, SalesRep


def login_admin(client: TestClient) -> None:
    resp = client.post("/login", data={"username": "admin", "password": "admin"}, follow_redirects=False)
    assert resp.status_code == 303


def _invoice_body(**overrides) -> dict:
    body = {
        "invoiceDate": "2024-05-01",
        "invoiceNo": "INV-100",
        "treatmentStartDate": "2024-04-28",
        "patientName": "Jane Doe",
        "salesRep": "Alice Rep",
        "provider": "Dr. Smith",
        "graft": "Helicoll",
        "size": "2",
    }
    body.update(overrides)
    return body


def _seed_rep():
    session = SessionLocal()
    try:
        session.add(SalesRep(name="Alice Rep", commission_rate=Decimal("10.00")))
        session.commit()
    finally:
        session.close()


def test_create_invoice_prices_from_graft_catalog():
    client = TestClient(app)
    login_admin(client)
    _seed_rep()

    resp = client.post("/api/invoices", json=_invoice_body())
    assert resp.status_code == 201, resp.text
    data = resp.json()
    assert data["productCode"] == "Q4164-Q4"
    assert data["payableDate"] == "2024-05-31"
    assert Decimal(data["totalBillable"]) == Decimal("3281.86")
    assert Decimal(data["totalInvoice"]) == Decimal("1969.12")
    assert Decimal(data["totalCommission"]) == Decimal("590.74")
    assert Decimal(data["repCommission"]) == Decimal("196.91")
    assert Decimal(data["clinicCommission"]) == Decimal("393.83")


def test_unknown_graft_is_rejected():
    client = TestClient(app)
    login_admin(client)
    resp = client.post("/api/invoices", json=_invoice_body(graft="Mystery Patch"))
    assert resp.status_code == 400
    assert client.get("/api/invoices").json() == []


def test_update_filter_and_delete():
    client = TestClient(app)
    login_admin(client)
    _seed_rep()
    first = client.post("/api/invoices", json=_invoice_body()).json()
    client.post("/api/invoices", json=_invoice_body(invoiceNo="INV-101", invoiceDate="2024-05-03"))

    resp = client.put(f"/api/invoices/{first['id']}", json=_invoice_body(status="closed", size="1"))
    assert resp.status_code == 200
    assert resp.json()["status"] == "closed"
    assert Decimal(resp.json()["totalBillable"]) == Decimal("1640.93")

    closed = client.get("/api/invoices", params={"status": "closed"}).json()
    assert [i["invoiceNo"] for i in closed] == ["INV-100"]
    assert [i["invoiceNo"] for i in client.get("/api/invoices").json()] == ["INV-101", "INV-100"]

    assert client.delete(f"/api/invoices/{first['id']}").status_code == 204
    assert client.put(f"/api/invoices/{first['id']}", json=_invoice_body()).status_code == 404


def test_export_has_one_row_per_invoice():
    client = TestClient(app)
    login_admin(client)
    _seed_rep()
    for number in ("INV-1", "INV-2", "INV-3"):
        client.post("/api/invoices", json=_invoice_body(invoiceNo=number))

    resp = client.get("/api/invoices/export")
    assert resp.status_code == 200
    assert "filename=invoices-" in resp.headers["content-disposition"]
    rows = list(csv.reader(StringIO(resp.content.decode("utf-8-sig"))))
    assert len(rows) == 4
    assert {row[0] for row in rows[1:]} == {"INV-1", "INV-2", "INV-3"}


def test_metrics_are_computed_over_treatment_invoices():
    client = TestClient(app)
    login_admin(client)
    session = SessionLocal()
    try:
        patient = Patient(
            first_name="Jane",
            last_name="Doe",
            date_of_birth=date(1950, 4, 2),
            phone_number="555-0100",
            insurance="Medicare",
            referral_source="County Clinic",
            sales_rep="Alice Rep",
            patient_status="In Treatment",
        )
        session.add(patient)
        session.commit()
        patient_id = patient.id
    finally:
        session.close()

    overdue_payable = (date.today() - timedelta(days=5)).isoformat()
    resp = client.post(
        "/api/treatments",
        json={
            "patientId": patient_id,
            "skinGraftType": "Helicoll",
            "woundSizeAtTreatment": "1",
            "pricePerSqCm": "100",
            "treatmentDate": "2024-01-02",
            "invoiceDate": "2024-01-03",
            "payableDate": overdue_payable,
        },
    )
    assert resp.status_code == 201, resp.text

    metrics = client.get("/api/invoices/metrics").json()
    assert Decimal(metrics["outstandingTotal"]) == Decimal("60.00")
    assert metrics["outstandingCount"] == 1
    assert Decimal(metrics["overdueTotal"]) == Decimal("60.00")
    assert metrics["overdueCount"] == 1
    assert metrics["paidThisMonthCount"] == 0
    assert metrics["totalCount"] == 1
