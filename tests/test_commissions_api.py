import csv
from datetime import date
from decimal import Decimal
from io import StringIO

from fastapi.testclient import TestClient

from woundcare.auth import User
from woundcare.database import SessionLocal
from woundcare.main import app
from woundcare.models import Patient, SalesRep


def login(client: TestClient, username: str = "admin", password: str = "admin") -> None:
    resp = client.post("/login", data={"username": username, "password": password}, follow_redirects=False)
    assert resp.status_code == 303


def seed_reps_and_patients() -> dict[str, int]:
    """Two reps with one treatable patient each."""
    session = SessionLocal()
    try:
        ids = {}
        for rep, rate in (("Alice Rep", Decimal("10.00")), ("Bob Rep", Decimal("5.00"))):
            session.add(SalesRep(name=rep, commission_rate=rate))
            patient = Patient(
                first_name=rep.split()[0],
                last_name="Patient",
                date_of_birth=date(1948, 1, 1),
                phone_number="555-0101",
                insurance="Medicare",
                referral_source="Wound Center",
                sales_rep=rep,
                patient_status="In Treatment",
            )
            session.add(patient)
            session.flush()
            ids[rep] = patient.id
        session.commit()
        return ids
    finally:
        session.close()


def record_closed(client: TestClient, patient_id: int, invoice_date: str, paid_on: str, size: str = "10") -> dict:
    resp = client.post(
        "/api/treatments",
        json={
            "patientId": patient_id,
            "skinGraftType": "Helicoll",
            "woundSizeAtTreatment": size,
            "pricePerSqCm": "100",
            "treatmentDate": invoice_date,
            "invoiceDate": invoice_date,
            "invoiceNo": f"INV-{patient_id}-{invoice_date}",
        },
    )
    assert resp.status_code == 201, resp.text
    treatment = resp.json()
    resp = client.patch(
        f"/api/treatments/{treatment['id']}/invoice-status",
        json={"invoiceStatus": "closed", "paymentDate": paid_on},
    )
    assert resp.status_code == 200, resp.text
    return resp.json()


def test_report_only_includes_closed_invoices():
    client = TestClient(app)
    login(client)
    patients = seed_reps_and_patients()
    record_closed(client, patients["Alice Rep"], "2024-03-10", "2024-04-01")
    client.post(
        "/api/treatments",
        json={
            "patientId": patients["Bob Rep"],
            "skinGraftType": "Helicoll",
            "woundSizeAtTreatment": "10",
            "pricePerSqCm": "100",
            "treatmentDate": "2024-03-11",
        },
    )

    rows = client.get("/api/commission-reports").json()
    assert len(rows) == 1
    row = rows[0]
    assert row["salesRep"] == "Alice Rep"
    assert Decimal(row["commissionAmount"]) == Decimal("60.00")
    assert row["paidAt"] == "2024-04-01"
    assert row["isLegacy"] is True


def test_report_custom_range_and_summary():
    client = TestClient(app)
    login(client)
    patients = seed_reps_and_patients()
    record_closed(client, patients["Alice Rep"], "2024-03-10", "2024-03-20")
    record_closed(client, patients["Alice Rep"], "2024-04-02", "2024-04-25")
    record_closed(client, patients["Bob Rep"], "2024-04-03", "2024-04-26")

    params = {"range": "custom", "start": "2024-04-01", "end": "2024-04-30"}
    rows = client.get("/api/commission-reports", params=params).json()
    assert [r["paidAt"] for r in rows] == ["2024-04-26", "2024-04-25"]

    summary = client.get("/api/commission-reports/summary", params=params).json()
    assert Decimal(summary["totalCommission"]) == Decimal("90.00")
    assert summary["totalInvoices"] == 2
    assert summary["uniqueReps"] == 2
    assert [r["salesRep"] for r in summary["reps"]] == ["Alice Rep", "Bob Rep"]

    rep_only = client.get("/api/commission-reports", params={**params, "salesRep": "Bob Rep"}).json()
    assert [r["salesRep"] for r in rep_only] == ["Bob Rep"]


def test_report_rejects_unknown_range():
    client = TestClient(app)
    login(client)
    assert client.get("/api/commission-reports", params={"range": "fortnight"}).status_code == 400


def test_report_export_is_quoted_csv_attachment():
    client = TestClient(app)
    login(client)
    patients = seed_reps_and_patients()
    record_closed(client, patients["Alice Rep"], "2024-03-10", "2024-03-20")

    resp = client.get("/api/commission-reports/export")
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    assert "attachment; filename=commission-report-" in resp.headers["content-disposition"]
    text = resp.content.decode("utf-8-sig")
    rows = list(csv.reader(StringIO(text)))
    assert rows[0][0] == "Sales Rep"
    assert rows[1][4] == "$60.00"
    assert text.splitlines()[1].startswith('"Alice Rep"')


def test_periods_for_month_with_payment_record():
    client = TestClient(app)
    login(client)
    patients = seed_reps_and_patients()
    record_closed(client, patients["Alice Rep"], "2024-03-10", "2024-03-30")
    record_closed(client, patients["Alice Rep"], "2024-03-16", "2024-03-30", size="5")
    record_closed(client, patients["Bob Rep"], "2024-04-02", "2024-04-30")

    periods = client.get("/api/commission-periods", params={"year": 2024, "month": 3}).json()
    assert [(p["salesRep"], p["periodStart"], p["paymentDate"]) for p in periods] == [
        ("Alice Rep", "2024-03-16", "2024-03-31"),
        ("Alice Rep", "2024-03-01", "2024-03-15"),
    ]
    assert Decimal(periods[1]["totalCommission"]) == Decimal("60.00")
    assert periods[1]["invoiceCount"] == 1
    assert periods[1]["datePaid"] is None
    assert len(periods[1]["records"]) == 1

    resp = client.put(
        "/api/commission-payments",
        json={
            "salesRep": "Alice Rep",
            "periodStart": "2024-03-01",
            "periodEnd": "2024-03-15",
            "datePaid": "2024-03-15",
            "reference": "ACH-1",
        },
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["recordedBy"] == "admin"

    # A second upsert for the same window updates the record in place
    first_id = resp.json()["id"]
    resp = client.put(
        "/api/commission-payments",
        json={
            "salesRep": "Alice Rep",
            "periodStart": "2024-03-01",
            "periodEnd": "2024-03-15",
            "datePaid": "2024-03-16",
            "reference": "ACH-2",
        },
    )
    assert resp.json()["id"] == first_id

    periods = client.get("/api/commission-periods", params={"year": 2024, "month": 3}).json()
    paid = [p for p in periods if p["periodStart"] == "2024-03-01"][0]
    assert paid["datePaid"] == "2024-03-16"
    assert paid["reference"] == "ACH-2"

    export = client.get("/api/commission-periods/export", params={"year": 2024, "month": 3})
    rows = list(csv.reader(StringIO(export.content.decode("utf-8-sig"))))
    assert len(rows) == 3
    assert rows[2][-2:] == ["2024-03-16", "ACH-2"]

    delete_params = {"salesRep": "Alice Rep", "periodStart": "2024-03-01", "periodEnd": "2024-03-15"}
    assert client.delete("/api/commission-payments", params=delete_params).status_code == 204
    assert client.delete("/api/commission-payments", params=delete_params).status_code == 404


def test_periods_reject_bad_month():
    client = TestClient(app)
    login(client)
    assert client.get("/api/commission-periods", params={"year": 2024, "month": 13}).status_code == 400


def test_payment_window_must_be_ordered():
    client = TestClient(app)
    login(client)
    resp = client.put(
        "/api/commission-payments",
        json={
            "salesRep": "Alice Rep",
            "periodStart": "2024-03-16",
            "periodEnd": "2024-03-01",
            "datePaid": "2024-03-31",
        },
    )
    assert resp.status_code == 422


def test_sales_rep_sees_only_own_commissions_and_cannot_record_payments():
    admin = TestClient(app)
    login(admin)
    patients = seed_reps_and_patients()
    record_closed(admin, patients["Alice Rep"], "2024-03-10", "2024-03-20")
    record_closed(admin, patients["Bob Rep"], "2024-03-11", "2024-03-21")

    session = SessionLocal()
    try:
        session.add(User.create_user("bob", "secret", role="sales_rep", sales_rep_name="Bob Rep"))
        session.commit()
    finally:
        session.close()

    rep = TestClient(app)
    login(rep, "bob", "secret")
    # An explicit filter for another rep is ignored for sales reps
    rows = rep.get("/api/commission-reports", params={"salesRep": "Alice Rep"}).json()
    assert [r["salesRep"] for r in rows] == ["Bob Rep"]

    resp = rep.put(
        "/api/commission-payments",
        json={
            "salesRep": "Bob Rep",
            "periodStart": "2024-03-01",
            "periodEnd": "2024-03-15",
            "datePaid": "2024-03-15",
        },
    )
    assert resp.status_code == 403
