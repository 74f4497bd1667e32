from fastapi.testclient import TestClient

from woundcare.auth import User
from woundcare.database import SessionLocal
from woundcare.main import app


def login(client: TestClient, username: str = "admin", password: str = "admin") -> None:
    resp = client.post("/login", data={"username": username, "password": password}, follow_redirects=False)
    assert resp.status_code == 303


def _patient_body(**overrides) -> dict:
    body = {
        "firstName": "Jane",
        "lastName": "Doe",
        "dateOfBirth": "1950-04-02",
        "phoneNumber": "555-0100",
        "insurance": "Medicare",
        "referralSource": "County Clinic",
        "salesRep": "Alice Rep",
        "woundSize": "3 x 2 cm",
    }
    body.update(overrides)
    return body


def _add_rep_user():
    session = SessionLocal()
    try:
        session.add(User.create_user("bob", "secret", role="sales_rep", sales_rep_name="Bob Rep"))
        session.commit()
    finally:
        session.close()


def test_sales_rep_lifecycle():
    client = TestClient(app)
    login(client)

    resp = client.post("/api/sales-reps", json={"name": " Alice Rep ", "commissionRate": "12.5"})
    assert resp.status_code == 201, resp.text
    rep = resp.json()
    assert rep["name"] == "Alice Rep"
    assert rep["commissionRate"] == "12.50"

    assert client.post("/api/sales-reps", json={"name": "Alice Rep"}).status_code == 409

    resp = client.delete(f"/api/sales-reps/{rep['id']}")
    assert resp.status_code == 200
    assert resp.json()["isActive"] is False
    assert client.get("/api/sales-reps", params={"active": True}).json() == []
    assert len(client.get("/api/sales-reps").json()) == 1


def test_sales_reps_are_admin_managed():
    _add_rep_user()
    rep = TestClient(app)
    login(rep, "bob", "secret")
    assert rep.post("/api/sales-reps", json={"name": "Sneaky"}).status_code == 403
    assert rep.get("/api/sales-reps").status_code == 200


def test_patient_crud_and_search():
    client = TestClient(app)
    login(client)

    resp = client.post("/api/patients", json=_patient_body())
    assert resp.status_code == 201, resp.text
    patient = resp.json()
    assert patient["patientStatus"] == "Evaluation Stage"
    assert patient["woundArea"] == 6.0

    client.post("/api/patients", json=_patient_body(firstName="Mark", lastName="Smith", patientStatus="In Treatment"))
    assert [p["lastName"] for p in client.get("/api/patients", params={"search": "doe"}).json()] == ["Doe"]
    treating = client.get("/api/patients", params={"status": "In Treatment"}).json()
    assert [p["firstName"] for p in treating] == ["Mark"]

    resp = client.put(f"/api/patients/{patient['id']}", json=_patient_body(patientStatus="IVR Approved"))
    assert resp.json()["patientStatus"] == "IVR Approved"
    assert client.get(f"/api/patients/{patient['id']}/treatments").json() == []

    assert client.delete(f"/api/patients/{patient['id']}").status_code == 204
    assert client.get(f"/api/patients/{patient['id']}").status_code == 404


def test_unknown_patient_status_is_rejected():
    client = TestClient(app)
    login(client)
    assert client.post("/api/patients", json=_patient_body(patientStatus="Discharged??")).status_code == 422


def test_sales_rep_patient_scoping():
    _add_rep_user()
    admin = TestClient(app)
    login(admin)
    admin.post("/api/patients", json=_patient_body())

    rep = TestClient(app)
    login(rep, "bob", "secret")
    assert rep.post("/api/patients", json=_patient_body()).status_code == 403
    resp = rep.post("/api/patients", json=_patient_body(salesRep="Bob Rep", firstName="Own"))
    assert resp.status_code == 201
    assert [p["firstName"] for p in rep.get("/api/patients").json()] == ["Own"]


def test_graft_catalog_listing():
    client = TestClient(app)
    login(client)
    active = client.get("/api/grafts").json()
    everything = client.get("/api/grafts", params={"include_inactive": True}).json()
    assert len(everything) == len(active) + 1
    helicoll = [g for g in active if g["name"] == "Helicoll"][0]
    assert helicoll["qCode"] == "Q4164-Q4"


def test_me_endpoint():
    client = TestClient(app)
    login(client)
    me = client.get("/api/me").json()
    assert me["username"] == "admin"
    assert me["role"] == "admin"
