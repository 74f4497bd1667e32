import datetime
from decimal import Decimal

from woundcare import crud
from woundcare.auth import User
from woundcare.models import (
    CommissionPayment,
    Invoice,
    Patient,
    PipelineNote,
    Referral,
    SalesRep,
    Treatment,
    TreatmentCommission,
)


def test_reset_application_data_clears_domain_tables_and_keeps_users(test_db):
    today = datetime.date.today()
    rep = SalesRep(name="Reset Rep", commission_rate=Decimal("10.00"))
    test_db.add(rep)
    patient = Patient(
        first_name="Test",
        last_name="Patient",
        date_of_birth=datetime.date(1950, 1, 1),
        phone_number="555-0199",
        insurance="Medicare",
        referral_source="Clinic",
        sales_rep=rep.name,
        patient_status="In Treatment",
    )
    test_db.add(patient)
    test_db.flush()

    treatment = Treatment(
        patient_id=patient.id,
        treatment_number=1,
        skin_graft_type="Helicoll",
        wound_size_at_treatment=Decimal("2.00"),
        price_per_sq_cm=Decimal("100.00"),
        treatment_date=today,
        total_revenue=Decimal("200.00"),
        invoice_total=Decimal("120.00"),
        total_commission=Decimal("36.00"),
        clinic_commission=Decimal("24.00"),
        sales_rep=rep.name,
    )
    test_db.add(treatment)
    test_db.flush()
    test_db.add(
        TreatmentCommission(
            treatment_id=treatment.id,
            sales_rep_id=rep.id,
            sales_rep_name=rep.name,
            commission_rate=Decimal("10.00"),
            commission_amount=Decimal("12.00"),
        )
    )
    test_db.add(Referral(patient_name="Referred Person", referral_date=today))
    test_db.add(
        CommissionPayment(
            sales_rep=rep.name,
            period_start=today.replace(day=1),
            period_end=today.replace(day=1),
            date_paid=today,
        )
    )
    admin = test_db.query(User).filter(User.username == "admin").one()
    test_db.add(PipelineNote(user_id=admin.id, content="follow up", sort_order=0))
    test_db.commit()

    assert test_db.query(Treatment).count() == 1
    assert test_db.query(TreatmentCommission).count() == 1

    result = crud.reset_application_data(test_db)
    assert result["patient_treatments"] == 1
    assert result["patients"] == 1

    for model in (Patient, Treatment, TreatmentCommission, Referral, Invoice, CommissionPayment, SalesRep, PipelineNote):
        assert test_db.query(model).count() == 0

    # Users are kept (admin seeded by init_db)
    assert test_db.query(User).count() >= 1
