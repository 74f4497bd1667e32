"""Patient records."""
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from woundcare import crud
from woundcare.auth import User
from woundcare.database import get_session
from woundcare.dependencies import get_current_user, scoped_rep
from woundcare.models import Patient
from woundcare.schemas import PatientCreate, PatientRead, PatientUpdate, TreatmentRead

router = APIRouter(prefix="/api/patients", tags=["Patients"])


def get_visible_patient(db: Session, patient_id: int, user: User) -> Patient:
    """Load a patient, hiding other reps' patients behind a 404."""
    patient = crud.get_patient(db, patient_id)
    visible = user.visible_rep()
    if patient is None or (visible is not None and patient.sales_rep != visible):
        raise HTTPException(status_code=404, detail="Patient not found")
    return patient


@router.get("", response_model=List[PatientRead])
def list_patients(
    search: Optional[str] = None,
    status: Optional[str] = None,
    db: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    return crud.list_patients(db, sales_rep=scoped_rep(user), search=search, status=status)


@router.post("", response_model=PatientRead, status_code=201)
def create_patient(payload: PatientCreate, db: Session = Depends(get_session), user: User = Depends(get_current_user)):
    visible = user.visible_rep()
    if visible is not None and payload.sales_rep != visible:
        raise HTTPException(status_code=403, detail="Sales reps can only add their own patients")
    return crud.create_patient(db, payload)


@router.get("/{patient_id}", response_model=PatientRead)
def get_patient(patient_id: int, db: Session = Depends(get_session), user: User = Depends(get_current_user)):
    return get_visible_patient(db, patient_id, user)


@router.put("/{patient_id}", response_model=PatientRead)
def update_patient(
    patient_id: int,
    payload: PatientUpdate,
    db: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    patient = get_visible_patient(db, patient_id, user)
    visible = user.visible_rep()
    if visible is not None and payload.sales_rep != visible:
        raise HTTPException(status_code=403, detail="Sales reps cannot reassign patients")
    return crud.update_patient(db, patient, payload)


@router.delete("/{patient_id}", status_code=204)
def delete_patient(patient_id: int, db: Session = Depends(get_session), user: User = Depends(get_current_user)):
    patient = get_visible_patient(db, patient_id, user)
    crud.delete_patient(db, patient)
    return Response(status_code=204)


@router.get("/{patient_id}/treatments", response_model=List[TreatmentRead])
def list_patient_treatments(patient_id: int, db: Session = Depends(get_session), user: User = Depends(get_current_user)):
    patient = get_visible_patient(db, patient_id, user)
    return crud.list_treatments(db, patient_id=patient.id)
