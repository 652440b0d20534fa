from typing import List

import structlog
from fastapi import APIRouter, Depends

from rxbridge.api.deps import get_patient_store
from rxbridge.schemas.patient import PatientRecord
from rxbridge.services.patient_store import PatientStore

router = APIRouter()
logger = structlog.get_logger(__name__)


@router.get("/patients/{patient_id}")
async def get_patient(patient_id: str, store: PatientStore = Depends(get_patient_store)):
    patient = await store.get_by_id(patient_id)
    return patient.to_wire()


@router.post("/patients")
async def upsert_patient(record: PatientRecord, store: PatientStore = Depends(get_patient_store)):
    """
    保存患者档案 (upsert by id)
    Profile save and registration both land here.
    """
    saved = await store.upsert(record)
    return saved.to_wire()


@router.get("/doctor-patients/{doctor_id}")
async def get_doctor_patients(doctor_id: str, store: PatientStore = Depends(get_patient_store)) -> List[dict]:
    patients = await store.get_by_doctor(doctor_id)
    return [p.to_wire() for p in patients]
