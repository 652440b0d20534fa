import json
from typing import List

import structlog
from fastapi import APIRouter, Depends

from rxbridge.api.deps import get_catalog, get_prescription_store
from rxbridge.rpc.catalog import ToolCatalog
from rxbridge.schemas.patient import GeneratePrescriptionRequest, PrescriptionRecord, SavePrescriptionRequest
from rxbridge.services.prescription_store import PrescriptionStore

router = APIRouter()
logger = structlog.get_logger(__name__)


@router.post("/generate_prescription")
async def generate_prescription(request: GeneratePrescriptionRequest, catalog: ToolCatalog = Depends(get_catalog)):
    """
    处方生成 (Generate Prescription)
    Runs the same `generate_prescription` tool the RPC server exposes and
    passes its payload through.
    """
    args = request.model_dump(exclude={"doctor_id"}, exclude_none=True)
    result = await catalog.invoke("generate_prescription", args)
    payload = json.loads(result.first_text)
    logger.info("http.prescription_generated", patient_id=request.patient_id, doctor_id=request.doctor_id)
    return {
        "prescription": payload["final"],
        "draft": payload["draft"],
        "patient": payload["patient"],
    }


@router.post("/save_prescription", response_model=PrescriptionRecord)
async def save_prescription(request: SavePrescriptionRequest, store: PrescriptionStore = Depends(get_prescription_store)):
    return await store.save(request)


@router.get("/patient-prescriptions/{patient_id}", response_model=List[PrescriptionRecord])
async def get_patient_prescriptions(patient_id: str, store: PrescriptionStore = Depends(get_prescription_store)):
    return await store.list_for_patient(patient_id)


@router.get("/doctor-past-appointments/{doctor_id}", response_model=List[PrescriptionRecord])
async def get_doctor_past_appointments(doctor_id: str, store: PrescriptionStore = Depends(get_prescription_store)):
    return await store.list_for_doctor(doctor_id)
