from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class PatientRecord(BaseModel):
    """
    患者档案 (Patient Record)
    Upsert by id; `selectedDoctor` keeps the dashboard's camelCase wire name.
    """
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: str = Field(min_length=1)
    name: str
    age: int = Field(ge=0)
    email: Optional[str] = None
    diagnosis: str
    history: List[str] = Field(default_factory=list)
    selected_doctor: Optional[str] = Field(default=None, alias="selectedDoctor")

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class PrescriptionRecord(BaseModel):
    """已保存处方 (Saved Prescription)"""
    model_config = ConfigDict(from_attributes=True)

    id: str
    patient_id: str
    symptoms: str
    prescription: str
    timestamp: datetime
    doctor_id: Optional[str] = None
    doctor_name: Optional[str] = None


class GeneratePrescriptionRequest(BaseModel):
    patient_id: str
    symptoms: str
    doctor_id: Optional[str] = None
    final_prescription: Optional[str] = None


class SavePrescriptionRequest(BaseModel):
    patient_id: str
    symptoms: str
    prescription: str
    doctor_id: Optional[str] = None
    doctor_name: Optional[str] = None
