import uuid
from typing import List

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from rxbridge.core.exceptions import UpstreamFailureException
from rxbridge.db.models.patient import Prescription
from rxbridge.schemas.patient import PrescriptionRecord, SavePrescriptionRequest

logger = structlog.get_logger(__name__)


class PrescriptionStore:
    """Saved prescriptions written by the doctor dashboard"""

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def save(self, request: SavePrescriptionRequest) -> PrescriptionRecord:
        row = Prescription(id=uuid.uuid4().hex, **request.model_dump())
        try:
            async with self._session_factory() as session:
                session.add(row)
                await session.commit()
                await session.refresh(row)
        except SQLAlchemyError as e:
            raise UpstreamFailureException(msg=f"Prescription store write failed: {e}") from e
        logger.info("prescription_store.saved", prescription_id=row.id, patient_id=row.patient_id)
        return PrescriptionRecord.model_validate(row)

    async def list_for_patient(self, patient_id: str) -> List[PrescriptionRecord]:
        return await self._list(Prescription.patient_id == patient_id)

    async def list_for_doctor(self, doctor_id: str) -> List[PrescriptionRecord]:
        return await self._list(Prescription.doctor_id == doctor_id)

    async def _list(self, condition) -> List[PrescriptionRecord]:
        stmt = select(Prescription).where(condition).order_by(Prescription.timestamp.desc())
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return [PrescriptionRecord.model_validate(p) for p in result.scalars().all()]
        except SQLAlchemyError as e:
            raise UpstreamFailureException(msg=f"Prescription store query failed: {e}") from e
