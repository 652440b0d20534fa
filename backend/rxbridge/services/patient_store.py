from typing import List

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from rxbridge.core.exceptions import ResourceNotFoundException, UpstreamFailureException
from rxbridge.db.models.patient import Patient
from rxbridge.schemas.patient import PatientRecord

logger = structlog.get_logger(__name__)


class PatientStore:
    """
    患者档案存储适配器 (Patient Store Adapter)

    Each call opens its own session, so concurrent RPC handlers never share one.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def get_all(self) -> List[PatientRecord]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(select(Patient).order_by(Patient.id))
                return [PatientRecord.model_validate(p) for p in result.scalars().all()]
        except SQLAlchemyError as e:
            raise UpstreamFailureException(msg=f"Patient store query failed: {e}") from e

    async def get_by_id(self, patient_id: str) -> PatientRecord:
        try:
            async with self._session_factory() as session:
                patient = await session.get(Patient, patient_id)
        except SQLAlchemyError as e:
            raise UpstreamFailureException(msg=f"Patient store query failed: {e}") from e
        if patient is None:
            raise ResourceNotFoundException(msg="Patient not found", details={"patient_id": patient_id})
        return PatientRecord.model_validate(patient)

    async def get_by_doctor(self, doctor_id: str) -> List[PatientRecord]:
        try:
            async with self._session_factory() as session:
                stmt = select(Patient).where(Patient.selected_doctor == doctor_id).order_by(Patient.id)
                result = await session.execute(stmt)
                return [PatientRecord.model_validate(p) for p in result.scalars().all()]
        except SQLAlchemyError as e:
            raise UpstreamFailureException(msg=f"Patient store query failed: {e}") from e

    async def upsert(self, record: PatientRecord) -> PatientRecord:
        """按 id 新建或覆盖 (no separate create/update)"""
        values = record.model_dump(by_alias=False)
        try:
            async with self._session_factory() as session:
                patient = await session.get(Patient, record.id)
                if patient is None:
                    patient = Patient(**values)
                    session.add(patient)
                else:
                    for field, value in values.items():
                        if field != "id":
                            setattr(patient, field, value)
                await session.commit()
                await session.refresh(patient)
                logger.info("patient_store.upserted", patient_id=record.id)
                return PatientRecord.model_validate(patient)
        except SQLAlchemyError as e:
            raise UpstreamFailureException(msg=f"Patient store write failed: {e}") from e
