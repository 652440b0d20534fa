from functools import lru_cache

from fastapi import Depends

from rxbridge.core.config import settings
from rxbridge.core.llm.gateway import ChatCompletionGateway, CompletionGateway
from rxbridge.db.session import get_session_factory
from rxbridge.rpc.catalog import ToolCatalog, build_catalog
from rxbridge.services.history_log import PrescriptionLog
from rxbridge.services.patient_store import PatientStore
from rxbridge.services.prescription_store import PrescriptionStore

"""
依赖注入 (FastAPI Dependencies)
Tests swap any of these through `app.dependency_overrides`.
"""


def get_patient_store() -> PatientStore:
    return PatientStore(get_session_factory())


def get_prescription_store() -> PrescriptionStore:
    return PrescriptionStore(get_session_factory())


def get_history_log() -> PrescriptionLog:
    return PrescriptionLog(settings.HISTORY_LOG_PATH)


@lru_cache(maxsize=1)
def get_gateway() -> CompletionGateway:
    return ChatCompletionGateway.from_settings()


def get_catalog(
    store: PatientStore = Depends(get_patient_store),
    history_log: PrescriptionLog = Depends(get_history_log),
    gateway: CompletionGateway = Depends(get_gateway),
) -> ToolCatalog:
    return build_catalog(store, history_log, gateway)
