from pathlib import Path
from typing import List, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.pool import NullPool

from rxbridge.db.session import build_engine, init_models
from rxbridge.schemas.patient import PatientRecord
from rxbridge.services.history_log import PrescriptionLog
from rxbridge.services.patient_store import PatientStore


class StubGateway:
    """Deterministic stand-in for the LLM gateway; records every prompt."""

    def __init__(self, reply: str = "Paracetamol 500 mg every 6 hours for 3 days", error: Optional[Exception] = None):
        self.reply = reply
        self.error = error
        self.prompts: List[str] = []

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def db_url(tmp_path: Path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'rx.db'}"


@pytest_asyncio.fixture
async def session_factory(db_url: str):
    engine = build_engine(db_url, poolclass=NullPool)
    await init_models(engine)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def patient_store(session_factory) -> PatientStore:
    return PatientStore(session_factory)


@pytest.fixture
def asha() -> PatientRecord:
    return PatientRecord(id="p1", name="Asha", age=34, diagnosis="Hypertension", history=["Diabetes"])


@pytest_asyncio.fixture
async def seeded_store(patient_store: PatientStore, asha: PatientRecord) -> PatientStore:
    await patient_store.upsert(asha)
    await patient_store.upsert(
        PatientRecord(id="p2", name="Ravi", age=61, diagnosis="Asthma", history=[], selectedDoctor="doctor1")
    )
    return patient_store


@pytest.fixture
def log_path(tmp_path: Path) -> Path:
    return tmp_path / "past_prescriptions.txt"


@pytest.fixture
def history_log(log_path: Path) -> PrescriptionLog:
    return PrescriptionLog(log_path)


@pytest.fixture
def gateway() -> StubGateway:
    return StubGateway()


@pytest.fixture
def make_gateway():
    return StubGateway
