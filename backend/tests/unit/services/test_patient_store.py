import pytest

from rxbridge.core.exceptions import ResourceNotFoundException
from rxbridge.schemas.patient import PatientRecord, SavePrescriptionRequest
from rxbridge.services.prescription_store import PrescriptionStore


@pytest.mark.asyncio
async def test_inserted_patient_round_trips(patient_store, asha):
    await patient_store.upsert(asha)

    fetched = await patient_store.get_by_id("p1")

    assert fetched == asha


@pytest.mark.asyncio
async def test_unknown_patient_is_not_found(patient_store):
    with pytest.raises(ResourceNotFoundException) as exc_info:
        await patient_store.get_by_id("missing")
    assert exc_info.value.code == 404
    assert exc_info.value.details == {"patient_id": "missing"}


@pytest.mark.asyncio
async def test_upsert_overwrites_by_id(patient_store, asha):
    await patient_store.upsert(asha)
    updated = asha.model_copy(update={"age": 35, "history": ["Diabetes", "Migraine"], "selected_doctor": "doctor2"})

    await patient_store.upsert(updated)

    everyone = await patient_store.get_all()
    assert len(everyone) == 1
    assert everyone[0].age == 35
    assert everyone[0].history == ["Diabetes", "Migraine"]
    assert everyone[0].selected_doctor == "doctor2"


@pytest.mark.asyncio
async def test_empty_store_lists_nothing(patient_store):
    assert await patient_store.get_all() == []


@pytest.mark.asyncio
async def test_patients_by_selected_doctor(seeded_store):
    by_doctor = await seeded_store.get_by_doctor("doctor1")
    assert [p.id for p in by_doctor] == ["p2"]
    assert await seeded_store.get_by_doctor("doctor9") == []


def test_wire_shape_uses_dashboard_field_names():
    record = PatientRecord.model_validate(
        {"id": "p7", "name": "Mina", "age": 29, "diagnosis": "Anemia", "history": [], "selectedDoctor": "doctor1"}
    )
    assert record.selected_doctor == "doctor1"
    assert record.to_wire()["selectedDoctor"] == "doctor1"
    assert "email" not in record.to_wire()


def test_negative_age_is_rejected():
    with pytest.raises(ValueError):
        PatientRecord(id="p8", name="X", age=-1, diagnosis="None")


@pytest.mark.asyncio
async def test_saved_prescriptions_are_listed_by_patient_and_doctor(session_factory):
    store = PrescriptionStore(session_factory)
    first = await store.save(SavePrescriptionRequest(patient_id="p1", symptoms="cough", prescription="Rx A", doctor_id="doctor1"))
    second = await store.save(SavePrescriptionRequest(patient_id="p1", symptoms="fever", prescription="Rx B", doctor_id="doctor2"))

    for_patient = await store.list_for_patient("p1")
    for_doctor = await store.list_for_doctor("doctor1")

    assert {p.id for p in for_patient} == {first.id, second.id}
    assert [p.id for p in for_doctor] == [first.id]
    assert len(first.id) == 32
    assert first.timestamp is not None
