import asyncio

import pytest

from rxbridge.services.history_log import EMPTY_HISTORY_SENTINEL, format_entry


@pytest.mark.asyncio
async def test_missing_log_reads_as_sentinel(history_log, log_path):
    assert not log_path.exists()
    assert await history_log.read() == ""
    assert await history_log.read_or_sentinel() == EMPTY_HISTORY_SENTINEL


@pytest.mark.asyncio
async def test_append_adds_exactly_one_line(history_log, log_path):
    await history_log.append("p1", "headache, dizziness", "Amlodipine 5 mg once daily")
    await history_log.append("p2", "cough", "Dextromethorphan syrup")

    lines = log_path.read_text(encoding="utf-8").splitlines()
    assert lines == [
        "Patient: p1 | Symptoms: headache, dizziness | Rx: Amlodipine 5 mg once daily",
        "Patient: p2 | Symptoms: cough | Rx: Dextromethorphan syrup",
    ]
    assert (await history_log.read_or_sentinel()).startswith("Patient: p1")


def test_multiline_prescription_is_folded_into_one_line():
    line = format_entry("p1", "fever", "1. Paracetamol 500 mg\n\n2. Oral rehydration salts\n")
    assert line == "Patient: p1 | Symptoms: fever | Rx: 1. Paracetamol 500 mg / 2. Oral rehydration salts\n"
    assert line.count("\n") == 1


@pytest.mark.asyncio
async def test_concurrent_appends_never_interleave(history_log, log_path):
    rx = "Z" * 5000
    await asyncio.gather(*(history_log.append(f"p{i}", f"symptom {i}", rx) for i in range(40)))

    lines = log_path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 40
    assert sorted(lines) == sorted(f"Patient: p{i} | Symptoms: symptom {i} | Rx: {rx}" for i in range(40))


def test_only_cr_and_lf_are_folded():
    symptoms = "rash\x0bitching\x0c night sweats\r\nfever\rchills"
    line = format_entry("p1", symptoms, "Cetirizine 10 mg")

    assert line == (
        "Patient: p1 | Symptoms: rash\x0bitching\x0c night sweats fever chills | Rx: Cetirizine 10 mg\n"
    )
    assert line.count("\n") == 1
    assert "\r" not in line


def test_patient_id_with_line_break_stays_on_one_line():
    line = format_entry("p1\nPatient: p9", "cough", "Honey and warm water")
    assert line == "Patient: p1 Patient: p9 | Symptoms: cough | Rx: Honey and warm water\n"
