from rxbridge.schemas.patient import PatientRecord

PRESCRIPTION_PROMPT_TEMPLATE = """You are a licensed doctor. Based on the following patient details and symptoms, write a professional, short, and safe prescription using only generic medicine names.

Patient Details:
- Age: {age}
- Diagnosis: {diagnosis}
- History: {history}

Current Symptoms: {symptoms}

{past_data}

Start the prescription directly. Do not include disclaimers or introductions."""


def build_prescription_prompt(patient: PatientRecord, symptoms: str, history_text: str) -> str:
    """
    组装处方 Prompt (pure, deterministic).

    `history_text` is embedded verbatim and never truncated, so the prompt grows
    with the history log.
    """
    past_data = f"Past data:\n{history_text}" if history_text else ""
    return PRESCRIPTION_PROMPT_TEMPLATE.format(
        age=patient.age,
        diagnosis=patient.diagnosis,
        history=", ".join(patient.history),
        symptoms=symptoms,
        past_data=past_data,
    ).strip()
