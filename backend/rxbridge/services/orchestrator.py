import asyncio
from typing import Dict, List, Optional

import structlog

from rxbridge.core.llm.gateway import ChatCompletionGateway, CompletionGateway
from rxbridge.core.prompts.prescription import build_prescription_prompt
from rxbridge.rpc.client import RPCClient
from rxbridge.schemas.patient import PatientRecord

logger = structlog.get_logger(__name__)


async def draft_via_server(
    patient_id: str,
    symptoms: str,
    *,
    gateway: Optional[CompletionGateway] = None,
    server_argv: Optional[List[str]] = None,
    server_env: Optional[Dict[str, str]] = None,
) -> str:
    """
    命令行模式 (client mode)

    Reads the patient and the history log through the spawned server, then
    drafts locally with the shared prompt builder and its own gateway. It does
    not call `generate_prescription`, so nothing is appended to the log.
    """
    async with RPCClient(server_argv, env=server_env) as client:
        # two independent reads in flight at once; both are needed before the prompt
        results = await asyncio.gather(
            client.call_tool("get_patient_by_id", {"patient_id": patient_id}),
            client.call_tool("get_prescription_history", {}),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
        patient_result, history_result = results

        patient = PatientRecord.model_validate_json(patient_result.first_text)
        # the sentinel text is passed through, so an empty log still yields a "Past data:" section
        history_text = history_result.first_text

        prompt = build_prescription_prompt(patient, symptoms, history_text)
        gateway = gateway or ChatCompletionGateway.from_settings()
        draft = await gateway.complete(prompt)
        logger.info("orchestrator.drafted", patient_id=patient_id, chars=len(draft))
        return draft
