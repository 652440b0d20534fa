"""
工具目录 (Tool Catalog)

A fixed table of name -> (input schema, description, handler), built once at
startup by `build_catalog`. Argument validation happens here, before any
handler runs; handlers only ever see a validated input model.
"""

import json
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Type

import structlog
from pydantic import BaseModel, ConfigDict, ValidationError

from rxbridge.core.exceptions import SchemaViolationException, UnknownToolException
from rxbridge.core.llm.gateway import CompletionGateway
from rxbridge.core.prompts.prescription import build_prescription_prompt
from rxbridge.rpc.frames import ToolDescriptor, ToolResult
from rxbridge.services.history_log import PrescriptionLog
from rxbridge.services.patient_store import PatientStore

logger = structlog.get_logger(__name__)


class ToolInput(BaseModel):
    # strict: no str<->int coercion; unknown extra fields are ignored so additive changes stay compatible
    model_config = ConfigDict(strict=True, extra="ignore")


class NoArgs(ToolInput):
    pass


class PatientIdArgs(ToolInput):
    patient_id: str


class GeneratePrescriptionArgs(ToolInput):
    patient_id: str
    symptoms: str
    final_prescription: Optional[str] = None


Handler = Callable[[Any], Awaitable[ToolResult]]


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    input_model: Type[ToolInput]
    handler: Handler

    def descriptor(self) -> ToolDescriptor:
        return ToolDescriptor(
            name=self.name,
            description=self.description,
            input_schema=self.input_model.model_json_schema(),
        )


class ToolCatalog:
    def __init__(self, specs: Iterable[ToolSpec]):
        self._tools: Dict[str, ToolSpec] = {}
        for spec in specs:
            if spec.name in self._tools:
                raise ValueError(f"Duplicate tool name '{spec.name}'")
            self._tools[spec.name] = spec

    @property
    def names(self) -> List[str]:
        return list(self._tools)

    def descriptors(self) -> List[ToolDescriptor]:
        return [spec.descriptor() for spec in self._tools.values()]

    def get(self, name: str) -> ToolSpec:
        spec = self._tools.get(name)
        if spec is None:
            raise UnknownToolException(msg=f"Tool '{name}' is not in the catalog", details={"tool": name})
        return spec

    def validate(self, name: str, args: Dict[str, Any]) -> ToolInput:
        spec = self.get(name)
        try:
            return spec.input_model.model_validate(args or {})
        except ValidationError as e:
            raise SchemaViolationException(
                msg=f"Invalid arguments for '{name}'",
                details={"tool": name, "errors": e.errors(include_url=False, include_context=False)},
            ) from e

    async def invoke(self, name: str, args: Dict[str, Any]) -> ToolResult:
        validated = self.validate(name, args)
        logger.info("tool.execute", tool=name, params=validated.model_dump())
        result = await self._tools[name].handler(validated)
        logger.info("tool.success", tool=name)
        return result


class PrescriptionTools:
    """Handlers for the four prescription tools; each composes the leaf adapters."""

    def __init__(self, store: PatientStore, history_log: PrescriptionLog, gateway: CompletionGateway):
        self.store = store
        self.history_log = history_log
        self.gateway = gateway

    async def get_all_patients(self, _: NoArgs) -> ToolResult:
        patients = await self.store.get_all()
        return ToolResult.text(json.dumps([p.to_wire() for p in patients], indent=2, ensure_ascii=False))

    async def get_patient_by_id(self, args: PatientIdArgs) -> ToolResult:
        patient = await self.store.get_by_id(args.patient_id)
        return ToolResult.text(json.dumps(patient.to_wire(), indent=2, ensure_ascii=False))

    async def get_prescription_history(self, _: NoArgs) -> ToolResult:
        return ToolResult.text(await self.history_log.read_or_sentinel())

    async def generate_prescription(self, args: GeneratePrescriptionArgs) -> ToolResult:
        patient = await self.store.get_by_id(args.patient_id)
        history_text = await self.history_log.read()
        prompt = build_prescription_prompt(patient, args.symptoms, history_text)
        draft = await self.gateway.complete(prompt)

        # the log is only written once a draft exists
        final = args.final_prescription or draft
        await self.history_log.append(args.patient_id, args.symptoms, final)

        payload = {"draft": draft, "final": final, "patient": patient.to_wire()}
        return ToolResult.text(json.dumps(payload, indent=2, ensure_ascii=False))


def build_catalog(store: PatientStore, history_log: PrescriptionLog, gateway: CompletionGateway) -> ToolCatalog:
    tools = PrescriptionTools(store, history_log, gateway)
    return ToolCatalog([
        ToolSpec(
            name="get_all_patients",
            description="List every patient in the database",
            input_model=NoArgs,
            handler=tools.get_all_patients,
        ),
        ToolSpec(
            name="get_patient_by_id",
            description="Fetch a single patient record",
            input_model=PatientIdArgs,
            handler=tools.get_patient_by_id,
        ),
        ToolSpec(
            name="get_prescription_history",
            description="Read the past prescriptions log",
            input_model=NoArgs,
            handler=tools.get_prescription_history,
        ),
        ToolSpec(
            name="generate_prescription",
            description="Draft a new prescription with the language model and append it to the history log",
            input_model=GeneratePrescriptionArgs,
            handler=tools.generate_prescription,
        ),
    ])
