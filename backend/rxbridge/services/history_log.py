"""
处方历史日志 (Prescription History Log)

A flat, append-only text file shared by every patient. There is no per-patient
index: each generation reads the whole file as prompt context.
"""

import asyncio
import os
import re
from pathlib import Path
from typing import Union

import structlog

from rxbridge.core.exceptions import UpstreamFailureException

logger = structlog.get_logger(__name__)

EMPTY_HISTORY_SENTINEL = "No history available."

_LINE_BREAK = re.compile(r"\r\n|[\r\n]")


def format_entry(patient_id: str, symptoms: str, prescription: str) -> str:
    """One log line. Line breaks inside a multi-line prescription are folded so the entry stays a single line."""
    rx = " / ".join(part.strip() for part in _LINE_BREAK.split(prescription) if part.strip())
    patient_id = _LINE_BREAK.sub(" ", patient_id)
    symptoms = _LINE_BREAK.sub(" ", symptoms)
    return f"Patient: {patient_id} | Symptoms: {symptoms} | Rx: {rx}\n"


class PrescriptionLog:
    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    async def read(self) -> str:
        """Raw log text; a missing file reads as empty."""
        return await asyncio.to_thread(self._read_sync)

    async def read_or_sentinel(self) -> str:
        text = await self.read()
        return text if text.strip() else EMPTY_HISTORY_SENTINEL

    async def append(self, patient_id: str, symptoms: str, prescription: str) -> str:
        line = format_entry(patient_id, symptoms, prescription)
        await asyncio.to_thread(self._append_sync, line.encode("utf-8"))
        logger.info("history_log.appended", patient_id=patient_id, bytes=len(line))
        return line

    def _read_sync(self) -> str:
        try:
            return self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return ""
        except OSError as e:
            # 读取失败按空历史处理，不影响处方生成
            logger.warning("history_log.read_failed", path=str(self.path), error=str(e))
            return ""

    def _append_sync(self, data: bytes) -> None:
        # Single write() on an O_APPEND descriptor: concurrent appenders never split a line.
        try:
            fd = os.open(self.path, os.O_WRONLY | os.O_APPEND | os.O_CREAT, 0o644)
        except OSError as e:
            raise UpstreamFailureException(msg=f"History log not writable: {e}") from e
        try:
            written = os.write(fd, data)
            if written != len(data):
                raise UpstreamFailureException(
                    msg="Short write to history log",
                    details={"expected": len(data), "written": written},
                )
        except OSError as e:
            raise UpstreamFailureException(msg=f"History log append failed: {e}") from e
        finally:
            os.close(fd)
