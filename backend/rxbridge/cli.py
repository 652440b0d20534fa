"""
Command entry point

    rxbridge server-mode                  serve the tool catalog on stdin/stdout
    rxbridge <patient_id> <symptoms...>   spawn the server and draft a prescription
"""

import argparse
import asyncio
import sys
from typing import List, Optional

import structlog

from rxbridge.core.config import settings
from rxbridge.core.exceptions import AppException
from rxbridge.core.logging.setup import setup_logging

logger = structlog.get_logger(__name__)

SERVER_MODE = "server-mode"


async def serve() -> None:
    from rxbridge.core.llm.gateway import ChatCompletionGateway
    from rxbridge.db.session import close_db, get_session_factory, init_models
    from rxbridge.rpc.catalog import build_catalog
    from rxbridge.rpc.server import run_stdio_server
    from rxbridge.services.history_log import PrescriptionLog
    from rxbridge.services.patient_store import PatientStore

    await init_models()
    catalog = build_catalog(
        PatientStore(get_session_factory()),
        PrescriptionLog(settings.HISTORY_LOG_PATH),
        ChatCompletionGateway.from_settings(),
    )
    try:
        await run_stdio_server(catalog)
    finally:
        await close_db()


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="rxbridge",
        description="Draft a prescription for a patient through the prescription RPC server",
    )
    p.add_argument("patient_id", help="Patient id as stored in the patient database")
    p.add_argument("symptoms", nargs="+", help="Current symptoms (words are joined with spaces)")
    return p


def _check_config() -> bool:
    missing = settings.missing_keys()
    if missing:
        print(f"Set {' and '.join(missing)} in the environment or .env", file=sys.stderr)
        return False
    return True


def main(argv: Optional[List[str]] = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)

    if argv[:1] == [SERVER_MODE]:
        setup_logging("rxbridge-server.log")
        if not _check_config():
            return 1
        try:
            asyncio.run(serve())
        except KeyboardInterrupt:
            return 130
        return 0

    args = build_parser().parse_args(argv)
    symptoms = " ".join(args.symptoms).strip()
    if not symptoms:
        print("Usage: rxbridge <patient_id> <symptoms...>", file=sys.stderr)
        return 2

    setup_logging("rxbridge-client.log")
    if not _check_config():
        return 1

    from rxbridge.services.orchestrator import draft_via_server

    try:
        draft = asyncio.run(draft_via_server(args.patient_id, symptoms))
    except AppException as e:
        logger.error("client.failed", slug=e.slug, error=e.msg)
        print(f"Error [{e.slug}]: {e.msg}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Interrupted by user", file=sys.stderr)
        return 130

    print("\n=== Prescription ===\n")
    print(draft)
    return 0


if __name__ == "__main__":
    sys.exit(main())
