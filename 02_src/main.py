"""Main entry point for the span ledger.

    python main.py [function_id]   boot one function and print the outcome
    python main.py worker          run the worker loops until interrupted
"""

import asyncio
import json
import sys
from pathlib import Path

from dotenv import load_dotenv

from ledger import Application, LedgerSettings
from ledger.logging_config import get_logger, setup_logging

logger = get_logger(__name__)


async def run_boot(settings: LedgerSettings, function_id: str | None) -> int:
    app = Application(settings)
    await app.start()
    try:
        outcome = await app.boot(function_id)
    finally:
        await app.stop()

    print(json.dumps(outcome.to_dict(), indent=2, default=str))
    return 0 if outcome.success else 1


async def run_workers(settings: LedgerSettings) -> int:
    app = Application(settings)
    await app.start()
    try:
        await app.worker_layer.start(settings.worker_poll_interval)
        logger.info(
            "Workers running, polling every %ss", settings.worker_poll_interval
        )
        await asyncio.Event().wait()
    finally:
        await app.stop()
    return 0


def main():
    """Run the application."""
    project_root = Path(__file__).resolve().parent.parent
    load_dotenv(project_root / ".env")

    args = sys.argv[1:]
    worker_mode = bool(args) and args[0] == "worker"
    setup_logging(console_only=not worker_mode)

    settings = LedgerSettings.from_env()
    try:
        if worker_mode:
            code = asyncio.run(run_workers(settings))
        else:
            code = asyncio.run(run_boot(settings, args[0] if args else None))
    except KeyboardInterrupt:
        code = 0
    sys.exit(code)


if __name__ == "__main__":
    main()
