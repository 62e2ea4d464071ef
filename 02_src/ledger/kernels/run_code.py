"""UNSAFE escape hatch: runs caller-supplied code.

Unlike bootstrapped functions, the code here comes from the event payload
and is never verified against the ledger. Keep this kernel out of manifests
that do not explicitly need it.
"""

import time
import traceback

from ..context import ExecutionContext
from ..errors import ExecutionError
from ..models import Span, to_jsonable
from ..bootstrap.executors import PythonSourceExecutor

MAX_STORED_CODE = 1000


async def main(ctx: ExecutionContext) -> dict:
    event = ctx.event
    code = event.get("code") or (event.get("body") or {}).get("code")
    if not code:
        raise ExecutionError("No code provided to execute")

    # Recorded first so a cancelled run still leaves a trace.
    started = await ctx.insert_span(
        Span(
            entity_type="execution",
            who=ctx.identity.user_id or "kernel:run_code",
            did="started",
            this="run_code",
            status="running",
            input={"code": code[:MAX_STORED_CODE]},
            visibility="private",
        )
    )

    output = None
    error = None
    start = time.monotonic()
    try:
        output = await PythonSourceExecutor().execute(
            Span(id=started.id, code=code), ctx
        )
    except Exception as e:
        error = {"message": f"{type(e).__name__}: {e}", "stack": traceback.format_exc()}
    duration_ms = int((time.monotonic() - start) * 1000)

    recorded = await ctx.insert_span(
        started.revision(
            did="failed" if error else "executed",
            status="error" if error else "complete",
            output=None if error else to_jsonable(output),
            error=error,
            duration_ms=duration_ms,
        )
    )

    return {
        "success": error is None,
        "output": to_jsonable(output),
        "error": error,
        "duration_ms": duration_ms,
        "span_id": recorded.id,
    }
