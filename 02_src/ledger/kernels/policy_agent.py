"""Policy kernel: flags slow executions against the manifest threshold."""

from datetime import timedelta

from ..context import ExecutionContext
from ..logging_config import get_logger
from ..models import Manifest, Span, format_timestamp

logger = get_logger(__name__)

WINDOW = timedelta(hours=1)


async def main(ctx: ExecutionContext) -> dict:
    logger.info("policy_agent kernel executing")

    manifests = await ctx.query(entity_type="manifest", order="at_desc", limit=1)
    manifest = Manifest.from_span(manifests[0]) if manifests else Manifest.empty()
    slow_ms = manifest.slow_ms

    violations = await ctx.fetch(
        """
        SELECT id, entity_type, who, duration_ms, at
        FROM visible_timeline
        WHERE entity_type = 'execution'
          AND duration_ms > ?
          AND at > ?
        ORDER BY duration_ms DESC
        LIMIT 10
        """,
        (slow_ms, format_timestamp(ctx.now() - WINDOW)),
    )

    span = await ctx.insert_span(
        Span(
            entity_type="policy_check",
            who="kernel:policy_agent",
            did="checked",
            this="slow_executions",
            status="violation" if violations else "complete",
            output={
                "slow_threshold_ms": slow_ms,
                "violations_found": len(violations),
                "violations": violations,
            },
            visibility="private",
        )
    )

    return {
        "success": True,
        "policy_threshold_ms": slow_ms,
        "violations_count": len(violations),
        "violations": violations,
        "span_id": span.id,
    }
