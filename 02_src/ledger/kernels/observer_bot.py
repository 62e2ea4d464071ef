"""Observer kernel: per-kind activity summary of the last hour."""

from datetime import timedelta

from ..context import ExecutionContext
from ..logging_config import get_logger
from ..models import Span, format_timestamp

logger = get_logger(__name__)

WINDOW = timedelta(hours=1)


async def main(ctx: ExecutionContext) -> dict:
    logger.info("observer_bot kernel executing")
    since = ctx.now() - WINDOW

    rows = await ctx.fetch(
        """
        SELECT entity_type, COUNT(*) AS count, MAX(at) AS latest
        FROM visible_timeline
        WHERE at > ?
        GROUP BY entity_type
        ORDER BY count DESC
        LIMIT 10
        """,
        (format_timestamp(since),),
    )

    span = await ctx.insert_span(
        Span(
            entity_type="observation",
            who="kernel:observer_bot",
            did="observed",
            this="timeline_activity",
            status="complete",
            output={
                "activity_summary": rows,
                "observation_time": format_timestamp(ctx.now()),
            },
            visibility="private",
        )
    )

    return {"success": True, "observations": rows, "span_id": span.id}
