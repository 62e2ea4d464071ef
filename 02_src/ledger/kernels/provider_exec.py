"""Provider kernel: records a provider action requested by the boot event."""

from typing import Any, Protocol

from ..context import ExecutionContext
from ..models import Span, format_timestamp, to_jsonable


class IProviderClient(Protocol):
    """Extension point for an external provider integration (none shipped)."""

    async def perform(self, action: str, provider: str, payload: dict) -> Any:
        """Run ``action`` against ``provider``."""
        ...


class ProviderExec:
    """Entry point recording ``provider_action`` spans.

    Without a client the action is only recorded, not performed.
    """

    def __init__(self, client: IProviderClient | None = None):
        self._client = client

    async def __call__(self, ctx: ExecutionContext) -> dict:
        event = ctx.event
        action = event.get("action") or "status"
        provider = event.get("provider") or "default"

        output: dict[str, Any] = {
            "action_performed": action,
            "provider_name": provider,
            "executed_at": format_timestamp(ctx.now()),
        }
        if self._client is not None:
            output["provider_result"] = to_jsonable(
                await self._client.perform(action, provider, event)
            )

        span = await ctx.insert_span(
            Span(
                entity_type="provider_action",
                who="kernel:provider_exec",
                did=action,
                this=provider,
                status="complete",
                input={"action": action, "provider": provider, "event_data": event},
                output=output,
                visibility="private",
            )
        )
        return {
            "success": True,
            "action": action,
            "provider": provider,
            "span_id": span.id,
        }


main = ProviderExec()
