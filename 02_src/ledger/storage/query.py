"""Span query predicates compiled to parameterised SQL."""

from dataclasses import dataclass
from datetime import datetime

from ..models import format_timestamp

VIEW = "visible_timeline"

ORDERINGS = {
    "at_desc": "t.at DESC, t.seq DESC",
    "at_asc": "t.at ASC, t.seq ASC",
    "seq_desc": "t.seq DESC, t.at DESC",
}


@dataclass
class SpanQuery:
    """Filter over the visibility-scoped timeline.

    Every value travels as a bound parameter; only the ordering is spliced
    into the statement, and it comes from ``ORDERINGS``.
    """

    id: str | None = None
    entity_type: str | None = None
    status: str | None = None
    owner_id: str | None = None
    tenant_id: str | None = None
    since: datetime | None = None
    until: datetime | None = None
    order: str = "at_desc"
    limit: int | None = None
    # Drop spans superseded by a higher seq of the same id.
    latest_only: bool = False

    def compile(self) -> tuple[str, list]:
        if self.order not in ORDERINGS:
            raise ValueError(f"Unknown ordering: {self.order}")

        conditions = []
        params: list = []

        if self.id is not None:
            conditions.append("t.id = ?")
            params.append(self.id)
        if self.entity_type is not None:
            conditions.append("t.entity_type = ?")
            params.append(self.entity_type)
        if self.status is not None:
            conditions.append("t.status = ?")
            params.append(self.status)
        if self.owner_id is not None:
            conditions.append("t.owner_id = ?")
            params.append(self.owner_id)
        if self.tenant_id is not None:
            conditions.append("t.tenant_id = ?")
            params.append(self.tenant_id)
        if self.since is not None:
            conditions.append("t.at >= ?")
            params.append(format_timestamp(self.since))
        if self.until is not None:
            conditions.append("t.at <= ?")
            params.append(format_timestamp(self.until))
        if self.latest_only:
            conditions.append(
                f"NOT EXISTS (SELECT 1 FROM {VIEW} AS newer "
                "WHERE newer.id = t.id AND newer.seq > t.seq)"
            )

        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        query = f"""
            SELECT t.*
            FROM {VIEW} AS t
            {where_clause}
            ORDER BY {ORDERINGS[self.order]}
        """
        if self.limit is not None:
            query += " LIMIT ?"
            params.append(self.limit)

        return query, params
