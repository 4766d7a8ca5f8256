"""Execute scoped searches and shape hits into response items."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from opensearchpy.exceptions import OpenSearchException

from . import config
from .errors import UpstreamError, ValidationError
from .query_builder import VisibilityScopedQueryBuilder, clamp_limit

log = logging.getLogger(__name__)


@dataclass
class SearchRequest:
    query: str
    user_email: str | None
    limit: int | str | None = None
    debug: bool = False

    @classmethod
    def from_body(cls, body: dict) -> SearchRequest:
        return cls(
            query="" if body.get("query") is None else str(body.get("query")),
            user_email=body.get("userEmail"),
            limit=body.get("limit"),
            debug=bool(body.get("debug")),
        )


def shape_hit(hit: dict) -> dict:
    """Flatten a store hit into its stored fields plus id, index and score."""
    return {
        "$id": hit.get("_id"),
        "index": hit.get("_index"),
        "score": hit.get("_score"),
        **(hit.get("_source") or {}),
    }


class SearchExecutor:
    def __init__(self, store, indices: Iterable[str]) -> None:
        self.store = store
        self.indices = tuple(indices)

    async def execute(self, query: dict, size: int) -> list[dict]:
        try:
            resp = await self.store.search(
                index=",".join(self.indices),
                body={"query": query, "size": size},
            )
        except OpenSearchException as exc:
            raise UpstreamError("search_failed") from exc
        hits = (resp.get("hits") or {}).get("hits") or []
        return [shape_hit(h) for h in hits]


async def run_search(
    request: SearchRequest,
    builder: VisibilityScopedQueryBuilder,
    executor: SearchExecutor,
) -> dict:
    """Run a visibility-scoped search.

    Queries shorter than ``MIN_QUERY_LENGTH`` (after trimming) return no
    results without touching the store.
    """
    if not (request.user_email or "").strip():
        raise ValidationError("userEmail_required")

    text = request.query.strip()
    if len(text) < config.MIN_QUERY_LENGTH:
        return {"results": []}

    size = clamp_limit(request.limit)
    query = await builder.build(text, request.user_email)
    results = await executor.execute(query, size)
    response: dict = {"results": results}

    if request.debug:
        debug: dict = {"filtered": results, "unfiltered": []}
        try:
            unscoped = await builder.build(text, request.user_email, scoped=False)
            debug["unfiltered"] = await executor.execute(unscoped, size)
        except UpstreamError as exc:
            log.warning("Unfiltered debug search failed: %s", exc.__cause__ or exc)
            debug["error"] = exc.code
        response["debug"] = debug

    return response
