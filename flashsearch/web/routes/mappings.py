"""Diagnostics: raw index schema plus the cached mapping summary."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from opensearchpy.exceptions import OpenSearchException

from ...mappings import MappingSummaryCache, fetch_mapping, summarize
from ..dependencies import get_mapping_cache, get_store

log = logging.getLogger(__name__)

router = APIRouter()


@router.get("/mappings")
async def mappings(
    index: str = Query(""),
    refresh: bool = Query(False),
    store=Depends(get_store),
    cache: MappingSummaryCache = Depends(get_mapping_cache),
):
    indices = [i.strip() for i in index.split(",") if i.strip()] or list(cache.indices)

    if refresh:
        await cache.refresh()

    raw: dict = {}
    try:
        for name in indices:
            raw[name] = await fetch_mapping(store, name)
    except OpenSearchException as exc:
        log.error("Mapping lookup failed: %s", exc)
        return JSONResponse({"error": "mappings_failed"}, status_code=500)

    current = cache.get()
    return {
        "mappings": raw,
        "summary": current.as_dict() if current else {},
        "requested": summarize(raw, indices, cache.fields).as_dict(),
        "loadedAt": current.loaded_at if current else None,
    }
