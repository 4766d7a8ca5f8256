"""Visibility-scoped search endpoint."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ...errors import FlashsearchError
from ...query_builder import VisibilityScopedQueryBuilder
from ...search import SearchExecutor, SearchRequest, run_search
from ..dependencies import get_executor, get_query_builder

log = logging.getLogger(__name__)

router = APIRouter()


@router.post("/search")
async def search(
    request: Request,
    builder: VisibilityScopedQueryBuilder = Depends(get_query_builder),
    executor: SearchExecutor = Depends(get_executor),
):
    try:
        body = await request.json()
    except ValueError:
        body = None
    if not isinstance(body, dict):
        body = {}

    try:
        return await run_search(SearchRequest.from_body(body), builder, executor)
    except FlashsearchError as exc:
        if exc.status >= 500:
            log.error("Search error: %s", exc.__cause__ or exc)
        return JSONResponse({"results": [], "error": exc.code}, status_code=exc.status)
    except Exception:
        log.exception("Search error")
        return JSONResponse({"results": [], "error": "search_failed"}, status_code=500)
