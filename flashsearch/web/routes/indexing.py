"""Webhook endpoints that keep the index store in sync with upstream changes."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ...classifier import classify
from ...errors import FlashsearchError
from ...events import decode_event
from ...models import DocKind
from ...reconciler import DocumentReconciler
from ..dependencies import get_reconciler

log = logging.getLogger(__name__)

router = APIRouter(prefix="/index")
legacy_router = APIRouter(include_in_schema=False)


async def _read_body(request: Request):
    try:
        return await request.json()
    except ValueError:
        return None


async def _handle(request: Request, reconciler: DocumentReconciler, family: DocKind | None):
    body = await _read_body(request)
    try:
        event = decode_event(request.headers, body)
        kind = None
        if family is DocKind.TASK:
            kind = DocKind.TASK
        elif family is DocKind.ORGANIZATION:
            kind = classify(event.document, event.hints)
            if kind is DocKind.TASK:
                kind = DocKind.ORGANIZATION
        result = await reconciler.apply(event, kind)
    except FlashsearchError as exc:
        if exc.status >= 500:
            log.error("Index error: %s", exc.__cause__ or exc)
        return JSONResponse({"ok": False, "error": exc.code}, status_code=exc.status)
    except Exception:
        log.exception("Index error")
        return JSONResponse({"ok": False, "error": "index_failed"}, status_code=500)
    return result.to_response()


@router.post("")
async def index_any(request: Request, reconciler: DocumentReconciler = Depends(get_reconciler)):
    """Classify the payload and route it to whichever kind it describes."""
    return await _handle(request, reconciler, None)


@router.post("/task")
async def index_task(request: Request, reconciler: DocumentReconciler = Depends(get_reconciler)):
    return await _handle(request, reconciler, DocKind.TASK)


@router.post("/organization")
async def index_organization(
    request: Request, reconciler: DocumentReconciler = Depends(get_reconciler),
):
    """Organizations, and the teams and members merged into them."""
    return await _handle(request, reconciler, DocKind.ORGANIZATION)


@legacy_router.post("/index")
async def legacy_index(request: Request, reconciler: DocumentReconciler = Depends(get_reconciler)):
    return await _handle(request, reconciler, None)
